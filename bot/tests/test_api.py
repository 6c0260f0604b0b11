from __future__ import annotations

from fastapi.testclient import TestClient

from core.api import create_api_app
from core.config import FastApiConfig


def test_liveness_returns_plain_text() -> None:
    client = TestClient(create_api_app(FastApiConfig(liveness_text="Ticket Bot Online")))

    response = client.get("/")

    assert response.status_code == 200
    assert response.text == "Ticket Bot Online"
    assert response.headers["content-type"].startswith("text/plain")


def test_no_other_routes() -> None:
    client = TestClient(create_api_app(FastApiConfig()))

    assert client.get("/health").status_code == 404
    assert client.get("/docs").status_code == 404
