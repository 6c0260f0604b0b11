from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from core.config import FastApiConfig


def create_api_app(config: FastApiConfig) -> FastAPI:
    app = FastAPI(title="Ticket Bot", version="1.0.0", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=PlainTextResponse)
    async def liveness() -> str:
        return config.liveness_text

    return app
