from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import uvicorn

from core.api import create_api_app
from core.bot import TicketBot
from core.config import AppConfig, ConfigError, load_config
from core.logging import configure_logging

LOGGER = logging.getLogger("ticketbot")

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config" / "config.yaml"


def build_health_server(config: AppConfig) -> uvicorn.Server:
    api = create_api_app(config.fastapi)
    return uvicorn.Server(
        uvicorn.Config(
            app=api,
            host=config.fastapi.host,
            port=config.fastapi.port,
            log_level=config.logging.level.lower(),
        )
    )


async def _run_bot(config: AppConfig) -> None:
    bot = TicketBot(config=config)
    async with bot:
        server: uvicorn.Server | None = None
        api_task: asyncio.Task[None] | None = None
        if config.fastapi.enabled:
            server = build_health_server(config)
            api_task = asyncio.create_task(server.serve(), name="health-server")
        try:
            await bot.start(config.discord.token)
        finally:
            if server is not None and api_task is not None:
                server.should_exit = True
                await asyncio.gather(api_task, return_exceptions=True)


def main(config_path: Path | None = None) -> None:
    try:
        config = load_config(config_path or DEFAULT_CONFIG_PATH)
    except ConfigError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    configure_logging(config.logging)
    LOGGER.info(
        "Starting %s ticket bot. storage=%s close_policy=%s health=%s",
        config.tickets.brand_name,
        config.database.url,
        config.tickets.close_policy,
        f"{config.fastapi.host}:{config.fastapi.port}" if config.fastapi.enabled else "off",
    )
    asyncio.run(_run_bot(config))


if __name__ == "__main__":
    main()
