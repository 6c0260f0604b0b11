from __future__ import annotations

import logging
from pathlib import Path

import discord
from discord.ext import commands

from core.config import AppConfig
from core.errors import handle_app_command_error
from database.base import DocumentBackend, build_backend
from database.repositories import CounterAllocator, SettingsRepository, TicketStore
from services.locks import LockRegistry
from services.scheduler import DeletionScheduler
from services.ticket_service import TicketService, TicketServiceDeps
from services.transcript_service import TranscriptService

LOGGER = logging.getLogger(__name__)


class TicketBot(commands.Bot):
    def __init__(self, config: AppConfig) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            application_id=config.discord.application_id,
            allowed_mentions=discord.AllowedMentions(
                everyone=False,
                roles=True,
                users=True,
                replied_user=False,
            ),
            help_command=None,
        )
        self.config = config
        self.root_dir = Path(__file__).resolve().parent.parent
        self.backend: DocumentBackend = build_backend(config.database.url)

        # Services are initialized during setup_hook.
        self.ticket_store: TicketStore
        self.ticket_service: TicketService
        self.transcript_service: TranscriptService

    async def setup_hook(self) -> None:
        await self.backend.connect()

        self.ticket_store = TicketStore(self.backend)
        deps = TicketServiceDeps(
            ticket_store=self.ticket_store,
            counter=CounterAllocator(self.backend),
            settings_repo=SettingsRepository(self.backend),
            locks=LockRegistry(),
            scheduler=DeletionScheduler(),
        )
        self.ticket_service = TicketService(self.config.tickets, deps)
        self.transcript_service = TranscriptService(
            self.config.transcripts,
            brand=self.config.tickets.brand_name,
            history_limit=self.config.tickets.history_limit,
        )

        await self.ticket_service.bootstrap()
        await self._load_cogs()

        if self.config.discord.sync_commands_on_start:
            await self._sync_commands()

        self.tree.on_error = handle_app_command_error  # type: ignore[assignment]

    async def _load_cogs(self) -> None:
        for ext in self.config.enabled_extensions:
            try:
                await self.load_extension(ext)
                LOGGER.info("Loaded extension: %s", ext)
            except commands.ExtensionAlreadyLoaded:
                LOGGER.warning("Extension already loaded: %s", ext)
            except commands.ExtensionError:
                LOGGER.exception("Failed to load extension: %s", ext)
        if self.get_cog("TicketsCog") is None:
            raise RuntimeError("The tickets extension did not load; refusing to start without ticket handling")

    async def _sync_commands(self) -> None:
        guild_id = self.config.discord.guild_id
        if guild_id:
            guild = discord.Object(id=guild_id)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            LOGGER.info("Synced %s application commands to guild %s", len(synced), guild_id)
        else:
            synced = await self.tree.sync()
            LOGGER.info("Synced %s application commands", len(synced))

    async def on_ready(self) -> None:
        LOGGER.info("Bot ready as %s (%s)", self.user, self.user.id if self.user else "n/a")
        activity_type = self.config.discord.activity_type.lower()
        if activity_type == "playing":
            activity = discord.Game(name=self.config.discord.status_text)
        elif activity_type == "listening":
            activity = discord.Activity(
                type=discord.ActivityType.listening, name=self.config.discord.status_text
            )
        else:
            activity = discord.Activity(
                type=discord.ActivityType.watching, name=self.config.discord.status_text
            )
        await self.change_presence(status=discord.Status.online, activity=activity)

    async def close(self) -> None:
        if hasattr(self, "ticket_service"):
            await self.ticket_service.shutdown()
        await super().close()
        await self.backend.close()
