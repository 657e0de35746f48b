"""Process supervisor: builds the components in dependency order, serves
the HTTP endpoints and tears everything down on SIGINT/SIGTERM."""
import asyncio
import logging
import signal
from typing import List, Optional

import uvicorn
from fastapi import FastAPI

from whatsapp_ai.core.assistant import MultiAgentSystem
from whatsapp_ai.core.bot import WhatsAppBot
from whatsapp_ai.core.config import Settings, settings as default_settings
from whatsapp_ai.core.formatter import ResponseFormatter
from whatsapp_ai.core.lifecycle import LifecycleState, SystemLifecycle, lifecycle as default_lifecycle
from whatsapp_ai.core.supabase_executor import SupabaseExecutor
from whatsapp_ai.core.transport import ChatTransport, WahaTransport
from whatsapp_ai.routers import status as status_router
from whatsapp_ai.routers import whatsapp as whatsapp_router

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Required configuration is missing."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = missing
        super().__init__(f"Required environment variables not set: {', '.join(missing)}")


class SupervisedServer(uvicorn.Server):
    """Uvicorn server whose termination signals only end the serve loop, so
    the supervisor can run its own shutdown afterwards."""

    def handle_exit(self, sig, frame) -> None:
        logger.info(f"Received signal {sig}, stopping HTTP server")
        self.should_exit = True


def create_app(system: "WhatsAppAISystem") -> FastAPI:
    app = FastAPI(
        title="WhatsApp AI Bridge",
        version="1.0.0",
        description="Answers WhatsApp messages with an AI agent backed by Supabase.",
    )
    app.state.system = system
    app.include_router(status_router.router)
    app.include_router(whatsapp_router.router)
    return app


class WhatsAppAISystem:
    """Owns formatter, Supabase executor, AI agent and WhatsApp bot."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        lifecycle: Optional[SystemLifecycle] = None,
        transport: Optional[ChatTransport] = None,
    ) -> None:
        self.lifecycle = lifecycle or default_lifecycle
        self.lifecycle.claim()

        self.settings = settings or default_settings
        self.transport = transport
        self.response_formatter: Optional[ResponseFormatter] = None
        self.supabase_executor: Optional[SupabaseExecutor] = None
        self.ai_agent: Optional[MultiAgentSystem] = None
        self.whatsapp_bot: Optional[WhatsAppBot] = None
        self.server: Optional[SupervisedServer] = None
        self.app = create_app(self)
        self._startup: Optional[asyncio.Future] = None
        self._stop_requested = False

    def validate_config(self) -> None:
        missing = self.settings.missing_required()
        if missing:
            raise ConfigurationError(missing)
        logger.info("✅ Environment variables OK")

    async def initialize(self) -> None:
        logger.info("🚀 Initializing WhatsApp + AI + Supabase system")
        self.validate_config()

        self.response_formatter = ResponseFormatter()
        self.supabase_executor = SupabaseExecutor(self.settings)
        self.ai_agent = MultiAgentSystem(self.supabase_executor, self.settings)
        if self.transport is None:
            self.transport = WahaTransport(self.settings)
        self.whatsapp_bot = WhatsAppBot(
            self.ai_agent, self.response_formatter, self.transport, self.settings
        )
        logger.info("✅ Components constructed")

        if not await self.supabase_executor.test_connection():
            logger.warning("Continuing without a confirmed Supabase connection")

        await self.whatsapp_bot.initialize()
        self.lifecycle.mark_running()
        logger.info("📱 System ready to receive messages")

    async def serve(self) -> None:
        config = uvicorn.Config(
            self.app, host=self.settings.host, port=self.settings.port, log_config=None
        )
        self.server = SupervisedServer(config)
        logger.info(f"🌐 HTTP server on port {self.settings.port} (health: /health)")
        await self.server.serve()

    async def shutdown(self) -> None:
        logger.info("🛑 Shutting down system")
        try:
            if self.lifecycle.state in (LifecycleState.STARTING, LifecycleState.RUNNING):
                self.lifecycle.begin_shutdown()
            if self.whatsapp_bot is not None:
                await self.whatsapp_bot.destroy()
            logger.info("✅ System stopped")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)
        finally:
            self.lifecycle.release()

    def request_shutdown(self, sig: signal.Signals) -> None:
        """SIGINT/SIGTERM handler: abort a startup in progress, otherwise end
        the serve loop. Teardown itself always happens in `run`."""
        logger.info(f"Received {sig.name}, shutting down")
        self._stop_requested = True
        if self._startup is not None and not self._startup.done():
            self._startup.cancel()
        elif self.server is not None:
            self.server.should_exit = True

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except NotImplementedError:
                logger.debug(f"Signal handlers not supported by this event loop ({sig.name})")

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                pass

    async def run(self) -> int:
        """Initialize, serve until a termination signal, shut down.
        Returns the process exit code."""
        loop = asyncio.get_running_loop()
        self._install_signal_handlers(loop)
        try:
            return await self._run()
        finally:
            self._remove_signal_handlers(loop)

    async def _run(self) -> int:
        self._startup = asyncio.ensure_future(self.initialize())
        try:
            await self._startup
        except asyncio.CancelledError:
            if not self._stop_requested:
                raise
            logger.info("Startup interrupted by signal")
            await self.shutdown()
            return 0
        except Exception as e:
            logger.error(f"❌ Failed to initialize system: {e}", exc_info=True)
            if self.whatsapp_bot is not None:
                await self.shutdown()
            self.lifecycle.release()
            return 1

        try:
            if not self._stop_requested:
                await self.serve()
        finally:
            await self.shutdown()
        return 0
