"""Entry point for the WhatsApp AI bridge.

Run: python -m whatsapp_ai.main
"""
import asyncio
import logging
import sys
from typing import Optional

from whatsapp_ai.core.config import Settings
from whatsapp_ai.core.lifecycle import AlreadyRunningError, SystemLifecycle, lifecycle as default_lifecycle
from whatsapp_ai.core.logging_setup import setup_logging
from whatsapp_ai.core.system import WhatsAppAISystem

logger = logging.getLogger(__name__)


def main(settings: Optional[Settings] = None, lifecycle: Optional[SystemLifecycle] = None) -> int:
    """Returns 0 after a graceful shutdown or when another instance already
    runs in this process, 1 when startup fails."""
    setup_logging()
    try:
        system = WhatsAppAISystem(settings=settings, lifecycle=lifecycle or default_lifecycle)
    except AlreadyRunningError:
        logger.warning("⚠️ System is already running")
        return 0
    return asyncio.run(system.run())


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
