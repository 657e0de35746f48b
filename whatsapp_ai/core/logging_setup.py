import logging
import sys

from whatsapp_ai.core.config import settings


def setup_logging(level: str = None, log_file: str = None):
    """Configures logging to write to both console and a file."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file or settings.log_file, mode="a", encoding="utf-8"),
        ],
    )
    # Uvicorn ships its own handlers; route its records through ours instead
    logging.getLogger("uvicorn").handlers = []
    logging.getLogger("uvicorn").propagate = True
    logging.getLogger("httpx").setLevel(logging.INFO)
    logging.getLogger("openai").setLevel(logging.INFO)
