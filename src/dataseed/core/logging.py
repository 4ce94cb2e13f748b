import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(settings: Settings, *, console: Console | None = None) -> None:
    """Configure application-wide logging based on settings.

    With a rich `console` (CLI usage) records are rendered by RichHandler,
    otherwise the plain format includes timestamp, level, logger name and message.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if console is not None:
        logging.basicConfig(
            level=level,
            format="%(name)s | %(message)s",
            handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
            force=True,
        )
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)

    # Third-party HTTP client chatter stays at WARNING unless debugging.
    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))
