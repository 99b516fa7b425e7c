"""Logging setup for the CLI."""
import logging

from rich.logging import RichHandler


def setup_logging(level: str = "WARNING", console=None) -> logging.Logger:
    """Route the package's log records through rich; safe to call more than once."""
    logger = logging.getLogger("quiz_tutor")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
    return logger
