import logging

from app.core.config import LOG_LEVEL


def configure_logging(level: str = None) -> None:
    """Install a root handler once; later calls only adjust the level."""
    level_name = (level or LOG_LEVEL).upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    root.setLevel(getattr(logging, level_name, logging.INFO))
