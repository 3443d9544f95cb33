# visit_scheduling/logging_config.py
import logging

from visit_scheduling.config import get_settings


def setup_logging() -> None:
    settings = get_settings()
    level = logging.DEBUG if settings.ENV == "local" else getattr(
        logging, settings.LOG_LEVEL.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
