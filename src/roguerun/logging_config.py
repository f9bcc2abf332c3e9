import logging
import os

LOG_LEVEL_ENV = "ROGUERUN_LOG_LEVEL"


def configure_logging(default_level: int = logging.INFO) -> None:
    """Set up root logging for the roguerun CLI and embedding services.

    The engine logs run lifecycle events at INFO and per-swing combat lines at
    DEBUG under ``roguerun.combat.log``; ROGUERUN_LOG_LEVEL (a level name such
    as DEBUG) overrides ``default_level``, which the CLI derives from ``-v``.
    """
    level_name = os.getenv(LOG_LEVEL_ENV)
    level = default_level
    if level_name:
        level = getattr(logging, level_name.upper(), default_level)
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )
