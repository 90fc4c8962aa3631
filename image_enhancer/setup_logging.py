import logging

from image_enhancer.config.logging_config import apply_logging_config, get_logging_config


def setup_logging(level: str = None) -> None:
    """Logging setup shared by every image_enhancer module.

    - Applies the environment profile (production / development / debug)
    - Honors an explicit level override on top of the profile
    - Ensures a StreamHandler is attached once
    """
    root = logging.getLogger()
    config = get_logging_config()
    if not root.handlers:
        apply_logging_config(config)
    if level:
        try:
            root.setLevel(getattr(logging, level.upper()))
        except AttributeError:
            root.setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger after ensuring logging is initialized."""
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)
