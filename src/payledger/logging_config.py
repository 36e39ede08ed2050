"""Logging configuration for the payledger CLI."""

import logging
import logging.config

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(levelname)s %(name)s: %(message)s"},
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "simple",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "payledger": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
        "sqlalchemy": {"level": "WARNING", "propagate": True},
    },
}


def configure_logging(level: str = "WARNING", verbose: bool = False) -> None:
    """Apply the logging config with the given level for payledger loggers."""
    level = level.upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"Unknown log level '{level}'")
    config = {
        **LOGGING,
        "loggers": {**LOGGING["loggers"], "payledger": {**LOGGING["loggers"]["payledger"], "level": level}},
        "handlers": {
            "console": {**LOGGING["handlers"]["console"], "formatter": "verbose" if verbose else "simple"}
        },
    }
    logging.config.dictConfig(config)
