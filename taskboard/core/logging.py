import logging.config


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once at process start."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                }
            },
            "root": {"level": level.upper(), "handlers": ["console"]},
            "loggers": {
                # SQL echo is controlled by the engine, keep it quiet here
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )
