"""structlog setup shared by the CLI and embedding applications."""

import structlog

_NAME_TO_LEVEL = {
    "critical": 50,
    "error": 40,
    "warning": 30,
    "warn": 30,
    "info": 20,
    "debug": 10,
}


def configure_logging(level: str = "info") -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _NAME_TO_LEVEL.get(level.lower(), 20)
        ),
    )
