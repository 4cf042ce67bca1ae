"""Logfire setup for apps embedding the credit-gating engine."""

from __future__ import annotations

import logging

import logfire

from stellium.config import settings

_configured = False


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure logfire and route stdlib logging through it.

    Safe to call more than once; only the first call has an effect.
    """
    global _configured
    if _configured:
        return

    logfire.configure(
        token=settings.logfire_token,
        service_name=settings.app_name,
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )

    # Request/response capture is noisy, keep it to dev
    if settings.environment == "dev":
        logfire.instrument_httpx(capture_all=True)
    logfire.instrument_pydantic(record="failure")

    logging.basicConfig(
        level=level,
        format="[%(asctime)s][%(name)s][%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logfire.LogfireLoggingHandler(),
        ],
    )
    _configured = True
