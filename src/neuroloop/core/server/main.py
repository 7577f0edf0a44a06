"""NeuroLoop server entry point: ``python -m neuroloop.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from neuroloop.core.config.settings import get_settings
from neuroloop.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the NeuroLoop MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.neuroloop_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.neuroloop_allow_insecure_bind and not _is_loopback_host(settings.neuroloop_host):
        raise RuntimeError(
            "Refusing to bind the metrics server to a non-loopback host without an auth layer. "
            "Set NEUROLOOP_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting NeuroLoop metrics server on %s:%d",
        settings.neuroloop_host,
        settings.neuroloop_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.neuroloop_host,
        port=settings.neuroloop_port,
    )


if __name__ == "__main__":
    run()
