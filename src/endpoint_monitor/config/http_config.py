"""
HTTP client configuration module for the endpoint monitoring system.

This module provides functionality to create the HTTP client session shared
by every probe of the process.
"""

import logging

import aiohttp

from endpoint_monitor.config import MonitoringContext

# Module logger
logger = logging.getLogger(__name__)

# Connections kept available for API test runs on top of the monitor checks
TEST_CONNECTION_HEADROOM = 10


def get_http_session(context: MonitoringContext) -> aiohttp.ClientSession:
    """
    Create and configure an HTTP client session based on the provided configuration.

    The connection pool is sized after the number of concurrent monitor checks,
    plus some headroom for API test runs. Must be called from a running event loop.

    Args:
        context: Configuration context containing HTTP client settings.

    Returns:
        aiohttp.ClientSession: A configured HTTP client session.
    """
    connector = aiohttp.TCPConnector(limit=context.worker_number + TEST_CONNECTION_HEADROOM)
    logger.debug(f"HTTP connection limit: {connector.limit}")
    return aiohttp.ClientSession(connector=connector)
