"""
Database configuration module for the endpoint monitoring system.

This module creates the asyncpg connection pool shared by the monitor, API test
and activity persistence. Every pooled connection exchanges jsonb columns as
Python values, so repositories pass dicts and lists straight to their queries.
The pool is validated before it is handed out.
"""

import json
import logging
from typing import Any

import asyncpg

from endpoint_monitor.config import MonitoringContext

# Module logger
logger = logging.getLogger(__name__)


def encode_json(value: Any) -> str:
    """Serializes a jsonb parameter. Values without a JSON form, such as datetimes, become strings."""
    return json.dumps(value, default=str)


async def _init_connection(connection: asyncpg.Connection) -> None:
    """Registers the jsonb codec on a freshly opened pool connection."""
    await connection.set_type_codec(
        "jsonb", encoder=encode_json, decoder=json.loads, schema="pg_catalog"
    )


async def initiate_db_pool(context: MonitoringContext) -> asyncpg.pool.Pool:
    """
    Create and validate the connection pool of the endpoint monitor.

    Each connection gets a jsonb codec on creation. The pool is checked with a
    trivial query; if that fails it is closed and the error is raised.

    Args:
        context: Configuration context holding the DSN and the pool size.

    Returns:
        asyncpg.pool.Pool: The validated pool.

    Raises:
        Exception: If the database connection cannot be established.
    """
    pool: asyncpg.pool.Pool = await asyncpg.create_pool(
        dsn=context.dsn, max_size=context.db_pool_size, init=_init_connection
    )

    try:
        async with pool.acquire() as connection:
            await connection.fetchval("SELECT 1")
        logger.info(f"Database pool ready (max {context.db_pool_size} connections, jsonb codec).")
        return pool
    except Exception as e:
        logger.error(f"Could not connect to the monitoring database: {e}")
        await pool.close()
        raise
