"""
Main entry point for the endpoint monitoring application.

This module initializes and runs the endpoint monitoring system. It sets up logging,
creates the HTTP session and the optional database pool, wires the monitoring and
API test services, registers the startup monitors and runs the check loop until the
application is terminated.
"""

import asyncio
import json
import logging
from typing import Any, List, NamedTuple, Optional

import aiohttp
import asyncpg

from endpoint_monitor.activity.delegating_sink import DelegatingActivitySink
from endpoint_monitor.activity.emitter import ActivityEmitter
from endpoint_monitor.activity.logging_sink import LoggingActivitySink
from endpoint_monitor.activity.postgres_sink import PostgresActivitySink
from endpoint_monitor.checker import MonitorChecker
from endpoint_monitor.config import MonitoringContext, get_context
from endpoint_monitor.config.db_config import initiate_db_pool
from endpoint_monitor.config.http_config import get_http_session
from endpoint_monitor.config.logging_config import configure_logging
from endpoint_monitor.contracts import ActivitySink
from endpoint_monitor.errors import ValidationError
from endpoint_monitor.probe.aiohttp_probe import AiohttpProbe
from endpoint_monitor.repository.memory import (
    InMemoryApiTestRepository,
    InMemoryApiTestResultRepository,
)
from endpoint_monitor.repository.postgres import (
    PostgresApiTestRepository,
    PostgresApiTestResultRepository,
    PostgresMonitorRepository,
)
from endpoint_monitor.runner import ApiTestRunner
from endpoint_monitor.service import ApiTestService, MonitorService
from endpoint_monitor.store.monitor_store import InMemoryMonitorStore


class Services(NamedTuple):
    """The wired services of a running application."""

    monitors: MonitorService
    api_tests: ApiTestService
    emitter: ActivityEmitter


def build_services(
    context: MonitoringContext,
    http_session: aiohttp.ClientSession,
    db_pool: Optional[asyncpg.pool.Pool],
) -> Services:
    """
    Wires every component of the monitoring core.

    With a database pool, monitors, API tests, results and activity events are
    stored in PostgreSQL; without one they are kept in memory only.

    Args:
        context: Configuration context containing all application settings.
        http_session: The shared HTTP session.
        db_pool: The database pool, or None.

    Returns:
        Services: The monitor and API test services.
    """
    probe = AiohttpProbe(http_session)

    sinks: List[ActivitySink] = [LoggingActivitySink()]
    if db_pool is not None:
        sinks.append(PostgresActivitySink(worker_id=context.worker_id, pool=db_pool))
    emitter = ActivityEmitter(DelegatingActivitySink(sinks))

    store = InMemoryMonitorStore(
        repository=PostgresMonitorRepository(db_pool) if db_pool is not None else None
    )
    monitors = MonitorService(
        store=store,
        checker=MonitorChecker(store, probe, emitter, timeout=context.monitor_timeout),
        emitter=emitter,
        worker_id=context.worker_id,
        num_workers=context.worker_number,
        queue_size=context.queue_size,
    )

    if db_pool is not None:
        tests = PostgresApiTestRepository(db_pool)
        results = PostgresApiTestResultRepository(db_pool)
    else:
        tests = InMemoryApiTestRepository()
        results = InMemoryApiTestResultRepository()
    api_tests = ApiTestService(
        tests=tests,
        results=results,
        runner=ApiTestRunner(tests, results, probe, emitter, timeout=context.test_timeout),
    )
    return Services(monitors=monitors, api_tests=api_tests, emitter=emitter)


async def register_monitors(service: MonitorService, monitors_file: str) -> int:
    """
    Registers the monitors listed in a JSON file and schedules their first check.

    A definition whose owner already has a monitor on the same URL, for example
    one restored from the database, is skipped.

    Args:
        service: The monitor service.
        monitors_file: Path to a JSON list of monitor definitions.

    Returns:
        int: The number of newly registered monitors.

    Raises:
        RuntimeError: If the file cannot be read.
        ValidationError: If a definition is malformed.
    """
    try:
        with open(monitors_file) as f:
            definitions: Any = json.load(f)
    except (OSError, json.JSONDecodeError) as err:
        raise RuntimeError(f"Could not read monitors file: {monitors_file}") from err

    if not isinstance(definitions, list):
        raise ValidationError("The monitors file must contain a JSON list.")

    registered = 0
    for definition in definitions:
        if not isinstance(definition, dict):
            raise ValidationError("Each monitor definition must be a JSON object.")
        url = definition.get("url")
        owned = await service.list_monitors(definition.get("owner_id"))
        if isinstance(url, str) and any(m.url == url.strip() for m in owned):
            continue
        await service.create(
            owner_id=definition.get("owner_id"),
            name=definition.get("name"),
            url=definition.get("url"),
            interval_minutes=definition.get("interval_minutes"),
            project_id=definition.get("project_id"),
            check_immediately=True,
        )
        registered += 1
    return registered


async def main(context: MonitoringContext) -> None:
    """
    Set up and run the endpoint monitoring application.

    This function initializes all components of the monitoring system:
    1. Creates an HTTP session for making requests
    2. Establishes the database connection pool when a DSN is configured
    3. Wires the monitor and API test services
    4. Registers the startup monitors and starts the check loop
    5. Handles graceful shutdown when the application is terminated

    Args:
        context: Configuration context containing all application settings.

    Returns:
        None
    """
    logger: logging.Logger = logging.getLogger(__name__)
    logger.info("Starting application...")

    http_session: aiohttp.ClientSession = get_http_session(context)
    logger.info("configured: http_session")

    db_pool: Optional[asyncpg.pool.Pool] = None
    services: Optional[Services] = None
    try:
        if context.dsn:
            db_pool = await initiate_db_pool(context)
            logger.info("initialized: db_pool")

        services = build_services(context, http_session, db_pool)

        loaded = await services.monitors.load_monitors()
        if loaded:
            logger.info(f"Restored {loaded} monitors from the database")

        if context.monitors_file:
            count = await register_monitors(services.monitors, context.monitors_file)
            logger.info(f"Registered {count} monitors from {context.monitors_file}")

        logger.info("Services initialized. Starting monitoring loop...")
        await services.monitors.start(context.tick_interval)
        await services.monitors.wait_closed()

    except asyncio.CancelledError:
        logger.info("Application shutdown requested.")
    finally:
        logger.info("Shutting down resources...")
        if services:
            await services.monitors.stop()
        await http_session.close()
        if db_pool:
            await db_pool.close()
        logger.info("Shutdown complete.")


if __name__ == "__main__":
    try:
        # Parse command-line arguments and environment variables
        endpoint_monitor_context: MonitoringContext = get_context()

        # Configure logging based on the context
        configure_logging(endpoint_monitor_context)

        # Run the main application
        asyncio.run(main(endpoint_monitor_context))
    except KeyboardInterrupt:
        logging.info("Shutdown initiated by user (Ctrl+C).")
