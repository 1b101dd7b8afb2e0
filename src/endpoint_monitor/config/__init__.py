"""
Configuration module for the endpoint monitoring system.

This module provides functionality to parse command-line arguments and environment
variables to create a configuration context for the monitoring system. It defines
default values and help text for all configurable parameters.
"""

import argparse
import os
from typing import Any, List, Optional
from uuid import uuid4

from endpoint_monitor.config.constants import (
    DEFAULT_DB_POOL_SIZE,
    DEFAULT_DSN,
    DEFAULT_LOGGING_CONFIG_FILE,
    DEFAULT_LOGGING_TYPE,
    DEFAULT_MONITOR_TIMEOUT,
    DEFAULT_MONITORS_FILE,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_TEST_TIMEOUT,
    DEFAULT_TICK_INTERVAL,
    DEFAULT_WORKER_ID_PREFIX,
    DEFAULT_WORKER_NUMBER,
)
from endpoint_monitor.config.monitoring_context import MonitoringContext


def get_context(argv: Optional[List[str]] = None) -> MonitoringContext:
    """
    Parse command-line arguments and environment variables to create a configuration context.

    This function creates an argument parser with options for all configurable aspects
    of the monitoring system. For each option, it first checks for a command-line argument,
    then falls back to an environment variable, and finally uses a default value.

    Args:
        argv: Arguments to parse, sys.argv[1:] when None.

    Returns:
        MonitoringContext: A configuration context object containing all parsed settings.
    """
    parser = argparse.ArgumentParser(
        description="Checks the uptime and latency of HTTP endpoints on a recurring schedule."
    )

    parser.add_argument(
        "-dsn",
        type=str,
        default=os.getenv("ENDPOINT_MONITOR_DSN", DEFAULT_DSN),
        help="Specifies the DSN (connection string) for the PostgreSQL database.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_DSN environment variable.\n"
        "If that is also absent, API tests, results and activity are kept in memory.",
    )

    parser.add_argument(
        "-wid",
        "--worker-id",
        type=str,
        default=os.getenv("ENDPOINT_MONITOR_WORKER_ID", f"{DEFAULT_WORKER_ID_PREFIX}{uuid4()}"),
        help="Specifies the worker ID for the monitoring service.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_WORKER_ID environment variable.\n"
        f"If that is also absent, the default value will be {DEFAULT_WORKER_ID_PREFIX}-uuid4().",
    )

    parser.add_argument(
        "-ps",
        "--db-pool-size",
        type=int,
        default=int(os.getenv("ENDPOINT_MONITOR_DB_POOL_SIZE", DEFAULT_DB_POOL_SIZE)),
        help="Specifies the maximum number of connections in the database connection pool.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_DB_POOL_SIZE environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_DB_POOL_SIZE} is used.",
    )

    parser.add_argument(
        "-wn",
        "--worker-number",
        type=int,
        default=int(os.getenv("ENDPOINT_MONITOR_WORKER_NUMBER", DEFAULT_WORKER_NUMBER)),
        help="Specifies the maximum number of concurrent monitor checks.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_WORKER_NUMBER environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_WORKER_NUMBER} is used.",
    )

    parser.add_argument(
        "-qs",
        "--queue-size",
        type=int,
        default=int(os.getenv("ENDPOINT_MONITOR_QUEUE_SIZE", DEFAULT_QUEUE_SIZE)),
        help="Specifies the maximum number of monitors waiting in the check queue.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_QUEUE_SIZE environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_QUEUE_SIZE} is used.",
    )

    parser.add_argument(
        "-ti",
        "--tick-interval",
        type=float,
        default=float(os.getenv("ENDPOINT_MONITOR_TICK_INTERVAL", DEFAULT_TICK_INTERVAL)),
        help="Specifies the number of seconds between two checks of every monitor.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_TICK_INTERVAL environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_TICK_INTERVAL} seconds is used.",
    )

    parser.add_argument(
        "-mt",
        "--monitor-timeout",
        type=float,
        default=float(os.getenv("ENDPOINT_MONITOR_MONITOR_TIMEOUT", DEFAULT_MONITOR_TIMEOUT)),
        help="Specifies the timeout in seconds of a monitor liveness check.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_MONITOR_TIMEOUT environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_MONITOR_TIMEOUT} seconds is used.",
    )

    parser.add_argument(
        "-tt",
        "--test-timeout",
        type=float,
        default=float(os.getenv("ENDPOINT_MONITOR_TEST_TIMEOUT", DEFAULT_TEST_TIMEOUT)),
        help="Specifies the timeout in seconds of an API test request.\n"
        "If not provided, the value is read from the ENDPOINT_MONITOR_TEST_TIMEOUT environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_TEST_TIMEOUT} seconds is used.",
    )

    parser.add_argument(
        "-mf",
        "--monitors-file",
        type=str,
        default=os.getenv("ENDPOINT_MONITOR_MONITORS_FILE", DEFAULT_MONITORS_FILE),
        help="Path to a JSON file listing the monitors to register at startup.\n"
        "Each entry holds owner_id, name, url and optionally interval_minutes and project_id.",
    )

    parser.add_argument(
        "-lt",
        "--logging-type",
        type=str,
        default=os.getenv("ENDPOINT_MONITOR_LOGGING_TYPE", DEFAULT_LOGGING_TYPE),
        help="Specifies the logging configuration type to use.\n"
        "Allowed values: dev, prod, custom (case insensitive).\n"
        "For 'dev' and 'prod', system will use built-in configurations.\n"
        "For 'custom', the --logging-config-file argument is required.",
    )

    parser.add_argument(
        "-lcf",
        "--logging-config-file",
        type=str,
        default=os.getenv("ENDPOINT_MONITOR_LOGGING_CONFIG_FILE", DEFAULT_LOGGING_CONFIG_FILE),
        help="Path to custom logging configuration file.\n"
        "Required when --logging-type is set to 'custom'.",
    )

    # Parse the command-line arguments
    args: Any = parser.parse_args(argv)

    # Create and return a MonitoringContext with the parsed settings
    return MonitoringContext(
        dsn=args.dsn,
        worker_id=args.worker_id,
        logging_type=args.logging_type,
        logging_config_file=args.logging_config_file,
        queue_size=args.queue_size,
        worker_number=args.worker_number,
        db_pool_size=args.db_pool_size,
        tick_interval=args.tick_interval,
        monitor_timeout=args.monitor_timeout,
        test_timeout=args.test_timeout,
        monitors_file=args.monitors_file,
    )
