"""
Configuration context for the endpoint monitoring system.

This module defines a data structure that holds all configuration parameters
for the monitoring system. It serves as a central point for passing configuration
throughout the application.
"""

from typing import NamedTuple


class MonitoringContext(NamedTuple):
    """
    A data structure containing all configuration parameters for the monitoring system.

    This class is immutable and provides a type-safe way to pass configuration
    throughout the application. It is created by parsing command-line arguments
    and environment variables.

    Attributes:
        dsn: Database connection string for PostgreSQL, empty for in-memory stores.
        worker_id: Unique identifier for this worker instance.
        logging_type: Type of logging configuration to use (dev, prod, or custom).
        logging_config_file: Path to custom logging configuration file (if logging_type is 'custom').
        queue_size: Maximum size of the check queue before backpressure is applied.
        worker_number: Maximum number of monitor checks in flight during a tick.
        db_pool_size: Maximum number of connections in the database connection pool.
        tick_interval: Seconds between two checks of every monitor.
        monitor_timeout: Timeout in seconds of a monitor liveness check.
        test_timeout: Timeout in seconds of an API test request.
        monitors_file: Optional JSON file listing monitors to register at startup.
    """

    dsn: str
    worker_id: str
    logging_type: str
    logging_config_file: str
    queue_size: int
    worker_number: int
    db_pool_size: int
    tick_interval: float
    monitor_timeout: float
    test_timeout: float
    monitors_file: str
