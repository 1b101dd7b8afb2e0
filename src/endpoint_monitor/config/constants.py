"""
Constants for the endpoint monitoring system.

This module defines default values for all configurable parameters
of the monitoring system. These constants are used as fallback values
when neither command-line arguments nor environment variables are provided.
"""

# Database configuration defaults; an empty DSN keeps everything in memory
DEFAULT_DSN = ""
DEFAULT_DB_POOL_SIZE = 10

# Worker configuration defaults
DEFAULT_WORKER_ID_PREFIX = "endpoint-monitor-"
DEFAULT_WORKER_NUMBER = 20
DEFAULT_QUEUE_SIZE = 100

# Scheduling and HTTP defaults, in seconds
DEFAULT_TICK_INTERVAL = 60
DEFAULT_MONITOR_TIMEOUT = 5
DEFAULT_TEST_TIMEOUT = 10

# Monitors registered at startup
DEFAULT_MONITORS_FILE = ""

# Logging configuration defaults
DEFAULT_LOGGING_TYPE = "prod"
DEFAULT_LOGGING_CONFIG_FILE = ""
