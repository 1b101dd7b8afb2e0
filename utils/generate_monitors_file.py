#!/usr/bin/env python3
"""
Script to generate a monitors file for the endpoint monitor.

This script writes a JSON list of monitor definitions that can be passed to
the application with --monitors-file. The generated monitors follow these
specifications:
- owner_id is one of a few fixed test users
- name is 'monitor-<n>'
- url points at the mock server (utils/mock_server.py), mostly /text, some /flaky and /slow
- interval_minutes is between 1 and 15

The generated list is written to a file named 'monitors.json'.
"""

import json
import random
from pathlib import Path
from typing import Any, Dict, List

# Number of monitors to generate
MONITORS_TO_GENERATE = 200

OWNERS = ("user-1", "user-2", "user-3")
PATHS = ("/text", "/text", "/text", "/json/1", "/flaky", "/slow")


def generate_monitor(index: int) -> Dict[str, Any]:
    """Generate a single monitor definition.

    Args:
        index: The position of the monitor, used in its name.

    Returns:
        Dict[str, Any]: A monitor definition.
    """
    return {
        "owner_id": random.choice(OWNERS),
        "name": f"monitor-{index}",
        "url": f"http://localhost:8080{random.choice(PATHS)}",
        "interval_minutes": random.randint(1, 15),
    }


def generate_monitors() -> List[Dict[str, Any]]:
    return [generate_monitor(i + 1) for i in range(MONITORS_TO_GENERATE)]


def main() -> None:
    """Generate the monitor definitions and save them to 'monitors.json'.

    Returns:
        None
    """
    output_file = Path("monitors.json")
    with open(output_file, "w") as f:
        json.dump(generate_monitors(), f, indent=2)

    print(f"{MONITORS_TO_GENERATE} monitors have been generated and saved to {output_file}")


if __name__ == "__main__":
    main()
