"""
Configuration lookup.

Settings come from the process environment.
"""

from __future__ import annotations

import os

__all__ = [
    "MONGO_URL",
    "REDIS_SERVERS",
    "REDIS_DB",
    "REDIS_PASSWORD",
    "DEFAULT_MONGO_URL",
    "get_setting",
]

MONGO_URL = "MONGO_URL"
REDIS_SERVERS = "REDIS_SERVERS"
REDIS_DB = "REDIS_DB"
REDIS_PASSWORD = "REDIS_PASSWORD"

DEFAULT_MONGO_URL = "https://mongo.do"


def get_setting(name: str, default: str = "") -> str:
    """Return a setting by name, or default when it is unset."""
    return os.environ.get(name, default)
