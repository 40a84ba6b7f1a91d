# vecsync/logging/tags.py
"""
Log message tags.

Each subsystem prefixes its messages with one of these so a single log stream
can be grepped per stage:

    logger.info(f"{SCAN} Walking {root}")
"""

from __future__ import annotations

SCAN = "[SCAN]"
DIFF = "[DIFF]"
STATE = "[STATE]"
CHUNKING = "[CHUNKING]"
EMBEDDING = "[EMBEDDING]"
VECTOR_DB = "[VECTOR_DB]"
INDEX = "[INDEX]"
ALIAS = "[ALIAS]"
CLI = "[CLI]"

__all__ = [
    "SCAN",
    "DIFF",
    "STATE",
    "CHUNKING",
    "EMBEDDING",
    "VECTOR_DB",
    "INDEX",
    "ALIAS",
    "CLI",
]
