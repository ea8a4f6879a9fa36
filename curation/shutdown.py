"""
curation/shutdown.py

Shared shutdown flag. main.py sets it on SIGINT/SIGTERM and the curation
service checks it before issuing new upstream evaluations.
"""

import asyncio

_shutdown_event = asyncio.Event()


def set_shutdown():
    """Signal that the app is shutting down."""
    _shutdown_event.set()


def clear_shutdown():
    """Reset the flag on startup so a restarted app (or test client) evaluates again."""
    _shutdown_event.clear()


def is_shutting_down() -> bool:
    return _shutdown_event.is_set()
