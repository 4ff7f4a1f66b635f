"""Shared puzzle-room engines: session store, host orchestrator and polling sync client."""

__version__ = "0.3.0"
