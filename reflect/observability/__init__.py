"""Logging setup and per-session log context."""
