"""Core configuration, clock, and logging helpers."""
