"""Taskboard: data-access and cache-aside core for subjects and work items."""

__version__ = "1.0.0"
