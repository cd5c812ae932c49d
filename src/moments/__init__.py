"""Moments - quick note capture into a single Markdown file."""

__version__ = "0.1.0"
