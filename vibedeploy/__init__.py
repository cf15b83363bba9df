"""Vibe Deploy: Slack reaction to deployment command bridge."""

__version__ = "0.1.0"
