"""Outreach Tracker: a local client pipeline with user-defined columns."""

__version__ = "0.1.0"
