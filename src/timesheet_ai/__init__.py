"""Timesheet AI - daily achievement timesheet with AI-generated summaries."""

__version__ = "0.1.0"
