"""Incident Relay: rolling incident summaries from short audio reports."""

__version__ = "0.1.0"
