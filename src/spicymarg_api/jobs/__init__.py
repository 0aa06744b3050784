"""Recurring job entrypoints for funnel reporting."""

__all__ = ["metrics"]
