"""Shared helpers: durations, timestamps, recency caps, error logging."""
