"""Reliability — retry with backoff for network commands."""
