"""Shared helpers for spine-cron tests."""
