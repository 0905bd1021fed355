"""Command line interface for spine-cron."""

from spine_cron.cli.app import app

__all__ = ["app"]
