"""Crawl sites and feeds, notify Slack, and archive Slack threads to GitHub."""

__version__ = "0.1.0"