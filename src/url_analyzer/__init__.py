"""Analyze web pages: fetch, extract, summarize and store."""

__version__ = "1.0.0"
