"""Rendered posts per channel: index building, search, pagination and page output."""
