"""Bangumoe: anime collection client with Bangumi binding and sync."""

__version__ = "0.1.0"
