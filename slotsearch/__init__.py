"""Preprocess trade CSV data into binary files and search them over named pipes."""

__version__ = "0.1.0"
__all__ = ["records", "preprocess", "server", "client"]