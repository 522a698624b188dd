"""Batch image conversion with size-targeted quality search."""

__version__ = "1.0.0"
