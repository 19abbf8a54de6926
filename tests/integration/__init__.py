"""Integration tests for pysmarther."""
