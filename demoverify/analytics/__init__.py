"""Batch rollups and insights."""
