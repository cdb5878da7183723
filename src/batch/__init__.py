"""Batch window and scheduling."""
