"""Data access helpers for sources and posts."""
