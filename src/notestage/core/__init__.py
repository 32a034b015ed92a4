"""Core configuration for the note stage service."""
