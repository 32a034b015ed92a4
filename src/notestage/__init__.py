"""Note publication, federation dispatch and timeline assembly."""

__version__ = "0.1.0"
