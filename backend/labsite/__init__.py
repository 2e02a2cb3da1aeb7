"""Backend API for 0xJerry's Lab."""

__version__ = "0.1.0"
