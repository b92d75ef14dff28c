"""Upload local image folders to Google Photos, skipping anything already uploaded."""

__version__ = "0.1.0"
