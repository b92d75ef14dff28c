"""Uploader clients – remote services files are sent to."""

from .gphotos import GooglePhotosClient

__all__ = ["GooglePhotosClient"]
