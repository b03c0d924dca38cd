"""HTTP trigger surface."""

from .app import CORS_HEADERS, create_app, is_authorized

__all__ = ["CORS_HEADERS", "create_app", "is_authorized"]
