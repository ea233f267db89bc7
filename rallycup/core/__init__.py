"""Core module for the rallycup application."""

from .types import FirestoreDocument

__all__ = ["FirestoreDocument"]
