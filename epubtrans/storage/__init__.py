# storage/__init__.py
from epubtrans.storage.repository import BookRepository

__all__ = ["BookRepository"]
