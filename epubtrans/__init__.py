from epubtrans.errors import (
    ArchiveError,
    BookNotFoundError,
    ConfigError,
    EpubTransError,
    InvalidContainerError,
    TranslationCancelledError,
    TranslationError,
)
from epubtrans.models import Book, BookMetadata, Page, TranslationProgress, TranslationStatus
from epubtrans.orchestrator import BatchTranslator
from epubtrans.service import BookService, TranslationResult

__all__ = [
    "ArchiveError",
    "BookNotFoundError",
    "ConfigError",
    "EpubTransError",
    "InvalidContainerError",
    "TranslationCancelledError",
    "TranslationError",
    "Book",
    "BookMetadata",
    "Page",
    "TranslationProgress",
    "TranslationStatus",
    "BatchTranslator",
    "BookService",
    "TranslationResult",
]
