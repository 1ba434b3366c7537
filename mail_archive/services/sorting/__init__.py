"""Rule-based classification (sort)."""

from .classifier import EmailClassifier, document_fields

__all__ = ["EmailClassifier", "document_fields"]
