"""Exception types raised by context-extender components."""

from __future__ import annotations


class ContextExtenderError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(ContextExtenderError):
    """Raised for invalid or unreadable configuration."""


class ExtractionError(ContextExtenderError):
    """Raised when a source document cannot be read."""


class PersistenceError(ContextExtenderError):
    """Raised when an index or conversation cannot be written or read back."""


class CollaboratorError(ContextExtenderError):
    """Raised when a language-model call fails."""


class SynthesisError(CollaboratorError):
    """Raised when iterative answer generation cannot complete."""


class IndexNotFoundError(ContextExtenderError):
    """Raised by the application layer when a named index does not exist."""


class ConversationNotFoundError(ContextExtenderError):
    """Raised by the application layer when a named conversation does not exist."""
