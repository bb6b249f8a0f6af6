"""
Error types for TidyAI.

Batch-local classifier failures share the ClassifierError base so the
pipeline can degrade a single batch without aborting the run.
"""


class TidyAIError(Exception):
    """Base class for all TidyAI errors."""


class ConfigError(TidyAIError):
    """Provider configuration is incomplete (missing key, base URL or path)."""


class NotAccessibleError(TidyAIError):
    """The target directory does not exist or cannot be listed."""


class ClassifierError(TidyAIError):
    """A classifier request could not produce a usable grouping."""


class TransportError(ClassifierError):
    """The classifier endpoint was unreachable or returned an HTTP error."""


class EmptyResponseError(ClassifierError):
    """The classifier replied with blank content."""


class TruncatedResponseError(ClassifierError):
    """The response was cut off by a length limit and must not be parsed."""


class InvalidStructureError(ClassifierError):
    """The response does not contain a valid grouping."""


class ClassificationFailedError(TidyAIError):
    """Not a single classifier request succeeded."""


class CoverageError(TidyAIError):
    """The final grouping does not place every entry exactly once."""


class UndoRecordError(TidyAIError):
    """The undo record could not be read or written."""


class NameCollisionError(TidyAIError):
    """Two top-level names differ only by case and cannot be told apart."""
