class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class EmptyDocumentError(ProcessorError):
    """Raised when a source file has no content to analyze."""
