class NormalizationError(Exception):
    """Raised when an analysis result cannot be normalized."""
