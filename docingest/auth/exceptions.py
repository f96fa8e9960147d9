class TokenAcquisitionError(Exception):
    """Raised when a bearer token cannot be obtained for an audience."""
