class TableLoadError(Exception):
    """Raised when the table load job cannot be built or its output read."""
