from docingest.http.exceptions import ServiceHTTPError


class ObjectStoreError(ServiceHTTPError):
    """Raised when the lake filesystem rejects a request."""
