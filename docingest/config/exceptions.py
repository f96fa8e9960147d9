class ConfigurationError(Exception):
    """Raised when configuration is present but unusable."""


class ConfigurationMissingError(ConfigurationError):
    """Raised when required settings are absent."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing required settings: {', '.join(missing)}")
