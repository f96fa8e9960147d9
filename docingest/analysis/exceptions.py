from docingest.analysis.models import AnalysisResult


class AnalysisError(Exception):
    """Base exception for document analysis failures."""


class AnalysisFailedError(AnalysisError):
    """Raised when the analysis operation reports a terminal failure.

    ``result`` holds the terminal status and the service's error message.
    """

    def __init__(self, message: str, result: AnalysisResult) -> None:
        super().__init__(message)
        self.result = result


class AnalysisTimeoutError(AnalysisError):
    """Raised when the analysis operation does not finish within the poll ceiling."""
