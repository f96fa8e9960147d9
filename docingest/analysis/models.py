from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AnalysisResult:
    """Raw service response for one analyzed document."""

    status: str
    model_id: str
    operation_location: str
    analyze_result: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == "succeeded"
