from dataclasses import dataclass, field
from enum import Enum


class FileState(str, Enum):
    PENDING = "pending"
    ANALYZED = "analyzed"
    NORMALIZED = "normalized"
    PERSISTED = "persisted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceFile:
    """A file discovered under a category's source directory."""

    path: str
    category: str
    content_type: str


@dataclass(frozen=True)
class ManifestEntry:
    """Informational record of one successfully processed source file."""

    source_path: str
    output_path: str
    processed_at: str
    model_id: str
    line_item_count: int


@dataclass(frozen=True)
class FileOutcome:
    source_path: str
    state: FileState
    output_path: str = ""
    reason: str = ""


@dataclass
class CategoryReport:
    """Per-category tally of one pipeline run."""

    category: str
    outcomes: list[FileOutcome] = field(default_factory=list)
    aborted: str = ""
    capped: bool = False

    def count(self, state: FileState) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state is state)

    @property
    def persisted(self) -> int:
        return self.count(FileState.PERSISTED)

    @property
    def skipped(self) -> int:
        return self.count(FileState.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(FileState.FAILED)


@dataclass
class PipelineReport:
    categories: list[CategoryReport] = field(default_factory=list)
    unknown_categories: list[str] = field(default_factory=list)

    @property
    def persisted(self) -> int:
        return sum(report.persisted for report in self.categories)

    @property
    def failed(self) -> int:
        return sum(report.failed for report in self.categories)
