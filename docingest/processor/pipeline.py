from abc import ABC, abstractmethod
from dataclasses import dataclass

from docingest.analysis.models import AnalysisResult
from docingest.config.categories import CategoryConfig
from docingest.normalization.models import NormalizedDocument
from docingest.processor.models import FileState, SourceFile


@dataclass(slots=True)
class PipelineContext:
    category: CategoryConfig
    source: SourceFile
    output_path: str
    manifest_path: str
    state: FileState = FileState.PENDING
    raw_bytes: bytes = b""
    analysis_result: AnalysisResult | None = None
    normalized: NormalizedDocument | None = None


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
