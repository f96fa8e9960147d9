from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime, timezone

from docingest.analysis.document_analyzer import DocumentAnalyzer
from docingest.logging.logger import Log
from docingest.normalization.base import BaseNormalizer
from docingest.processor.exceptions import EmptyDocumentError
from docingest.processor.models import FileState, ManifestEntry
from docingest.processor.pipeline import PipelineContext, PipelineStep
from docingest.storage.onelake_client import OneLakeClient


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DownloadStep(PipelineStep):
    def __init__(self, store: OneLakeClient) -> None:
        self._store = store

    def run(self, context: PipelineContext) -> PipelineContext:
        raw_bytes = self._store.download(context.source.path)
        if not raw_bytes:
            raise EmptyDocumentError(f"{context.source.path} is empty")
        context.raw_bytes = raw_bytes
        Log.debug(f"Downloaded {len(raw_bytes)} bytes from {context.source.path}")
        return context


class AnalyzeStep(PipelineStep):
    def __init__(self, analyzer: DocumentAnalyzer) -> None:
        self._analyzer = analyzer

    def run(self, context: PipelineContext) -> PipelineContext:
        context.analysis_result = self._analyzer.analyze(
            context.category.model_id,
            context.raw_bytes,
            context.source.content_type,
        )
        context.state = FileState.ANALYZED
        Log.info(f"Analyzed {context.source.path} with {context.category.model_id}")
        return context


class NormalizeStep(PipelineStep):
    def __init__(self, normalizer: BaseNormalizer) -> None:
        self._normalizer = normalizer

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.analysis_result is None:
            raise ValueError("PipelineContext.analysis_result must be set before normalization")
        context.normalized = self._normalizer.normalize(
            context.analysis_result,
            source_path=context.source.path,
            category=context.category.name,
        )
        context.state = FileState.NORMALIZED
        return context


class PersistStep(PipelineStep):
    """Writes the normalized artifact, then its manifest entry."""

    def __init__(
        self,
        store: OneLakeClient,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.normalized is None:
            raise ValueError("PipelineContext.normalized must be set before persist")
        self._store.upload_json(context.output_path, context.normalized.to_dict())
        entry = ManifestEntry(
            source_path=context.source.path,
            output_path=context.output_path,
            processed_at=self._clock().isoformat(),
            model_id=str(context.normalized.header.get("model_id") or context.category.model_id),
            line_item_count=len(context.normalized.line_items),
        )
        self._store.upload_json(context.manifest_path, asdict(entry))
        context.state = FileState.PERSISTED
        Log.info(
            f"Persisted {context.output_path} "
            f"({entry.line_item_count} line items)"
        )
        return context
