from docingest.analysis.document_analyzer import DocumentAnalyzer
from docingest.auth.token_provider import BaseTokenProvider
from docingest.config.settings import Settings
from docingest.logging.logger import Log
from docingest.processor.models import PipelineReport
from docingest.processor.processor import build_pipeline
from docingest.storage.onelake_client import OneLakeClient

REQUIRED_SETTINGS: tuple[str, ...] = (
    "workspace_id",
    "lakehouse_id",
    "document_intelligence_endpoint",
)


class IngestionStage:
    """Runs the document pipeline once, or skips it when not configured."""

    def __init__(self, settings: Settings, token_provider: BaseTokenProvider | None) -> None:
        self._settings = settings
        self._token_provider = token_provider

    def run(self) -> PipelineReport | None:
        missing = self._settings.missing(*REQUIRED_SETTINGS)
        if missing:
            Log.info(f"Document ingestion skipped, not configured: {', '.join(missing)}")
            return None
        if self._token_provider is None:
            Log.info("Document ingestion skipped, no Azure credentials configured")
            return None

        store = OneLakeClient.from_settings(self._settings, self._token_provider)
        analyzer = DocumentAnalyzer.from_settings(self._settings, self._token_provider)
        try:
            pipeline = build_pipeline(self._settings, store, analyzer)
            return pipeline.run(self._settings.document_categories)
        finally:
            analyzer.close()
            store.close()
