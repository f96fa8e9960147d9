from docingest.analysis.document_analyzer import DocumentAnalyzer
from docingest.config.categories import CategoryConfig, CategoryRegistry
from docingest.config.settings import Settings
from docingest.logging.logger import Log
from docingest.normalization.normalizer import FieldNormalizer
from docingest.processor.content_types import content_type_for
from docingest.processor.exceptions import EmptyDocumentError
from docingest.processor.models import (
    CategoryReport,
    FileOutcome,
    FileState,
    PipelineReport,
    SourceFile,
)
from docingest.processor.pipeline import PipelineContext, PipelineStep
from docingest.processor.steps import AnalyzeStep, DownloadStep, NormalizeStep, PersistStep
from docingest.storage.onelake_client import OneLakeClient


class DocumentPipeline:
    """Orchestrates the per-document processing loop.

    Pipeline per file: existence check -> download -> analyze -> normalize ->
    persist. Categories run one after another and files within a category in
    listing order. A failure on one file is logged and recorded; the loop moves
    on to the next file.
    """

    def __init__(
        self,
        *,
        store: OneLakeClient,
        registry: CategoryRegistry,
        steps: list[PipelineStep],
        force_reprocess: bool = False,
        max_documents_per_category: int = 50,
    ) -> None:
        self._store = store
        self._registry = registry
        self._steps = steps
        self._force = force_reprocess
        self._cap = max_documents_per_category

    def run(self, categories: list[str]) -> PipelineReport:
        """Process every configured category in order."""
        report = PipelineReport()
        for name in categories:
            if not self._registry.is_known(name):
                Log.warning(f"Unrecognized category '{name}', skipping")
                report.unknown_categories.append(name)
                continue
            report.categories.append(self.run_category(self._registry.get(name)))
        Log.info(
            "Pipeline finished",
            categories=len(report.categories),
            persisted=report.persisted,
            failed=report.failed,
        )
        return report

    def run_category(self, category: CategoryConfig) -> CategoryReport:
        report = CategoryReport(category=category.name)
        try:
            self._store.ensure_directory(category.output_dir)
            self._store.ensure_directory(category.manifest_dir)
            paths = self._store.list_files(category.source_dir)
        except Exception as exc:
            Log.error(f"Category {category.name} setup failed: {exc}")
            report.aborted = str(exc)
            return report

        Log.info(f"Category {category.name}: {len(paths)} source files")
        attempted = 0
        for path in paths:
            output_path, manifest_path = artifact_paths(category, path)
            try:
                processed = not self._force and self._store.exists(output_path)
            except Exception as exc:
                Log.error(f"Existence check for {output_path} failed: {exc}")
                report.outcomes.append(FileOutcome(path, FileState.FAILED, reason=str(exc)))
                continue
            if processed:
                Log.info(f"Skipping {path}: already processed")
                report.outcomes.append(
                    FileOutcome(path, FileState.SKIPPED, output_path, "already processed")
                )
                continue
            if attempted >= self._cap:
                Log.info(f"Category {category.name}: reached cap of {self._cap} documents")
                report.capped = True
                break
            attempted += 1
            source = SourceFile(path=path, category=category.name, content_type=content_type_for(path))
            context = PipelineContext(
                category=category,
                source=source,
                output_path=output_path,
                manifest_path=manifest_path,
            )
            report.outcomes.append(self._process(context))

        Log.info(
            f"Category {category.name} done",
            persisted=report.persisted,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    def _process(self, context: PipelineContext) -> FileOutcome:
        path = context.source.path
        try:
            for step in self._steps:
                context = step.run(context)
        except EmptyDocumentError:
            Log.warning(f"Skipping {path}: file is empty")
            return FileOutcome(path, FileState.SKIPPED, reason="empty file")
        except Exception as exc:
            Log.error(f"Processing {path} failed: {exc}", state=context.state.value)
            return FileOutcome(path, FileState.FAILED, reason=str(exc))
        return FileOutcome(path, context.state, context.output_path)


def artifact_paths(category: CategoryConfig, source_path: str) -> tuple[str, str]:
    """Output and manifest paths for a source file, mirroring its relative path."""
    prefix = category.source_dir.rstrip("/") + "/"
    normalized = source_path.lstrip("/")
    if normalized.startswith(prefix):
        relative = normalized[len(prefix):]
    else:
        relative = normalized.rsplit("/", 1)[-1]
    return (
        f"{category.output_dir}/{relative}.json",
        f"{category.manifest_dir}/{relative}.manifest.json",
    )


def build_pipeline(
    settings: Settings,
    store: OneLakeClient,
    analyzer: DocumentAnalyzer,
) -> DocumentPipeline:
    """Build a DocumentPipeline with the standard step sequence."""
    normalizer = FieldNormalizer(api_version=analyzer.api_version)
    steps: list[PipelineStep] = [
        DownloadStep(store),
        AnalyzeStep(analyzer),
        NormalizeStep(normalizer),
        PersistStep(store),
    ]
    return DocumentPipeline(
        store=store,
        registry=CategoryRegistry(settings),
        steps=steps,
        force_reprocess=settings.force_reprocess,
        max_documents_per_category=settings.max_documents_per_category,
    )
