from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from docingest.analysis.models import AnalysisResult
from docingest.config.categories import CategoryConfig
from docingest.normalization.models import LineItem, NormalizedDocument
from docingest.processor.exceptions import EmptyDocumentError
from docingest.processor.models import FileState, SourceFile
from docingest.processor.pipeline import PipelineContext
from docingest.processor.steps import AnalyzeStep, DownloadStep, NormalizeStep, PersistStep


def _make_context() -> PipelineContext:
    category = CategoryConfig(
        name="invoices",
        model_id="prebuilt-invoice",
        source_dir="lh/Files/documents/invoices",
        output_dir="lh/Files/normalized/invoices",
        manifest_dir="lh/Files/processed/invoices",
    )
    return PipelineContext(
        category=category,
        source=SourceFile(
            path="lh/Files/documents/invoices/a.pdf",
            category="invoices",
            content_type="application/pdf",
        ),
        output_path="lh/Files/normalized/invoices/a.pdf.json",
        manifest_path="lh/Files/processed/invoices/a.pdf.manifest.json",
    )


def _make_result() -> AnalysisResult:
    return AnalysisResult(
        status="succeeded",
        model_id="prebuilt-invoice",
        operation_location="https://di.test/operations/1",
        analyze_result={"documents": []},
    )


class TestDownloadStep:
    def test_stores_bytes(self) -> None:
        store = MagicMock()
        store.download.return_value = b"%PDF"
        context = DownloadStep(store).run(_make_context())
        assert context.raw_bytes == b"%PDF"
        store.download.assert_called_once_with("lh/Files/documents/invoices/a.pdf")

    def test_empty_file_raises(self) -> None:
        store = MagicMock()
        store.download.return_value = b""
        with pytest.raises(EmptyDocumentError):
            DownloadStep(store).run(_make_context())


class TestAnalyzeStep:
    def test_calls_analyzer_with_category_model(self) -> None:
        analyzer = MagicMock()
        analyzer.analyze.return_value = _make_result()
        context = _make_context()
        context.raw_bytes = b"%PDF"

        context = AnalyzeStep(analyzer).run(context)

        analyzer.analyze.assert_called_once_with("prebuilt-invoice", b"%PDF", "application/pdf")
        assert context.state is FileState.ANALYZED
        assert context.analysis_result == _make_result()


class TestNormalizeStep:
    def test_requires_analysis(self) -> None:
        with pytest.raises(ValueError):
            NormalizeStep(MagicMock()).run(_make_context())

    def test_passes_source_and_category(self) -> None:
        normalizer = MagicMock()
        normalizer.normalize.return_value = NormalizedDocument(header={"document_id": "X"})
        context = _make_context()
        context.analysis_result = _make_result()

        context = NormalizeStep(normalizer).run(context)

        normalizer.normalize.assert_called_once_with(
            _make_result(),
            source_path="lh/Files/documents/invoices/a.pdf",
            category="invoices",
        )
        assert context.state is FileState.NORMALIZED


class TestPersistStep:
    def test_writes_artifact_then_manifest(self) -> None:
        store = MagicMock()
        context = _make_context()
        context.normalized = NormalizedDocument(
            header={"document_id": "INV-1", "model_id": "prebuilt-invoice"},
            line_items=[LineItem(line_number=1), LineItem(line_number=2)],
        )
        fixed = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

        context = PersistStep(store, clock=lambda: fixed).run(context)

        assert context.state is FileState.PERSISTED
        (artifact_call, manifest_call) = store.upload_json.call_args_list
        assert artifact_call.args[0] == "lh/Files/normalized/invoices/a.pdf.json"
        assert artifact_call.args[1]["header"]["document_id"] == "INV-1"
        assert manifest_call.args == (
            "lh/Files/processed/invoices/a.pdf.manifest.json",
            {
                "source_path": "lh/Files/documents/invoices/a.pdf",
                "output_path": "lh/Files/normalized/invoices/a.pdf.json",
                "processed_at": "2024-06-01T12:00:00+00:00",
                "model_id": "prebuilt-invoice",
                "line_item_count": 2,
            },
        )

    def test_manifest_not_written_when_artifact_fails(self) -> None:
        store = MagicMock()
        store.upload_json.side_effect = RuntimeError("write failed")
        context = _make_context()
        context.normalized = NormalizedDocument(header={"document_id": "INV-1"})

        with pytest.raises(RuntimeError):
            PersistStep(store).run(context)
        assert store.upload_json.call_count == 1

    def test_requires_normalized(self) -> None:
        with pytest.raises(ValueError):
            PersistStep(MagicMock()).run(_make_context())
