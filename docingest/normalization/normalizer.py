"""Analysis-result normalizer."""

import uuid
from typing import Any

from docingest.analysis.models import AnalysisResult
from docingest.logging.logger import Log
from docingest.normalization.base import BaseNormalizer
from docingest.normalization.exceptions import NormalizationError
from docingest.normalization.fields import currency_code, text_value
from docingest.normalization.models import LineItem, NormalizedDocument
from docingest.normalization.schema import (
    CURRENCY_CANDIDATES,
    DOCUMENT_ID_SOURCES,
    HEADER_FIELDS,
    LINE_ITEM_FIELDS,
    LINE_ITEMS_FIELD,
    apply_rule,
)

_DOCUMENT_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "docingest/document-id")


def generated_document_id(source_path: str) -> str:
    """Stable id for documents whose analysis carries none."""
    return str(uuid.uuid5(_DOCUMENT_ID_NAMESPACE, source_path))


class FieldNormalizer(BaseNormalizer):
    """Maps analysis results onto NormalizedDocument using the field tables."""

    def __init__(self, *, api_version: str = "") -> None:
        self._api_version = api_version

    def normalize(
        self,
        result: AnalysisResult,
        *,
        source_path: str,
        category: str,
    ) -> NormalizedDocument:
        analyze_result = result.analyze_result or {}
        document = _select_document(analyze_result)
        if document is None:
            raise NormalizationError(f"Analysis of {source_path} contains no documents")
        cells: dict[str, Any] = document.get("fields") or {}

        header = self._build_header(cells, document, analyze_result, result, source_path, category)
        line_items = _build_line_items(cells.get(LINE_ITEMS_FIELD))
        Log.debug(
            f"Normalized {source_path}: document {header['document_id']}, "
            f"{len(line_items)} line items"
        )
        return NormalizedDocument(header=header, line_items=line_items)

    def _build_header(
        self,
        cells: dict[str, Any],
        document: dict[str, Any],
        analyze_result: dict[str, Any],
        result: AnalysisResult,
        source_path: str,
        category: str,
    ) -> dict[str, Any]:
        document_id = _first_text(cells, DOCUMENT_ID_SOURCES)
        header: dict[str, Any] = {
            "document_id": document_id or generated_document_id(source_path),
            "document_id_generated": document_id is None,
            "category": category,
            "source_path": source_path,
            "doc_type": document.get("docType"),
        }
        for rule in HEADER_FIELDS:
            header[rule.target] = apply_rule(rule, cells)
        header["currency_code"] = _currency_code(cells)
        header["confidence"] = document.get("confidence")
        header["model_id"] = analyze_result.get("modelId") or result.model_id
        header["api_version"] = analyze_result.get("apiVersion") or self._api_version or None
        return header


# Files containing several documents are normalized from the first one only.
def _select_document(analyze_result: dict[str, Any]) -> dict[str, Any] | None:
    documents = analyze_result.get("documents") or []
    if not documents:
        return None
    if len(documents) > 1:
        Log.debug(f"Analysis returned {len(documents)} documents, using the first")
    first = documents[0]
    return first if isinstance(first, dict) else None


def _first_text(cells: dict[str, Any], sources: tuple[str, ...]) -> str | None:
    for source in sources:
        value = text_value(cells.get(source))
        if value:
            return value
    return None


def _currency_code(cells: dict[str, Any]) -> str | None:
    for name in CURRENCY_CANDIDATES:
        code = currency_code(cells.get(name))
        if code:
            return code
    return None


def _build_line_items(items_cell: Any) -> list[LineItem]:
    if not isinstance(items_cell, dict):
        return []
    line_items: list[LineItem] = []
    for entry in items_cell.get("valueArray") or []:
        value_object = entry.get("valueObject") if isinstance(entry, dict) else None
        if not isinstance(value_object, dict):
            continue
        values = {rule.target: apply_rule(rule, value_object) for rule in LINE_ITEM_FIELDS}
        if all(value is None for value in values.values()):
            continue
        line_items.append(LineItem(line_number=len(line_items) + 1, **values))
    return line_items
