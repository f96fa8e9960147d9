import json
from dataclasses import dataclass
from pathlib import Path

from docingest.compute.models import SessionConfig, Statement
from docingest.compute.session_manager import ComputeSessionManager
from docingest.config.settings import Settings
from docingest.logging.logger import Log
from docingest.tables.exceptions import TableLoadError

_DEFAULT_TEMPLATE = Path(__file__).parent / "templates" / "load_tables.txt"


def load_job_template(path: Path | None = None) -> str:
    """Load the PySpark body of the table load job.

    Raises:
        TableLoadError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_TEMPLATE
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TableLoadError(f"Failed to load table load template: {exc}") from exc


@dataclass(frozen=True)
class TableLoadResult:
    statement_id: str
    headers: int
    line_items: int


class TableLoadJob:
    """Loads normalized JSON artifacts into the header and line-item tables.

    The submitted code overwrites both tables and deduplicates headers on
    ``(document_id, source_path)`` and line items on
    ``(document_id, line_number, description)``, so reruns are idempotent.
    """

    def __init__(
        self,
        *,
        categories: list[str],
        output_root: str = "Files/normalized",
        header_table: str = "document_headers",
        line_item_table: str = "document_line_items",
        template_path: Path | None = None,
    ) -> None:
        self._params = {
            "categories": list(categories),
            "output_root": output_root.strip("/"),
            "header_table": header_table,
            "line_item_table": line_item_table,
        }
        self._body = load_job_template(template_path)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TableLoadJob":
        return cls(
            categories=settings.document_categories,
            output_root=settings.output_root,
            header_table=settings.header_table_name,
            line_item_table=settings.line_item_table_name,
        )

    def build_code(self) -> str:
        preamble = f"import json\nPARAMS = json.loads({json.dumps(json.dumps(self._params))})\n\n"
        return preamble + self._body

    def run(self, manager: ComputeSessionManager, config: SessionConfig) -> TableLoadResult:
        Log.info(f"Running table load for categories {self._params['categories']}")
        statement = manager.run_statement(config, self.build_code())
        result = self.parse_output(statement)
        Log.info(
            f"Table load finished: {result.headers} headers, "
            f"{result.line_items} line items"
        )
        return result

    @staticmethod
    def parse_output(statement: Statement) -> TableLoadResult:
        """Read the JSON summary printed as the statement's last output line."""
        lines = [line for line in statement.text_output.splitlines() if line.strip()]
        if not lines:
            raise TableLoadError(f"Statement {statement.id} produced no output")
        try:
            summary = json.loads(lines[-1])
        except json.JSONDecodeError as exc:
            raise TableLoadError(
                f"Statement {statement.id} output is not a JSON summary: {lines[-1]!r}"
            ) from exc
        return TableLoadResult(
            statement_id=statement.id,
            headers=int(summary.get("headers", 0)),
            line_items=int(summary.get("line_items", 0)),
        )
