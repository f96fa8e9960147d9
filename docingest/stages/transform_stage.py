import uuid

from docingest.auth.token_provider import BaseTokenProvider
from docingest.compute.exceptions import ComputeUnavailableError
from docingest.compute.models import SessionConfig
from docingest.compute.session_manager import ComputeSessionManager
from docingest.config.settings import Settings
from docingest.logging.logger import Log
from docingest.tables.table_load_job import TableLoadJob, TableLoadResult


class TransformStage:
    """Loads normalized artifacts into managed tables through a compute session.

    The stage is optional infrastructure: missing configuration or an
    unprovisioned compute capability skips it instead of failing the run.
    """

    def __init__(self, settings: Settings, token_provider: BaseTokenProvider | None) -> None:
        self._settings = settings
        self._token_provider = token_provider

    def run(self) -> TableLoadResult | None:
        if not self._settings.run_table_load:
            Log.info("Table load disabled by configuration")
            return None
        missing = self._settings.missing("workspace_id", "lakehouse_id")
        if missing:
            Log.info(f"Table load skipped, not configured: {', '.join(missing)}")
            return None
        if self._token_provider is None:
            Log.info("Table load skipped, no Azure credentials configured")
            return None

        job = TableLoadJob.from_settings(self._settings)
        config = SessionConfig.from_settings(
            self._settings, name=f"docingest-table-load-{uuid.uuid4().hex[:8]}"
        )
        manager = ComputeSessionManager.from_settings(self._settings, self._token_provider)
        try:
            return job.run(manager, config)
        except ComputeUnavailableError as exc:
            Log.warning(f"Table load skipped, compute unavailable: {exc}")
            return None
        finally:
            manager.close()
