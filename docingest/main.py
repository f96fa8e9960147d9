from docingest.auth.token_provider import BaseTokenProvider, MsalTokenProvider
from docingest.config.settings import Settings
from docingest.logging.logger import Log
from docingest.stages.ingestion_stage import IngestionStage
from docingest.stages.transform_stage import TransformStage

CREDENTIAL_SETTINGS = ("azure_tenant_id", "azure_client_id", "azure_client_secret")


def build_token_provider(settings: Settings) -> BaseTokenProvider | None:
    missing = settings.missing(*CREDENTIAL_SETTINGS)
    if missing:
        Log.info(f"No token provider, missing: {', '.join(missing)}")
        return None
    return MsalTokenProvider.from_settings(settings)


def main() -> int:
    """Entry point: load settings -> ingest documents -> load tables."""
    settings = Settings()
    Log.configure(settings.log_level)
    Log.info(f"docingest starting (env={settings.app_env})")

    token_provider = build_token_provider(settings)
    report = IngestionStage(settings, token_provider).run()

    try:
        TransformStage(settings, token_provider).run()
    except Exception as exc:
        Log.error(f"Table load failed: {exc}")
        return 1

    if report is not None and report.failed:
        Log.warning(f"{report.failed} documents failed and will be retried on the next run")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
