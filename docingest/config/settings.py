from typing import Annotated

from pydantic import field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from docingest.config.exceptions import ConfigurationMissingError
from docingest.config.sources import AzdEnvFileSource, AzdOutputsJsonSource

# Highest precedence first.
SETTINGS_SOURCE_ORDER: tuple[str, ...] = (
    "init",
    "environment",
    "dotenv",
    "azd_outputs",
    "azd_env_file",
)


class Settings(BaseSettings):
    """Application configuration loaded from environment and deployment outputs."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    workspace_id: str = ""
    lakehouse_id: str = ""
    onelake_base_url: str = "https://onelake.dfs.fabric.microsoft.com"
    http_timeout_seconds: int = 60

    document_intelligence_endpoint: str = ""
    document_intelligence_api_version: str = "2023-07-31"
    document_intelligence_key: str = ""
    analysis_poll_interval_seconds: float = 3.0
    analysis_max_attempts: int = 40

    document_categories: Annotated[list[str], NoDecode] = ["invoices"]
    category_model_overrides: dict[str, str] = {}
    force_reprocess: bool = False
    max_documents_per_category: int = 50
    source_root: str = "Files/documents"
    output_root: str = "Files/normalized"
    manifest_root: str = "Files/processed"

    run_table_load: bool = True
    fabric_api_base_url: str = "https://api.fabric.microsoft.com/v1"
    livy_api_version: str = "2023-12-01"
    spark_driver_memory: str = "28g"
    spark_driver_cores: int = 4
    spark_executor_memory: str = "28g"
    spark_executor_cores: int = 4
    spark_num_executors: int = 1
    session_poll_interval_seconds: float = 5.0
    session_ready_timeout_seconds: float = 300.0
    statement_timeout_seconds: float = 1200.0
    header_table_name: str = "document_headers"
    line_item_table_name: str = "document_line_items"

    azure_tenant_id: str = ""
    azure_client_id: str = ""
    azure_client_secret: str = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        available: dict[str, PydanticBaseSettingsSource] = {
            "init": init_settings,
            "environment": env_settings,
            "dotenv": dotenv_settings,
            "azd_outputs": AzdOutputsJsonSource(settings_cls),
            "azd_env_file": AzdEnvFileSource(settings_cls),
        }
        return tuple(available[name] for name in SETTINGS_SOURCE_ORDER)

    @field_validator("document_categories", mode="before")
    @classmethod
    def _split_categories(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def onelake_filesystem_url(self) -> str:
        return f"{self.onelake_base_url.rstrip('/')}/{self.workspace_id}"

    @property
    def livy_base_url(self) -> str:
        return (
            f"{self.fabric_api_base_url.rstrip('/')}/workspaces/{self.workspace_id}"
            f"/lakehouses/{self.lakehouse_id}/livyapi/versions/{self.livy_api_version}"
        )

    def missing(self, *names: str) -> list[str]:
        """Return the subset of ``names`` whose values are empty."""
        return [name for name in names if not str(getattr(self, name, "") or "").strip()]

    def require(self, *names: str) -> None:
        """Raise ConfigurationMissingError if any named setting is empty."""
        missing = self.missing(*names)
        if missing:
            raise ConfigurationMissingError(missing)
