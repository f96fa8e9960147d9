"""Deployment-output settings sources.

Provisioning writes its outputs in two places: the ``AZURE_OUTPUTS_JSON``
environment variable (``{"name": {"value": ...}}``) and the per-environment
dotenv file ``.azure/<AZURE_ENV_NAME>/.env``. Output names are camelCase, so
each settings field lists the deployment names it may appear under.
"""

import json
import os
from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from docingest.config.exceptions import ConfigurationError

DEPLOYMENT_OUTPUT_NAMES: dict[str, tuple[str, ...]] = {
    "workspace_id": ("fabricWorkspaceId", "FABRIC_WORKSPACE_ID", "WORKSPACE_ID"),
    "lakehouse_id": ("bronzeLakehouseId", "fabricLakehouseId", "LAKEHOUSE_ID"),
    "document_intelligence_endpoint": (
        "documentIntelligenceEndpoint",
        "DOCUMENT_INTELLIGENCE_ENDPOINT",
        "formRecognizerEndpoint",
    ),
    "azure_tenant_id": ("AZURE_TENANT_ID",),
    "azure_client_id": ("AZURE_CLIENT_ID",),
}


def resolve_first(
    names: tuple[str, ...], values: Mapping[str, Any]
) -> tuple[str, Any] | None:
    """Return ``(name, value)`` for the first name with a non-empty value."""
    for name in names:
        value = values.get(name)
        if value is not None and value != "":
            return name, value
    return None


class _DeploymentOutputsSource(PydanticBaseSettingsSource):
    """Maps raw deployment outputs onto settings fields."""

    @abstractmethod
    def _raw_values(self) -> Mapping[str, Any]:
        """Raw deployment outputs keyed by output name."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        names = (field_name, field_name.upper(), *DEPLOYMENT_OUTPUT_NAMES.get(field_name, ()))
        found = resolve_first(names, self._raw_values())
        if found is None:
            return None, field_name, False
        return found[1], field_name, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field, field_name)
            if value is not None:
                data[key] = value
        return data


class AzdOutputsJsonSource(_DeploymentOutputsSource):
    """Reads deployment outputs from the ``AZURE_OUTPUTS_JSON`` variable."""

    ENV_VAR = "AZURE_OUTPUTS_JSON"

    def __init__(self, settings_cls: type[BaseSettings]) -> None:
        super().__init__(settings_cls)
        self._values = self._load(os.environ.get(self.ENV_VAR, ""))

    def _raw_values(self) -> Mapping[str, Any]:
        return self._values

    @classmethod
    def _load(cls, raw: str) -> dict[str, Any]:
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{cls.ENV_VAR} is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ConfigurationError(f"{cls.ENV_VAR} must be a JSON object")
        values: dict[str, Any] = {}
        for name, entry in parsed.items():
            values[name] = entry.get("value") if isinstance(entry, dict) else entry
        return values


class AzdEnvFileSource(_DeploymentOutputsSource):
    """Reads deployment outputs from ``.azure/<env>/.env``.

    The environment name comes from ``AZURE_ENV_NAME``; when unset, the first
    environment directory (sorted) is used.
    """

    def __init__(self, settings_cls: type[BaseSettings], root: Path | None = None) -> None:
        super().__init__(settings_cls)
        self._root = root if root is not None else Path.cwd()
        self._values = self._load()

    def _raw_values(self) -> Mapping[str, Any]:
        return self._values

    def _load(self) -> dict[str, Any]:
        env_file = self._env_file()
        if env_file is None or not env_file.is_file():
            return {}
        return {k: v for k, v in dotenv_values(env_file).items() if v is not None}

    def _env_file(self) -> Path | None:
        azure_dir = self._root / ".azure"
        env_name = os.environ.get("AZURE_ENV_NAME", "").strip()
        if not env_name:
            if not azure_dir.is_dir():
                return None
            candidates = sorted(p.name for p in azure_dir.iterdir() if p.is_dir())
            if not candidates:
                return None
            env_name = candidates[0]
        return azure_dir / env_name / ".env"
