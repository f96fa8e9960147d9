from dataclasses import dataclass
from typing import ClassVar

from docingest.config.settings import Settings


@dataclass(frozen=True)
class CategoryConfig:
    """Source, output and manifest locations plus the model for one category."""

    name: str
    model_id: str
    source_dir: str
    output_dir: str
    manifest_dir: str


class CategoryRegistry:
    """Resolves configured category names into CategoryConfig entries."""

    DEFAULT_MODELS: ClassVar[dict[str, str]] = {
        "invoices": "prebuilt-invoice",
        "receipts": "prebuilt-receipt",
    }

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._models = {**self.DEFAULT_MODELS, **settings.category_model_overrides}

    def is_known(self, name: str) -> bool:
        return name in self._models

    def get(self, name: str) -> CategoryConfig:
        """Build the configuration for ``name``.

        Raises:
            KeyError: if the category has no model mapping.
        """
        model_id = self._models[name]
        lakehouse = self._settings.lakehouse_id
        return CategoryConfig(
            name=name,
            model_id=model_id,
            source_dir=_join(lakehouse, self._settings.source_root, name),
            output_dir=_join(lakehouse, self._settings.output_root, name),
            manifest_dir=_join(lakehouse, self._settings.manifest_root, name),
        )


def _join(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part.strip("/"))
