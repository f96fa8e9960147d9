from dataclasses import dataclass, field
from typing import Any

from docingest.config.settings import Settings


@dataclass(frozen=True)
class SessionConfig:
    """Sizing and naming for one interactive compute session."""

    name: str
    driver_memory: str = "28g"
    driver_cores: int = 4
    executor_memory: str = "28g"
    executor_cores: int = 4
    num_executors: int = 1
    conf: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "driverMemory": self.driver_memory,
            "driverCores": self.driver_cores,
            "executorMemory": self.executor_memory,
            "executorCores": self.executor_cores,
            "numExecutors": self.num_executors,
        }
        if self.conf:
            payload["conf"] = dict(self.conf)
        return payload

    @classmethod
    def from_settings(cls, settings: Settings, name: str) -> "SessionConfig":
        return cls(
            name=name,
            driver_memory=settings.spark_driver_memory,
            driver_cores=settings.spark_driver_cores,
            executor_memory=settings.spark_executor_memory,
            executor_cores=settings.spark_executor_cores,
            num_executors=settings.spark_num_executors,
        )


@dataclass(frozen=True)
class ComputeSession:
    id: str
    state: str


@dataclass(frozen=True)
class Statement:
    id: str
    session_id: str
    code: str
    state: str
    output: dict[str, Any] | None = None

    @property
    def text_output(self) -> str:
        data = (self.output or {}).get("data") or {}
        return str(data.get("text/plain", ""))
