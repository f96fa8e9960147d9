from collections.abc import Callable, Generator
from typing import Any, ClassVar
from urllib.parse import quote

import httpx

from docingest.analysis.exceptions import (
    AnalysisError,
    AnalysisFailedError,
    AnalysisTimeoutError,
)
from docingest.analysis.models import AnalysisResult
from docingest.auth.token_provider import ANALYSIS_AUDIENCE, BaseTokenProvider
from docingest.config.settings import Settings
from docingest.http.client_base import BaseServiceClient, BearerTokenAuth
from docingest.http.exceptions import is_transient
from docingest.logging.logger import Log
from docingest.polling.poller import Outcome, Poller, PollPhase, PollPolicy


class _SubscriptionKeyAuth(httpx.Auth):
    def __init__(self, key: str) -> None:
        self._key = key

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Ocp-Apim-Subscription-Key"] = self._key
        yield request


class DocumentAnalyzer(BaseServiceClient):
    """Long-running-operation client for the document analysis service.

    ``analyze`` submits the document, then polls the returned operation
    location until the operation succeeds, fails, or the poll ceiling is hit.
    """

    FAILED_STATES: ClassVar[frozenset[str]] = frozenset({"failed", "canceled", "cancelled"})

    def __init__(
        self,
        *,
        endpoint: str,
        api_version: str,
        token_provider: BaseTokenProvider | None = None,
        api_key: str = "",
        poll_policy: PollPolicy | None = None,
        timeout_seconds: float = 60,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        auth: httpx.Auth | None
        if api_key:
            auth = _SubscriptionKeyAuth(api_key)
        elif token_provider is not None:
            auth = BearerTokenAuth(token_provider, ANALYSIS_AUDIENCE)
        else:
            auth = None
        super().__init__(auth=auth, timeout_seconds=timeout_seconds, http_client=http_client)
        self._endpoint = endpoint.rstrip("/")
        self._api_version = api_version
        policy = poll_policy or PollPolicy(interval_seconds=3.0, max_attempts=40)
        poller_kwargs: dict[str, Any] = {}
        if clock is not None:
            poller_kwargs["clock"] = clock
        if sleep is not None:
            poller_kwargs["sleep"] = sleep
        self._poller = Poller(policy, **poller_kwargs)

    @classmethod
    def from_settings(
        cls, settings: Settings, token_provider: BaseTokenProvider | None
    ) -> "DocumentAnalyzer":
        return cls(
            endpoint=settings.document_intelligence_endpoint,
            api_version=settings.document_intelligence_api_version,
            token_provider=token_provider,
            api_key=settings.document_intelligence_key,
            poll_policy=PollPolicy(
                interval_seconds=settings.analysis_poll_interval_seconds,
                max_attempts=settings.analysis_max_attempts,
            ),
            timeout_seconds=settings.http_timeout_seconds,
        )

    @property
    def api_version(self) -> str:
        return self._api_version

    def analyze(self, model_id: str, content: bytes, content_type: str) -> AnalysisResult:
        """Analyze ``content`` with ``model_id`` and wait for the result.

        Raises:
            AnalysisFailedError: the operation reported a terminal failure.
            AnalysisTimeoutError: the poll ceiling was exhausted.
            AnalysisError: the submit response carried no operation location.
        """
        location = self._submit(model_id, content, content_type)
        Log.debug(f"Analysis submitted for model {model_id}, polling {location}")

        state = self._poller.run(
            lambda: self._fetch_status(location), self._classify, transient=is_transient
        )

        body: dict[str, Any] = state.payload if isinstance(state.payload, dict) else {}
        if state.phase is PollPhase.SUCCEEDED:
            return AnalysisResult(
                status=str(state.status),
                model_id=model_id,
                operation_location=location,
                analyze_result=body.get("analyzeResult") or {},
            )
        message = _error_message(body)
        if state.phase is PollPhase.FAILED:
            failed = AnalysisResult(
                status=str(state.status),
                model_id=model_id,
                operation_location=location,
                error_message=message,
            )
            raise AnalysisFailedError(
                f"Analysis with model {model_id} failed: {message or state.status}", failed
            )
        raise AnalysisTimeoutError(
            message
            or f"Analysis with model {model_id} did not complete after "
            f"{state.attempt} polls (last status: {state.status})"
        )

    def _submit(self, model_id: str, content: bytes, content_type: str) -> str:
        response = self._send(
            "POST",
            f"{self._endpoint}/models/{quote(model_id, safe='')}:analyze",
            params={"api-version": self._api_version},
            content=content,
            headers={"Content-Type": content_type},
        )
        location = response.headers.get("operation-location")
        if not location:
            raise AnalysisError(f"Analysis submit for model {model_id} returned no operation-location")
        return location

    def _fetch_status(self, location: str) -> Any:
        return self._send("GET", location).json()

    @classmethod
    def _classify(cls, body: Any) -> tuple[Outcome, str | None]:
        status = body.get("status") if isinstance(body, dict) else None
        if not isinstance(status, str):
            return Outcome.PENDING, None
        normalized = status.lower()
        if normalized == "succeeded":
            return Outcome.SUCCEEDED, status
        if normalized in cls.FAILED_STATES:
            return Outcome.FAILED, status
        return Outcome.PENDING, status


def _error_message(body: dict[str, Any]) -> str | None:
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
    return None
