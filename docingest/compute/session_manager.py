"""Lifecycle management for remote interactive compute sessions.

Session states: ``starting -> idle -> busy -> idle ... -> dead``. Statements
move ``waiting -> running -> available`` or end in ``error``/``cancelled``.
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any, ClassVar

import httpx

from docingest.auth.token_provider import FABRIC_AUDIENCE, BaseTokenProvider
from docingest.compute.exceptions import (
    ComputeError,
    ComputeUnavailableError,
    SessionFailedError,
    SessionTimeoutError,
    StatementFailedError,
    StatementTimeoutError,
)
from docingest.compute.models import ComputeSession, SessionConfig, Statement
from docingest.config.settings import Settings
from docingest.http.client_base import BaseServiceClient, BearerTokenAuth
from docingest.http.exceptions import ServiceError, ServiceHTTPError, is_transient
from docingest.logging.logger import Log
from docingest.polling.poller import Outcome, Poller, PollPhase, PollPolicy, PollState


class ComputeSessionManager(BaseServiceClient):
    """Creates, drives and tears down sessions on a Livy-style endpoint."""

    SESSION_FAILED_STATES: ClassVar[frozenset[str]] = frozenset(
        {"error", "dead", "killed", "shutting_down"}
    )
    STATEMENT_FAILED_STATES: ClassVar[frozenset[str]] = frozenset(
        {"error", "cancelled", "cancelling"}
    )
    UNAVAILABLE_STATUSES: ClassVar[frozenset[int]] = frozenset({404, 501})
    UNAVAILABLE_ERROR_CODES: ClassVar[frozenset[str]] = frozenset(
        {
            "FeatureNotAvailable",
            "UnsupportedCapacitySKU",
            "CapacityNotActive",
            "LivyApiNotEnabled",
        }
    )

    def __init__(
        self,
        *,
        base_url: str,
        token_provider: BaseTokenProvider | None = None,
        poll_interval_seconds: float = 5.0,
        session_ready_timeout_seconds: float = 300.0,
        statement_timeout_seconds: float = 1200.0,
        timeout_seconds: float = 60,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        auth = BearerTokenAuth(token_provider, FABRIC_AUDIENCE) if token_provider else None
        super().__init__(auth=auth, timeout_seconds=timeout_seconds, http_client=http_client)
        self._base_url = base_url.rstrip("/")
        self._interval = poll_interval_seconds
        self._ready_timeout = session_ready_timeout_seconds
        self._statement_timeout = statement_timeout_seconds
        self._clock = clock
        self._sleep = sleep
        self._outstanding: dict[str, str] = {}

    @classmethod
    def from_settings(
        cls, settings: Settings, token_provider: BaseTokenProvider
    ) -> "ComputeSessionManager":
        return cls(
            base_url=settings.livy_base_url,
            token_provider=token_provider,
            poll_interval_seconds=settings.session_poll_interval_seconds,
            session_ready_timeout_seconds=settings.session_ready_timeout_seconds,
            statement_timeout_seconds=settings.statement_timeout_seconds,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def create_session(self, config: SessionConfig) -> ComputeSession:
        """Create a session.

        Raises:
            ComputeUnavailableError: the compute capability is not provisioned.
            ComputeError: the service accepted the request but returned no
                session id; the raw body is logged so the session can be found.
        """
        try:
            response = self._send(
                "POST", f"{self._base_url}/sparkSessions", json_body=config.to_payload()
            )
        except ServiceHTTPError as exc:
            if self._is_unavailable(exc):
                raise ComputeUnavailableError(f"Compute sessions unavailable: {exc}") from exc
            raise
        try:
            session = _session_from(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            Log.error(f"Session create returned an unusable body: {response.text}")
            raise ComputeError(f"Session create response has no session id: {exc}") from exc
        Log.info(f"Created compute session {session.id} ({session.state})")
        return session

    def wait_until_idle(
        self, session: ComputeSession, timeout: float | None = None
    ) -> ComputeSession:
        timeout = self._ready_timeout if timeout is None else timeout
        state = self._poller(timeout).run(
            lambda: self._get(f"{self._base_url}/sparkSessions/{session.id}"),
            lambda body: _classify(_session_state(body), "idle", self.SESSION_FAILED_STATES),
            transient=is_transient,
        )
        if state.phase is PollPhase.SUCCEEDED:
            Log.info(f"Compute session {session.id} is idle")
            return ComputeSession(id=session.id, state=str(state.status))
        if state.phase is PollPhase.FAILED:
            raise SessionFailedError(
                f"Session {session.id} entered terminal state '{state.status}'"
                f"{_log_excerpt(state.payload)}"
            )
        raise SessionTimeoutError(
            f"Session {session.id} not idle after {timeout:g}s (last state: {state.status})"
        )

    def submit_statement(self, session: ComputeSession, code: str) -> Statement:
        pending = self._outstanding.get(session.id)
        if pending is not None:
            raise ComputeError(
                f"Session {session.id} already has outstanding statement {pending}"
            )
        response = self._send(
            "POST",
            f"{self._base_url}/sparkSessions/{session.id}/statements",
            json_body={"code": code, "kind": "pyspark"},
        )
        body = response.json()
        statement = Statement(
            id=str(body["id"]),
            session_id=session.id,
            code=code,
            state=str(body.get("state", "waiting")),
            output=body.get("output"),
        )
        self._outstanding[session.id] = statement.id
        Log.info(f"Submitted statement {statement.id} to session {session.id}")
        return statement

    def wait_until_complete(self, statement: Statement, timeout: float | None = None) -> Statement:
        timeout = self._statement_timeout if timeout is None else timeout
        url = f"{self._base_url}/sparkSessions/{statement.session_id}/statements/{statement.id}"
        try:
            state = self._poller(timeout).run(
                lambda: self._get(url),
                lambda body: _classify(
                    body.get("state") if isinstance(body, dict) else None,
                    "available",
                    self.STATEMENT_FAILED_STATES,
                ),
                transient=is_transient,
            )
        finally:
            self._outstanding.pop(statement.session_id, None)
        return self._statement_result(statement, state, timeout)

    def stop_session(self, session: ComputeSession) -> None:
        """Delete the session; an already-deleted session is not an error."""
        self._send(
            "DELETE",
            f"{self._base_url}/sparkSessions/{session.id}",
            allowed_statuses=(404,),
        )
        self._outstanding.pop(session.id, None)
        Log.info(f"Stopped compute session {session.id}")

    @contextmanager
    def open_session(self, config: SessionConfig) -> Generator[ComputeSession, None, None]:
        """Yield an idle session and stop it exactly once on every exit path."""
        session = self.create_session(config)
        try:
            yield self.wait_until_idle(session)
        finally:
            self._teardown(session)

    def run_statement(self, config: SessionConfig, code: str) -> Statement:
        with self.open_session(config) as session:
            statement = self.submit_statement(session, code)
            return self.wait_until_complete(statement)

    def _teardown(self, session: ComputeSession) -> None:
        try:
            self.stop_session(session)
        except ServiceError as exc:
            Log.warning(f"Failed to stop compute session {session.id}: {exc}")

    def _statement_result(self, statement: Statement, state: PollState, timeout: float) -> Statement:
        body: dict[str, Any] = state.payload if isinstance(state.payload, dict) else {}
        if state.phase is PollPhase.EXHAUSTED:
            raise StatementTimeoutError(
                f"Statement {statement.id} not complete after {timeout:g}s "
                f"(last state: {state.status})"
            )
        output = body.get("output") if isinstance(body.get("output"), dict) else None
        if state.phase is PollPhase.FAILED:
            raise StatementFailedError(
                f"Statement {statement.id} ended in state '{state.status}'{_error_output(output)}"
            )
        if output is not None and output.get("status") == "error":
            raise StatementFailedError(f"Statement {statement.id} failed{_error_output(output)}")
        Log.info(f"Statement {statement.id} completed")
        return Statement(
            id=statement.id,
            session_id=statement.session_id,
            code=statement.code,
            state=str(state.status),
            output=output,
        )

    def _poller(self, timeout: float) -> Poller:
        kwargs: dict[str, Any] = {}
        if self._clock is not None:
            kwargs["clock"] = self._clock
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return Poller(PollPolicy(interval_seconds=self._interval, timeout_seconds=timeout), **kwargs)

    def _get(self, url: str) -> Any:
        return self._send("GET", url).json()

    def _is_unavailable(self, exc: ServiceHTTPError) -> bool:
        return (
            exc.status_code in self.UNAVAILABLE_STATUSES
            or exc.error_code in self.UNAVAILABLE_ERROR_CODES
        )


def _classify(
    state: str | None, target: str, failed_states: frozenset[str]
) -> tuple[Outcome, str | None]:
    if state is None:
        return Outcome.PENDING, None
    normalized = state.lower()
    if normalized == target:
        return Outcome.SUCCEEDED, state
    if normalized in failed_states:
        return Outcome.FAILED, state
    return Outcome.PENDING, state


def _session_state(body: Any) -> str | None:
    if not isinstance(body, dict):
        return None
    state = body.get("state")
    if state is None and isinstance(body.get("livyInfo"), dict):
        state = body["livyInfo"].get("currentState")
    return str(state) if state is not None else None


def _session_from(body: dict[str, Any]) -> ComputeSession:
    return ComputeSession(id=str(body["id"]), state=_session_state(body) or "starting")


def _error_output(output: dict[str, Any] | None) -> str:
    if not output:
        return ""
    ename = output.get("ename") or "Error"
    evalue = output.get("evalue") or ""
    return f": {ename}: {evalue}" if evalue else f": {ename}"


def _log_excerpt(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    log_lines = body.get("log") or []
    if not log_lines:
        return ""
    return f" (log: {' | '.join(str(line) for line in log_lines[-3:])})"
