import httpx
import pytest

from docingest.analysis.document_analyzer import DocumentAnalyzer
from docingest.analysis.exceptions import (
    AnalysisError,
    AnalysisFailedError,
    AnalysisTimeoutError,
)
from docingest.auth.token_provider import ANALYSIS_AUDIENCE, StaticTokenProvider
from docingest.config.settings import Settings
from docingest.http.exceptions import ServiceHTTPError
from docingest.polling.poller import PollPolicy

ENDPOINT = "https://di.test"
LOCATION = "https://di.test/operations/op-1"


class _AnalysisService:
    """Scripted analysis endpoint: one submit, then a sequence of poll bodies."""

    def __init__(self, poll_bodies: list, *, location: str | None = LOCATION) -> None:
        self._poll_bodies = poll_bodies
        self._location = location
        self.submits: list[httpx.Request] = []
        self.polls: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            self.submits.append(request)
            headers = {"operation-location": self._location} if self._location else {}
            return httpx.Response(202, headers=headers)
        self.polls.append(request)
        index = min(len(self.polls), len(self._poll_bodies)) - 1
        return _reply(self._poll_bodies[index])


def _reply(scripted: dict | httpx.Response | Exception) -> httpx.Response:
    if isinstance(scripted, Exception):
        raise scripted
    if isinstance(scripted, httpx.Response):
        return scripted
    return httpx.Response(200, json=scripted)


def _make_analyzer(service: _AnalysisService, fake_clock, **kwargs) -> DocumentAnalyzer:
    kwargs.setdefault("poll_policy", PollPolicy(interval_seconds=3, max_attempts=40))
    return DocumentAnalyzer(
        endpoint=ENDPOINT + "/",
        api_version="2023-07-31",
        token_provider=StaticTokenProvider({ANALYSIS_AUDIENCE: "di-token"}),
        http_client=httpx.Client(transport=httpx.MockTransport(service.handle)),
        clock=fake_clock,
        sleep=fake_clock.sleep,
        **kwargs,
    )


class TestSubmit:
    def test_posts_bytes_to_model_analyze(self, fake_clock) -> None:
        service = _AnalysisService([{"status": "succeeded", "analyzeResult": {}}])
        _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"%PDF", "application/pdf")

        request = service.submits[0]
        assert request.url.path == "/models/prebuilt-invoice:analyze"
        assert request.url.params["api-version"] == "2023-07-31"
        assert request.headers["Content-Type"] == "application/pdf"
        assert request.headers["Authorization"] == "Bearer di-token"
        assert request.content == b"%PDF"

    def test_polls_operation_location(self, fake_clock) -> None:
        service = _AnalysisService([{"status": "succeeded", "analyzeResult": {}}])
        _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")
        assert str(service.polls[0].url) == LOCATION

    def test_missing_operation_location_raises(self, fake_clock) -> None:
        service = _AnalysisService([], location=None)
        with pytest.raises(AnalysisError, match="operation-location"):
            _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")
        assert service.polls == []

    def test_subscription_key_replaces_bearer(self, fake_clock) -> None:
        service = _AnalysisService([{"status": "succeeded"}])
        analyzer = _make_analyzer(service, fake_clock, api_key="secret-key")
        analyzer.analyze("prebuilt-invoice", b"x", "application/pdf")

        request = service.submits[0]
        assert request.headers["Ocp-Apim-Subscription-Key"] == "secret-key"
        assert "Authorization" not in request.headers


class TestPolling:
    def test_success_returns_analyze_result(self, fake_clock) -> None:
        analyze_result = {"modelId": "prebuilt-invoice", "documents": [{"fields": {}}]}
        service = _AnalysisService(
            [
                {"status": "notStarted"},
                {"status": "running"},
                {"status": "succeeded", "analyzeResult": analyze_result},
            ]
        )
        result = _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")

        assert result.succeeded
        assert result.status == "succeeded"
        assert result.model_id == "prebuilt-invoice"
        assert result.operation_location == LOCATION
        assert result.analyze_result == analyze_result
        assert fake_clock.sleeps == [3, 3]

    def test_failure_carries_service_message(self, fake_clock) -> None:
        service = _AnalysisService(
            [{"status": "failed", "error": {"code": "InvalidContent", "message": "Corrupt file"}}]
        )
        with pytest.raises(AnalysisFailedError, match="Corrupt file"):
            _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")

    def test_failure_without_message_uses_status(self, fake_clock) -> None:
        service = _AnalysisService([{"status": "canceled"}])
        with pytest.raises(AnalysisFailedError, match="failed: canceled"):
            _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")

    def test_never_finishing_stops_at_ceiling(self, fake_clock) -> None:
        service = _AnalysisService([{"status": "running"}])
        with pytest.raises(AnalysisTimeoutError) as exc_info:
            _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")

        assert len(service.polls) == 40
        assert len(fake_clock.sleeps) == 39
        assert "did not complete after 40 polls (last status: running)" in str(exc_info.value)

    def test_unknown_status_counts_as_pending(self, fake_clock) -> None:
        service = _AnalysisService(
            [{"status": "queuedForReview"}, {}, {"status": "Succeeded", "analyzeResult": {"a": 1}}]
        )
        result = _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")
        assert result.analyze_result == {"a": 1}
        assert len(service.polls) == 3

    def test_transient_poll_errors_are_retried(self, fake_clock) -> None:
        service = _AnalysisService(
            [
                httpx.Response(503, json={"error": {"code": "ServiceUnavailable", "message": "busy"}}),
                httpx.ConnectError("connection reset"),
                httpx.Response(429, json={"error": {"code": "TooManyRequests", "message": "slow"}}),
                {"status": "succeeded", "analyzeResult": {"a": 1}},
            ]
        )
        analyzer = _make_analyzer(
            service, fake_clock, poll_policy=PollPolicy(interval_seconds=3, max_attempts=5)
        )
        result = analyzer.analyze("prebuilt-invoice", b"x", "application/pdf")

        assert result.analyze_result == {"a": 1}
        assert len(service.polls) == 4
        assert fake_clock.sleeps == [3, 3, 3]

    def test_transient_errors_use_up_the_ceiling(self, fake_clock) -> None:
        service = _AnalysisService(
            [httpx.Response(500, json={"message": "down"}) for _ in range(3)]
        )
        analyzer = _make_analyzer(
            service, fake_clock, poll_policy=PollPolicy(interval_seconds=1, max_attempts=3)
        )
        with pytest.raises(AnalysisTimeoutError, match="after 3 polls"):
            analyzer.analyze("prebuilt-invoice", b"x", "application/pdf")
        assert len(service.polls) == 3

    def test_client_errors_during_poll_propagate(self, fake_clock) -> None:
        service = _AnalysisService(
            [
                httpx.Response(404, json={"error": {"code": "NotFound", "message": "gone"}}),
                {"status": "succeeded"},
            ]
        )
        with pytest.raises(ServiceHTTPError) as exc_info:
            _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")
        assert exc_info.value.status_code == 404
        assert len(service.polls) == 1

    def test_failure_exposes_result_with_error_message(self, fake_clock) -> None:
        service = _AnalysisService(
            [{"status": "failed", "error": {"code": "InvalidContent", "message": "Corrupt file"}}]
        )
        with pytest.raises(AnalysisFailedError) as exc_info:
            _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")

        result = exc_info.value.result
        assert not result.succeeded
        assert result.status == "failed"
        assert result.error_message == "Corrupt file"
        assert result.operation_location == LOCATION

    def test_success_with_empty_body_yields_empty_result(self, fake_clock) -> None:
        service = _AnalysisService([{"status": "succeeded"}])
        result = _make_analyzer(service, fake_clock).analyze("prebuilt-invoice", b"x", "application/pdf")
        assert result.analyze_result == {}


class TestFromSettings:
    def test_uses_configured_ceiling(self) -> None:
        settings = Settings(
            document_intelligence_endpoint=ENDPOINT,
            analysis_poll_interval_seconds=1.5,
            analysis_max_attempts=7,
        )
        analyzer = DocumentAnalyzer.from_settings(settings, None)
        assert analyzer.api_version == "2023-07-31"
        assert analyzer._poller.policy == PollPolicy(interval_seconds=1.5, max_attempts=7)
        analyzer.close()
