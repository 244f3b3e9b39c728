"""Tests for webhook alert dispatch."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from brandsentry.alerts import WebhookDispatcher, alert_payload
from brandsentry.errors import AlertError
from brandsentry.pipeline import PipelineRunner, fixed_clock
from brandsentry.signals import Disposition

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
URL = "https://hooks.example.test/brandsentry"


@pytest.fixture
def result(scope, settings, example_evidence, tmp_path):
    return PipelineRunner(scope, clock=fixed_clock(NOW), settings=settings).run(example_evidence, tmp_path / "run")


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_payload_contains_only_alerts(result):
    digest = result.outcome.findings[0].model_copy(update={"id": "fnd_digest", "disposition": Disposition.DIGEST})
    payload = alert_payload(
        [*result.outcome.findings, digest], run_id=result.run_id, manifest_sha256=result.manifest_sha256
    )

    assert payload["run_id"] == result.run_id
    assert payload["alert_count"] == 1
    assert [alert["id"] for alert in payload["alerts"]] == [result.outcome.findings[0].id]


def test_dispatch_posts_alert_batch(result, settings):
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(202)

    dispatcher = WebhookDispatcher(URL, settings=settings, client=_client(handler))
    sent = dispatcher.dispatch(result.outcome.findings, run_id=result.run_id, manifest_sha256=result.manifest_sha256)

    assert sent == [finding.id for finding in result.alerts]
    [request] = captured
    assert str(request.url) == URL
    body = json.loads(request.content)
    assert body["manifest_sha256"] == result.manifest_sha256
    assert body["alerts"][0]["disposition"] == "alert"


def test_dispatch_skips_call_without_alerts(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("webhook should not be called")

    dispatcher = WebhookDispatcher(URL, settings=settings, client=_client(handler))
    assert dispatcher.dispatch([], run_id="run_x", manifest_sha256="0" * 64) == []


def test_unconfigured_dispatcher_raises(result, settings):
    dispatcher = WebhookDispatcher(settings=settings)
    assert not dispatcher.configured
    with pytest.raises(AlertError, match="no alert webhook configured"):
        dispatcher.dispatch(result.outcome.findings, run_id=result.run_id, manifest_sha256=result.manifest_sha256)


def test_http_error_status_becomes_alert_error(result, settings):
    dispatcher = WebhookDispatcher(URL, settings=settings, client=_client(lambda request: httpx.Response(500)))
    with pytest.raises(AlertError, match="HTTP 500"):
        dispatcher.dispatch(result.outcome.findings, run_id=result.run_id, manifest_sha256=result.manifest_sha256)


def test_transport_failure_becomes_alert_error(result, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = WebhookDispatcher(URL, settings=settings, client=_client(handler))
    with pytest.raises(AlertError, match="webhook request failed"):
        dispatcher.dispatch(result.outcome.findings, run_id=result.run_id, manifest_sha256=result.manifest_sha256)
