"""Webhook dispatch of Alert findings."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from brandsentry.errors import AlertError
from brandsentry.observability import Observability, get_observability
from brandsentry.settings import Settings, get_settings
from brandsentry.signals import Disposition, Finding, model_payload

LOGGER = logging.getLogger(__name__)


def alert_payload(findings: Sequence[Finding], *, run_id: str, manifest_sha256: str) -> Dict[str, Any]:
    """Build the webhook body; only findings dispositioned Alert are included."""

    alerts = [finding for finding in findings if finding.disposition == Disposition.ALERT]
    return {
        "run_id": run_id,
        "manifest_sha256": manifest_sha256,
        "alert_count": len(alerts),
        "alerts": [model_payload(finding) for finding in sorted(alerts, key=Finding.sort_key)],
    }


class WebhookDispatcher:
    """POST alert batches to a configured webhook URL."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.url = url or self.settings.alerts.webhook_url
        self._client = client
        self.observability = observability or get_observability(component="alerts", settings=self.settings)

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def _post(self, client: httpx.Client, payload: Dict[str, Any]) -> httpx.Response:
        response = client.post(self.url, json=payload)
        response.raise_for_status()
        return response

    def dispatch(self, findings: Sequence[Finding], *, run_id: str, manifest_sha256: str) -> List[str]:
        """Send Alert findings; returns the ids sent. Nothing is sent when there are none."""

        if not self.configured:
            raise AlertError("no alert webhook configured (set alerts.webhook_url or pass a URL)")
        payload = alert_payload(findings, run_id=run_id, manifest_sha256=manifest_sha256)
        if not payload["alerts"]:
            LOGGER.info("No alert findings for run %s; webhook not called", run_id)
            return []

        try:
            if self._client is not None:
                self._post(self._client, payload)
            else:
                with httpx.Client(timeout=self.settings.alerts.timeout_seconds) as client:
                    self._post(client, payload)
        except httpx.HTTPStatusError as exc:
            raise AlertError(f"webhook rejected alerts with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise AlertError(f"webhook request failed: {exc}") from exc

        sent = [alert["id"] for alert in payload["alerts"]]
        self.observability.emit_event("alerts.dispatched", run_id=run_id, count=len(sent))
        self.observability.increment("alerts.sent", value=len(sent))
        return sent


__all__ = ["WebhookDispatcher", "alert_payload"]
