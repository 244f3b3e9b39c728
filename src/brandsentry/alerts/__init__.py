"""Outbound alerting for Alert-dispositioned findings."""

from brandsentry.alerts.webhook import WebhookDispatcher, alert_payload

__all__ = ["WebhookDispatcher", "alert_payload"]
