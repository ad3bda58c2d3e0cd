"""Outbound alert delivery."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional, Protocol

import httpx

from settings import DEFAULT_SMS_API_URL, get_settings

logger = logging.getLogger(__name__)

# Gateway error codes that mean the credential or sender identity was refused.
_AUTH_ERROR_CODES = frozenset({101, 102, 103})


class NotifyError(Exception):
    """Base class for alert delivery failures."""

    kind = "notify"


class NotifyUnauthorizedError(NotifyError):
    kind = "unauthorized"


class NotifyUnreachableError(NotifyError):
    kind = "unreachable"


class NotifyMalformedError(NotifyError):
    kind = "malformed"


class Notifier(Protocol):
    def send(self, message: str) -> None:
        """Deliver ``message`` or raise :class:`NotifyError`."""


class DisabledNotifier:
    """Stand-in used when SMS credentials are not configured."""

    def __init__(self, reason: str = "SMS notifier is not configured") -> None:
        self.reason = reason

    def send(self, message: str) -> None:
        raise NotifyUnauthorizedError(self.reason)


class SmsApiNotifier:
    """Send text alerts through an SMSAPI-compatible HTTP gateway.

    Each call is a single form-encoded POST with a bounded timeout. Failures
    are raised as :class:`NotifyError` subclasses and never retried here.
    """

    def __init__(
        self,
        api_key: str,
        phone_number: str,
        sender: str = "Test",
        api_url: str = DEFAULT_SMS_API_URL,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.phone_number = phone_number
        self.sender = sender
        self.api_url = api_url
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def send(self, message: str) -> None:
        form = {
            "to": self.phone_number,
            "message": message,
            "from": self.sender,
            "format": "json",
        }
        try:
            response = self._client.post(
                self.api_url,
                data=form,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            raise NotifyUnreachableError(f"Failed to send SMS request: {exc}") from exc

        if response.status_code in (401, 403):
            raise NotifyUnauthorizedError(
                f"SMS API rejected credentials with status {response.status_code}: "
                f"{response.text}"
            )
        if response.status_code != 200:
            raise NotifyUnreachableError(
                f"SMS API returned status {response.status_code}: {response.text}"
            )

        try:
            payload = response.json()
        except ValueError:
            logger.info("SMS API response: %s", response.text)
            return
        if not isinstance(payload, dict):
            raise NotifyMalformedError(f"Unexpected SMS API response: {response.text}")

        self._raise_for_gateway_error(payload)
        self._log_delivery(payload, response.text)

    @staticmethod
    def _raise_for_gateway_error(payload: Dict[str, Any]) -> None:
        code = payload.get("error") or 0
        if not code:
            return
        detail = payload.get("message", "")
        if code in _AUTH_ERROR_CODES:
            raise NotifyUnauthorizedError(f"SMS API error {code}: {detail}")
        raise NotifyMalformedError(f"SMS API error {code}: {detail}")

    @staticmethod
    def _log_delivery(payload: Dict[str, Any], raw: str) -> None:
        entries = payload.get("list") or []
        if entries and isinstance(entries[0], dict):
            first = entries[0]
            logger.info(
                "SMS sent successfully",
                extra={"message_id": first.get("id"), "points": first.get("points")},
            )
        else:
            logger.info("SMS sent successfully. Response: %s", raw)


@lru_cache
def build_default_notifier() -> Notifier:
    settings = get_settings()
    if not settings.sms_api_key:
        return DisabledNotifier("SMS_API_KEY not configured")
    if not settings.sms_phone_number:
        return DisabledNotifier("SMS_PHONE_NUMBER not configured")
    return SmsApiNotifier(
        api_key=settings.sms_api_key,
        phone_number=settings.sms_phone_number,
        sender=settings.sms_from,
        api_url=settings.sms_api_url,
        timeout=settings.sms_timeout_seconds,
    )
