from __future__ import annotations

import json
from typing import Any, Protocol

import requests
from pywebpush import WebPushException, webpush

from smart_garden.core.errors import DeliveryError


class PushTransport(Protocol):
    def send(self, subscription_info: dict[str, Any], payload: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


class WebPushTransport:
    """Delivers JSON payloads to browser push endpoints using VAPID."""

    def __init__(
        self,
        *,
        vapid_private_key: str,
        vapid_subject: str,
        timeout_seconds: float,
        ttl_seconds: int,
    ) -> None:
        self._vapid_private_key = vapid_private_key
        self._vapid_subject = vapid_subject
        self._timeout_seconds = timeout_seconds
        self._ttl_seconds = ttl_seconds
        self._session = requests.Session()

    def close(self) -> None:
        self._session.close()

    def send(self, subscription_info: dict[str, Any], payload: dict[str, Any]) -> None:
        if not self._vapid_private_key:
            raise DeliveryError("VAPID private key is not configured")
        endpoint = subscription_info.get("endpoint")
        if not isinstance(endpoint, str) or not endpoint:
            raise DeliveryError("Subscription has no endpoint")

        try:
            webpush(
                subscription_info=subscription_info,
                data=json.dumps(payload),
                vapid_private_key=self._vapid_private_key,
                # pywebpush fills in "aud" and "exp" in place.
                vapid_claims={"sub": self._vapid_subject},
                timeout=self._timeout_seconds,
                ttl=self._ttl_seconds,
                requests_session=self._session,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in {404, 410}:
                raise DeliveryError(f"Push endpoint expired ({status})") from e
            raise DeliveryError(f"Push endpoint rejected the message ({status})") from e
        except (requests.RequestException, ValueError, TypeError, KeyError) as e:
            raise DeliveryError(f"Could not deliver push message: {e}") from e
