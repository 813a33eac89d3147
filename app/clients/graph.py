"""
Microsoft Graph client for webhook subscriptions and drive delta cursors.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from app.core.config import GraphSettings
from app.schemas.graph import GraphSubscription, SubscriptionRequest
from app.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class GraphAPIError(Exception):
    """Raised when Graph rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GraphClient:
    """Thin async wrapper over the subscription and delta endpoints."""

    def __init__(
        self,
        settings: GraphSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._base_url = settings.base_url.rstrip("/")
        self._timeout = settings.timeout_seconds
        self._transport = transport
        self._retry = retry_config or RetryConfig()

    async def create_subscription(
        self, access_token: str, request: SubscriptionRequest
    ) -> GraphSubscription:
        """Register a new webhook subscription."""
        payload = await self._send(
            "POST", "/subscriptions", access_token, json=request.to_graph()
        )
        return _parse_subscription(payload)

    async def update_subscription(
        self, access_token: str, subscription_id: str, *, expiration: datetime
    ) -> GraphSubscription:
        """Extend an existing subscription to ``expiration``."""
        payload = await self._send(
            "PATCH",
            f"/subscriptions/{subscription_id}",
            access_token,
            json={"expirationDateTime": expiration.isoformat()},
        )
        return _parse_subscription(payload)

    async def delete_subscription(self, access_token: str, subscription_id: str) -> None:
        """Remove a subscription; a missing one surfaces as a 404 GraphAPIError."""
        await self._send("DELETE", f"/subscriptions/{subscription_id}", access_token)

    async def get_latest_delta_link(self, access_token: str, resource: str) -> str:
        """
        Return a delta link anchored at "now" for ``resource``.

        ``token=latest`` skips the initial enumeration, so the link only yields
        changes made after this call.
        """
        payload = await self._send(
            "GET",
            f"{resource.rstrip('/')}/delta",
            access_token,
            params={"token": "latest"},
        )
        delta_link = payload.get("@odata.deltaLink")
        if not delta_link:
            raise GraphAPIError("Delta response did not include @odata.deltaLink.")
        return delta_link

    async def _send(
        self,
        method: str,
        path: str,
        access_token: str,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await request_with_retry(
                    client.request,
                    method,
                    path,
                    headers=headers,
                    retry_config=self._retry,
                    **kwargs,
                )
            except httpx.HTTPError as exc:
                raise GraphAPIError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            logger.debug("Graph %s %s -> %s", method, path, response.status_code)
            raise GraphAPIError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise GraphAPIError(
                f"{method} {path} returned a body that is not JSON",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise GraphAPIError(
                f"{method} {path} returned an unexpected payload",
                status_code=response.status_code,
            )
        return payload


def _parse_subscription(payload: Dict[str, Any]) -> GraphSubscription:
    try:
        return GraphSubscription.model_validate(payload)
    except ValidationError as exc:
        raise GraphAPIError(f"Graph returned an incomplete subscription: {exc}") from exc


__all__ = ["GraphAPIError", "GraphClient"]
