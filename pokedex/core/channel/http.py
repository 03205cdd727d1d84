"""
HTTP Channel

Publishes to a broker's HTTP ingestion endpoint:

    POST {base_url}/destinations/{destination}/messages
    Idempotency-Key: <outbox record id>
    traceparent: <W3C trace context>

A 2xx response is an acknowledgement. A 409 means the broker already
holds a message with that key. Everything else is a transient failure.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from ..exceptions import TransientChannelFailure
from ..observability.tracing import inject_trace_context
from .base import Channel, ChannelBackend, DeliveryReceipt

logger = logging.getLogger(__name__)


class HttpChannel(Channel):
    """Channel backed by an HTTP message ingestion API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
        )

    @property
    def backend_type(self) -> ChannelBackend:
        return ChannelBackend.HTTP

    async def publish(
        self,
        destination: str,
        payload: bytes,
        *,
        idempotency_key: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> DeliveryReceipt:
        request_headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": idempotency_key,
            **(headers or {}),
        }
        inject_trace_context(request_headers)

        try:
            response = await self._client.post(
                f"/destinations/{destination}/messages",
                content=payload,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise TransientChannelFailure(
                f"Publish to {destination} timed out", destination
            ) from e
        except httpx.HTTPError as e:
            raise TransientChannelFailure(
                f"Publish to {destination} failed: {e}", destination
            ) from e

        if response.status_code == 409:
            logger.debug(f"Broker reports duplicate for {idempotency_key}")
            return DeliveryReceipt(
                destination=destination,
                idempotency_key=idempotency_key,
                message_id=idempotency_key,
                duplicate=True,
            )

        if not response.is_success:
            raise TransientChannelFailure(
                f"Publish to {destination} rejected with HTTP {response.status_code}",
                destination,
            )

        body = {}
        if response.content:
            try:
                body = response.json()
            except ValueError:
                logger.debug(f"Non-JSON acknowledgement from {destination}")
        if not isinstance(body, dict):
            body = {}

        return DeliveryReceipt(
            destination=destination,
            idempotency_key=idempotency_key,
            message_id=str(body.get("message_id", idempotency_key)),
            duplicate=bool(body.get("duplicate", False)),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
