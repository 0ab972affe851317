"""Fulfillment provider implementations for django-fulfillment."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

import httpx

from .exceptions import ProviderError, ProviderRejected, ProviderUnreachable
from .models import OrderStatus

logger = logging.getLogger(__name__)

# Provider status strings, lower-cased, mapped onto local statuses
PROVIDER_STATUS_MAP = {
    "pending": OrderStatus.PENDING,
    "in progress": OrderStatus.IN_PROGRESS,
    "in_progress": OrderStatus.IN_PROGRESS,
    "processing": OrderStatus.IN_PROGRESS,
    "completed": OrderStatus.COMPLETED,
    "complete": OrderStatus.COMPLETED,
    "cancelled": OrderStatus.CANCELLED,
    "canceled": OrderStatus.CANCELLED,
}


@dataclass
class SubmissionReceipt:
    """Provider acknowledgement of a submitted order."""

    reference: str
    message: str = ""
    raw_response: dict = field(default_factory=dict)


@dataclass
class ProviderOrderStatus:
    """Standardized order status snapshot across providers."""

    status: str
    raw_status: str
    delivered_count: int | None = None
    raw_response: dict = field(default_factory=dict)


def map_provider_status(raw_status) -> str:
    """Translate a provider status string into an OrderStatus value.

    Raises:
        ProviderError: If the provider reports a status we do not know.
    """
    key = str(raw_status or "").strip().lower()
    try:
        return PROVIDER_STATUS_MAP[key]
    except KeyError:
        raise ProviderError(f"Unknown provider status: {raw_status!r}")


class FulfillmentProvider(ABC):
    """Abstract base class for fulfillment providers.

    Submit and cancel calls are synchronous. Status calls have async twins
    so bulk reconciliation can run several of them at once.
    """

    @abstractmethod
    def submit_vote_order(
        self, link: str, quantity: int, service_kind: int, speed: Decimal
    ) -> SubmissionReceipt:
        pass

    @abstractmethod
    def submit_comment_order(self, link: str, content: str) -> SubmissionReceipt:
        pass

    @abstractmethod
    def get_vote_order_status(self, reference: str) -> ProviderOrderStatus:
        pass

    @abstractmethod
    def get_comment_order_status(self, reference: str) -> ProviderOrderStatus:
        pass

    @abstractmethod
    def cancel_vote_order(self, reference: str) -> str:
        """Cancel a vote order, returning the provider's message."""
        pass

    @abstractmethod
    async def aget_vote_order_status(self, reference: str) -> ProviderOrderStatus:
        pass

    @abstractmethod
    async def aget_comment_order_status(self, reference: str) -> ProviderOrderStatus:
        pass

    def close(self):
        """Release connections held by the provider."""
        pass


class BuyUpvotesProvider(FulfillmentProvider):
    """BuyUpvotes API provider.

    Every endpoint takes a JSON POST authenticated with an X-API-Key header.
    Transport failures (connection errors, timeouts) raise
    ProviderUnreachable; any answer the provider gives that is not a success
    raises ProviderRejected.
    """

    SUBMIT_VOTE_PATH = "/upvote_order/submit/"
    VOTE_STATUS_PATH = "/upvote_order/status/"
    CANCEL_VOTE_PATH = "/upvote_order/cancel/"
    SUBMIT_COMMENT_PATH = "/comment_order/submit/"
    COMMENT_STATUS_PATH = "/comment_order/status/"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.buyupvotes.io",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
        }

    def _parse_response(self, response, path: str) -> dict:
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            reason = ""
            if isinstance(data, dict):
                reason = data.get("message") or data.get("error") or ""
            raise ProviderRejected(
                reason or f"Provider returned HTTP {response.status_code} for {path}",
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response body from {path}: {data!r}")

        if data.get("success") is False or data.get("error"):
            raise ProviderRejected(
                data.get("message") or data.get("error") or "Request rejected by provider",
                status_code=response.status_code,
            )

        return data

    def _post(self, path: str, payload: dict) -> dict:
        try:
            response = self.client.post(
                f"{self.base_url}{path}", headers=self._headers(), json=payload
            )
        except httpx.TransportError as e:
            logger.warning(f"Fulfillment provider unreachable at {path}: {e}")
            raise ProviderUnreachable(f"Fulfillment provider unreachable: {e}") from e
        return self._parse_response(response, path)

    async def _apost(self, path: str, payload: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{path}", headers=self._headers(), json=payload
                )
        except httpx.TransportError as e:
            logger.warning(f"Fulfillment provider unreachable at {path}: {e}")
            raise ProviderUnreachable(f"Fulfillment provider unreachable: {e}") from e
        return self._parse_response(response, path)

    def _parse_receipt(self, data: dict) -> SubmissionReceipt:
        nested = data.get("data") if isinstance(data.get("data"), dict) else {}
        reference = data.get("order_number") or nested.get("order_number")
        if not reference:
            raise ProviderError("Provider accepted the request but returned no order number")
        return SubmissionReceipt(
            reference=str(reference),
            message=data.get("message") or "",
            raw_response=data,
        )

    def _parse_status(self, data: dict, with_delivery: bool) -> ProviderOrderStatus:
        raw_status = data.get("status")
        delivered = None
        if with_delivery:
            try:
                delivered = int(data.get("votes_delivered") or 0)
            except (TypeError, ValueError):
                raise ProviderError(
                    f"Invalid votes_delivered in provider response: {data.get('votes_delivered')!r}"
                )
        return ProviderOrderStatus(
            status=map_provider_status(raw_status),
            raw_status=str(raw_status),
            delivered_count=delivered,
            raw_response=data,
        )

    def submit_vote_order(self, link, quantity, service_kind, speed):
        payload = {
            "link": link,
            "quantity": int(quantity),
            "service": int(service_kind),
            "speed": float(speed),
        }
        return self._parse_receipt(self._post(self.SUBMIT_VOTE_PATH, payload))

    def submit_comment_order(self, link, content):
        payload = {"link": link, "content": content}
        return self._parse_receipt(self._post(self.SUBMIT_COMMENT_PATH, payload))

    def get_vote_order_status(self, reference):
        data = self._post(self.VOTE_STATUS_PATH, {"order_number": reference})
        return self._parse_status(data, with_delivery=True)

    def get_comment_order_status(self, reference):
        data = self._post(self.COMMENT_STATUS_PATH, {"order_number": reference})
        return self._parse_status(data, with_delivery=False)

    def cancel_vote_order(self, reference):
        data = self._post(self.CANCEL_VOTE_PATH, {"order_number": reference})
        return data.get("message") or "Order cancelled"

    async def aget_vote_order_status(self, reference):
        data = await self._apost(self.VOTE_STATUS_PATH, {"order_number": reference})
        return self._parse_status(data, with_delivery=True)

    async def aget_comment_order_status(self, reference):
        data = await self._apost(self.COMMENT_STATUS_PATH, {"order_number": reference})
        return self._parse_status(data, with_delivery=False)

    def close(self):
        self.client.close()
