"""CRM and messaging backends used by the stage notifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Protocol, Sequence

import httpx
from loguru import logger

from spicymarg_api.services.funnel.phone import is_valid_phone, normalize_phone


class CrmDeliveryError(RuntimeError):
    """Raised when the CRM provider rejects or cannot receive a request."""

    def __init__(self, operation: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class Recipient:
    email: str
    name: str | None = None


class CrmBackend(Protocol):
    """Contact attributes, transactional email and SMS."""

    async def upsert_contact(
        self,
        email: str,
        attributes: Mapping[str, Any],
        *,
        list_ids: Sequence[int] | None = None,
    ) -> None:
        ...

    async def send_transactional_message(
        self,
        template_id: int,
        recipient: Recipient,
        params: Mapping[str, Any],
    ) -> None:
        ...

    async def send_sms(self, phone: str, text: str) -> None:
        ...


class BrevoCrmBackend:
    """Brevo v3 REST backend."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.brevo.com/v3",
        sms_sender: str = "Trap",
        custom_header: str | None = None,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._sms_sender = sms_sender
        self._custom_header = custom_header
        self._timeout = timeout_seconds
        self._http_client = http_client

    async def upsert_contact(
        self,
        email: str,
        attributes: Mapping[str, Any],
        *,
        list_ids: Sequence[int] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "email": email,
            "attributes": dict(attributes),
            "updateEnabled": True,
        }
        if list_ids:
            payload["listIds"] = list(list_ids)
        await self._post("upsert_contact", "/contacts", payload)

    async def send_transactional_message(
        self,
        template_id: int,
        recipient: Recipient,
        params: Mapping[str, Any],
    ) -> None:
        payload: dict[str, Any] = {
            "templateId": template_id,
            "to": [{"email": recipient.email, "name": recipient.name or recipient.email}],
            "params": dict(params),
        }
        if self._custom_header:
            payload["headers"] = {"X-Mailin-custom": self._custom_header}
        await self._post("send_transactional_message", "/smtp/email", payload)

    async def send_sms(self, phone: str, text: str) -> None:
        recipient = normalize_phone(phone)
        if not is_valid_phone(recipient):
            raise CrmDeliveryError("send_sms", f"invalid phone number {phone!r}")
        payload = {
            "sender": self._sms_sender,
            "recipient": recipient,
            "content": text,
            "type": "marketing",
            "unicodeEnabled": True,
        }
        await self._post("send_sms", "/transactionalSMS/send", payload)

    async def _post(self, operation: str, path: str, payload: dict[str, Any]) -> None:
        headers = {
            "api-key": self._api_key,
            "accept": "application/json",
            "content-type": "application/json",
        }
        close_client = False
        client = self._http_client
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout)
            close_client = True

        try:
            response = await client.post(f"{self._base_url}{path}", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise CrmDeliveryError(operation, str(exc)) from exc
        finally:
            if close_client:
                await client.aclose()

        if response.status_code >= 400:
            detail = response.text[:500]
            logger.warning(
                "Brevo request rejected",
                operation=operation,
                status_code=response.status_code,
                detail=detail,
            )
            raise CrmDeliveryError(operation, detail or response.reason_phrase, status_code=response.status_code)


@dataclass
class InMemoryCrmBackend:
    """Test backend recording CRM calls; ``fail_operations`` forces failures."""

    contacts: List[dict[str, Any]] = field(default_factory=list)
    messages: List[dict[str, Any]] = field(default_factory=list)
    sms: List[tuple[str, str]] = field(default_factory=list)
    fail_operations: set[str] = field(default_factory=set)

    async def upsert_contact(
        self,
        email: str,
        attributes: Mapping[str, Any],
        *,
        list_ids: Sequence[int] | None = None,
    ) -> None:
        self._maybe_fail("upsert_contact")
        self.contacts.append(
            {"email": email, "attributes": dict(attributes), "list_ids": list(list_ids or [])}
        )

    async def send_transactional_message(
        self,
        template_id: int,
        recipient: Recipient,
        params: Mapping[str, Any],
    ) -> None:
        self._maybe_fail("send_transactional_message")
        self.messages.append({"template_id": template_id, "recipient": recipient, "params": dict(params)})

    async def send_sms(self, phone: str, text: str) -> None:
        self._maybe_fail("send_sms")
        self.sms.append((phone, text))

    def latest_attributes(self, email: str) -> Optional[dict[str, Any]]:
        for entry in reversed(self.contacts):
            if entry["email"] == email:
                return entry["attributes"]
        return None

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise CrmDeliveryError(operation, "simulated failure")


__all__ = [
    "BrevoCrmBackend",
    "CrmBackend",
    "CrmDeliveryError",
    "InMemoryCrmBackend",
    "Recipient",
]
