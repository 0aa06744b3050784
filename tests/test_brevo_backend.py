import json

import httpx
import pytest

from spicymarg_api.services.notifications.backend import BrevoCrmBackend, CrmDeliveryError, Recipient


def _backend(handler) -> tuple[BrevoCrmBackend, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    backend = BrevoCrmBackend(
        api_key="brevo-key",
        base_url="https://brevo.test/v3/",
        sms_sender="Trap",
        custom_header="trap-margarita-funnel",
        http_client=client,
    )
    return backend, client


@pytest.mark.asyncio
async def test_contact_upsert_payload() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"id": 1})

    backend, client = _backend(handler)
    async with client:
        await backend.upsert_contact("sam@example.com", {"STAGE": 0}, list_ids=[7])

    request = captured[0]
    assert str(request.url) == "https://brevo.test/v3/contacts"
    assert request.headers["api-key"] == "brevo-key"
    assert json.loads(request.content) == {
        "email": "sam@example.com",
        "attributes": {"STAGE": 0},
        "updateEnabled": True,
        "listIds": [7],
    }


@pytest.mark.asyncio
async def test_transactional_email_payload() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"messageId": "abc"})

    backend, client = _backend(handler)
    async with client:
        await backend.send_transactional_message(
            4, Recipient(email="sam@example.com"), {"FIRST_NAME": "Sam"}
        )

    body = json.loads(captured[0].content)
    assert captured[0].url.path == "/v3/smtp/email"
    assert body["templateId"] == 4
    assert body["to"] == [{"email": "sam@example.com", "name": "sam@example.com"}]
    assert body["params"] == {"FIRST_NAME": "Sam"}
    assert body["headers"] == {"X-Mailin-custom": "trap-margarita-funnel"}


@pytest.mark.asyncio
async def test_sms_uses_normalised_recipient() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(201, json={"reference": "ref"})

    backend, client = _backend(handler)
    async with client:
        await backend.send_sms("0412 345 678", "hello")

    body = json.loads(captured[0].content)
    assert captured[0].url.path == "/v3/transactionalSMS/send"
    assert body["recipient"] == "+61412345678"
    assert body["sender"] == "Trap"
    assert body["type"] == "marketing"


@pytest.mark.asyncio
async def test_rejected_request_raises_delivery_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "invalid_parameter"})

    backend, client = _backend(handler)
    async with client:
        with pytest.raises(CrmDeliveryError) as excinfo:
            await backend.upsert_contact("sam@example.com", {})

    assert excinfo.value.status_code == 400
    assert excinfo.value.operation == "upsert_contact"


@pytest.mark.asyncio
async def test_transport_failure_raises_delivery_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    backend, client = _backend(handler)
    async with client:
        with pytest.raises(CrmDeliveryError):
            await backend.send_sms("+61412345678", "hello")


@pytest.mark.asyncio
async def test_invalid_phone_is_refused_before_sending() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(201)

    backend, client = _backend(handler)
    async with client:
        with pytest.raises(CrmDeliveryError):
            await backend.send_sms("123", "hello")

    assert calls == []
