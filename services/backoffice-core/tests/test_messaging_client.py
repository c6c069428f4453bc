"""
Tests for the WhatsApp messaging gateway
"""
import json

import httpx
import pytest

from backoffice.services.messaging_client import WhatsAppClient


def make_client(handler, access_token="token-123", phone_number_id="10987"):
    return WhatsAppClient(
        access_token=access_token,
        phone_number_id=phone_number_id,
        base_url="https://graph.example.test/v20.0",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


@pytest.mark.asyncio
async def test_send_posts_text_message():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    client = make_client(handler)
    result = await client.send("+5215512345678", "Hola")

    assert result.success
    assert result.message == "Message sent successfully!"
    request = requests[0]
    assert str(request.url) == "https://graph.example.test/v20.0/10987/messages"
    assert request.headers["Authorization"] == "Bearer token-123"
    assert json.loads(request.content) == {
        "messaging_product": "whatsapp",
        "to": "+5215512345678",
        "type": "text",
        "text": {"body": "Hola"},
    }
    await client.close()


@pytest.mark.asyncio
async def test_missing_credentials_skip_network():
    def handler(request):
        raise AssertionError("no request expected")

    client = make_client(handler, access_token="")
    result = await client.send("+1", "Hola")

    assert not result.success
    assert "not configured" in result.message
    await client.close()


@pytest.mark.asyncio
async def test_api_error_message_is_surfaced():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "Recipient phone number not in allowed list"}})

    client = make_client(handler)
    result = await client.send("+1", "Hola")

    assert not result.success
    assert result.message == "Failed to send message: Recipient phone number not in allowed list"
    await client.close()


@pytest.mark.asyncio
async def test_transport_error_is_reported():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    result = await client.send("+1", "Hola")

    assert not result.success
    assert "connection refused" in result.message
    await client.close()
