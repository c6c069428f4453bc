"""
WhatsApp messaging gateway (Meta Cloud API)
"""
from dataclasses import dataclass
from typing import Optional
import logging

import httpx

from backoffice.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    success: bool
    message: str


class WhatsAppClient:
    """Sends plain text WhatsApp messages"""

    def __init__(
        self,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.access_token = access_token if access_token is not None else settings.WHATSAPP_ACCESS_TOKEN
        self.phone_number_id = phone_number_id if phone_number_id is not None else settings.WHATSAPP_PHONE_NUMBER_ID
        self.base_url = (base_url or settings.WHATSAPP_API_URL).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.WHATSAPP_TIMEOUT_SECONDS)

    @property
    def configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    async def send(self, to: str, text: str) -> SendResult:
        """
        Send a text message.

        Never raises for delivery problems: missing credentials, HTTP errors and
        transport errors all come back as SendResult(success=False, ...).
        """
        if not self.configured:
            logger.error("WhatsApp credentials are not configured")
            return SendResult(success=False, message="WhatsApp API credentials are not configured on the server.")

        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text}
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/{self.phone_number_id}/messages",
                json=payload,
                headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning("WhatsApp request to %s failed: %s", to, e)
            return SendResult(success=False, message=str(e) or "An unexpected error occurred.")

        if response.is_error:
            error_message = "An unknown error occurred."
            try:
                error_message = response.json().get("error", {}).get("message") or error_message
            except ValueError:
                pass
            logger.warning("WhatsApp API error %s for %s: %s", response.status_code, to, error_message)
            return SendResult(success=False, message=f"Failed to send message: {error_message}")

        return SendResult(success=True, message="Message sent successfully!")

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()


# Singleton instance
_whatsapp_client: Optional[WhatsAppClient] = None


def get_whatsapp_client() -> WhatsAppClient:
    """Get singleton WhatsApp client instance"""
    global _whatsapp_client
    if _whatsapp_client is None:
        _whatsapp_client = WhatsAppClient()
    return _whatsapp_client


async def close_whatsapp_client():
    """Close the singleton client if one was created"""
    global _whatsapp_client
    if _whatsapp_client is not None:
        await _whatsapp_client.close()
        _whatsapp_client = None
