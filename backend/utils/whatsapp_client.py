# backend/utils/whatsapp_client.py
import json
import logging
from typing import Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)

# Twilio error codes that have an actionable explanation
TWILIO_ERROR_MESSAGES = {
    21211: "Invalid recipient phone number. Please check the customer's WhatsApp number format.",
    21608: "Recipient has not joined the Twilio WhatsApp sandbox yet.",
    21614: "WhatsApp number is not registered with Twilio. Please verify your Twilio WhatsApp configuration.",
    21217: 'Invalid "from" phone number. Please check your Twilio WhatsApp number configuration.',
    20003: "Twilio authentication failed. Please check your Account SID and Auth Token.",
    63038: "Daily message limit exceeded. Your Twilio account has reached the maximum number of messages allowed per day.",
}
DEFAULT_ERROR_MESSAGE = "Failed to send WhatsApp message. Please try again later."


class WhatsAppError(Exception):
    def __init__(self, code: Optional[int], message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.detail = detail


def friendly_error(code: Optional[int], fallback: Optional[str] = None) -> str:
    return TWILIO_ERROR_MESSAGES.get(code, fallback or DEFAULT_ERROR_MESSAGE)


class WhatsAppClient:
    """Sends WhatsApp messages through the Twilio Messages REST API."""

    def __init__(self, timeout: float = 15.0):
        self.api_url = settings.TWILIO_API_URL.rstrip("/")
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        number = settings.TWILIO_WHATSAPP_NUMBER
        self.from_number = number if number.startswith("whatsapp:") else f"whatsapp:{number}"
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and settings.TWILIO_WHATSAPP_NUMBER)

    def _messages_url(self) -> str:
        return f"{self.api_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    def send(
        self,
        to: str,
        body: Optional[str] = None,
        media_url: Optional[str] = None,
        template_id: Optional[str] = None,
        content_variables: Optional[dict] = None,
    ) -> dict:
        """Send one message; returns {"sid", "status"} or raises WhatsAppError."""
        if not self.is_configured():
            raise WhatsAppError(None, "WhatsApp messaging is not configured.")

        data = {"From": self.from_number, "To": to}
        if template_id:
            data["ContentSid"] = template_id
            if content_variables:
                data["ContentVariables"] = json.dumps(content_variables)
        else:
            data["Body"] = body or ""
        if media_url:
            data["MediaUrl"] = media_url

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self._messages_url(), data=data, auth=(self.account_sid, self.auth_token))
        except httpx.RequestError as e:
            logger.error(f"Twilio connection error for {to}: {e}")
            raise WhatsAppError(None, DEFAULT_ERROR_MESSAGE, str(e)) from e

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            code = payload.get("code")
            detail = payload.get("message") or response.text
            logger.error(f"Twilio API error {code} (HTTP {response.status_code}) from {self.from_number} to {to}: {detail}")
            raise WhatsAppError(code, friendly_error(code, detail), detail)

        payload = response.json()
        return {"sid": payload.get("sid"), "status": payload.get("status")}


def get_whatsapp_client() -> WhatsAppClient:
    return WhatsAppClient()
