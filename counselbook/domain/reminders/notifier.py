"""
Reminder notifier
Posts {type, booking} to the notification endpoint, which renders and sends the e-mail
"""

import logging
from typing import Any, Optional

import httpx

from ...config import REMINDER_HTTP_TIMEOUT, REMINDER_WEBHOOK_SECRET, REMINDER_WEBHOOK_URL
from ...errors import DispatchError

logger = logging.getLogger(__name__)


class ReminderNotifier:
    """Client for the outbound reminder endpoint"""

    def __init__(
        self,
        url: str = REMINDER_WEBHOOK_URL,
        secret: Optional[str] = REMINDER_WEBHOOK_SECRET,
        timeout: float = REMINDER_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["X-Webhook-Secret"] = self.secret
        return headers

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """The JSON ``error`` field when present, the status line otherwise"""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"Reminder endpoint returned {response.status_code}"

    async def send_reminder(self, reminder_type: str, booking: dict[str, Any]) -> None:
        """
        Deliver one reminder.

        Raises:
            DispatchError: Endpoint unreachable or non-2xx response
        """
        payload = {"type": reminder_type, "booking": booking}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(self.url, json=payload, headers=self._headers())
            except httpx.HTTPError as e:
                logger.error(f"❌ Reminder endpoint unreachable: {e}")
                raise DispatchError(f"Reminder endpoint unreachable: {e}") from e

        if not response.is_success:
            message = self._error_message(response)
            logger.error(f"❌ {reminder_type} reminder for booking {booking.get('id')} rejected: {message}")
            raise DispatchError(message)

        logger.info(f"📧 {reminder_type} reminder dispatched for booking {booking.get('id')}")
