"""SendGrid email API client adapter."""

import secrets
import time
from dataclasses import dataclass
from typing import Protocol

import httpx


class EmailClient(Protocol):
    """Interface for sending HTML email."""

    async def send_email(
        self, to: str, subject: str, html: str, thread_id: str | None = None
    ) -> str:
        """Send an email and return its message id.

        When ``thread_id`` is given the message is sent as a reply in that
        conversation; otherwise a new conversation is started.
        """


@dataclass
class HttpxSendGridClient(EmailClient):
    """SendGrid v3 mail client implemented with httpx."""

    api_key: str
    sender: str
    http_client: httpx.AsyncClient
    base_url: str = "https://api.sendgrid.com/v3"
    sender_name: str = "ShootFlow"

    @classmethod
    def create(
        cls, api_key: str, sender: str, base_url: str = "https://api.sendgrid.com/v3"
    ) -> "HttpxSendGridClient":
        """Create a SendGrid client with a managed httpx session."""
        return cls(
            api_key=api_key,
            sender=sender,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
        )

    async def send_email(
        self, to: str, subject: str, html: str, thread_id: str | None = None
    ) -> str:
        """Send a message using SendGrid's mail/send API."""
        if thread_id:
            message_id = None
            headers = {
                "In-Reply-To": f"<{thread_id}>",
                "References": f"<{thread_id}>",
            }
        else:
            message_id = self._generate_message_id()
            headers = {"Message-ID": f"<{message_id}>"}
        payload: dict[str, object] = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender, "name": self.sender_name},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
            "headers": headers,
        }
        response = await self.http_client.post(
            f"{self.base_url}/mail/send",
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=10,
        )
        response.raise_for_status()
        return message_id or response.headers.get("X-Message-Id", thread_id or "")

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    def _generate_message_id(self) -> str:
        domain = self.sender.rpartition("@")[2] or "shootflow.local"
        return f"{int(time.time() * 1000)}.{secrets.token_hex(6)}@{domain}"
