"""Transactional email through the Resend HTTP API."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from pydantic import BaseModel, Field

from liveclass.config import Settings
from liveclass.errors import MailerNotConfigured, TransientProviderError

logger = logging.getLogger(__name__)


class OutgoingEmail(BaseModel):
    to: list[str]
    subject: str
    text: str
    bcc: list[str] = Field(default_factory=list)


class Mailer(ABC):
    @abstractmethod
    async def send(self, email: OutgoingEmail) -> Optional[str]:
        """Deliver one message; returns the provider message id when known.

        Raises TransientProviderError when the provider rejects or cannot be reached.
        """


class ResendMailer(Mailer):
    def __init__(self, api_key: str, sender: str, *, base_url: str = "https://api.resend.com", timeout: float = 10.0):
        if not api_key:
            raise MailerNotConfigured("RESEND_API_KEY not configured")
        self._api_key = api_key
        self._sender = sender
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResendMailer":
        return cls(
            settings.resend_api_key,
            settings.mail_from,
            base_url=settings.resend_base_url,
            timeout=settings.mail_timeout_seconds,
        )

    def _post(self, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = requests.post(f"{self._base_url}/emails", headers=headers, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise TransientProviderError(str(e)) from e
        if resp.status_code >= 400:
            raise TransientProviderError(f"Resend {resp.status_code}: {resp.text}")
        return resp.json() if resp.content else {}

    async def send(self, email: OutgoingEmail) -> Optional[str]:
        payload = {
            "from": self._sender,
            "to": email.to,
            "subject": email.subject,
            "text": email.text,
        }
        if email.bcc:
            payload["bcc"] = email.bcc
        body = await asyncio.to_thread(self._post, payload)
        message_id = body.get("id")
        logger.info(f"Sent '{email.subject}' to {', '.join(email.to)} ({message_id})")
        return message_id
