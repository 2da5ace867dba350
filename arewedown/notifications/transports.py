from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from typing import Any, Protocol

import httpx

from ..config import AppConfig, SendgridConfig, SmtpConfig, TelegramConfig


TELEGRAM_MAX_MESSAGE_LEN = 3900


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    transport: str
    address: str
    receipt: Any = None
    error: str | None = None


class Transport(Protocol):
    name: str
    channel: str

    async def send(self, address: str, subject: str, body: str) -> DeliveryResult: ...


class SmtpTransport:
    name = "smtp"
    channel = "email"

    def __init__(self, config: SmtpConfig):
        self.config = config

    def _send_sync(self, address: str, subject: str, body: str) -> str:
        msg = MIMEText(body, "plain")
        msg["From"] = self.config.sender
        msg["To"] = address
        msg["Subject"] = subject

        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
            if self.config.user and self.config.password:
                server.starttls()
                server.login(self.config.user, self.config.password)
            server.sendmail(self.config.sender, [address], msg.as_string())
        return "accepted"

    async def send(self, address: str, subject: str, body: str) -> DeliveryResult:
        receipt = await asyncio.to_thread(self._send_sync, address, subject, body)
        return DeliveryResult(ok=True, transport=self.name, address=address, receipt=receipt)


class SendgridTransport:
    name = "sendgrid"
    channel = "email"

    def __init__(self, config: SendgridConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self.client = client

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        if self.client is not None:
            return await self.client.post(self.config.endpoint, json=payload, headers=headers, timeout=30.0)
        async with httpx.AsyncClient() as client:
            return await client.post(self.config.endpoint, json=payload, headers=headers, timeout=30.0)

    async def send(self, address: str, subject: str, body: str) -> DeliveryResult:
        payload = {
            "personalizations": [{"to": [{"email": address}]}],
            "from": {"email": self.config.sender},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        resp = await self._post(payload)
        if resp.status_code >= 300:
            return DeliveryResult(
                ok=False,
                transport=self.name,
                address=address,
                error=f"SendGrid returned status {resp.status_code}: {resp.text[:300]}",
            )
        return DeliveryResult(
            ok=True,
            transport=self.name,
            address=address,
            receipt=resp.headers.get("X-Message-Id") or resp.status_code,
        )


def split_telegram_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        parts.append(s[:cut].rstrip())
        s = s[cut:].lstrip()
    return parts


class TelegramTransport:
    """Bot API sendMessage; the recipient address is the chat id."""

    name = "telegram"
    channel = "telegram"

    def __init__(self, config: TelegramConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self.client = client

    def _redact(self, text: str) -> str:
        if self.config.bot_token:
            return text.replace(self.config.bot_token, "<redacted>")
        return text

    async def _send_part(self, client: httpx.AsyncClient, chat_id: str, text: str) -> dict:
        url = f"{self.config.api_base_url.rstrip('/')}/bot{self.config.bot_token}/sendMessage"
        resp = await client.post(url, json={"chat_id": chat_id, "text": text}, timeout=15.0)
        return resp.json()

    async def send(self, address: str, subject: str, body: str) -> DeliveryResult:
        text = f"{subject}\n\n{body}" if body and body != subject else subject
        message_ids: list[Any] = []
        try:
            if self.client is not None:
                responses = [await self._send_part(self.client, address, part) for part in split_telegram_message(text)]
            else:
                async with httpx.AsyncClient() as client:
                    responses = [await self._send_part(client, address, part) for part in split_telegram_message(text)]
        except Exception as e:
            raise RuntimeError(self._redact(f"{type(e).__name__}: {e}")) from None

        for data in responses:
            if not data.get("ok"):
                return DeliveryResult(
                    ok=False,
                    transport=self.name,
                    address=address,
                    error=self._redact(str(data.get("description") or data)),
                )
            result = data.get("result")
            if isinstance(result, dict):
                message_ids.append(result.get("message_id"))
        return DeliveryResult(ok=True, transport=self.name, address=address, receipt=message_ids)


def select_transport(config: AppConfig, client: httpx.AsyncClient | None = None) -> Transport | None:
    """The single active transport: SMTP wins over SendGrid, which wins over Telegram."""
    if config.smtp is not None:
        return SmtpTransport(config.smtp)
    if config.sendgrid is not None:
        return SendgridTransport(config.sendgrid, client)
    if config.telegram is not None:
        return TelegramTransport(config.telegram, client)
    return None
