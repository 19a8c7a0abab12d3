from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from workhub.config import Settings
from workhub.utils import require_env

logger = logging.getLogger("email")

# SES error codes worth another attempt.
_TRANSIENT_SES_CODES = frozenset(
    {"Throttling", "ThrottlingException", "ServiceUnavailable", "RequestTimeout", "InternalFailure"}
)


class EmailSendError(Exception):
    """Raised when the mail transport fails to hand a message over."""

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


@dataclass
class MailMessage:
    from_name: str
    from_email: str
    to: str
    subject: str
    html: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def sender(self) -> str:
        return formataddr((self.from_name, self.from_email))


class MailTransport(Protocol):
    @property
    def default_from_email(self) -> Optional[str]:
        ...

    def is_configured(self) -> bool:
        ...

    async def send(self, message: MailMessage) -> None:
        ...


class SesMailTransport:
    """Send HTML email through AWS SES.

    boto3 is blocking, so `send` runs the call in a worker thread; the client
    itself is created once and shared (SES clients are thread-safe).
    """

    def __init__(
        self,
        *,
        region: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        from_email: Optional[str],
    ) -> None:
        self._region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._from_email = from_email
        self._client: Any = None
        self._client_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SesMailTransport":
        return cls(
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            from_email=settings.ses_from_email,
        )

    @property
    def default_from_email(self) -> Optional[str]:
        return self._from_email

    def is_configured(self) -> bool:
        return all([self._region, self._access_key_id, self._secret_access_key, self._from_email])

    def _get_client(self):
        with self._client_lock:
            if self._client is None:
                self._client = boto3.client(
                    "ses",
                    region_name=self._region or require_env("AWS_REGION"),
                    aws_access_key_id=self._access_key_id,
                    aws_secret_access_key=self._secret_access_key,
                )
            return self._client

    @staticmethod
    def build_raw_message(message: MailMessage) -> bytes:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = message.sender
        mime["To"] = message.to
        for name, value in message.headers.items():
            mime[name] = value
        mime.attach(MIMEText(message.html, "html", "utf-8"))
        return mime.as_bytes()

    def send_sync(self, message: MailMessage) -> dict[str, Any]:
        client = self._get_client()
        try:
            resp = client.send_raw_email(
                Source=message.sender,
                Destinations=[message.to],
                RawMessage={"Data": self.build_raw_message(message)},
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
            logger.error("SES ClientError for %s: %s", message.to, e)
            raise EmailSendError(str(e), transient=code in _TRANSIENT_SES_CODES or status >= 500)
        except BotoCoreError as e:
            logger.error("SES BotoCoreError for %s: %s", message.to, e)
            raise EmailSendError(str(e), transient=True)

        logger.info("SES send_raw_email ok: MessageId=%s", resp.get("MessageId"))
        return resp

    async def send(self, message: MailMessage) -> None:
        await asyncio.to_thread(self.send_sync, message)
