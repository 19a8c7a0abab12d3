from __future__ import annotations

import warnings
from email import message_from_bytes
from typing import Any, Dict

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from workhub.config import Settings
from workhub.services.email import EmailSendError, MailMessage, SesMailTransport
from workhub.services.retry import RetryPolicy, is_transient_error


def transport(**overrides: Any) -> SesMailTransport:
    values: Dict[str, Any] = dict(
        region="eu-west-1",
        access_key_id="AKIA-TEST",
        secret_access_key="secret",
        from_email="noreply@acme.test",
    )
    values.update(overrides)
    return SesMailTransport(**values)


def message() -> MailMessage:
    return MailMessage(
        from_name="Acme HR",
        from_email="hr@acme.test",
        to="lead@example.com",
        subject="We are hiring",
        html="<p>Hello</p>",
        headers={"X-Campaign-ID": "camp-1", "X-Tracking-ID": "trk-1"},
    )


class RecordingSesClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[Dict[str, Any]] = []

    def send_raw_email(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {"MessageId": "msg-1"}


def client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "SendRawEmail",
    )


def test_transport_needs_every_credential() -> None:
    assert transport().is_configured()
    assert not transport(region=None).is_configured()
    assert not transport(from_email="").is_configured()
    assert not SesMailTransport.from_settings(Settings()).is_configured()


def test_raw_message_carries_tracking_headers() -> None:
    parsed = message_from_bytes(SesMailTransport.build_raw_message(message()))

    assert parsed["Subject"] == "We are hiring"
    assert parsed["From"] == "Acme HR <hr@acme.test>"
    assert parsed["To"] == "lead@example.com"
    assert parsed["X-Campaign-ID"] == "camp-1"
    assert parsed["X-Tracking-ID"] == "trk-1"
    html_part = parsed.get_payload()[0]
    assert html_part.get_content_type() == "text/html"
    assert "<p>Hello</p>" in html_part.get_payload(decode=True).decode("utf-8")


@pytest.mark.anyio
async def test_send_hands_raw_message_to_ses() -> None:
    ses = transport()
    ses._client = RecordingSesClient()

    await ses.send(message())

    call = ses._client.calls[0]
    assert call["Source"] == "Acme HR <hr@acme.test>"
    assert call["Destinations"] == ["lead@example.com"]
    assert b"X-Tracking-ID: trk-1" in call["RawMessage"]["Data"]


@pytest.mark.parametrize(
    "error, transient",
    [
        (client_error("MessageRejected", 400), False),
        (client_error("Throttling", 400), True),
        (client_error("InternalFailure", 500), True),
        (EndpointConnectionError(endpoint_url="https://email.eu-west-1.amazonaws.com"), True),
    ],
)
def test_ses_failures_are_classified(error: Exception, transient: bool) -> None:
    ses = transport()
    ses._client = RecordingSesClient(error)

    with pytest.raises(EmailSendError) as exc_info:
        ses.send_sync(message())

    assert exc_info.value.transient is transient


def test_transient_classification() -> None:
    assert is_transient_error(EmailSendError("slow down", transient=True))
    assert not is_transient_error(EmailSendError("bad address"))
    assert is_transient_error(TimeoutError())
    assert is_transient_error(ConnectionResetError())
    assert not is_transient_error(ValueError("nope"))


@pytest.mark.anyio
async def test_retry_policy_gives_up_after_max_attempts() -> None:
    calls = []

    async def always_throttled() -> None:
        calls.append(1)
        raise EmailSendError("throttled", transient=True)

    policy = RetryPolicy(max_attempts=3, base_delay_seconds=0, max_delay_seconds=0)
    with pytest.raises(EmailSendError):
        await policy.call(always_throttled)

    assert len(calls) == 3


@pytest.mark.anyio
async def test_retry_policy_returns_result() -> None:
    async def ok() -> str:
        return "sent"

    assert await RetryPolicy().call(ok) == "sent"


@pytest.mark.anyio
async def test_retry_backoff_uses_no_deprecated_arguments() -> None:
    attempts = []

    async def throttled_once() -> str:
        attempts.append(1)
        if len(attempts) == 1:
            raise EmailSendError("throttled", transient=True)
        return "sent"

    policy = RetryPolicy(max_attempts=2, base_delay_seconds=0.001, max_delay_seconds=0.002)
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        assert await policy.call(throttled_once) == "sent"

    assert len(attempts) == 2
