"""FastAPI webhook endpoints for inbound SMS (Twilio) and forwarded email.

Both endpoints authenticate the sender before anything is parsed into
domain objects, resolve the receiving number/mailbox to a user, and hand the
payload to the ``IngestionPipeline``.

Response codes follow what webhook senders expect: 200 for anything that
should not be redelivered (including unknown recipients and duplicates),
400 for malformed payloads, 401 for bad signatures, and 503 when storage
keeps failing so the sender retries later.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import sqlite3
from collections.abc import Callable, Mapping
from contextlib import closing
from email.utils import parseaddr
from typing import Any
from urllib.parse import parse_qsl

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, ValidationError
from starlette.datastructures import MultiDict
from twilio.request_validator import RequestValidator

from sellerdesk.accounts.directory import UserDirectory
from sellerdesk.domain.errors import InvalidInputError, StorageError
from sellerdesk.domain.models import Message
from sellerdesk.domain.types import Channel
from sellerdesk.ingestion.pipeline import IngestionPipeline
from sellerdesk.resilience.retry import retry_on_storage_error

logger = structlog.get_logger()

router = APIRouter()

ConnectionFactory = Callable[[], sqlite3.Connection]


class InboundEmailPayload(BaseModel):
    """JSON body of the forwarded-email webhook.

    Every field must be a JSON string (or null for the optional ones);
    numbers and objects are rejected rather than coerced.
    """

    model_config = ConfigDict(frozen=True)

    recipient: str = ""
    sender: str = ""
    subject: str | None = None
    body: str = ""
    message_id: str | None = None


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify an HMAC-SHA256 hex signature over the raw request body.

    Must be called with the raw body bytes BEFORE any JSON parsing so the
    digest covers exactly what the sender signed.
    """
    computed = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature)


def verify_twilio_signature(
    url: str, params: Mapping[str, str] | MultiDict, signature: str, auth_token: str
) -> bool:
    """Check ``X-Twilio-Signature`` with Twilio's own ``RequestValidator``.

    The validator signs every value of repeated form keys and accepts the URL
    with or without an explicit default port, matching what Twilio sends.
    """
    return bool(RequestValidator(auth_token).validate(url, params, signature))


@retry_on_storage_error("ingest_inbound")
def ingest_inbound(
    connection_factory: ConnectionFactory,
    channel: Channel,
    receiving_address: str,
    from_address: str,
    body: str,
    external_message_id: str | None = None,
    subject: str | None = None,
) -> Message | None:
    """Resolve the recipient and ingest one inbound message.

    Each attempt uses its own connection so a retry never reuses a
    connection left in a bad state.

    Returns:
        The stored message, or ``None`` if no user owns *receiving_address*.
    """
    with closing(connection_factory()) as conn:
        user_id = UserDirectory(conn).resolve(channel, receiving_address)
        if user_id is None:
            return None
        return IngestionPipeline(conn).ingest(
            user_id=user_id,
            channel=channel,
            from_address=from_address,
            body=body,
            external_message_id=external_message_id,
            subject=subject,
        )


async def _ingest(request: Request, **kwargs: Any) -> dict[str, str]:
    connection_factory: ConnectionFactory = request.app.state.services["connection_factory"]
    try:
        message = await asyncio.to_thread(ingest_inbound, connection_factory, **kwargs)
    except InvalidInputError as exc:
        logger.warning("inbound_payload_invalid", detail=str(exc))
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        logger.error("inbound_ingest_failed", channel=kwargs["channel"].value, error=str(exc))
        raise HTTPException(status_code=503, detail="storage unavailable") from exc

    if message is None:
        # 200 so the sender does not keep redelivering to an unknown recipient.
        logger.info("inbound_recipient_unknown", channel=kwargs["channel"].value)
        return {"status": "user not found"}

    return {"status": "ok", "message_id": message.id}


@router.post("/webhooks/sms/inbound")
async def inbound_sms(request: Request) -> dict[str, str]:
    """Receive a Twilio inbound SMS webhook.

    1. Read raw body bytes and decode the form parameters.
    2. Verify ``X-Twilio-Signature`` when an auth token is configured.
    3. Ingest ``From``/``Body``/``MessageSid`` for the user owning ``To``.

    Raises:
        HTTPException: 401 on a missing or invalid signature, 400 on a
            malformed payload, 503 when storage is unavailable.
    """
    settings = request.app.state.settings
    raw_body = await request.body()
    params = MultiDict(parse_qsl(raw_body.decode("utf-8"), keep_blank_values=True))

    auth_token = settings.twilio_auth_token.get_secret_value()
    if auth_token:
        signature = request.headers.get("X-Twilio-Signature")
        if not signature:
            logger.warning("sms_webhook_signature_missing")
            raise HTTPException(status_code=401, detail="Missing signature")
        url = (
            settings.public_base_url.rstrip("/") + request.url.path
            if settings.public_base_url
            else str(request.url)
        )
        if not verify_twilio_signature(url, params, signature, auth_token):
            logger.warning("sms_webhook_signature_invalid")
            raise HTTPException(status_code=401, detail="Invalid signature")
    else:
        logger.warning("sms_webhook_unsigned", reason="TWILIO_AUTH_TOKEN not configured")

    logger.info("sms_webhook_received", message_sid=params.get("MessageSid", ""))

    return await _ingest(
        request,
        channel=Channel.SMS,
        receiving_address=params.get("To", ""),
        from_address=params.get("From", ""),
        body=params.get("Body", ""),
        external_message_id=params.get("MessageSid") or None,
    )


@router.post("/webhooks/email/inbound")
async def inbound_email(request: Request) -> dict[str, str]:
    """Receive a forwarded email as a signed JSON payload.

    Expected keys: ``recipient``, ``sender``, ``subject``, ``body``,
    ``message_id``.  ``sender`` may be a display form such as
    ``Bob <bob@example.com>``.

    Raises:
        HTTPException: 401 on a missing or invalid signature, 400 on a
            malformed payload, 503 when storage is unavailable.
    """
    settings = request.app.state.settings
    raw_body = await request.body()

    secret = settings.email_webhook_secret.get_secret_value()
    if secret:
        signature = request.headers.get("X-Signature")
        if not signature:
            logger.warning("email_webhook_signature_missing")
            raise HTTPException(status_code=401, detail="Missing signature")
        if not verify_signature(raw_body, signature, secret):
            logger.warning("email_webhook_signature_invalid")
            raise HTTPException(status_code=401, detail="Invalid signature")
    else:
        logger.warning("email_webhook_unsigned", reason="EMAIL_WEBHOOK_SECRET not configured")

    try:
        payload = InboundEmailPayload.model_validate_json(raw_body)
    except ValidationError as exc:
        logger.warning("email_webhook_payload_invalid", errors=exc.errors(include_input=False))
        raise HTTPException(status_code=400, detail="Invalid payload") from exc

    _, recipient = parseaddr(payload.recipient)
    _, sender = parseaddr(payload.sender)

    logger.info("email_webhook_received", message_id=payload.message_id or "")

    return await _ingest(
        request,
        channel=Channel.EMAIL,
        receiving_address=recipient,
        from_address=sender,
        body=payload.body,
        external_message_id=payload.message_id or None,
        subject=payload.subject or None,
    )
