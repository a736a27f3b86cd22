"""Gmail message payload conversion.

Converts a Gmail API ``users.messages.get(format="full")`` response into the
``EmailData`` record the scorer consumes. Fetching messages and OAuth belong
to the mailbox component; this module never touches the network.
"""

import base64
import binascii
import logging
from typing import Any

from pydantic import ValidationError

from flight_triage.core.errors import InvalidInputError
from flight_triage.scoring import EmailData

logger = logging.getLogger(__name__)


class InvalidMessageError(InvalidInputError):
    """Raised when a Gmail payload is missing required structure."""

    def __init__(self, message: str = "Invalid message data"):
        super().__init__(message=message, error_code="invalid_message")


def _get_header_value(headers: list[dict], name: str) -> str | None:
    """Extract header value from Gmail message headers.

    Args:
        headers: List of header dicts from Gmail API
        name: Header name to find (case-insensitive)

    Returns:
        Header value or None if not found
    """
    for header in headers:
        header_name = header.get("name")
        if isinstance(header_name, str) and header_name.lower() == name.lower():
            return header.get("value")
    return None


def _require_dict_list(value: Any, what: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise InvalidMessageError(f"Message {what} must be a list of objects")
    return value


def _body_data(container: dict[str, Any]) -> str | None:
    body = container.get("body")
    if body is None:
        return None
    if not isinstance(body, dict):
        raise InvalidMessageError("Message body must be an object")
    data = body.get("data")
    if data is not None and not isinstance(data, str):
        raise InvalidMessageError("Message body data must be a base64url string")
    return data


def _decode_body(data: str) -> str:
    """Decode a base64url body, tolerating stripped padding."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        raise InvalidMessageError(f"Undecodable message body: {e}") from e


def _collect_parts(parts: list[dict[str, Any]], html: list[str], plain: list[str]) -> None:
    for part in parts:
        mime_type = part.get("mimeType", "")
        data = _body_data(part)
        nested = _require_dict_list(part.get("parts"), "parts")
        if mime_type == "text/html" and data:
            html.append(_decode_body(data))
        elif mime_type == "text/plain" and data:
            plain.append(_decode_body(data))
        elif nested:
            _collect_parts(nested, html, plain)


def extract_email_data(message: dict[str, Any]) -> EmailData:
    """Build an EmailData record from a full Gmail message.

    Args:
        message: Gmail API message resource (format=full)

    Returns:
        EmailData with headers and decoded bodies

    Raises:
        InvalidMessageError: If the payload is structurally broken, a header
            value is not a string, or no identifier is present
    """
    if not isinstance(message, dict):
        raise InvalidMessageError("Message must be a JSON object")

    payload = message.get("payload")
    if not isinstance(payload, dict):
        raise InvalidMessageError("Message is missing its payload")

    headers = _require_dict_list(payload.get("headers"), "headers")
    parts = _require_dict_list(payload.get("parts"), "parts")
    gmail_uid = message.get("id")
    message_id = _get_header_value(headers, "Message-ID") or gmail_uid
    if not message_id:
        raise InvalidMessageError("Message has neither a Message-ID header nor a Gmail id")

    html_parts: list[str] = []
    plain_parts: list[str] = []

    body_data = _body_data(payload)
    if body_data:
        content = _decode_body(body_data)
        if payload.get("mimeType") == "text/html":
            html_parts.append(content)
        else:
            plain_parts.append(content)
    elif parts:
        _collect_parts(parts, html_parts, plain_parts)

    if not body_data and not parts:
        logger.debug("Gmail message has no body", extra={"gmail_uid": gmail_uid})

    try:
        return EmailData(
            message_id=message_id,
            gmail_uid=gmail_uid,
            subject=_get_header_value(headers, "Subject") or "",
            from_email=_get_header_value(headers, "From") or "",
            date=_get_header_value(headers, "Date") or "",
            html="".join(html_parts),
            plain_text="".join(plain_parts),
        )
    except ValidationError as e:
        raise InvalidMessageError(
            f"Message fields failed validation: {e.error_count()} error(s)"
        ) from e
