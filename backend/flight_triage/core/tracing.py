"""
OpenTelemetry tracing configuration and utilities for the flight triage backend.

This module sets up tracing for the review path:
- Candidate ingestion
- Decision submission and undo
- Batch fetch and search

Sender addresses and email bodies are masked before they reach a span.
"""

import re
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from flight_triage.core.config import settings


def setup_tracing(
    service_name: str = "flight-triage-backend",
    exporter_type: str | None = None,
) -> TracerProvider:
    """
    Initialize OpenTelemetry tracing.

    The exporter is taken from ``settings.OTEL_TRACES_EXPORTER`` unless given:
    - "otlp": OTLP/gRPC exporter to ``settings.OTEL_EXPORTER_OTLP_ENDPOINT``
    - "console": spans printed to stdout
    - "none": spans are recorded but not exported

    Args:
        service_name: Name of the service for trace identification
        exporter_type: Optional override for the configured exporter

    Returns:
        Configured TracerProvider
    """
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": settings.APP_VERSION,
        }
    )

    provider = TracerProvider(resource=resource)

    exporter_type = (exporter_type or settings.OTEL_TRACES_EXPORTER).lower()

    if exporter_type == "otlp":
        exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    elif exporter_type == "console":
        exporter = ConsoleSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    return provider


def get_tracer(name: str = __name__) -> trace.Tracer:
    """Get a tracer instance for creating spans."""
    return trace.get_tracer(name)


def mask_email(email: str | None) -> str:
    """
    Mask an email address for PII protection.

    Shows first character and domain, masks the rest. Display names such as
    ``"United <noreply@united.com>"`` are reduced to the address first.

    Args:
        email: Email address to mask

    Returns:
        Masked email or placeholder
    """
    if not email:
        return "<none>"

    angle = re.search(r"<([^>]+)>", email)
    if angle:
        email = angle.group(1)

    match = re.match(r"^([^@])([^@]*)(@.+)$", email.strip())
    if match:
        first_char, rest, domain = match.groups()
        return f"{first_char}{'*' * min(len(rest), 5)}{domain}"

    return "***@***"


def sanitize_message_content(content: str | None, max_length: int = 100) -> str:
    """
    Sanitize message content for tracing.

    Truncates long content and removes sensitive patterns.

    Args:
        content: Message content to sanitize
        max_length: Maximum length to include in trace

    Returns:
        Sanitized content
    """
    if not content:
        return "<empty>"

    if len(content) > max_length:
        content = content[:max_length] + "..."

    # Long opaque strings are usually tokens or tracking ids
    content = re.sub(r'[A-Za-z0-9_-]{40,}', '***TOKEN***', content)

    return content


def safe_span_attributes(**kwargs: Any) -> dict[str, Any]:
    """
    Create span attributes with automatic sanitization.

    - sender, from_email, email -> masked email
    - body, html, preview, notes -> sanitized content
    - everything else passes through as a primitive

    Args:
        **kwargs: Key-value pairs for span attributes

    Returns:
        Sanitized attributes dictionary
    """
    sanitized = {}

    for key, value in kwargs.items():
        if value is None:
            continue

        lowered = key.lower()
        if any(email_key in lowered for email_key in ["sender", "from_email", "email_address"]):
            sanitized[key] = mask_email(str(value))
        elif any(content_key in lowered for content_key in ["body", "html", "preview", "notes", "query"]):
            sanitized[key] = sanitize_message_content(str(value))
        elif isinstance(value, (str, int, float, bool)):
            sanitized[key] = value
        else:
            sanitized[key] = str(value)

    return sanitized
