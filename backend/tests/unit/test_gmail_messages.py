"""Unit tests for Gmail message conversion."""

import base64

import pytest

from flight_triage.integrations.gmail_messages import InvalidMessageError, extract_email_data
from flight_triage.core.errors import StorageFailureError
from flight_triage.services.ingestion import ingest_batch, ingest_gmail_messages


def b64(text: str) -> str:
    """Gmail-style base64url without padding."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def gmail_message(**payload_overrides) -> dict:
    payload = {
        "mimeType": "multipart/alternative",
        "headers": [
            {"name": "Message-ID", "value": "<abc123@delta.com>"},
            {"name": "Subject", "value": "Your Delta flight confirmation"},
            {"name": "From", "value": "Delta <noreply@delta.com>"},
            {"name": "Date", "value": "Mon, 04 Mar 2024 08:00:00 -0500"},
        ],
        "parts": [
            {"mimeType": "text/plain", "body": {"data": b64("Confirmation XYZ789 on DL100 ATL to LAX")}},
            {"mimeType": "text/html", "body": {"data": b64("<p>FlightReservation</p>")}},
        ],
    }
    payload.update(payload_overrides)
    return {"id": "18e0f0a1b2c3", "threadId": "18e0f0a1b2c3", "payload": payload}


class TestExtractEmailData:
    """Gmail payload to EmailData."""

    def test_multipart_message(self):
        """Headers and both bodies are extracted."""
        data = extract_email_data(gmail_message())

        assert data.message_id == "<abc123@delta.com>"
        assert data.gmail_uid == "18e0f0a1b2c3"
        assert data.subject == "Your Delta flight confirmation"
        assert data.from_email == "Delta <noreply@delta.com>"
        assert data.date == "Mon, 04 Mar 2024 08:00:00 -0500"
        assert data.plain_text == "Confirmation XYZ789 on DL100 ATL to LAX"
        assert data.html == "<p>FlightReservation</p>"

    def test_nested_parts(self):
        """Bodies inside nested multiparts are found."""
        message = gmail_message(parts=[
            {"mimeType": "multipart/alternative", "parts": [
                {"mimeType": "text/plain", "body": {"data": b64("nested")}},
            ]},
        ])

        assert extract_email_data(message).plain_text == "nested"

    def test_single_part_html(self):
        """Single-part HTML body goes to html."""
        message = gmail_message(mimeType="text/html", parts=None, body={"data": b64("<b>hi</b>")})

        data = extract_email_data(message)

        assert data.html == "<b>hi</b>"
        assert data.plain_text == ""

    def test_message_id_falls_back_to_gmail_id(self):
        """Without a Message-ID header the Gmail id is used."""
        message = gmail_message(headers=[{"name": "Subject", "value": "Flight"}])

        assert extract_email_data(message).message_id == "18e0f0a1b2c3"

    def test_headers_case_insensitive(self):
        """Header lookup ignores case."""
        message = gmail_message(headers=[{"name": "message-id", "value": "<lower@x>"}])

        assert extract_email_data(message).message_id == "<lower@x>"

    @pytest.mark.parametrize("message", [None, "text", {}, {"id": "1", "payload": "oops"}])
    def test_invalid_message(self, message):
        """Structurally broken messages are rejected."""
        with pytest.raises(InvalidMessageError):
            extract_email_data(message)

    def test_no_identifier(self):
        """Message without any id is rejected."""
        message = gmail_message(headers=[])
        message.pop("id")

        with pytest.raises(InvalidMessageError):
            extract_email_data(message)

    @pytest.mark.parametrize("overrides", [
        {"headers": ["not-a-dict"]},
        {"headers": "Subject: hi"},
        {"parts": "text/plain"},
        {"parts": ["not-a-part"]},
        {"parts": [{"mimeType": "multipart/mixed", "parts": "oops"}]},
        {"body": "raw text"},
        {"body": {"data": 12345}},
        {"headers": [
            {"name": "Message-ID", "value": "<typed@x>"},
            {"name": "Subject", "value": 123},
        ]},
    ])
    def test_broken_structure(self, overrides):
        """Wrongly shaped headers, parts, bodies or header values are invalid messages."""
        with pytest.raises(InvalidMessageError):
            extract_email_data(gmail_message(**overrides))

    def test_non_string_gmail_id(self):
        """A numeric Gmail id cannot stand in for the message id."""
        message = gmail_message(headers=[])
        message["id"] = 42

        with pytest.raises(InvalidMessageError):
            extract_email_data(message)

    def test_header_without_string_name_ignored(self):
        """Headers whose name is not a string are skipped during lookup."""
        message = gmail_message(headers=[
            {"name": 7, "value": "ignored"},
            {"name": "Message-ID", "value": "<named@x>"},
        ])

        assert extract_email_data(message).message_id == "<named@x>"


class TestIngestGmailMessages:
    """Gmail messages through ingestion."""

    def test_ingest_mixed_batch(self, store):
        """Readable messages are scored; broken ones are skipped."""
        report = ingest_gmail_messages(store, [gmail_message(), {"id": "broken"}])

        assert report.received == 2
        assert report.skipped == 1
        assert report.inserted == 1
        candidate = store.get_candidate_by_message_id("<abc123@delta.com>")
        assert candidate.gmail_uid == "18e0f0a1b2c3"
        assert candidate.confidence_score >= 30

    def test_malformed_payloads_do_not_abort_batch(self, store):
        """Bad headers or header values are counted as skipped; the good message lands."""
        bad_header = {"id": "g2", "payload": {"headers": ["not-a-dict"]}}
        bad_value = {"id": "g3", "payload": {"headers": [{"name": "Subject", "value": 123}]}}

        report = ingest_gmail_messages(store, [bad_header, bad_value, gmail_message()])

        assert report.received == 3
        assert report.skipped == 2
        assert report.inserted == 1
        assert len(report.errors) == 2


class TestIngestBatch:
    """Flat records and Gmail messages ingested together."""

    def test_single_pass_over_both_sets(self, store, united_email):
        """Both record sets share one insert, so cross-set duplicates are caught."""
        same_as_flat = gmail_message(headers=[
            {"name": "Message-ID", "value": united_email["message_id"]},
            {"name": "Subject", "value": "Your flight confirmation"},
            {"name": "From", "value": "noreply@united.com"},
        ])

        report = ingest_batch(store, [united_email], [same_as_flat, {"id": "x", "payload": {"headers": ["bad"]}}])

        assert report.received == 3
        assert report.candidates == 2
        assert report.inserted == 1
        assert report.duplicates == 1
        assert report.skipped == 1
        assert store.count_total() == 1

    def test_storage_failure_writes_nothing(self, store, united_email, monkeypatch):
        """A failed insert leaves the store empty."""
        def failing_insert(rows):
            raise StorageFailureError("disk full")

        monkeypatch.setattr(store, "insert_candidates", failing_insert)

        with pytest.raises(StorageFailureError):
            ingest_batch(store, [united_email], [gmail_message()])

        monkeypatch.undo()
        assert store.count_total() == 0
