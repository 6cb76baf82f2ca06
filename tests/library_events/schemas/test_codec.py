"""Tests for library event schemas and wire codec."""

import json

import pytest

from core.errors import DecodeError
from library_events.schemas import (
    Book,
    LibraryEvent,
    LibraryEventType,
    decode_library_event,
    encode_library_event,
)


def _encode(data) -> bytes:
    return json.dumps(data).encode("utf-8")


class TestDecodeLibraryEvent:
    """Tests for decode_library_event."""

    def test_decodes_new_event(self, new_event_payload):
        event = decode_library_event(_encode(new_event_payload))

        assert event.library_event_id is None
        assert event.library_event_type == LibraryEventType.NEW
        assert event.book.book_id == 123
        assert event.book.book_name == "Kafka Using Spring Boot"
        assert event.book.book_author == "Dilip"

    def test_decodes_update_event(self, new_event_payload):
        payload = {**new_event_payload, "libraryEventId": 42, "libraryEventType": "UPDATE"}

        event = decode_library_event(_encode(payload))

        assert event.library_event_id == 42
        assert event.library_event_type == LibraryEventType.UPDATE

    def test_create_accepted_as_new(self, new_event_payload):
        payload = {**new_event_payload, "libraryEventType": "CREATE"}

        assert decode_library_event(_encode(payload)).library_event_type == LibraryEventType.NEW

    def test_missing_event_id_field_treated_as_absent(self, new_event_payload):
        payload = dict(new_event_payload)
        del payload["libraryEventId"]

        assert decode_library_event(_encode(payload)).library_event_id is None

    def test_optional_book_fields(self):
        payload = {"libraryEventType": "NEW", "book": {"bookId": 1}}

        event = decode_library_event(_encode(payload))

        assert event.book.book_name is None
        assert event.book.book_author is None

    @pytest.mark.parametrize("payload", [None, b""])
    def test_empty_payload(self, payload):
        with pytest.raises(DecodeError, match="empty"):
            decode_library_event(payload)

    def test_malformed_json(self):
        with pytest.raises(DecodeError, match="not valid JSON"):
            decode_library_event(b'{"libraryEventType": "NEW", ')

    def test_invalid_utf8(self):
        with pytest.raises(DecodeError):
            decode_library_event(b"\xff\xfe\x00")

    def test_non_object_json(self):
        with pytest.raises(DecodeError, match="JSON object"):
            decode_library_event(b"[1, 2, 3]")

    def test_unknown_event_type(self, new_event_payload):
        payload = {**new_event_payload, "libraryEventType": "DELETE"}

        with pytest.raises(DecodeError) as exc_info:
            decode_library_event(_encode(payload))

        assert "libraryEventType" in exc_info.value.context["invalid_fields"]

    def test_missing_book(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_library_event(_encode({"libraryEventType": "NEW"}))

        assert "book" in exc_info.value.context["invalid_fields"]

    def test_missing_book_id(self):
        payload = {"libraryEventType": "NEW", "book": {"bookName": "No Id"}}

        with pytest.raises(DecodeError) as exc_info:
            decode_library_event(_encode(payload))

        assert "book.bookId" in exc_info.value.context["invalid_fields"]

    def test_wrong_type_for_book_id(self):
        payload = {"libraryEventType": "NEW", "book": {"bookId": "not-a-number"}}

        with pytest.raises(DecodeError):
            decode_library_event(_encode(payload))

    @pytest.mark.parametrize("book_id", [True, "123", 123.0])
    def test_book_id_not_coerced(self, book_id):
        payload = {"libraryEventType": "NEW", "book": {"bookId": book_id}}

        with pytest.raises(DecodeError) as exc_info:
            decode_library_event(_encode(payload))

        assert "book.bookId" in exc_info.value.context["invalid_fields"]

    @pytest.mark.parametrize("event_id", [True, "42", 42.0])
    def test_library_event_id_not_coerced(self, new_event_payload, event_id):
        payload = {**new_event_payload, "libraryEventId": event_id, "libraryEventType": "UPDATE"}

        with pytest.raises(DecodeError) as exc_info:
            decode_library_event(_encode(payload))

        assert "libraryEventId" in exc_info.value.context["invalid_fields"]


class TestEncodeLibraryEvent:
    """Tests for encode_library_event."""

    def test_uses_camel_case_wire_names(self):
        event = LibraryEvent(
            library_event_id=5,
            library_event_type=LibraryEventType.UPDATE,
            book=Book(book_id=9, book_name="Title", book_author="Author"),
        )

        data = json.loads(encode_library_event(event))

        assert data == {
            "libraryEventId": 5,
            "libraryEventType": "UPDATE",
            "book": {"bookId": 9, "bookName": "Title", "bookAuthor": "Author"},
        }

    def test_decode_accepts_encoded_output(self, new_event_payload):
        event = decode_library_event(_encode(new_event_payload))

        assert decode_library_event(encode_library_event(event)) == event


class TestMessageKey:
    """Tests for LibraryEvent.message_key."""

    def test_key_is_id_text(self):
        event = LibraryEvent(
            library_event_id=17,
            library_event_type=LibraryEventType.UPDATE,
            book=Book(book_id=1),
        )
        assert event.message_key == "17"

    def test_no_key_for_new(self):
        event = LibraryEvent(library_event_type=LibraryEventType.NEW, book=Book(book_id=1))
        assert event.message_key is None
