import json

import pytest

from services.orchestrator.exceptions import EmptyInput, PayloadTooLarge, UnsupportedFormat
from services.orchestrator.intake import (
    check_file_size,
    check_text_size,
    parse_text_file,
    validate_audio,
)


def test_txt_file_splits_lines_and_drops_blanks():
    content = b"First review\n\n  Second review  \r\nThird\n"

    assert parse_text_file("reviews.txt", content) == [
        "First review",
        "Second review",
        "Third",
    ]


def test_csv_file_takes_first_column_and_skips_header():
    content = (
        b'review,rating\n'
        b'"Great hotel, friendly staff",5\n'
        b'Very bad,1\n'
        b',3\n'
        b'"She said ""wow""",4\n'
    )

    assert parse_text_file("reviews.csv", content) == [
        "Great hotel, friendly staff",
        "Very bad",
        'She said "wow"',
    ]


def test_csv_header_found_after_leading_blank_lines():
    content = b"\n\ntext,rating\nGreat hotel!,5\n\nVery bad,1\n"

    assert parse_text_file("reviews.csv", content) == ["Great hotel!", "Very bad"]


def test_csv_values_stay_text():
    content = b"score,comment\n007,first\n1.50,second\nNA,third\n"

    assert parse_text_file("reviews.csv", content) == ["007", "1.50", "NA"]


def test_blank_csv_rejected():
    with pytest.raises(EmptyInput):
        parse_text_file("reviews.csv", b"\n\n")


def test_json_array_of_strings_and_objects():
    content = json.dumps(
        ["plain string", {"text": "object text"}, {"body": "ignored"}, "  ", 42]
    ).encode()

    assert parse_text_file("reviews.json", content) == ["plain string", "object text"]


def test_json_must_be_an_array():
    with pytest.raises(UnsupportedFormat):
        parse_text_file("reviews.json", b'{"text": "single"}')


def test_invalid_json_rejected():
    with pytest.raises(UnsupportedFormat):
        parse_text_file("reviews.json", b"[not json")


def test_unsupported_extension_rejected():
    with pytest.raises(UnsupportedFormat):
        parse_text_file("reviews.xlsx", b"whatever")


def test_file_over_ceiling_rejected():
    with pytest.raises(PayloadTooLarge):
        parse_text_file("reviews.txt", b"x" * 11, max_bytes=10)


def test_file_without_entries_rejected():
    with pytest.raises(EmptyInput):
        parse_text_file("reviews.csv", b"review,rating\n")


def test_non_utf8_file_rejected():
    with pytest.raises(UnsupportedFormat):
        parse_text_file("reviews.txt", b"\xff\xfe\xfa")


def test_check_file_size():
    check_file_size(None, max_bytes=10)
    check_file_size(10, max_bytes=10)
    with pytest.raises(PayloadTooLarge) as exc_info:
        check_file_size(11, max_bytes=10)

    assert exc_info.value.status_code == 413


def test_check_text_size_counts_encoded_bytes():
    check_text_size("abcd", max_bytes=4)
    with pytest.raises(PayloadTooLarge):
        check_text_size("é" * 3, max_bytes=4)


@pytest.mark.parametrize(
    "filename, mime_type, expected",
    [
        ("call.wav", "audio/wav", "audio/wav"),
        ("call.mp3", "audio/mpeg", "audio/mpeg"),
        ("memo.webm", "audio/webm;codecs=opus", "audio/webm"),
        ("memo.m4a", "", "audio/m4a"),
        ("recording", "audio/x-m4a", "audio/x-m4a"),
    ],
)
def test_validate_audio_accepts_known_formats(filename, mime_type, expected):
    assert validate_audio(filename, mime_type, 1024) == expected


def test_validate_audio_rejects_unknown_format():
    with pytest.raises(UnsupportedFormat):
        validate_audio("notes.txt", "text/plain", 10)


def test_validate_audio_rejects_large_and_empty_files():
    with pytest.raises(PayloadTooLarge):
        validate_audio("call.wav", "audio/wav", 26 * 1024 * 1024)
    with pytest.raises(EmptyInput):
        validate_audio("call.wav", "audio/wav", 0)
