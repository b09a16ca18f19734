import json
from io import StringIO
from pathlib import PurePath
from typing import List, Optional

import pandas as pd

from services.orchestrator.exceptions import (
    EmptyInput,
    PayloadTooLarge,
    UnsupportedFormat,
)
from services.orchestrator.settings import settings

TEXT_EXTENSIONS = {".txt", ".csv", ".json"}

AUDIO_MIME_BY_EXT = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".m4a": "audio/m4a",
}
AUDIO_MIME_TYPES = {
    "audio/wav",
    "audio/x-wav",
    "audio/wave",
    "audio/mp3",
    "audio/mpeg",
    "audio/webm",
    "audio/ogg",
    "audio/m4a",
    "audio/x-m4a",
    "audio/mp4",
}


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):g}MB"


def check_text_size(text: str, max_bytes: Optional[int] = None) -> None:
    max_bytes = settings.max_text_bytes if max_bytes is None else max_bytes
    if len(text.encode("utf-8")) > max_bytes:
        raise PayloadTooLarge(f"Text must be less than {_megabytes(max_bytes)}")


def check_file_size(size: Optional[int], max_bytes: int) -> None:
    """Reject an upload over `max_bytes`; an unknown size passes"""
    if size is not None and size > max_bytes:
        raise PayloadTooLarge(f"File size must be less than {_megabytes(max_bytes)}")


def _parse_txt(content: str) -> List[str]:
    return [line.strip() for line in content.splitlines() if line.strip()]


def _parse_csv(content: str) -> List[str]:
    # First non-blank row is the header; entries come from the first column
    try:
        df = pd.read_csv(
            StringIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
        )
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as e:
        raise UnsupportedFormat(f"Invalid CSV format: {e}") from e

    if df.empty:
        return []
    texts = df.iloc[:, 0].str.strip()
    return [text for text in texts if text]


def _parse_json(content: str) -> List[str]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise UnsupportedFormat(f"Invalid JSON file: {e}") from e

    if not isinstance(data, list):
        raise UnsupportedFormat(
            "JSON file must contain an array of strings or objects with a 'text' field"
        )

    texts = []
    for item in data:
        if isinstance(item, dict):
            item = item.get("text")
        if isinstance(item, str) and item.strip():
            texts.append(item.strip())
    return texts


def parse_text_file(
    filename: str, content: bytes, max_bytes: Optional[int] = None
) -> List[str]:
    """Extract the batch entries of an uploaded .txt, .csv or .json file"""
    max_bytes = settings.max_text_bytes if max_bytes is None else max_bytes
    extension = PurePath(filename or "").suffix.lower()

    if extension not in TEXT_EXTENSIONS:
        raise UnsupportedFormat("Please upload a .txt, .csv or .json file")
    check_file_size(len(content), max_bytes)

    try:
        decoded = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise UnsupportedFormat("File must be UTF-8 encoded text") from e

    if extension == ".csv":
        texts = _parse_csv(decoded)
    elif extension == ".json":
        texts = _parse_json(decoded)
    else:
        texts = _parse_txt(decoded)

    if not texts:
        raise EmptyInput("No valid text entries found in file")
    return texts


def validate_audio(
    filename: Optional[str],
    mime_type: Optional[str],
    size: int,
    max_bytes: Optional[int] = None,
) -> str:
    """Check an audio upload and return the MIME type to send"""
    max_bytes = settings.max_audio_bytes if max_bytes is None else max_bytes
    extension = PurePath(filename or "").suffix.lower()
    mime_type = (mime_type or "").split(";")[0].strip().lower()

    if mime_type not in AUDIO_MIME_TYPES and extension not in AUDIO_MIME_BY_EXT:
        raise UnsupportedFormat(
            "Please upload a valid audio file (WAV, MP3, WebM, OGG, M4A)"
        )
    if size == 0:
        raise EmptyInput("Audio file is empty")
    check_file_size(size, max_bytes)

    if mime_type in AUDIO_MIME_TYPES:
        return mime_type
    return AUDIO_MIME_BY_EXT[extension]
