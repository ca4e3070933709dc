"""
Normalization of stored PDF payloads.

Payloads reach the service in several shapes depending on the column type
and the client that wrote them:
- raw bytes (BYTEA read through a binary driver)
- base64 text, optionally prefixed with a data URL header
- "\\x"-prefixed hex, where the hex encodes the base64 text (BYTEA column
  that was written with a base64 string)
- a JSON Buffer object or list of byte values

decode_pdf_payload() turns any of those into a tagged result so that every
caller performs identical normalization.
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Any, Union

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"

_DATA_URL_PREFIX = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class PdfPipelineError(Exception):
    """Base error for structural PDF pipeline failures."""
    pass


class PdfDecodeError(PdfPipelineError):
    """A stored payload could not be turned into PDF bytes."""

    def __init__(self, reason: str, label: str = "payload"):
        super().__init__(f"{label}: {reason}")
        self.reason = reason
        self.label = label


@dataclass(frozen=True)
class DecodedBytes:
    data: bytes


@dataclass(frozen=True)
class DecodeError:
    reason: str


DecodeResult = Union[DecodedBytes, DecodeError]


def _decode_base64_text(text: str) -> DecodeResult:
    text = _DATA_URL_PREFIX.sub("", text.strip(), count=1)
    text = _WHITESPACE.sub("", text)
    if not text:
        return DecodeError("empty payload")
    # Stored payloads sometimes lose their trailing padding
    text += "=" * (-len(text) % 4)
    try:
        return DecodedBytes(base64.b64decode(text, validate=True))
    except (binascii.Error, ValueError) as e:
        return DecodeError(f"invalid base64: {e}")


def _decode_hex_text(text: str) -> DecodeResult:
    try:
        raw = bytes.fromhex(text[2:])
    except ValueError as e:
        return DecodeError(f"invalid hex: {e}")
    if raw.startswith(PDF_MAGIC):
        return DecodedBytes(raw)
    try:
        inner = raw.decode("ascii")
    except UnicodeDecodeError:
        return DecodeError("hex payload is neither PDF bytes nor base64 text")
    return _decode_base64_text(inner)


def _decode_binary(raw: bytes) -> DecodeResult:
    if raw.startswith(PDF_MAGIC):
        return DecodedBytes(raw)
    # A binary column may still hold the ASCII base64 (or hex) text
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        return DecodeError("binary payload is not a PDF and not ASCII text")
    return decode_pdf_payload(text)


def decode_pdf_payload(payload: Any) -> DecodeResult:
    """
    Normalize a stored payload into raw bytes.

    Never raises; failures come back as DecodeError with a human-readable reason.
    The %PDF magic is not checked here, see require_pdf().
    """
    if payload is None:
        return DecodeError("payload is missing")

    if isinstance(payload, (bytes, bytearray, memoryview)):
        return _decode_binary(bytes(payload))

    if isinstance(payload, dict) and payload.get("type") == "Buffer":
        payload = payload.get("data")

    if isinstance(payload, list):
        try:
            return _decode_binary(bytes(payload))
        except (TypeError, ValueError) as e:
            return DecodeError(f"invalid byte list: {e}")

    if isinstance(payload, str):
        text = payload.strip()
        if not text:
            return DecodeError("empty payload")
        if text.startswith("\\x"):
            return _decode_hex_text(text)
        if text.startswith("%PDF"):
            return DecodedBytes(text.encode("latin-1"))
        return _decode_base64_text(text)

    return DecodeError(f"unsupported payload type: {type(payload).__name__}")


def require_pdf(payload: Any, label: str = "payload") -> bytes:
    """
    Decode a payload and validate the %PDF magic.

    Raises:
        PdfDecodeError: If decoding fails or the bytes are not a PDF
    """
    result = decode_pdf_payload(payload)
    if isinstance(result, DecodeError):
        logger.error(f"[decode:{label}] {result.reason}")
        raise PdfDecodeError(result.reason, label)

    if not result.data.startswith(PDF_MAGIC):
        logger.error(f"[decode:{label}] decoded {len(result.data)} bytes without %PDF header")
        raise PdfDecodeError("decoded bytes are not a PDF (missing %PDF header)", label)

    logger.debug(f"[decode:{label}] {len(result.data)} bytes")
    return result.data
