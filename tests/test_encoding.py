"""
Tests for stored payload normalization.
"""
import base64

import pytest

from onboarding.pdf.encoding import (
    DecodedBytes,
    DecodeError,
    PdfDecodeError,
    decode_pdf_payload,
    require_pdf,
)


@pytest.fixture
def pdf_bytes(pdf_factory):
    return pdf_factory("ENCODING-P1")


class TestDecodePdfPayload:
    """decode_pdf_payload() accepts every stored shape."""

    def test_all_encodings_yield_identical_bytes(self, pdf_bytes):
        """Base64, data URL and hex-of-base64 normalize to the same bytes."""
        b64 = base64.b64encode(pdf_bytes).decode()
        data_url = f"data:application/pdf;base64,{b64}"
        hex_of_b64 = "\\x" + b64.encode("ascii").hex()

        results = [decode_pdf_payload(p) for p in (b64, data_url, hex_of_b64)]

        assert all(isinstance(r, DecodedBytes) for r in results)
        assert results[0].data == pdf_bytes
        assert results[1].data == pdf_bytes
        assert results[2].data == pdf_bytes

    def test_raw_bytes_pass_through(self, pdf_bytes):
        result = decode_pdf_payload(pdf_bytes)
        assert result == DecodedBytes(pdf_bytes)

    def test_memoryview_and_bytearray(self, pdf_bytes):
        assert decode_pdf_payload(bytearray(pdf_bytes)).data == pdf_bytes
        assert decode_pdf_payload(memoryview(pdf_bytes)).data == pdf_bytes

    def test_buffer_object(self, pdf_bytes):
        """JSON-serialized Buffer {"type": "Buffer", "data": [...]}."""
        result = decode_pdf_payload({"type": "Buffer", "data": list(pdf_bytes)})
        assert result.data == pdf_bytes

    def test_byte_list(self, pdf_bytes):
        assert decode_pdf_payload(list(pdf_bytes)).data == pdf_bytes

    def test_binary_column_holding_base64_text(self, pdf_bytes):
        """BYTEA written with the base64 string comes back as ASCII bytes."""
        stored = base64.b64encode(pdf_bytes)
        assert decode_pdf_payload(stored).data == pdf_bytes

    def test_hex_of_raw_pdf(self, pdf_bytes):
        result = decode_pdf_payload("\\x" + pdf_bytes.hex())
        assert result.data == pdf_bytes

    def test_whitespace_and_missing_padding(self, pdf_bytes):
        b64 = base64.b64encode(pdf_bytes).decode().rstrip("=")
        wrapped = "\n".join(b64[i:i + 76] for i in range(0, len(b64), 76))
        assert decode_pdf_payload(wrapped).data == pdf_bytes

    def test_none_is_error(self):
        result = decode_pdf_payload(None)
        assert isinstance(result, DecodeError)
        assert "missing" in result.reason

    def test_empty_string_is_error(self):
        assert isinstance(decode_pdf_payload("   "), DecodeError)

    def test_invalid_base64_is_error(self):
        result = decode_pdf_payload("not*valid*base64!")
        assert isinstance(result, DecodeError)
        assert "base64" in result.reason

    def test_invalid_hex_is_error(self):
        result = decode_pdf_payload("\\xZZ")
        assert isinstance(result, DecodeError)
        assert "hex" in result.reason

    def test_unsupported_type_is_error(self):
        result = decode_pdf_payload(12345)
        assert isinstance(result, DecodeError)
        assert "int" in result.reason

    def test_never_raises_on_garbage_bytes(self):
        result = decode_pdf_payload(b"\xff\xfe\x00garbage")
        assert isinstance(result, DecodeError)


class TestRequirePdf:
    """require_pdf() validates the %PDF magic."""

    def test_returns_bytes(self, pdf_bytes):
        b64 = base64.b64encode(pdf_bytes).decode()
        assert require_pdf(b64, "waiver") == pdf_bytes

    def test_decode_failure_raises(self):
        with pytest.raises(PdfDecodeError) as exc_info:
            require_pdf("not*valid*base64!", "waiver")
        assert exc_info.value.label == "waiver"

    def test_non_pdf_bytes_raise(self):
        payload = base64.b64encode(b"hello world, not a pdf").decode()
        with pytest.raises(PdfDecodeError) as exc_info:
            require_pdf(payload, "disclosure")
        assert "%PDF" in exc_info.value.reason
