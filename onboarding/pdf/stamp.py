"""
Signature stamping using PyMuPDF (fitz).

Draws the stored signature (PNG image or typed text), the signing date and,
for waivers, the printed name onto the last page of a document.
"""
import base64
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

import fitz  # PyMuPDF
from PIL import Image

from onboarding.models import SignatureType
from onboarding.pdf.fonts import draw_text
from onboarding.utils.datetime_utils import format_signature_date

logger = logging.getLogger(__name__)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
PNG_DATA_URL_PREFIX = "data:image/png;base64,"
IMAGE_DATA_URL_PREFIX = "data:image/"


class SignatureStampError(Exception):
    """Signature could not be drawn."""
    pass


@dataclass
class SignatureLayout:
    """
    Placement of the signature block on the last page.

    PDF coordinate system: origin at bottom-left, Y increases upward.
    All values in points.
    """
    x: float = 100.0
    y: float = 100.0
    w: float = 200.0
    h: float = 50.0
    typed_font_size: float = 24.0
    underline_gap: float = 5.0
    date_font_size: float = 10.0
    date_gap: float = 20.0
    name_font_size: float = 10.0
    name_gap: float = 20.0
    backing_padding: float = 10.0
    name_width: float = 220.0


DEFAULT_LAYOUT = SignatureLayout()


def decode_signature_png(signature: str) -> bytes:
    """
    Decode a data URL (or bare base64) PNG signature.

    Raises:
        SignatureStampError: If the payload is not a readable PNG
    """
    if signature.startswith(PNG_DATA_URL_PREFIX):
        signature = signature[len(PNG_DATA_URL_PREFIX):]
    elif signature.startswith(IMAGE_DATA_URL_PREFIX):
        media_type = signature[len("data:"):].split(";", 1)[0]
        raise SignatureStampError(f"Unsupported signature image type: {media_type}")

    try:
        data = base64.b64decode(signature)
    except Exception as e:
        raise SignatureStampError(f"Failed to decode signature: {e}")

    if data[:8] != PNG_MAGIC:
        raise SignatureStampError("Invalid PNG signature")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except Exception as e:
        raise SignatureStampError(f"Corrupt PNG signature: {e}")

    return data


def stamp_signature(
    doc: fitz.Document,
    is_waiver: bool,
    signature: Optional[str],
    signature_type: Optional[Union[str, SignatureType]],
    created_at: Optional[Union[datetime, str]] = None,
    printed_name: Optional[str] = None,
    layout: SignatureLayout = DEFAULT_LAYOUT,
) -> bool:
    """
    Stamp the signature block onto the last page.

    Returns True when something was drawn. Errors propagate; callers run this
    under the CONTINUE policy.
    """
    if doc.page_count == 0 or not signature:
        return False

    kind = signature_type.value if isinstance(signature_type, SignatureType) else (signature_type or "")
    png = None
    text = ""
    # Image data URLs are never printed as text, whatever the stored type
    if signature.startswith(IMAGE_DATA_URL_PREFIX):
        if kind != SignatureType.DRAW.value:
            logger.warning(f"[stamp] signature stored as '{kind}' holds image data, drawing as image")
        # Decode before touching the page so a bad image leaves it untouched
        png = decode_signature_png(signature)
    else:
        text = signature.strip()
        if not text:
            return False

    page = doc[-1]
    page_height = page.rect.height

    # Flip Y: layout is bottom-left origin, PyMuPDF is top-left
    y_top = page_height - layout.y - layout.h
    sig_rect = fitz.Rect(layout.x, y_top, layout.x + layout.w, y_top + layout.h)

    show_name = bool(is_waiver and printed_name)
    backing_right = sig_rect.x1 + (layout.name_gap + layout.name_width if show_name else 0)
    backing = fitz.Rect(
        sig_rect.x0 - layout.backing_padding,
        sig_rect.y0 - layout.backing_padding,
        backing_right + layout.backing_padding,
        sig_rect.y1 + layout.date_gap + layout.backing_padding,
    )
    shape = page.new_shape()
    shape.draw_rect(backing)
    shape.finish(color=None, fill=(1, 1, 1))
    shape.commit()

    if png is not None:
        page.insert_image(sig_rect, stream=png, keep_proportion=True)
        logger.info(f"[stamp] drew signature image on page {page.number + 1}")
    else:
        baseline = sig_rect.y1 - layout.underline_gap - 2
        draw_text(page, fitz.Point(sig_rect.x0, baseline), text, layout.typed_font_size, "italic")
        underline_y = baseline + layout.underline_gap
        page.draw_line(
            fitz.Point(sig_rect.x0, underline_y),
            fitz.Point(sig_rect.x1, underline_y),
            color=(0, 0, 0),
            width=1,
        )
        logger.info(f"[stamp] drew typed signature on page {page.number + 1}")

    date_text = f"Date: {format_signature_date(created_at)}"
    draw_text(page, fitz.Point(sig_rect.x0, sig_rect.y1 + layout.date_gap), date_text, layout.date_font_size)

    if show_name:
        name_point = fitz.Point(sig_rect.x1 + layout.name_gap, sig_rect.y1 - layout.underline_gap)
        draw_text(page, name_point, f"Printed Name: {printed_name}", layout.name_font_size)

    return True


def resolve_printed_name(
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the name printed under a waiver signature.

    Profile first/last name, else the user's full name, else the
    title-cased local part of the email address.
    """
    profile_name = " ".join(p.strip() for p in (first_name, last_name) if p and p.strip())
    if profile_name:
        return profile_name

    if full_name and full_name.strip():
        return full_name.strip()

    if email and "@" in email:
        local = email.split("@", 1)[0]
        words = [w for w in local.replace(".", " ").replace("_", " ").replace("-", " ").split() if w]
        if words:
            return " ".join(w.capitalize() for w in words)

    return None
