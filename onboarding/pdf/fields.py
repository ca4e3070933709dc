"""
Form field rendering using PyMuPDF (fitz).

Stored onboarding PDFs come in two flavours:
- widgets with rendered appearance streams (AP/N); flattening bakes them as is
- widgets without appearances (the fillable templates strip them for the
  browser overlay); flattening those yields blank fields, so the values are
  drawn onto the page content first and the widgets are then removed
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import fitz  # PyMuPDF

from onboarding.config import get_settings
from onboarding.models import DocumentKind
from onboarding.pdf.fonts import draw_text
from onboarding.pdf.offsets import field_offset

logger = logging.getLogger(__name__)

APPEARANCE_SAMPLE_SIZE = 5
# Average glyph width as a fraction of the font size
AVG_CHAR_WIDTH_RATIO = 0.5
# Gap between the widget's bottom edge and the text baseline
BASELINE_PADDING = 2.0
CHECKMARK = "X"

_UNCHECKED_VALUES = {"", "off", "/off", "false", "no", "0"}
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass
class FieldDescriptor:
    """One widget of a form field, as read from the open document."""
    name: str
    page_index: int
    rect: Tuple[float, float, float, float]  # raw /Rect, PDF bottom-left origin
    value: Union[str, bool]
    is_checkbox: bool = False

    @property
    def width(self) -> float:
        return self.rect[2] - self.rect[0]

    @property
    def height(self) -> float:
        return self.rect[3] - self.rect[1]

    @property
    def is_empty(self) -> bool:
        if self.is_checkbox:
            return not self.value
        return not str(self.value).strip()


@dataclass
class DrawTarget:
    page_index: int
    x: float
    baseline: float  # distance from the page top, PyMuPDF coordinates


def has_native_appearances(doc: fitz.Document, sample_size: int = APPEARANCE_SAMPLE_SIZE) -> bool:
    """
    Check whether the document's widgets already carry normal appearance streams.

    Samples up to `sample_size` distinct fields; True if any sampled widget has AP/N.
    Documents without form fields return False.
    """
    sampled = set()
    for page in doc:
        for widget in page.widgets():
            name = widget.field_name or f"xref-{widget.xref}"
            if name not in sampled:
                if len(sampled) >= sample_size:
                    continue
                sampled.add(name)
            kind, _ = doc.xref_get_key(widget.xref, "AP/N")
            if kind != "null":
                logger.debug(f"[inspect] field '{name}' has AP/N")
                return True
    logger.debug(f"[inspect] no appearance streams in {len(sampled)} sampled fields")
    return False


def _raw_rect(doc: fitz.Document, widget: fitz.Widget) -> Tuple[float, float, float, float]:
    """Read the widget's /Rect exactly as stored, without page transformation."""
    kind, value = doc.xref_get_key(widget.xref, "Rect")
    numbers = [float(n) for n in _NUMBER.findall(value)] if kind == "array" else []
    if len(numbers) != 4:
        # Fall back to the transformed rect mapped back to bottom-left origin
        page_height = widget.parent.rect.height
        r = widget.rect
        return (r.x0, page_height - r.y1, r.x1, page_height - r.y0)
    x0, y0, x1, y1 = numbers
    return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def _widget_value(widget: fitz.Widget) -> Tuple[Union[str, bool], bool]:
    is_checkbox = widget.field_type in (
        fitz.PDF_WIDGET_TYPE_CHECKBOX,
        fitz.PDF_WIDGET_TYPE_RADIOBUTTON,
    )
    value = widget.field_value
    if is_checkbox:
        if isinstance(value, bool):
            return value, True
        return str(value or "").strip().lower() not in _UNCHECKED_VALUES, True
    if value is None:
        return "", False
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    return str(value), False


def read_fields(doc: fitz.Document) -> Dict[str, List[FieldDescriptor]]:
    """Collect widgets grouped by field name, in document order."""
    fields: Dict[str, List[FieldDescriptor]] = {}
    for page in doc:
        for widget in page.widgets():
            value, is_checkbox = _widget_value(widget)
            descriptor = FieldDescriptor(
                name=widget.field_name or f"xref-{widget.xref}",
                page_index=page.number,
                rect=_raw_rect(doc, widget),
                value=value,
                is_checkbox=is_checkbox,
            )
            fields.setdefault(descriptor.name, []).append(descriptor)
    return fields


def fit_text(text: str, width: float, font_size: float) -> str:
    """Truncate text to the number of average-width characters that fit the widget."""
    text = " ".join(text.split())
    max_chars = int(width // (font_size * AVG_CHAR_WIDTH_RATIO)) if font_size > 0 else 0
    if max_chars <= 0:
        return ""
    return text[:max_chars]


def compute_draw_target(
    descriptor: FieldDescriptor,
    page_heights: List[float],
    offset: float,
    magnitude_limit: float,
) -> Optional[DrawTarget]:
    """
    Work out where a widget's value lands on the page, top-left origin.

    A raw Y below `magnitude_limit` in magnitude is an absolute PDF coordinate;
    larger magnitudes are distances measured down from the page top.
    Positions past the bottom edge move to the following page(s) at the same
    offset from that page's top. Returns None when no page is left.
    """
    page_index = descriptor.page_index
    if page_index >= len(page_heights):
        return None

    y0 = descriptor.rect[1]
    if abs(y0) < magnitude_limit:
        bottom_from_top = page_heights[page_index] - y0
    else:
        bottom_from_top = abs(y0)

    baseline = bottom_from_top - BASELINE_PADDING + offset

    while baseline > page_heights[page_index]:
        baseline -= page_heights[page_index]
        page_index += 1
        if page_index >= len(page_heights):
            return None

    return DrawTarget(page_index=page_index, x=descriptor.rect[0], baseline=baseline)


def render_fields_manually(doc: fitz.Document, kind: Optional[DocumentKind] = None) -> int:
    """
    Draw every field value straight onto the page content.

    Text fields are truncated to their widget width; checked boxes get an "X".
    Uses the offset table of `kind`. Returns the number of values drawn.
    """
    settings = get_settings()
    fields = read_fields(doc)
    if not fields:
        return 0

    page_heights = [page.rect.height for page in doc]
    label = kind.value if kind else "document"
    drawn = 0
    dropped = 0

    for name, widgets in fields.items():
        offset = field_offset(kind, name)
        for descriptor in widgets:
            if descriptor.is_empty:
                continue

            font_size = settings.pdf_font_size
            if descriptor.height > 0:
                font_size = min(font_size, descriptor.height)

            if descriptor.is_checkbox:
                text = CHECKMARK
            else:
                text = fit_text(str(descriptor.value), descriptor.width, font_size)
                if not text:
                    continue

            target = compute_draw_target(
                descriptor, page_heights, offset, settings.coordinate_magnitude_limit
            )
            if target is None:
                dropped += 1
                logger.debug(f"[render:{label}] '{name}' overflows past the last page, dropped")
                continue

            x = target.x
            if descriptor.is_checkbox:
                x += max(0.0, (descriptor.width - font_size * AVG_CHAR_WIDTH_RATIO * 1.3) / 2)

            draw_text(doc[target.page_index], (x, target.baseline), text, font_size)
            drawn += 1

    logger.info(f"[render:{label}] drew {drawn} field values ({dropped} dropped)")
    return drawn


def _refresh_appearances(doc: fitz.Document) -> None:
    for page in doc:
        for widget in page.widgets():
            try:
                widget.text_font = "Helv"
                widget.update()
            except Exception as e:
                logger.warning(f"[flatten] could not update appearance of '{widget.field_name}': {e}")


def _delete_widgets(doc: fitz.Document) -> int:
    removed = 0
    for page in doc:
        for xref in [w.xref for w in page.widgets()]:
            page.delete_widget(page.load_widget(xref))
            removed += 1
    return removed


def flatten_fields(doc: fitz.Document, appearances_present: bool) -> None:
    """
    Remove the interactive form layer.

    With native appearances the widgets are refreshed with Helvetica and baked
    into the page content. Otherwise the values were already drawn by
    render_fields_manually() and the widgets are deleted outright.
    """
    if not doc.is_form_pdf:
        return

    if appearances_present:
        _refresh_appearances(doc)
        doc.bake(annots=False, widgets=True)
        logger.info("[flatten] baked widget appearances into page content")
    else:
        removed = _delete_widgets(doc)
        logger.info(f"[flatten] removed {removed} widgets")
