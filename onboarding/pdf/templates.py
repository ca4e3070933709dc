"""
Fillable background-check templates.

The static onboarding PDFs have no form layer of their own. Widgets are added
at fixed positions; positions are given as distances below the top of the
page the field is attached to, which for the waiver run past the first page's
bottom edge. Waiver and disclosure widgets lose their appearance streams
because the browser overlay draws the visuals, so stored copies of those two
documents reach the merger without native appearances.
"""
import logging
import os
from dataclasses import dataclass
from typing import Dict, List

import fitz  # PyMuPDF

from onboarding.config import get_settings
from onboarding.models import DocumentKind

logger = logging.getLogger(__name__)

TEXT = "text"
CHECKBOX = "checkbox"


@dataclass(frozen=True)
class FormFieldSpec:
    name: str
    page: int       # 1-indexed
    x: float
    below_top: float  # widget bottom edge = page height - below_top
    w: float
    h: float
    field_type: str = TEXT
    multiline: bool = False


@dataclass(frozen=True)
class FormTemplate:
    kind: DocumentKind
    filename: str
    download_name: str
    fields: List[FormFieldSpec]
    strip_appearances: bool = False


def _crime_rows() -> List[FormFieldSpec]:
    rows = []
    for i, below_top in enumerate((1300, 1325, 1350), start=1):
        rows.extend([
            FormFieldSpec(f"dateCrime{i}", 2, 90, below_top, 70, 20, multiline=True),
            FormFieldSpec(f"locationCrime{i}", 2, 160, below_top, 70, 20, multiline=True),
            FormFieldSpec(f"policeAgency{i}", 2, 230, below_top, 120, 20, multiline=True),
            FormFieldSpec(f"chargeSentence{i}", 2, 350, below_top, 130, 20, multiline=True),
        ])
    return rows


def _history_rows(prefix: str, from_prefix: str, to_prefix: str, rows: tuple) -> List[FormFieldSpec]:
    fields = []
    for i, below_top in enumerate(rows, start=1):
        fields.extend([
            FormFieldSpec(f"{prefix}{i}", 2, 100, below_top, 300, 20),
            FormFieldSpec(f"{from_prefix}{i}", 2, 400, below_top, 80, 20),
            FormFieldSpec(f"{to_prefix}{i}", 2, 480, below_top, 80, 20),
        ])
    return fields


WAIVER_FIELDS = [
    FormFieldSpec("checkbox", 1, 127, 1050, 7, 7, field_type=CHECKBOX),
    FormFieldSpec("fullName", 1, 255, 1155, 200, 10),
    FormFieldSpec("date", 1, 450, 1130, 60, 10),
    FormFieldSpec("dateOfBirth", 1, 200, 1240, 60, 10),
    FormFieldSpec("ssn", 1, 430, 1240, 60, 10),
    FormFieldSpec("driversLicenseName", 1, 300, 1170, 200, 10),
    FormFieldSpec("otherName", 1, 255, 1185, 200, 10),
    FormFieldSpec("driversLicense", 1, 255, 1210, 80, 10),
    FormFieldSpec("state", 1, 450, 1210, 60, 10),
    FormFieldSpec("full name", 2, 250, 915, 200, 10),
    FormFieldSpec("adress", 2, 230, 945, 200, 10),
    FormFieldSpec("cityStateZip", 2, 200, 975, 170, 10),
    FormFieldSpec("phone", 2, 330, 1005, 150, 10),
    *_history_rows("previousEmployer", "datefrom", "datefto", (1050, 1075, 1100)),
    *_history_rows("previousPosition", "pdatefrom", "pdatefto", (1185, 1210, 1235)),
    FormFieldSpec("reference1Name", 2, 290, 1110, 200, 10),
    FormFieldSpec("reference1Phone", 2, 180, 1125, 150, 10),
    FormFieldSpec("ref1cityStateZip", 2, 180, 1140, 150, 10),
    FormFieldSpec("yesCrime", 2, 395, 1245, 26, 10, field_type=CHECKBOX),
    FormFieldSpec("noCrime", 2, 445, 1245, 26, 10, field_type=CHECKBOX),
    *_crime_rows(),
]

DISCLOSURE_FIELDS = [
    FormFieldSpec("requestCopy", 1, 350, 480, 10, 10, field_type=CHECKBOX),
    FormFieldSpec("name", 2, 50, 155, 300, 15),
    FormFieldSpec("address", 2, 50, 185, 300, 15),
    FormFieldSpec("city", 2, 50, 210, 110, 15),
    FormFieldSpec("state", 2, 160, 210, 60, 15),
    FormFieldSpec("zip", 2, 220, 210, 60, 15),
    FormFieldSpec("cellPhone", 2, 50, 260, 100, 15),
    FormFieldSpec("ssn", 2, 160, 260, 120, 15),
    FormFieldSpec("dateOfBirth", 2, 50, 290, 100, 15),
    FormFieldSpec("driversLicense", 2, 160, 290, 100, 15),
    FormFieldSpec("dlState", 2, 260, 290, 50, 15),
    FormFieldSpec("signatureDate", 2, 350, 350, 100, 15),
]

TEMPLATES: Dict[DocumentKind, FormTemplate] = {
    DocumentKind.WAIVER: FormTemplate(
        kind=DocumentKind.WAIVER,
        filename="background_waiver.pdf",
        download_name="Background_Waiver.pdf",
        fields=WAIVER_FIELDS,
        strip_appearances=True,
    ),
    DocumentKind.DISCLOSURE: FormTemplate(
        kind=DocumentKind.DISCLOSURE,
        filename="background_disclosure.pdf",
        download_name="Background_Check_Disclosure_and_Authorization.pdf",
        fields=DISCLOSURE_FIELDS,
        strip_appearances=True,
    ),
    DocumentKind.ADDON: FormTemplate(
        kind=DocumentKind.ADDON,
        filename="background_addon.pdf",
        download_name="Background_Check_Form_3_Add_On.pdf",
        fields=[],
    ),
}


class TemplateNotFoundError(Exception):
    """Template kind unknown or its PDF is missing on disk."""
    pass


def get_template(kind: DocumentKind) -> FormTemplate:
    template = TEMPLATES.get(kind)
    if template is None:
        raise TemplateNotFoundError(f"No fillable template for '{kind.value}'")
    return template


def load_template_bytes(kind: DocumentKind) -> bytes:
    """Read the static template PDF from FORM_TEMPLATES_DIR."""
    template = get_template(kind)
    path = os.path.join(get_settings().form_templates_dir, template.filename)
    if not os.path.exists(path):
        raise TemplateNotFoundError(f"Template file not found: {path}")
    with open(path, "rb") as f:
        return f.read()


def _make_widget(spec: FormFieldSpec, page_height: float) -> fitz.Widget:
    # Bottom-left origin position, flipped to PyMuPDF's top-left origin
    y = page_height - spec.below_top
    y_top = page_height - y - spec.h

    widget = fitz.Widget()
    widget.field_name = spec.name
    widget.rect = fitz.Rect(spec.x, y_top, spec.x + spec.w, y_top + spec.h)
    if spec.field_type == CHECKBOX:
        widget.field_type = fitz.PDF_WIDGET_TYPE_CHECKBOX
        widget.field_value = False
    else:
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.field_value = ""
        widget.text_fontsize = 0
        if spec.multiline:
            widget.field_flags |= fitz.PDF_TX_FIELD_IS_MULTILINE
    return widget


def _strip_appearances(doc: fitz.Document) -> int:
    stripped = 0
    for page in doc:
        for widget in page.widgets():
            doc.xref_set_key(widget.xref, "AP", "null")
            doc.xref_set_key(widget.xref, "BS", "<</W 0>>")
            doc.xref_set_key(widget.xref, "MK", "<<>>")
            stripped += 1
    return stripped


def build_fillable_form(kind: DocumentKind, template_bytes: bytes) -> bytes:
    """
    Add the template's widgets to a static PDF and return the new bytes.

    Fields on pages the document does not have are skipped.
    """
    template = get_template(kind)
    doc = fitz.open(stream=template_bytes, filetype="pdf")
    try:
        added = 0
        skipped = 0
        for spec in template.fields:
            if spec.page > doc.page_count:
                skipped += 1
                continue
            page = doc[spec.page - 1]
            page.add_widget(_make_widget(spec, page.rect.height))
            added += 1

        if template.strip_appearances:
            _strip_appearances(doc)

        logger.info(
            f"[template:{kind.value}] added {added} fields, skipped {skipped} "
            f"(pages={doc.page_count}, stripped={template.strip_appearances})"
        )
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()
