"""
Merging of stored onboarding documents into downloadable deliverables.

Background checks: each stored sub-document (waiver, disclosure, add-on) is
decoded, its fields baked into page content, signed on its last page and
copied into one output PDF. Records saved before the documents were split
only carry the combined legacy document, which goes through the same steps
on its own.

Onboarding packets: every saved wizard form of a user, signed with the user's
drawn signature and concatenated.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import fitz  # PyMuPDF

from onboarding.models import BackgroundCheckRecord, DocumentKind, FormProgressRecord
from onboarding.pdf.encoding import require_pdf
from onboarding.pdf.fields import flatten_fields, has_native_appearances, render_fields_manually
from onboarding.pdf.fonts import draw_text
from onboarding.pdf.policy import (
    COPY,
    FLATTEN,
    INSPECT,
    LOAD,
    PACKET_FORM,
    RELOAD,
    RENDER,
    STAMP,
    run_stage,
)
from onboarding.pdf.stamp import SignatureStampError, decode_signature_png, stamp_signature

logger = logging.getLogger(__name__)

SEPARATE_DOCUMENT_ORDER = (DocumentKind.WAIVER, DocumentKind.DISCLOSURE, DocumentKind.ADDON)

FORM_DISPLAY_NAMES = {
    "ca-de4": "CA DE-4 State Tax Form",
    "fw4": "Federal W-4",
    "i9": "I-9 Employment Verification",
    "adp-deposit": "ADP Direct Deposit",
    "ui-guide": "UI Guide",
    "disability-insurance": "Disability Insurance",
    "paid-family-leave": "Paid Family Leave",
    "sexual-harassment": "Sexual Harassment",
    "survivors-rights": "Survivors Rights",
    "transgender-rights": "Transgender Rights",
    "health-insurance": "Health Insurance",
    "time-of-hire": "Time of Hire Notice",
    "discrimination-law": "Discrimination Law",
    "immigration-rights": "Immigration Rights",
    "military-rights": "Military Rights",
    "lgbtq-rights": "LGBTQ Rights",
    "notice-to-employee": "Notice to Employee",
    "meal-waiver-6hour": "Meal Waiver (6 Hour)",
    "meal-waiver-10-12": "Meal Waiver (10/12 Hour)",
    "employee-information": "Employee Information",
    "state-tax": "State Tax Form",
    "ny-state-tax": "NY State Tax Form",
    "wi-state-tax": "WI State Tax Form",
    "az-state-tax": "AZ State Tax Form",
}


class NoDocumentsError(Exception):
    """Nothing stored (or nothing usable) to build the deliverable from."""
    pass


def display_name_for_form(form_name: str) -> str:
    if form_name in FORM_DISPLAY_NAMES:
        return FORM_DISPLAY_NAMES[form_name]
    return " ".join(w.capitalize() for w in form_name.replace("_", "-").split("-") if w)


def _open_pdf(data: bytes) -> fitz.Document:
    doc = fitz.open(stream=data, filetype="pdf")
    if doc.page_count == 0:
        doc.close()
        raise ValueError("document has no pages")
    return doc


def _reload(doc: fitz.Document) -> fitz.Document:
    """Serialize and reopen so page copy sees the flattened content."""
    data = doc.tobytes(garbage=3, deflate=True)
    doc.close()
    return fitz.open(stream=data, filetype="pdf")


class DocumentMerger:
    """Background-check deliverable builder."""

    def merge(
        self,
        record: BackgroundCheckRecord,
        embed_signature: bool = True,
        printed_name: Optional[str] = None,
    ) -> bytes:
        """
        Build the deliverable PDF for one stored record.

        Raises:
            NoDocumentsError: If the record carries no payload
            PdfPipelineError: If a structural stage fails
        """
        if record.has_separate_documents:
            return self._merge_separates(record, embed_signature, printed_name)
        if record.payload_for(DocumentKind.LEGACY):
            return self._render_legacy(record, embed_signature, printed_name)
        raise NoDocumentsError("No background check documents stored")

    def _prepare(
        self,
        kind: DocumentKind,
        record: BackgroundCheckRecord,
        embed_signature: bool,
        printed_name: Optional[str],
    ) -> fitz.Document:
        """Decode, bake fields and stamp one sub-document."""
        label = kind.value
        data = require_pdf(record.payload_for(kind), label)
        doc = run_stage(LOAD, _open_pdf, data, label=label)

        try:
            appearances = run_stage(INSPECT, has_native_appearances, doc, label=label, default=False)
            if not appearances:
                run_stage(RENDER, render_fields_manually, doc, kind, label=label)
            run_stage(FLATTEN, flatten_fields, doc, appearances, label=label)
        except Exception:
            doc.close()
            raise

        doc = run_stage(RELOAD, _reload, doc, label=label)

        if embed_signature and record.signature:
            snapshot = doc.tobytes()
            stamped = run_stage(
                STAMP,
                stamp_signature,
                doc,
                kind == DocumentKind.WAIVER,
                record.signature,
                record.signature_type,
                record.created_at,
                printed_name,
                label=label,
            )
            if stamped is None:
                # Stamp failed part way; fall back to the unsigned pages
                doc.close()
                doc = fitz.open(stream=snapshot, filetype="pdf")

        return doc

    def _merge_separates(
        self,
        record: BackgroundCheckRecord,
        embed_signature: bool,
        printed_name: Optional[str],
    ) -> bytes:
        output = fitz.open()
        try:
            for kind in SEPARATE_DOCUMENT_ORDER:
                if not record.payload_for(kind):
                    continue
                doc = self._prepare(kind, record, embed_signature, printed_name)
                try:
                    run_stage(COPY, output.insert_pdf, doc, label=kind.value)
                    logger.info(f"[copy:{kind.value}] appended {doc.page_count} pages")
                finally:
                    doc.close()

            logger.info(f"[merge] output has {output.page_count} pages")
            return output.tobytes(garbage=3, deflate=True)
        finally:
            output.close()

    def _render_legacy(
        self,
        record: BackgroundCheckRecord,
        embed_signature: bool,
        printed_name: Optional[str],
    ) -> bytes:
        doc = self._prepare(DocumentKind.LEGACY, record, embed_signature, printed_name)
        try:
            logger.info(f"[merge:legacy] output has {doc.page_count} pages")
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()


# Onboarding packet signature block, bottom-left origin
PACKET_SIGNATURE_WIDTH = 150
PACKET_SIGNATURE_HEIGHT = 50
PACKET_SIGNATURE_MARGIN = 50
PACKET_LABEL_SIZE = 8


@dataclass
class PacketResult:
    pdf: bytes
    forms_added: int
    forms_skipped: int


def _stamp_packet_signature(page: fitz.Page, png: bytes, form_name: str) -> None:
    width = page.rect.width
    height = page.rect.height

    x = width - PACKET_SIGNATURE_WIDTH - PACKET_SIGNATURE_MARGIN
    # I-9 has its signature line higher up
    y = 100 if form_name == "i9" else 50
    y_top = height - y - PACKET_SIGNATURE_HEIGHT

    rect = fitz.Rect(x, y_top, x + PACKET_SIGNATURE_WIDTH, y_top + PACKET_SIGNATURE_HEIGHT)
    page.insert_image(rect, stream=png, keep_proportion=True)
    draw_text(page, fitz.Point(x, y_top - 5), "Digitally Signed:", PACKET_LABEL_SIZE)


def _append_form(output: fitz.Document, form: FormProgressRecord, png: Optional[bytes]) -> int:
    data = require_pdf(form.form_data, form.form_name)
    doc = _open_pdf(data)
    try:
        if png:
            run_stage(STAMP, _stamp_packet_signature, doc[-1], png, form.form_name, label=form.form_name)
        start = output.page_count
        output.insert_pdf(doc)
        return start
    finally:
        doc.close()


def merge_onboarding_packet(forms: List[FormProgressRecord], signature: Optional[str]) -> PacketResult:
    """
    Concatenate a user's saved wizard forms, oldest first.

    Forms that fail to decode or load are skipped. Each form's first page
    gets a bookmark with the form's display name.

    Raises:
        NoDocumentsError: If no form could be added
    """
    png = None
    if signature:
        try:
            png = decode_signature_png(signature)
        except SignatureStampError as e:
            logger.warning(f"[packet] signature not embeddable, forms left unsigned: {e}")

    output = fitz.open()
    try:
        toc = []
        skipped = 0
        for form in forms:
            if not form.form_data:
                logger.warning(f"[packet:{form.form_name}] no data, skipped")
                skipped += 1
                continue
            start = run_stage(PACKET_FORM, _append_form, output, form, png, label=form.form_name)
            if start is None:
                skipped += 1
                continue
            toc.append([1, display_name_for_form(form.form_name), start + 1])

        if not toc:
            raise NoDocumentsError("No onboarding forms could be added")

        output.set_toc(toc)
        logger.info(f"[packet] merged {len(toc)} forms ({skipped} skipped), {output.page_count} pages")
        return PacketResult(
            pdf=output.tobytes(garbage=3, deflate=True),
            forms_added=len(toc),
            forms_skipped=skipped,
        )
    finally:
        output.close()


_document_merger: Optional[DocumentMerger] = None


def get_document_merger() -> DocumentMerger:
    """Get singleton document merger instance."""
    global _document_merger
    if _document_merger is None:
        _document_merger = DocumentMerger()
    return _document_merger
