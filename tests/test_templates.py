"""
Tests for fillable template generation.
"""
import os

import fitz  # PyMuPDF
import pytest

from conftest import make_pdf, strip_appearances
from onboarding.models import DocumentKind
from onboarding.pdf.fields import flatten_fields, render_fields_manually
from onboarding.pdf.templates import (
    DISCLOSURE_FIELDS,
    TEMPLATES,
    WAIVER_FIELDS,
    TemplateNotFoundError,
    build_fillable_form,
    get_template,
    load_template_bytes,
)


def _widgets(data: bytes):
    doc = fitz.open(stream=data, filetype="pdf")
    found = [(page.number, w.field_name, w.xref) for page in doc for w in page.widgets()]
    return doc, found


def _set_value(doc: fitz.Document, name: str, value: str) -> None:
    """Write /V directly so no appearance stream is generated."""
    for page in doc:
        for widget in page.widgets():
            if widget.field_name == name:
                doc.xref_set_key(widget.xref, "V", fitz.get_pdf_str(value))


class TestBuildFillableForm:

    def test_waiver_fields_added_without_appearances(self):
        data = build_fillable_form(DocumentKind.WAIVER, make_pdf("WAIVER-P1", "WAIVER-P2"))

        doc, found = _widgets(data)
        names = [name for _, name, _ in found]
        assert len(found) == len(WAIVER_FIELDS)
        assert "fullName" in names
        assert "full name" in names
        assert "chargeSentence3" in names
        for _, _, xref in found:
            assert doc.xref_get_key(xref, "AP")[0] == "null"

    def test_waiver_fields_on_their_pages(self):
        data = build_fillable_form(DocumentKind.WAIVER, make_pdf("WAIVER-P1", "WAIVER-P2"))

        _, found = _widgets(data)
        pages = {name: page for page, name, _ in found}
        assert pages["fullName"] == 0
        assert pages["yesCrime"] == 1

    def test_fields_for_missing_pages_skipped(self):
        data = build_fillable_form(DocumentKind.DISCLOSURE, make_pdf("DISCLOSURE-P1"))

        _, found = _widgets(data)
        assert [name for _, name, _ in found] == ["requestCopy"]

    def test_full_disclosure(self):
        data = build_fillable_form(DocumentKind.DISCLOSURE, make_pdf("DISCLOSURE-P1", "DISCLOSURE-P2"))

        doc, found = _widgets(data)
        assert len(found) == len(DISCLOSURE_FIELDS)
        assert all(doc.xref_get_key(xref, "AP")[0] == "null" for _, _, xref in found)

    def test_addon_has_no_fields(self):
        data = build_fillable_form(DocumentKind.ADDON, make_pdf("ADDON-P1", "ADDON-P2"))

        doc, found = _widgets(data)
        assert found == []
        assert doc.page_count == 2

    def test_legacy_has_no_template(self):
        with pytest.raises(TemplateNotFoundError):
            get_template(DocumentKind.LEGACY)
        with pytest.raises(TemplateNotFoundError):
            build_fillable_form(DocumentKind.LEGACY, make_pdf("LEGACY-P1"))

    def test_filled_waiver_value_lands_on_second_page(self):
        """Waiver positions run past page one; drawn values follow onto page two."""
        data = build_fillable_form(DocumentKind.WAIVER, make_pdf("WAIVER-P1", "WAIVER-P2"))
        doc = fitz.open(stream=data, filetype="pdf")
        _set_value(doc, "fullName", "Jane Doe")
        strip_appearances(doc)

        drawn = render_fields_manually(doc, DocumentKind.WAIVER)
        flatten_fields(doc, appearances_present=False)

        assert drawn == 1
        assert "Jane Doe" not in doc[0].get_text()
        assert "Jane Doe" in doc[1].get_text()


class TestLoadTemplateBytes:

    def test_reads_from_templates_dir(self, temp_dir, monkeypatch):
        expected = make_pdf("WAIVER-P1")
        with open(os.path.join(temp_dir, TEMPLATES[DocumentKind.WAIVER].filename), "wb") as f:
            f.write(expected)
        monkeypatch.setenv("FORM_TEMPLATES_DIR", temp_dir)

        assert load_template_bytes(DocumentKind.WAIVER) == expected

    def test_missing_file(self, temp_dir, monkeypatch):
        monkeypatch.setenv("FORM_TEMPLATES_DIR", temp_dir)

        with pytest.raises(TemplateNotFoundError, match="not found"):
            load_template_bytes(DocumentKind.ADDON)
