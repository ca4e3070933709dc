"""
Pytest configuration and fixtures.
"""
import base64
import io
import os
import sys
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest
import fitz  # PyMuPDF
from fastapi.testclient import TestClient
from PIL import Image

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from onboarding.auth import get_current_user
from onboarding.config import get_settings
from onboarding.email import get_email_service
from onboarding.main import app
from onboarding.models import AuthenticatedUser
from onboarding.pdf.offsets import get_offset_tables
from onboarding.supabase_client import get_supabase_client


LETTER = (612, 792)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    get_offset_tables.cache_clear()
    yield
    get_settings.cache_clear()
    get_offset_tables.cache_clear()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


def make_pdf(*page_labels: str, size=LETTER) -> bytes:
    """One page per label, each page showing its label."""
    doc = fitz.open()
    for label in page_labels:
        page = doc.new_page(width=size[0], height=size[1])
        page.insert_text((72, 72), label, fontsize=14)
    data = doc.tobytes()
    doc.close()
    return data


def add_text_widget(page: fitz.Page, name: str, rect: fitz.Rect, value: str = "") -> None:
    widget = fitz.Widget()
    widget.field_name = name
    widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
    widget.rect = rect
    widget.field_value = value
    page.add_widget(widget)


def add_checkbox_widget(page: fitz.Page, name: str, rect: fitz.Rect, checked: bool) -> None:
    widget = fitz.Widget()
    widget.field_name = name
    widget.field_type = fitz.PDF_WIDGET_TYPE_CHECKBOX
    widget.rect = rect
    widget.field_value = checked
    page.add_widget(widget)


def strip_appearances(doc: fitz.Document) -> None:
    """Drop AP from every widget, as the browser-overlay forms store them."""
    for page in doc:
        for widget in page.widgets():
            doc.xref_set_key(widget.xref, "AP", "null")


def make_form_pdf(values: dict, with_appearances: bool, labels=("FORM-P1",)) -> bytes:
    """
    Form with one text widget per entry of `values` on the first page.

    Booleans become checkboxes. Widgets are stacked 30pt apart from y=200.
    """
    doc = fitz.open()
    for label in labels:
        page = doc.new_page(width=LETTER[0], height=LETTER[1])
        page.insert_text((72, 72), label, fontsize=14)

    page = doc[0]
    y = 200
    for name, value in values.items():
        if isinstance(value, bool):
            add_checkbox_widget(page, name, fitz.Rect(72, y, 82, y + 10), value)
        else:
            add_text_widget(page, name, fitz.Rect(72, y, 372, y + 14), value)
        y += 30

    if not with_appearances:
        strip_appearances(doc)

    data = doc.tobytes()
    doc.close()
    return data


def page_texts(pdf_bytes: bytes) -> list:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    texts = [page.get_text() for page in doc]
    doc.close()
    return texts


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def form_pdf_factory():
    return make_form_pdf


@pytest.fixture
def sample_png_bytes():
    """Small opaque PNG generated with Pillow."""
    img = Image.new("RGB", (60, 20), (20, 20, 120))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_png_base64(sample_png_bytes):
    return base64.b64encode(sample_png_bytes).decode()


@pytest.fixture
def signature_data_url(sample_png_base64):
    return f"data:image/png;base64,{sample_png_base64}"


@pytest.fixture
def mock_supabase():
    """Mock of onboarding.supabase_client.SupabaseClient."""
    client = MagicMock()
    client.get_user_from_token.return_value = None
    client.get_user_role.return_value = ""
    client.get_user_row.return_value = None
    client.get_profile.return_value = None
    client.get_background_check_record.return_value = None
    client.get_latest_signature.return_value = None
    client.get_form_progress.return_value = None
    client.list_form_progress.return_value = []
    client.upsert_vendor_background_check.return_value = True
    return client


@pytest.fixture
def mock_email_service():
    """Email service whose notification always reports delivery."""
    from onboarding.email import EmailDeliveryStatus, EmailResult

    service = MagicMock()
    service.send_background_check_notification = AsyncMock(
        return_value=EmailResult(success=True, message_id="msg_1", delivery_status=EmailDeliveryStatus.SENT)
    )
    return service


@pytest.fixture
def client(mock_supabase, mock_email_service):
    """TestClient with Supabase and email replaced by mocks."""
    app.dependency_overrides[get_supabase_client] = lambda: mock_supabase
    app.dependency_overrides[get_email_service] = lambda: mock_email_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Act as a user with the given role for the rest of the test."""
    def _login(role: str = "worker", user_id: str = "user-1", email: str = "jane@example.com"):
        user = AuthenticatedUser(id=user_id, email=email, role=role)
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login
