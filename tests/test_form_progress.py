"""
Tests for onboarding wizard progress storage and packet download.
"""
import base64
from datetime import datetime, timezone

import fitz  # PyMuPDF

from conftest import make_pdf, page_texts
from onboarding.models import FormProgressRecord
from onboarding.routers.form_progress import normalize_form_data, packet_filename


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


class TestSaveFormProgress:

    def test_upserts_progress(self, client, login, mock_supabase):
        login("worker")

        response = client.post(
            "/v1/pdf-form-progress/save",
            json={"formName": "fw4", "formData": "UERGREFUQQ=="},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        mock_supabase.upsert_form_progress.assert_called_once_with("user-1", "fw4", "UERGREFUQQ==")

    def test_form_name_required(self, client, login, mock_supabase):
        login("worker")

        response = client.post("/v1/pdf-form-progress/save", json={"formData": "UERGREFUQQ=="})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        mock_supabase.upsert_form_progress.assert_not_called()

    def test_empty_form_data_rejected(self, client, login):
        login("worker")

        response = client.post("/v1/pdf-form-progress/save", json={"formName": "fw4", "formData": ""})

        assert response.status_code == 400

    def test_requires_login(self, client):
        response = client.post("/v1/pdf-form-progress/save", json={"formName": "fw4", "formData": "x"})
        assert response.status_code == 401


class TestRetrieveFormProgress:

    def test_found(self, client, login, mock_supabase):
        login("worker")
        updated = datetime(2024, 3, 4, 15, 30, tzinfo=timezone.utc)
        mock_supabase.get_form_progress.return_value = FormProgressRecord(
            form_name="fw4", form_data="UERGREFUQQ==", updated_at=updated,
        )

        response = client.get("/v1/pdf-form-progress/retrieve", params={"formName": "fw4"})

        assert response.status_code == 200
        body = response.json()
        assert body["found"] is True
        assert body["form_data"] == "UERGREFUQQ=="
        assert body["updated_at"].startswith("2024-03-04T15:30:00")
        mock_supabase.get_form_progress.assert_called_once_with("user-1", "fw4")

    def test_snake_case_parameter(self, client, login, mock_supabase):
        login("worker")

        response = client.get("/v1/pdf-form-progress/retrieve", params={"form_name": "i9"})

        assert response.status_code == 200
        mock_supabase.get_form_progress.assert_called_once_with("user-1", "i9")

    def test_not_found(self, client, login):
        login("worker")

        response = client.get("/v1/pdf-form-progress/retrieve", params={"formName": "fw4"})

        assert response.status_code == 200
        assert response.json()["found"] is False
        assert response.json()["form_data"] is None

    def test_hex_column_normalized_to_base64(self, client, login, mock_supabase):
        login("worker")
        pdf = make_pdf("FW4-P1")
        stored = "\\x" + _b64(pdf).encode("ascii").hex()
        mock_supabase.get_form_progress.return_value = FormProgressRecord(form_name="fw4", form_data=stored)

        response = client.get("/v1/pdf-form-progress/retrieve", params={"formName": "fw4"})

        assert response.json()["form_data"] == _b64(pdf)

    def test_form_name_required(self, client, login):
        login("worker")

        response = client.get("/v1/pdf-form-progress/retrieve")

        assert response.status_code == 400


class TestOnboardingPacket:

    def _stored_forms(self, mock_supabase, signature=None):
        mock_supabase.list_form_progress.return_value = [
            FormProgressRecord(form_name="fw4", form_data=_b64(make_pdf("FW4-P1"))),
            FormProgressRecord(form_name="i9", form_data=_b64(make_pdf("I9-P1", "I9-P2"))),
        ]
        mock_supabase.get_latest_signature.return_value = {"signature": signature} if signature else None
        mock_supabase.get_user_row.return_value = {"id": "user-2", "full_name": "Jane Doe"}

    def test_other_worker_forbidden(self, client, login, mock_supabase):
        login("worker", user_id="user-1")
        self._stored_forms(mock_supabase)

        response = client.get("/v1/pdf-form-progress/user/user-2")

        assert response.status_code == 403
        mock_supabase.list_form_progress.assert_not_called()

    def test_background_checker_forbidden(self, client, login, mock_supabase):
        login("backgroundchecker", user_id="user-1")

        assert client.get("/v1/pdf-form-progress/user/user-2").status_code == 403

    def test_own_packet(self, client, login, mock_supabase):
        login("worker", user_id="user-2")
        self._stored_forms(mock_supabase)

        response = client.get("/v1/pdf-form-progress/user/user-2")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            'attachment; filename="Jane_Doe_Onboarding_Documents.pdf"'
        )
        texts = page_texts(response.content)
        assert len(texts) == 3
        assert "FW4-P1" in texts[0]
        assert "I9-P2" in texts[2]

    def test_hr_downloads_signed_packet(self, client, login, mock_supabase, signature_data_url):
        login("hr", user_id="user-1")
        self._stored_forms(mock_supabase, signature=signature_data_url)

        response = client.get("/v1/pdf-form-progress/user/user-2")

        assert response.status_code == 200
        doc = fitz.open(stream=response.content, filetype="pdf")
        assert len(doc[0].get_images()) == 1
        assert len(doc[2].get_images()) == 1
        assert [title for _, title, _ in doc.get_toc()] == ["Federal W-4", "I-9 Employment Verification"]
        mock_supabase.list_form_progress.assert_called_once_with("user-2")

    def test_no_forms(self, client, login, mock_supabase):
        login("admin")

        response = client.get("/v1/pdf-form-progress/user/user-2")

        assert response.status_code == 404

    def test_all_forms_unreadable(self, client, login, mock_supabase):
        login("admin")
        mock_supabase.list_form_progress.return_value = [
            FormProgressRecord(form_name="fw4", form_data="not*valid*base64!"),
        ]

        response = client.get("/v1/pdf-form-progress/user/user-2")

        assert response.status_code == 404


class TestHelpers:

    def test_packet_filename(self):
        assert packet_filename("Jane Doe") == "Jane_Doe_Onboarding_Documents.pdf"
        assert packet_filename("O'Brien, Pat") == "O_Brien_Pat_Onboarding_Documents.pdf"
        assert packet_filename(None) == "User_Onboarding_Documents.pdf"

    def test_normalize_form_data(self):
        pdf = make_pdf("X")
        assert normalize_form_data(_b64(pdf)) == _b64(pdf)
        assert normalize_form_data(pdf) == _b64(pdf)
        assert normalize_form_data("\\xZZ") is None
