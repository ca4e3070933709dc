"""
Onboarding wizard form progress API.
Paths: /v1/pdf-form-progress/...
"""
import base64
import re
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import Response

from onboarding.access import ONBOARDING_PACKET_VIEWERS
from onboarding.auth import get_current_user, require_access
from onboarding.exceptions import NotFoundError, ValidationException
from onboarding.models import (
    AuthenticatedUser,
    FormProgressResponse,
    SaveFormProgressRequest,
    SaveResponse,
)
from onboarding.pdf import DecodedBytes, NoDocumentsError, decode_pdf_payload, merge_onboarding_packet
from onboarding.supabase_client import SupabaseClient, get_supabase_client
from onboarding.utils.logging import get_logger, set_context

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/pdf-form-progress",
    tags=["form-progress"],
)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def normalize_form_data(value: Any) -> Optional[str]:
    """Stored form data as base64 text, whatever shape the column returned."""
    if isinstance(value, str) and not value.startswith("\\x"):
        return value

    result = decode_pdf_payload(value)
    if isinstance(result, DecodedBytes):
        return base64.b64encode(result.data).decode("ascii")

    logger.warning(f"Stored form data not readable: {result.reason}")
    return None


def packet_filename(full_name: Optional[str]) -> str:
    name = _UNSAFE_FILENAME_CHARS.sub("_", (full_name or "User").strip()) or "User"
    return f"{name}_Onboarding_Documents.pdf"


@router.post("/save", response_model=SaveResponse)
def save_form_progress(
    request: SaveFormProgressRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
):
    """Upsert the caller's progress for one form (base64 of the interactive PDF)."""
    set_context(form_name=request.form_name)
    supabase.upsert_form_progress(user.id, request.form_name, request.form_data)
    logger.info(f"Saved form progress ({len(request.form_data)} chars)")
    return SaveResponse(message="Form progress saved")


@router.get("/retrieve", response_model=FormProgressResponse)
def retrieve_form_progress(
    form_name: Optional[str] = Query(None),
    form_name_camel: Optional[str] = Query(None, alias="formName"),
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
):
    """The caller's saved progress for one form; found=false when nothing is stored."""
    name = form_name or form_name_camel
    if not name:
        raise ValidationException("form_name parameter is required")

    set_context(form_name=name)
    record = supabase.get_form_progress(user.id, name)
    if record is None or not record.form_data:
        return FormProgressResponse(found=False)

    form_data = normalize_form_data(record.form_data)
    if form_data is None:
        return FormProgressResponse(found=False)

    return FormProgressResponse(found=True, form_data=form_data, updated_at=record.updated_at)


@router.get("/user/{user_id}")
def download_onboarding_packet(
    user_id: str = Path(..., min_length=1),
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
):
    """
    All saved onboarding forms of a user merged into one download.

    HR, exec and admin may download anyone's packet; other users only their own.
    """
    require_access(user, ONBOARDING_PACKET_VIEWERS, subject_id=user_id, allow_self=True)

    forms = supabase.list_form_progress(user_id)
    if not forms:
        raise NotFoundError("Onboarding forms", user_id)

    signature_row = supabase.get_latest_signature(user_id) or {}

    try:
        packet = merge_onboarding_packet(forms, signature_row.get("signature"))
    except NoDocumentsError:
        raise NotFoundError("Onboarding forms", user_id)

    user_row = supabase.get_user_row(user_id) or {}
    filename = packet_filename(user_row.get("full_name"))

    logger.info(
        f"Serving onboarding packet: {packet.forms_added} forms, "
        f"{packet.forms_skipped} skipped, {len(packet.pdf)} bytes"
    )
    return Response(
        content=packet.pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
