"""
Background check documents API.
Paths: /v1/background-checks/...
"""
import base64
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from onboarding.access import BACKGROUND_CHECK_VIEWERS
from onboarding.auth import get_current_user, require_access
from onboarding.email import EmailService, get_email_service
from onboarding.exceptions import NotFoundError, PdfPipelineException, ValidationException
from onboarding.models import (
    AuthenticatedUser,
    BackgroundCheckRecord,
    BackgroundCheckRecordResponse,
    CompleteResponse,
    SaveBackgroundCheckRequest,
    SaveResponse,
)
from onboarding.pdf import (
    DocumentMerger,
    NoDocumentsError,
    PdfPipelineError,
    get_document_merger,
    resolve_printed_name,
)
from onboarding.supabase_client import SupabaseClient, get_supabase_client
from onboarding.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/background-checks",
    tags=["background-checks"],
)


def _printed_name(supabase: SupabaseClient, user_id: str) -> Optional[str]:
    profile = supabase.get_profile(user_id) or {}
    user_row = supabase.get_user_row(user_id) or {}
    return resolve_printed_name(
        first_name=profile.get("first_name"),
        last_name=profile.get("last_name"),
        full_name=user_row.get("full_name"),
        email=user_row.get("email"),
    )


def _jsonable_payload(value: Any) -> Any:
    # BYTEA columns read through a binary driver come back as bytes
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


@router.get("/pdf")
def download_background_check_pdf(
    user_id: Optional[str] = Query(None),
    embed_signature: bool = Query(True),
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
    merger: DocumentMerger = Depends(get_document_merger),
):
    """
    Flattened, signed background check documents of one user as a single PDF.

    Waiver, disclosure and add-on are merged in that order; records from
    before the split return the legacy combined document.
    """
    require_access(user, BACKGROUND_CHECK_VIEWERS)

    if not user_id:
        raise ValidationException("user_id parameter is required")

    record = supabase.get_background_check_record(user_id)
    if record is None or not record.has_any_document:
        raise NotFoundError("Background check PDF", user_id)

    printed_name = None
    if embed_signature and record.signature and record.has_separate_documents:
        printed_name = _printed_name(supabase, user_id)

    try:
        pdf = merger.merge(record, embed_signature=embed_signature, printed_name=printed_name)
    except NoDocumentsError:
        raise NotFoundError("Background check PDF", user_id)
    except PdfPipelineError as e:
        logger.error(f"Background check PDF failed: {e}")
        raise PdfPipelineException(str(e), stage=getattr(e, "stage", None) or getattr(e, "label", None))

    logger.info(f"Serving background check PDF ({len(pdf)} bytes, signed={embed_signature})")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="background_check_{user_id}.pdf"',
            "X-Content-Type-Options": "nosniff",
        },
    )


@router.post("/save", response_model=SaveResponse)
def save_background_check(
    request: SaveBackgroundCheckRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
):
    """Autosave the caller's background check documents and signature."""
    columns = request.payload_columns()
    if not columns:
        raise ValidationException("PDF data is required")

    updates = dict(columns)
    if request.signature:
        updates["signature"] = request.signature
        updates["signature_type"] = (request.signature_type.value if request.signature_type else None)

    supabase.upsert_background_check_record(user.id, updates)
    return SaveResponse(message="Background check PDF saved successfully")


@router.get("/save", response_model=BackgroundCheckRecordResponse)
def get_saved_background_check(
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
):
    """The caller's stored background check record."""
    record = supabase.get_background_check_record(user.id)
    if record is None:
        raise NotFoundError("Background check PDF", user.id)

    data = record.model_dump(mode="json", exclude={
        "pdf_data", "waiver_pdf_data", "disclosure_pdf_data", "addon_pdf_data",
    })
    for column in ("pdf_data", "waiver_pdf_data", "disclosure_pdf_data", "addon_pdf_data"):
        data[column] = _jsonable_payload(getattr(record, column))

    return BackgroundCheckRecordResponse(data=data)


@router.post("/complete", response_model=CompleteResponse)
async def complete_background_check(
    user: AuthenticatedUser = Depends(get_current_user),
    supabase: SupabaseClient = Depends(get_supabase_client),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Mark the caller's background check as submitted and notify the admin inbox.

    The vendor background check row is created not completed; an admin
    approves it separately. Email failures never fail the request.
    """
    await run_in_threadpool(supabase.mark_background_check_completed, user.id)

    profile = await run_in_threadpool(supabase.get_profile, user.id)
    if not profile:
        raise NotFoundError("Profile", user.id)

    created = await run_in_threadpool(supabase.upsert_vendor_background_check, profile["id"])
    logger.info(f"Vendor background check {'created' if created else 'updated'}, awaiting approval")

    result = await email_service.send_background_check_notification(
        user_email=user.email,
        first_name=profile.get("first_name"),
        last_name=profile.get("last_name"),
    )
    if not result.success:
        logger.warning(f"Admin notification not sent: {result.error}")

    return CompleteResponse(
        message="Background check marked as completed",
        notification_sent=result.success,
    )
