"""
Fillable background check templates.
Paths: /v1/forms/{kind}
"""
from fastapi import APIRouter
from fastapi.responses import Response

from onboarding.exceptions import NotFoundError
from onboarding.models import DocumentKind
from onboarding.pdf import TemplateNotFoundError, build_fillable_form, load_template_bytes
from onboarding.pdf.templates import get_template
from onboarding.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/forms",
    tags=["forms"],
)


@router.get("/{kind}")
def get_fillable_form(kind: str):
    """Template PDF with the onboarding widgets added, served inline."""
    try:
        document_kind = DocumentKind(kind)
        template = get_template(document_kind)
        template_bytes = load_template_bytes(document_kind)
    except (ValueError, TemplateNotFoundError) as e:
        logger.warning(f"Form template unavailable: {e}")
        raise NotFoundError("Form template", kind)

    pdf = build_fillable_form(document_kind, template_bytes)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="{template.download_name}"',
            "Content-Security-Policy": "default-src 'self'",
            "X-Content-Type-Options": "nosniff",
        },
    )
