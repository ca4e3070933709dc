# PDF module
from onboarding.pdf.encoding import (
    DecodedBytes,
    DecodeError,
    PdfDecodeError,
    PdfPipelineError,
    decode_pdf_payload,
    require_pdf,
)
from onboarding.pdf.policy import OnFailure, PipelineStageError, run_stage
from onboarding.pdf.fields import flatten_fields, has_native_appearances, render_fields_manually
from onboarding.pdf.stamp import resolve_printed_name, stamp_signature
from onboarding.pdf.merge import (
    DocumentMerger,
    NoDocumentsError,
    get_document_merger,
    merge_onboarding_packet,
)
from onboarding.pdf.templates import TemplateNotFoundError, build_fillable_form, load_template_bytes

__all__ = [
    "DecodedBytes",
    "DecodeError",
    "PdfDecodeError",
    "PdfPipelineError",
    "decode_pdf_payload",
    "require_pdf",
    "OnFailure",
    "PipelineStageError",
    "run_stage",
    "flatten_fields",
    "has_native_appearances",
    "render_fields_manually",
    "resolve_printed_name",
    "stamp_signature",
    "DocumentMerger",
    "NoDocumentsError",
    "get_document_merger",
    "merge_onboarding_packet",
    "TemplateNotFoundError",
    "build_fillable_form",
    "load_template_bytes",
]
