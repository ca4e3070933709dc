from datetime import datetime
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseRequest(BaseModel):
    """Base class for all request models - ignores extra fields."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Enums
class Role(str, Enum):
    ADMIN = "admin"
    HR = "hr"
    EXEC = "exec"
    BACKGROUND_CHECKER = "backgroundchecker"
    MANAGER = "manager"
    FINANCE = "finance"
    WORKER = "worker"
    VENDOR = "vendor"


class SignatureType(str, Enum):
    DRAW = "draw"
    TYPE = "type"


class DocumentKind(str, Enum):
    """Which stored background-check document a PDF payload belongs to."""
    WAIVER = "waiver"
    DISCLOSURE = "disclosure"
    ADDON = "addon"
    LEGACY = "legacy"


# Auth
class AuthenticatedUser(BaseModel):
    """Caller resolved from a Supabase access token."""
    id: str
    email: Optional[str] = None
    role: str = ""


# Stored records
class BackgroundCheckRecord(BaseModel):
    """
    Row of background_check_pdfs.

    Payload columns are kept as returned by the database (base64 text,
    "\\x" hex of a BYTEA column, or raw bytes); decoding happens in the PDF pipeline.
    """
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    user_id: Optional[str] = None
    pdf_data: Optional[Any] = None
    waiver_pdf_data: Optional[Any] = None
    disclosure_pdf_data: Optional[Any] = None
    addon_pdf_data: Optional[Any] = None
    signature: Optional[str] = None
    signature_type: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def payload_for(self, kind: DocumentKind) -> Optional[Any]:
        column = "pdf_data" if kind == DocumentKind.LEGACY else f"{kind.value}_pdf_data"
        value = getattr(self, column)
        return value or None

    @property
    def has_separate_documents(self) -> bool:
        return any(
            self.payload_for(kind)
            for kind in (DocumentKind.WAIVER, DocumentKind.DISCLOSURE, DocumentKind.ADDON)
        )

    @property
    def has_any_document(self) -> bool:
        return self.has_separate_documents or bool(self.payload_for(DocumentKind.LEGACY))


class FormProgressRecord(BaseModel):
    """Row of pdf_form_progress."""
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    form_name: str
    form_data: Optional[Any] = None
    updated_at: Optional[datetime] = None


# Request Models
class SaveBackgroundCheckRequest(BaseRequest):
    """Autosave payload from the background-check wizard (camelCase accepted)."""
    pdf_data: Optional[str] = Field(None, alias="pdfData")
    waiver_pdf_data: Optional[str] = Field(None, alias="waiverPdfData")
    disclosure_pdf_data: Optional[str] = Field(None, alias="disclosurePdfData")
    addon_pdf_data: Optional[str] = Field(None, alias="addonPdfData")
    signature: Optional[str] = None
    signature_type: Optional[SignatureType] = Field(None, alias="signatureType")

    @field_validator("signature_type", mode="before")
    @classmethod
    def _blank_signature_type(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def payload_columns(self) -> dict:
        """Non-empty PDF columns to write; absent documents keep their stored value."""
        columns = {
            "pdf_data": self.pdf_data,
            "waiver_pdf_data": self.waiver_pdf_data,
            "disclosure_pdf_data": self.disclosure_pdf_data,
            "addon_pdf_data": self.addon_pdf_data,
        }
        return {k: v for k, v in columns.items() if v}


class SaveFormProgressRequest(BaseRequest):
    form_name: str = Field(..., min_length=1, max_length=100, alias="formName")
    form_data: str = Field(..., min_length=1, alias="formData")


# Response Models
class SaveResponse(BaseModel):
    success: bool = True
    message: str


class BackgroundCheckRecordResponse(BaseModel):
    success: bool = True
    data: dict


class FormProgressResponse(BaseModel):
    found: bool
    form_data: Optional[str] = None
    updated_at: Optional[datetime] = None


class CompleteResponse(BaseModel):
    success: bool = True
    message: str
    notification_sent: bool = False
