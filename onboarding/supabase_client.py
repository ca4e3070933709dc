"""
Supabase client module for database operations.
Uses the service role key; access control is enforced by the routes.
"""
import logging
from typing import Optional, List, Dict, Any

from supabase import create_client, Client

from onboarding.config import get_settings, Settings
from onboarding.models import AuthenticatedUser, BackgroundCheckRecord, FormProgressRecord
from onboarding.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

BACKGROUND_CHECK_COLUMNS = (
    "user_id, pdf_data, waiver_pdf_data, disclosure_pdf_data, addon_pdf_data, "
    "signature, signature_type, created_at, updated_at"
)


class SupabaseClient:
    """Supabase client wrapper using the service role key."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._base_client: Optional[Client] = None

    @property
    def client(self) -> Client:
        if self._base_client is None:
            self._base_client = create_client(
                self.settings.supabase_url,
                self.settings.supabase_service_role_key,
            )
        return self._base_client

    def table(self, table_name: str):
        return self.client.table(table_name)

    @staticmethod
    def _first(result) -> Optional[Dict[str, Any]]:
        # maybe_single() returns None instead of an empty response on some client versions
        if result is None:
            return None
        data = result.data
        if isinstance(data, list):
            return data[0] if data else None
        return data or None

    # Auth
    def get_user_from_token(self, token: str) -> Optional[AuthenticatedUser]:
        """Resolve an access token to a user; None when the token is not valid."""
        try:
            response = self.client.auth.get_user(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None

        user = getattr(response, "user", None)
        if not user or not user.id:
            return None
        return AuthenticatedUser(id=user.id, email=user.email)

    # Users & profiles
    def get_user_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.table("users").select(
            "id, email, full_name, role"
        ).eq("id", user_id).maybe_single().execute()

        return self._first(result)

    def get_user_role(self, user_id: str) -> str:
        row = self.get_user_row(user_id)
        return (row or {}).get("role") or ""

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.table("profiles").select(
            "id, first_name, last_name"
        ).eq("user_id", user_id).maybe_single().execute()

        return self._first(result)

    def mark_background_check_completed(self, user_id: str) -> None:
        self.table("users").update({
            "background_check_completed": True,
            "background_check_completed_at": utc_now().isoformat(),
        }).eq("id", user_id).execute()

        logger.info("Background check marked as completed")

    def upsert_vendor_background_check(self, profile_id: str) -> bool:
        """
        Touch the vendor background check row of a profile, creating it if missing.

        New rows start not completed; an admin approves them separately.
        Returns True when a row was created.
        """
        existing = self._first(
            self.table("vendor_background_checks").select("id").eq(
                "profile_id", profile_id
            ).limit(1).execute()
        )

        if existing:
            self.table("vendor_background_checks").update({
                "updated_at": utc_now().isoformat(),
            }).eq("profile_id", profile_id).execute()
            return False

        self.table("vendor_background_checks").insert({
            "profile_id": profile_id,
            "background_check_completed": False,
            "completed_date": None,
        }).execute()
        return True

    # Background check documents
    def get_background_check_record(self, user_id: str) -> Optional[BackgroundCheckRecord]:
        result = self.table("background_check_pdfs").select(
            BACKGROUND_CHECK_COLUMNS
        ).eq("user_id", user_id).maybe_single().execute()

        row = self._first(result)
        return BackgroundCheckRecord(**row) if row else None

    def upsert_background_check_record(self, user_id: str, updates: Dict[str, Any]) -> None:
        """Create the user's row on first save, update it in place afterwards."""
        now = utc_now().isoformat()
        existing = self._first(
            self.table("background_check_pdfs").select("user_id").eq(
                "user_id", user_id
            ).limit(1).execute()
        )

        payload = {**updates, "updated_at": now}
        if existing:
            self.table("background_check_pdfs").update(payload).eq("user_id", user_id).execute()
            logger.info(f"Updated background check record ({', '.join(sorted(updates))})")
        else:
            payload.update({"user_id": user_id, "created_at": now})
            self.table("background_check_pdfs").insert(payload).execute()
            logger.info(f"Created background check record ({', '.join(sorted(updates))})")

    def get_latest_signature(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self.table("background_check_pdfs").select(
            "signature, signature_type"
        ).eq("user_id", user_id).order("created_at", desc=True).limit(1).execute()

        return self._first(result)

    # Onboarding form progress
    def get_form_progress(self, user_id: str, form_name: str) -> Optional[FormProgressRecord]:
        result = self.table("pdf_form_progress").select(
            "form_name, form_data, updated_at"
        ).eq("user_id", user_id).eq("form_name", form_name).maybe_single().execute()

        row = self._first(result)
        return FormProgressRecord(**row) if row else None

    def upsert_form_progress(self, user_id: str, form_name: str, form_data: str) -> None:
        self.table("pdf_form_progress").upsert(
            {
                "user_id": user_id,
                "form_name": form_name,
                "form_data": form_data,
                "updated_at": utc_now().isoformat(),
            },
            on_conflict="user_id,form_name",
        ).execute()

    def list_form_progress(self, user_id: str) -> List[FormProgressRecord]:
        """All saved forms of a user, oldest update first."""
        result = self.table("pdf_form_progress").select(
            "form_name, form_data, updated_at"
        ).eq("user_id", user_id).order("updated_at").execute()

        return [FormProgressRecord(**row) for row in (result.data or [])]


# Singleton instance
_supabase_client: Optional[SupabaseClient] = None


def get_supabase_client() -> SupabaseClient:
    """Get the Supabase client singleton."""
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
