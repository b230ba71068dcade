"""
Supabase Database Client for the lead outreach engine

Hosted storage for:
- Leads and their approval state
- Proposal sets written by the external message generator
- The lead activity log
- WhatsApp templates and their attachments

Table and column names follow the existing schema (leads,
proposte_messaggi, log, whatsapp_templates); translation to the engine's
model happens in outreach.models.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx
from supabase import Client, PostgrestAPIError, StorageException, create_client

from outreach.errors import UpstreamError

logger = logging.getLogger(__name__)

LEADS_TABLE = "leads"
PROPOSALS_TABLE = "proposte_messaggi"
LOG_TABLE = "log"
TEMPLATES_TABLE = "whatsapp_templates"

DEFAULT_ATTACHMENTS_BUCKET = "template-allegati"


@dataclass
class DatabaseConfig:
    """Supabase connection configuration."""
    url: str
    key: str  # anon key for operator sessions, service key for server-side jobs
    attachments_bucket: str = DEFAULT_ATTACHMENTS_BUCKET

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """
        Load config from environment variables.

        Environment variables:
            SUPABASE_URL: Project URL (required)
            SUPABASE_KEY: API key (required)
            SUPABASE_ATTACHMENTS_BUCKET: Storage bucket for template attachments
        """
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")

        if not url or not key:
            raise ValueError(
                "Missing Supabase credentials. Set SUPABASE_URL and SUPABASE_KEY environment variables."
            )

        bucket = os.getenv("SUPABASE_ATTACHMENTS_BUCKET", DEFAULT_ATTACHMENTS_BUCKET)
        return cls(url=url, key=key, attachments_bucket=bucket)


class SupabaseClient:
    """
    Supabase-backed lead store.

    Every call surfaces failures as UpstreamError; nothing is retried.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, client: Optional[Client] = None):
        """
        Initialize Supabase client.

        Args:
            config: Database configuration. If None, loads from environment.
            client: Pre-built supabase Client (skips create_client)
        """
        if config is None:
            config = DatabaseConfig.from_env() if client is None else DatabaseConfig(url="", key="")

        self.config = config
        self.client: Client = client if client is not None else create_client(config.url, config.key)

    def _execute(self, operation: str, query) -> List[Dict]:
        """Run a PostgREST query, translating client errors."""
        try:
            result = query.execute()
        except PostgrestAPIError as e:
            logger.error("%s failed: %s", operation, e.message)
            raise UpstreamError(operation, e.message or str(e)) from e
        except httpx.HTTPError as e:
            logger.error("%s failed: %s", operation, e)
            raise UpstreamError(operation, str(e)) from e

        return result.data or []

    # ==========================================
    # LEAD OPERATIONS
    # ==========================================

    def get_lead(self, lead_id) -> Optional[Dict]:
        """Fetch a lead by id."""
        rows = self._execute(
            "get_lead",
            self.client.table(LEADS_TABLE).select("*").eq("id", lead_id),
        )
        return rows[0] if rows else None

    def list_leads(self, states: Optional[Sequence[str]] = None) -> List[Dict]:
        """
        List leads, newest first.

        Args:
            states: Stored stato values to keep (e.g. LeadState.stored_values);
                all leads if None
        """
        query = self.client.table(LEADS_TABLE).select("*").order("created_at", desc=True)

        if states:
            query = query.in_("stato", list(states))

        return self._execute("list_leads", query)

    def list_generated_emails(self, sent: Optional[bool] = None) -> List[Dict]:
        """Leads with a generated email body, newest first, optionally by sent flag."""
        query = (
            self.client.table(LEADS_TABLE)
            .select("*")
            .not_.is_("email_body", "null")
            .order("created_at", desc=True)
        )

        if sent is not None:
            query = query.eq("email_inviata", sent)

        return self._execute("list_generated_emails", query)

    def insert_leads(self, rows: List[Dict]) -> List[Dict]:
        """Bulk insert leads, returning the created records."""
        if not rows:
            return []
        return self._execute("insert_leads", self.client.table(LEADS_TABLE).insert(rows))

    def update_lead(self, lead_id, data: Dict) -> Optional[Dict]:
        """
        Update a lead.

        Returns:
            The updated record, or None if no lead has that id
        """
        rows = self._execute(
            "update_lead",
            self.client.table(LEADS_TABLE).update(data).eq("id", lead_id),
        )
        return rows[0] if rows else None

    def delete_lead(self, lead_id):
        self._execute("delete_lead", self.client.table(LEADS_TABLE).delete().eq("id", lead_id))

    def max_sequence(self) -> int:
        """Highest row_number in use, 0 when none is set."""
        rows = self._execute(
            "max_sequence",
            self.client.table(LEADS_TABLE)
            .select("row_number")
            .not_.is_("row_number", "null")
            .order("row_number", desc=True)
            .limit(1),
        )
        return int(rows[0]["row_number"]) if rows else 0

    # ==========================================
    # PROPOSAL OPERATIONS
    # ==========================================

    def latest_proposal_set(self, lead_id) -> Optional[Dict]:
        """Most recently created proposal set for a lead."""
        rows = self._execute(
            "latest_proposal_set",
            self.client.table(PROPOSALS_TABLE)
            .select("*")
            .eq("lead_id", lead_id)
            .order("created_at", desc=True)
            .limit(1),
        )
        return rows[0] if rows else None

    def create_proposal_set(self, lead_id, slots: Dict[str, Any]) -> Dict:
        """Insert a proposal set (normally done by the generator)."""
        rows = self._execute(
            "create_proposal_set",
            self.client.table(PROPOSALS_TABLE).insert({"lead_id": lead_id, **slots}),
        )
        return rows[0] if rows else {}

    def delete_proposal_sets(self, lead_id):
        self._execute(
            "delete_proposal_sets",
            self.client.table(PROPOSALS_TABLE).delete().eq("lead_id", lead_id),
        )

    # ==========================================
    # LOG OPERATIONS
    # ==========================================

    def append_event(self, lead_id, action: str, detail: str) -> Dict:
        """Append a lifecycle event to the activity log."""
        rows = self._execute(
            "append_event",
            self.client.table(LOG_TABLE).insert({
                "lead_id": lead_id,
                "azione": action,
                "dettagli": detail,
            }),
        )
        return rows[0] if rows else {}

    def list_events(self, lead_id=None) -> List[Dict]:
        """Activity log entries, newest first."""
        query = self.client.table(LOG_TABLE).select("*").order("created_at", desc=True)

        if lead_id is not None:
            query = query.eq("lead_id", lead_id)

        return self._execute("list_events", query)

    def delete_events(self, lead_id):
        self._execute("delete_events", self.client.table(LOG_TABLE).delete().eq("lead_id", lead_id))

    # ==========================================
    # TEMPLATE OPERATIONS
    # ==========================================

    def get_template(self, template_id) -> Optional[Dict]:
        rows = self._execute(
            "get_template",
            self.client.table(TEMPLATES_TABLE).select("*").eq("id", template_id),
        )
        return rows[0] if rows else None

    def list_templates(self, active_only: bool = True) -> List[Dict]:
        """Templates ordered by category, then name."""
        query = self.client.table(TEMPLATES_TABLE).select("*").order("categoria").order("nome")

        if active_only:
            query = query.eq("attivo", True)

        return self._execute("list_templates", query)

    def insert_template(self, row: Dict) -> Dict:
        rows = self._execute("insert_template", self.client.table(TEMPLATES_TABLE).insert(row))
        return rows[0] if rows else {}

    def update_template(self, template_id, data: Dict) -> Optional[Dict]:
        """
        Update a template.

        Returns:
            The updated record, or None if no template has that id
        """
        rows = self._execute(
            "update_template",
            self.client.table(TEMPLATES_TABLE).update(data).eq("id", template_id),
        )
        return rows[0] if rows else None

    def delete_template(self, template_id):
        self._execute("delete_template", self.client.table(TEMPLATES_TABLE).delete().eq("id", template_id))

    # ==========================================
    # FILE STORAGE
    # ==========================================

    def upload_attachment(self, path: str, data: bytes, content_type: str) -> str:
        """
        Upload a file to the attachments bucket.

        Returns:
            Public URL of the uploaded object
        """
        bucket = self.client.storage.from_(self.config.attachments_bucket)
        try:
            bucket.upload(path, data, {"content-type": content_type})
        except (StorageException, httpx.HTTPError) as e:
            logger.error("upload_attachment failed for %s: %s", path, e)
            raise UpstreamError("upload_attachment", str(e)) from e

        return bucket.get_public_url(path)


# Lazily created instance for scripts
_client: Optional[SupabaseClient] = None


def get_client() -> SupabaseClient:
    """Get or create the shared Supabase client."""
    global _client
    if _client is None:
        _client = SupabaseClient()
    return _client
