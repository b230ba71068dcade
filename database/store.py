"""
Store interface the engine depends on.

SupabaseClient implements it; anything with the same methods (a test double,
another backend) can be injected instead.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence


class LeadStore(Protocol):
    """CRUD over leads, proposal sets, the activity log and templates."""

    def get_lead(self, lead_id) -> Optional[Dict]: ...

    def list_leads(self, states: Optional[Sequence[str]] = None) -> List[Dict]: ...

    def list_generated_emails(self, sent: Optional[bool] = None) -> List[Dict]: ...

    def insert_leads(self, rows: List[Dict]) -> List[Dict]: ...

    def update_lead(self, lead_id, data: Dict) -> Optional[Dict]: ...

    def delete_lead(self, lead_id): ...

    def max_sequence(self) -> int: ...

    def latest_proposal_set(self, lead_id) -> Optional[Dict]: ...

    def create_proposal_set(self, lead_id, slots: Dict[str, Any]) -> Dict: ...

    def delete_proposal_sets(self, lead_id): ...

    def append_event(self, lead_id, action: str, detail: str) -> Dict: ...

    def list_events(self, lead_id=None) -> List[Dict]: ...

    def delete_events(self, lead_id): ...

    def get_template(self, template_id) -> Optional[Dict]: ...

    def list_templates(self, active_only: bool = True) -> List[Dict]: ...

    def insert_template(self, row: Dict) -> Dict: ...

    def update_template(self, template_id, data: Dict) -> Optional[Dict]: ...

    def delete_template(self, template_id): ...

    def upload_attachment(self, path: str, data: bytes, content_type: str) -> str: ...
