import itertools
from datetime import datetime, timedelta, timezone

import pytest

from outreach import LeadLifecycleController


class InMemoryStore:
    """Lead store kept in dicts, with strictly increasing timestamps."""

    def __init__(self):
        self.leads = {}
        self.proposals = []
        self.events = []
        self.templates = {}
        self.uploads = {}
        self.calls = []
        self._ids = itertools.count(1)
        self._ticks = itertools.count()
        self._epoch = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def _now(self):
        return (self._epoch + timedelta(seconds=next(self._ticks))).isoformat()

    # Leads

    def get_lead(self, lead_id):
        row = self.leads.get(lead_id)
        return dict(row) if row else None

    def list_leads(self, states=None):
        rows = [dict(row) for row in self.leads.values() if not states or row["stato"] in states]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    def list_generated_emails(self, sent=None):
        rows = [
            dict(row) for row in self.leads.values()
            if row.get("email_body") is not None
            and (sent is None or bool(row.get("email_inviata")) is sent)
        ]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    def insert_leads(self, rows):
        created = []
        for row in rows:
            record = {"id": next(self._ids), "created_at": self._now(), **row}
            self.leads[record["id"]] = record
            created.append(dict(record))
        return created

    def update_lead(self, lead_id, data):
        if lead_id not in self.leads:
            return None
        self.leads[lead_id].update(data)
        return dict(self.leads[lead_id])

    def delete_lead(self, lead_id):
        self.calls.append(("delete_lead", lead_id))
        self.leads.pop(lead_id, None)

    def max_sequence(self):
        numbers = [row.get("row_number") for row in self.leads.values() if row.get("row_number") is not None]
        return max(numbers, default=0)

    # Proposals

    def latest_proposal_set(self, lead_id):
        rows = [row for row in self.proposals if row["lead_id"] == lead_id]
        return dict(max(rows, key=lambda row: row["created_at"])) if rows else None

    def create_proposal_set(self, lead_id, slots):
        record = {"id": next(self._ids), "lead_id": lead_id, "created_at": self._now(), **slots}
        self.proposals.append(record)
        return dict(record)

    def delete_proposal_sets(self, lead_id):
        self.calls.append(("delete_proposal_sets", lead_id))
        self.proposals = [row for row in self.proposals if row["lead_id"] != lead_id]

    # Log

    def append_event(self, lead_id, action, detail):
        record = {
            "id": next(self._ids),
            "lead_id": lead_id,
            "azione": action,
            "dettagli": detail,
            "created_at": self._now(),
        }
        self.events.append(record)
        return dict(record)

    def list_events(self, lead_id=None):
        rows = [dict(row) for row in self.events if lead_id is None or row["lead_id"] == lead_id]
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)

    def delete_events(self, lead_id):
        self.calls.append(("delete_events", lead_id))
        self.events = [row for row in self.events if row["lead_id"] != lead_id]

    # Templates and storage

    def get_template(self, template_id):
        row = self.templates.get(template_id)
        return dict(row) if row else None

    def list_templates(self, active_only=True):
        return [dict(row) for row in self.templates.values() if row.get("attivo", True) or not active_only]

    def insert_template(self, row):
        record = {"id": next(self._ids), **row}
        self.templates[record["id"]] = record
        return dict(record)

    def update_template(self, template_id, data):
        if template_id not in self.templates:
            return None
        self.templates[template_id].update(data)
        return dict(self.templates[template_id])

    def delete_template(self, template_id):
        self.templates.pop(template_id, None)

    def upload_attachment(self, path, data, content_type):
        self.uploads[path] = (data, content_type)
        return f"https://storage.example.com/template-allegati/{path}"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def controller(store):
    return LeadLifecycleController(store)


@pytest.fixture
def make_lead(store):
    def _make(**overrides):
        row = {
            "nome": "Mario Rossi",
            "telefono": "3479635862",
            "email": "mario.rossi@example.com",
            "interesse": "Corso EdgeEndo",
            "canale_preferito": "whatsapp",
            "stato": "new",
            "row_number": None,
        }
        row.update(overrides)
        return store.insert_leads([row])[0]
    return _make
