"""
Pipeline Reporting

Provides:
- Lead counts per approval state
- State distribution chart
- Spreadsheet export with each lead's latest activity
"""

import logging
from typing import Dict, Optional

import altair as alt
import pandas as pd

from outreach.models import Lead, LeadState, LifecycleEvent

logger = logging.getLogger(__name__)

STATE_LABELS = {
    LeadState.NEW: "Nuovo",
    LeadState.PENDING_APPROVAL: "In Attesa",
    LeadState.APPROVED: "Approvato",
}

EXPORT_COLUMNS = [
    "Nome Completo",
    "Email",
    "Telefono",
    "Interesse",
    "Stato",
    "Canale Preferito",
    "Data Creazione",
    "Data Ultima Azione",
    "Tipo Ultima Attività",
    "Dettagli Attività",
]


class PipelineReport:
    """
    Reporting over the leads table and the activity log.
    """

    def __init__(self, store):
        self.store = store

    def state_counts(self) -> Dict[str, int]:
        """Number of leads in each state, plus the total."""
        counts = {state.value: 0 for state in LeadState}
        rows = self.store.list_leads()

        for row in rows:
            counts[LeadState.from_stored(row.get("stato")).value] += 1

        counts["total"] = len(rows)
        return counts

    def plot_state_distribution(self) -> alt.Chart:
        """
        Create bar chart of leads per state.
        """
        counts = self.state_counts()
        df = pd.DataFrame([
            {"state": STATE_LABELS[state], "leads": counts[state.value]}
            for state in LeadState
        ])

        chart = alt.Chart(df).mark_bar().encode(
            x=alt.X('state:N', title='Stato', sort=list(STATE_LABELS.values())),
            y=alt.Y('leads:Q', title='Lead'),
            color=alt.Color('state:N', legend=None)
        ).properties(
            title='Lead per stato',
            width=400,
            height=300
        )

        return chart

    def leads_frame(self) -> pd.DataFrame:
        """
        One row per lead, newest first, with its latest log entry.

        Returns DataFrame with EXPORT_COLUMNS.
        """
        leads = [Lead.from_row(row) for row in self.store.list_leads()]
        latest: Dict[object, LifecycleEvent] = {}

        # list_events is newest first, so the first entry per lead wins
        for row in self.store.list_events():
            event = LifecycleEvent.from_row(row)
            latest.setdefault(event.lead_id, event)

        records = []
        for lead in leads:
            event: Optional[LifecycleEvent] = latest.get(lead.id)
            records.append({
                "Nome Completo": lead.name,
                "Email": lead.email or "",
                "Telefono": lead.phone,
                "Interesse": lead.interest or "",
                "Stato": lead.state.value,
                "Canale Preferito": lead.channel.value,
                "Data Creazione": lead.created_at,
                "Data Ultima Azione": event.created_at if event else None,
                "Tipo Ultima Attività": event.action if event else "N/A",
                "Dettagli Attività": event.detail if event else "N/A",
            })

        return pd.DataFrame(records, columns=EXPORT_COLUMNS)

    def export_excel(self, filepath: str) -> int:
        """
        Write the leads frame to an .xlsx file.

        Returns:
            Number of leads exported
        """
        df = self.leads_frame()

        # Excel cannot store timezone-aware datetimes
        for column in ("Data Creazione", "Data Ultima Azione"):
            df[column] = pd.to_datetime(df[column], utc=True).dt.tz_localize(None)

        df.to_excel(filepath, index=False, sheet_name="Leads")
        logger.info("Exported %d leads to %s", len(df), filepath)
        return len(df)
