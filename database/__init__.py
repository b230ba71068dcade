"""
Database module for the lead outreach engine.

Provides Supabase integration for leads, proposals, the activity log and
templates.
"""

from .store import LeadStore
from .supabase_client import (
    SupabaseClient,
    DatabaseConfig,
    get_client
)

__all__ = [
    "LeadStore",
    "SupabaseClient",
    "DatabaseConfig",
    "get_client"
]
