"""
Database access layer for the Doula CRM backend.

All database operations MUST:
- Respect Row Level Security (RLS): rows are scoped to the caller's organization
- Never bypass RLS
- Never invent schemas or table names

DO NOT define table schemas, migrations, or RLS policies here.
"""

from .client import get_supabase_client

__all__ = ["get_supabase_client"]
