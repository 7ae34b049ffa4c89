"""
FastAPI routers for all API endpoints.

Each module defines a router for one area of record sharing (rules, manual
shares, object settings, access checks). Every endpoint except /health
authenticates the caller and builds a per-request RLS-scoped Supabase client.
"""
