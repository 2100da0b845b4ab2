"""
Article Admin - REST API for managing blog articles

This package provides a FastAPI-based admin service in front of a hosted
Supabase project. It enables:

- Admin login against Supabase Auth, gated on an ``admins`` table row
- Admin profile lookup for the bearer of an access token
- Article create, update and delete with cover images either uploaded to a
  local directory or referenced by external URL

The service is a thin controller layer: authentication and persistence belong
to Supabase, and the only local state is the directory of uploaded images.

Key Components:
    - main: FastAPI application factory and exception handlers
    - routes: HTTP endpoint definitions
    - dependencies: token, admin, form and upload dependencies
    - service: per-request orchestration of backend calls and file cleanup
    - backend: Supabase SDK adapter
    - uploads: local cover image storage
    - configuration: YAML defaults, environment overrides and typed settings

Usage:
    Run the API server with:
        uvicorn article_admin.main:app --reload --host 0.0.0.0 --port 8000

    Required environment (or ``.env``):
        SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY
"""
