"""Hosted Postgres/auth client (Supabase)."""
from collections.abc import AsyncGenerator

from fastapi import Request
from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from .config import app_settings


def client_options() -> AsyncClientOptions:
    # Sessions live in the browser cookies only; the server never stores or refreshes them.
    return AsyncClientOptions(auto_refresh_token=False, persist_session=False)


async def get_supabase(request: Request) -> AsyncGenerator[AsyncClient, None]:
    """Per-request Supabase client; sessions are never shared between requests."""
    config = app_settings(request)
    client = await acreate_client(config.SUPABASE_URL, config.SUPABASE_KEY, options=client_options())
    try:
        yield client
    finally:
        await client.postgrest.aclose()
        await client.auth.close()
