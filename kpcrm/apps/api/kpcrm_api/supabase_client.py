"""Supabase client construction.

SECURITY NOTICE:
- The service (secret) key bypasses RLS and is server-only; it backs the
  profile store and the data repositories
- The anon (publishable) key respects RLS; it backs sign-in and token checks

Clients are built lazily (never at import time) so the app starts and tests
run without Supabase credentials. The anon and admin clients are cached per
application instance and only ever make stateless calls (token checks, table
access, admin API). Password sign-in stores a session on the client it runs
on, so every sign-in gets a fresh client of its own.

No client persists sessions or runs the background token refresh.
"""

import logging
from typing import Optional

from supabase import Client, ClientOptions, create_client

from kpcrm_api.config.env import Settings

logger = logging.getLogger(__name__)


def _server_options() -> ClientOptions:
    return ClientOptions(persist_session=False, auto_refresh_token=False)


class SupabaseClients:
    """Lazy holder for the anon and admin Supabase clients of one app."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._anon: Optional[Client] = None
        self._admin: Optional[Client] = None

    def _require_url(self) -> str:
        if not self._settings.supabase_url:
            raise RuntimeError(
                "SUPABASE_URL environment variable not set. Required for auth and data access."
            )
        return self._settings.supabase_url

    def _require_anon_key(self) -> str:
        if not self._settings.supabase_anon_key:
            raise RuntimeError(
                "Neither SB_PUBLISHABLE_KEY nor SUPABASE_ANON_KEY environment variable is set."
            )
        return self._settings.supabase_anon_key

    @property
    def anon(self) -> Client:
        """Client using the publishable key (respects RLS).

        Raises:
            RuntimeError: If SUPABASE_URL or the anon key is not configured
        """
        if self._anon is None:
            self._anon = create_client(
                self._require_url(), self._require_anon_key(), options=_server_options()
            )
            logger.info("Supabase anon client initialized")
        return self._anon

    @property
    def admin(self) -> Client:
        """Client using the service role key (bypasses RLS, server-only).

        Raises:
            RuntimeError: If SUPABASE_URL or the service key is not configured
        """
        if self._admin is None:
            url = self._require_url()
            key = self._settings.supabase_service_key
            if not key:
                raise RuntimeError(
                    "Neither SB_SECRET_KEY nor SUPABASE_SERVICE_KEY environment variable is set. "
                    "Service key is required for server-side data access."
                )
            self._admin = create_client(url, key, options=_server_options())
            logger.info("Supabase admin client initialized")
        return self._admin

    def sign_in_client(self) -> Client:
        """New publishable-key client for one password sign-in.

        Raises:
            RuntimeError: If SUPABASE_URL or the anon key is not configured
        """
        return create_client(self._require_url(), self._require_anon_key(), options=_server_options())
