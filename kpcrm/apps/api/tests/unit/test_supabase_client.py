"""Tests for Supabase client construction (no network: create_client is patched)."""

from unittest.mock import MagicMock, patch

import pytest

from kpcrm_api.config.env import Settings
from kpcrm_api.supabase_client import SupabaseClients

CONFIGURED = Settings(
    env="test",
    json_logs=False,
    supabase_url="https://project.supabase.co",
    supabase_anon_key="anon-key",
    supabase_service_key="service-key",
)


@pytest.fixture
def create_client():
    with patch("kpcrm_api.supabase_client.create_client", side_effect=lambda *a, **kw: MagicMock()) as mocked:
        yield mocked


def test_every_sign_in_gets_its_own_client(create_client):
    clients = SupabaseClients(CONFIGURED)

    first, second = clients.sign_in_client(), clients.sign_in_client()

    assert first is not second
    assert first is not clients.anon
    assert create_client.call_count == 3


def test_clients_never_persist_or_refresh_sessions(create_client):
    clients = SupabaseClients(CONFIGURED)
    clients.sign_in_client()
    clients.anon
    clients.admin

    for call in create_client.call_args_list:
        options = call.kwargs["options"]
        assert options.persist_session is False
        assert options.auto_refresh_token is False


def test_sign_in_client_uses_the_publishable_key(create_client):
    SupabaseClients(CONFIGURED).sign_in_client()
    create_client.assert_called_once()
    assert create_client.call_args.args == ("https://project.supabase.co", "anon-key")


@pytest.mark.parametrize(
    "settings",
    [
        Settings(env="test", supabase_anon_key="anon-key"),
        Settings(env="test", supabase_url="https://project.supabase.co"),
    ],
)
def test_missing_configuration_is_a_clear_error(create_client, settings):
    with pytest.raises(RuntimeError):
        SupabaseClients(settings).sign_in_client()
    create_client.assert_not_called()


def test_app_builds_a_sign_in_client_per_request(make_app, create_client):
    app = make_app(CONFIGURED, auth_client=None)

    factory = app.state.auth_client_factory
    assert factory() is not factory()
