"""Tests for Authenticator.authenticate().

Every failure path must end in Err(AuthenticationError), never in an
authenticated context (fail closed).
"""

import logging

import pytest

from conftest import (
    ADMIN_ID,
    ORG_ID,
    ORPHAN_ID,
    FakeIdentityProvider,
    FakeProfileStore,
)
from kpcrm_api.auth.identity import IdentityProviderError
from kpcrm_api.auth.session_auth import AuthContext, Authenticator, extract_bearer_token
from kpcrm_api.errors import AuthenticationError, ProfileNotFoundError
from kpcrm_api.result import Err, Ok


def _authenticator(provider=None, store=None, timeout=1.0) -> Authenticator:
    return Authenticator(
        identity_provider=provider or FakeIdentityProvider(),
        profile_store=store or FakeProfileStore(),
        timeout_seconds=timeout,
    )


@pytest.mark.parametrize(
    "header,token",
    [
        ("Bearer abc", "abc"),
        ("bearer abc", "abc"),
        ("  Bearer   abc  ", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        ("Bearer   ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, token):
    assert extract_bearer_token(header) == token


async def test_valid_token_yields_auth_context():
    result = await _authenticator().authenticate("Bearer admin-token")
    assert isinstance(result, Ok)
    assert result.value == AuthContext(
        user_id=ADMIN_ID,
        email="admin@kitchenpantry.test",
        role="admin",
        organization_id=ORG_ID,
    )


async def test_missing_token_is_not_sent_to_provider():
    provider = FakeIdentityProvider()
    result = await _authenticator(provider=provider).authenticate(None)
    assert isinstance(result, Err)
    assert result.error.reason == "missing_token"
    assert provider.calls == []


async def test_rejected_token():
    result = await _authenticator().authenticate("Bearer forged")
    assert isinstance(result, Err)
    assert type(result.error) is AuthenticationError
    assert result.error.reason == "invalid_token"


async def test_provider_error_fails_closed():
    provider = FakeIdentityProvider(error=RuntimeError("connection reset"))
    result = await _authenticator(provider=provider).authenticate("Bearer admin-token")
    assert isinstance(result, Err)
    assert result.error.reason == "provider_error"
    assert result.error.message == "Authentication required"


async def test_profile_store_error_fails_closed():
    store = FakeProfileStore(error=IdentityProviderError("Profile lookup failed"))
    result = await _authenticator(store=store).authenticate("Bearer admin-token")
    assert isinstance(result, Err)
    assert result.error.reason == "provider_error"


async def test_provider_timeout_fails_closed():
    provider = FakeIdentityProvider(delay=0.5)
    result = await _authenticator(provider=provider, timeout=0.05).authenticate("Bearer admin-token")
    assert isinstance(result, Err)
    assert result.error.reason == "timeout"


async def test_missing_profile_is_distinct(caplog):
    with caplog.at_level(logging.INFO, logger="kpcrm_api.observability.metrics"):
        result = await _authenticator().authenticate("Bearer orphan-token")

    assert isinstance(result, Err)
    assert isinstance(result.error, ProfileNotFoundError)
    assert result.error.status_code == 401
    assert result.error.user_id == ORPHAN_ID

    failures = [r for r in caplog.records if r.getMessage() == "auth.failure"]
    assert failures[-1].reason == "profile_not_found"
    assert failures[-1].levelno == logging.ERROR


async def test_unknown_role_fails_closed():
    result = await _authenticator().authenticate("Bearer odd-role-token")
    assert isinstance(result, Err)
    assert result.error.reason == "unknown_role"


async def test_failure_logs_never_contain_the_token(caplog):
    with caplog.at_level(logging.DEBUG):
        await _authenticator().authenticate("Bearer forged-secret-token")
    assert "forged-secret-token" not in caplog.text
