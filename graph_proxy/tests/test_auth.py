"""
Authentication Tests
====================

Tests bearer extraction and the MSAL on-behalf-of token provider.
"""

from unittest.mock import Mock, patch

import jwt
import pytest
from fastapi import HTTPException

from graph_proxy.auth.bearer import extract_token_from_header, peek_user_claims
from graph_proxy.auth.tokens import MsalTokenProvider, TokenAcquisitionError


TEST_SIGNING_KEY = "test-signing-key-that-is-at-least-32-bytes-long"


# ============================================================================
# Bearer Extraction
# ============================================================================

def test_extract_token_from_header():
    assert extract_token_from_header("Bearer abc.def.ghi") == "abc.def.ghi"
    assert extract_token_from_header("bearer abc") == "abc"


@pytest.mark.parametrize("header", [None, "", "Bearer", "Basic abc", "Bearer a b"])
def test_extract_token_rejects_invalid_header(header):
    with pytest.raises(HTTPException) as exc_info:
        extract_token_from_header(header)

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_peek_user_claims_reads_identity_without_verification():
    token = jwt.encode(
        {
            "oid": "00000000-0000-0000-0000-00000000abcd",
            "preferred_username": "user@contoso.com",
            "scp": "access_as_user",
        },
        TEST_SIGNING_KEY,
        algorithm="HS256",
    )

    assert peek_user_claims(token) == {
        "oid": "00000000-0000-0000-0000-00000000abcd",
        "preferred_username": "user@contoso.com",
    }


def test_peek_user_claims_tolerates_opaque_tokens():
    assert peek_user_claims("not-a-jwt") == {}


# ============================================================================
# MSAL Token Provider
# ============================================================================

@pytest.mark.asyncio
async def test_msal_provider_returns_access_token():
    client_app = Mock()
    client_app.acquire_token_on_behalf_of.return_value = {
        "access_token": "graph-token",
        "token_type": "Bearer",
        "expires_in": 3599,
    }
    provider = MsalTokenProvider(client_app)

    token = await provider.get_access_token_for_user(["User.Read"], "assertion")

    assert token == "graph-token"
    client_app.acquire_token_on_behalf_of.assert_called_once_with(
        user_assertion="assertion",
        scopes=["User.Read"],
    )


@pytest.mark.asyncio
async def test_msal_provider_raises_on_error_result():
    client_app = Mock()
    client_app.acquire_token_on_behalf_of.return_value = {
        "error": "invalid_grant",
        "error_description": "AADSTS50013: Assertion failed signature validation.",
        "correlation_id": "c-1",
    }
    provider = MsalTokenProvider(client_app)

    with pytest.raises(TokenAcquisitionError) as exc_info:
        await provider.get_access_token_for_user(["User.Read"], "bad-assertion")

    assert exc_info.value.error == "invalid_grant"
    assert "AADSTS50013" in exc_info.value.description
    assert str(exc_info.value).startswith("invalid_grant: ")


@pytest.mark.asyncio
async def test_msal_provider_raises_on_empty_result():
    client_app = Mock()
    client_app.acquire_token_on_behalf_of.return_value = None
    provider = MsalTokenProvider(client_app)

    with pytest.raises(TokenAcquisitionError) as exc_info:
        await provider.get_access_token_for_user(["User.Read"], "assertion")

    assert exc_info.value.error == "unknown_error"


def test_msal_provider_from_settings(mock_settings):
    with patch("graph_proxy.auth.tokens.msal.ConfidentialClientApplication") as cca:
        provider = MsalTokenProvider.from_settings(mock_settings)

    assert isinstance(provider, MsalTokenProvider)
    kwargs = cca.call_args.kwargs
    assert kwargs["client_id"] == mock_settings.AZURE_CLIENT_ID
    assert kwargs["client_credential"] == "test-client-secret"
    assert kwargs["authority"] == (
        "https://login.microsoftonline.com/11111111-2222-3333-4444-555555555555"
    )
