"""Tests for the Supabase bearer token client."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import requests

from onestonks.auth_client import SupabaseAuthClient
from onestonks.errors import AuthenticationError


@pytest.fixture
def client():
    client = SupabaseAuthClient(
        base_url="https://auth.example.test/", anon_key="anon", timeout=3
    )
    client.session = MagicMock()
    return client


def respond(client, status_code, payload):
    response = MagicMock(status_code=status_code)
    response.json.return_value = payload
    client.session.get.return_value = response


class TestSupabaseAuthClient:
    def test_sends_anon_key_on_every_request(self):
        client = SupabaseAuthClient("https://auth.example.test", anon_key="anon")
        assert client.session.headers["apikey"] == "anon"

    def test_verified_token_returns_user_id(self, client):
        user_id = uuid4()
        respond(client, 200, {"id": str(user_id), "email": "a@b.c"})

        assert client.verify("tok") == user_id

        client.session.get.assert_called_once_with(
            "https://auth.example.test/auth/v1/user",
            headers={"Authorization": "Bearer tok"},
            timeout=3,
        )

    def test_empty_token(self, client):
        with pytest.raises(AuthenticationError) as exc_info:
            client.verify("")
        assert exc_info.value.message == "missing token"
        client.session.get.assert_not_called()

    def test_rejected_token(self, client):
        respond(client, 401, {"msg": "invalid JWT"})
        with pytest.raises(AuthenticationError) as exc_info:
            client.verify("tok")
        assert exc_info.value.status_code == 401

    def test_network_error(self, client):
        client.session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(AuthenticationError):
            client.verify("tok")

    @pytest.mark.parametrize("payload", [{}, {"id": "not-a-uuid"}, None])
    def test_malformed_response(self, client, payload):
        respond(client, 200, payload)
        with pytest.raises(AuthenticationError):
            client.verify("tok")
