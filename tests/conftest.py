import logging
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from onestonks.auth_client import Authenticator
from onestonks.domain.models import Asset, User
from onestonks.errors import AuthenticationError
from onestonks.infrastructure.memory import InMemoryRepository
from onestonks.settlement import TradeSettler


class FakeAuthenticator(Authenticator):
    """Accepts a fixed set of tokens."""

    def __init__(self, tokens: dict[str, UUID] | None = None):
        self.tokens = tokens or {}

    def verify(self, token: str) -> UUID:
        try:
            return self.tokens[token]
        except KeyError:
            raise AuthenticationError() from None


@pytest.fixture
def logger():
    return logging.getLogger("onestonks-test")


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def asset(repo):
    asset_id = repo.add_asset(
        Asset(symbol="LOL", name="Laugh Out Loud", current_price=Decimal("100"))
    )
    return repo.get_asset(asset_id)


@pytest.fixture
def user(repo):
    user = User(id=uuid4(), username="alice", coins=Decimal("1000"))
    repo.add_user(user)
    return repo.get_user(user.id)


@pytest.fixture
def settler(repo, logger):
    return TradeSettler(repo, logger)
