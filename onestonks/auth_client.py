"""Bearer token verification against the Supabase auth API."""

import logging
from abc import ABC, abstractmethod
from uuid import UUID

import requests

from onestonks.errors import AuthenticationError


class Authenticator(ABC):
    """Turns a bearer credential into a verified user id."""

    @abstractmethod
    def verify(self, token: str) -> UUID:
        """Return the caller's user id. Raises AuthenticationError."""
        ...


class SupabaseAuthClient(Authenticator):
    """Client for the Supabase auth user endpoint."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: int = 10,
        logger: logging.Logger | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._logger = logger
        self.session = requests.Session()
        self.session.headers.update({"apikey": anon_key})

    def _log(self, level: int, msg: str) -> None:
        """Log a message if logger is configured."""
        if self._logger:
            self._logger.log(level, msg)

    def verify(self, token: str) -> UUID:
        """
        Resolve a bearer token to the id of the user it was issued to.

        Raises AuthenticationError if the token is rejected, the auth
        service cannot be reached, or the response carries no usable id.
        """
        if not token:
            raise AuthenticationError("missing token")

        url = f"{self.base_url}/auth/v1/user"
        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self._log(logging.WARNING, f"Auth service unreachable: {e}")
            raise AuthenticationError() from e

        if response.status_code != 200:
            self._log(
                logging.DEBUG, f"Token rejected by auth service: {response.status_code}"
            )
            raise AuthenticationError()

        try:
            data = response.json()
            return UUID(str(data["id"]))
        except (ValueError, KeyError, TypeError) as e:
            self._log(logging.WARNING, f"Malformed auth response: {e}")
            raise AuthenticationError() from e
