"""
Authenticated session for the booking REST API.

The session is passed explicitly to the API backend instead of being read
from global state, so several sessions (e.g. per business) can coexist.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

import requests

from ..domain.exceptions import AuthenticationError, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiSession:
    """
    Connection details and bearer token for the booking API.
    """
    base_url: str
    token: Optional[str] = None
    timeout: float = 30.0

    def url(self, path: str) -> str:
        """Join an API path onto the base URL."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def with_token(self, token: Optional[str]) -> "ApiSession":
        return replace(self, token=token)

    def login(self, email: str, password: str) -> "ApiSession":
        """
        Exchange credentials for a token via ``POST /auth/login``.

        Args:
            email: Account email address
            password: Account password

        Returns:
            A new session carrying the issued token

        Raises:
            AuthenticationError: If the credentials are rejected
            StorageError: If the API cannot be reached
        """
        try:
            response = requests.post(
                self.url("/auth/login"),
                headers={"Content-Type": "application/json"},
                json={"email": email, "password": password},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Login request failed: {e}") from e

        if response.status_code in (400, 401, 403):
            raise AuthenticationError("Invalid email or password")

        try:
            response.raise_for_status()
            token = response.json()["token"]
        except (requests.exceptions.HTTPError, KeyError, ValueError) as e:
            raise StorageError(f"Unexpected login response: {e}") from e

        logger.info("Logged in to %s as %s", self.base_url, email)
        return self.with_token(token)
