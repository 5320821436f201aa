"""Credential providers for authenticated API calls."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

TokenFactory = Callable[[], "str | None | Awaitable[str | None]"]


class CredentialProvider(ABC):
    """Supplies the bearer credential sent with every request."""

    @abstractmethod
    async def get_token(self) -> str | None:
        """Return the current token, or None when signed out."""

    @abstractmethod
    async def refresh(self) -> str | None:
        """Obtain a fresh token after a 401. None means refresh is impossible."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the current token (logout)."""


class StaticCredentialProvider(CredentialProvider):
    """A fixed token from configuration. Cannot refresh."""

    def __init__(self, token: str | None = None):
        self._token = token or None

    async def get_token(self) -> str | None:
        return self._token

    async def refresh(self) -> str | None:
        return None

    def clear(self) -> None:
        self._token = None


class CallbackCredentialProvider(CredentialProvider):
    """Delegates token acquisition to the external auth collaborator.

    The callback may be sync or async. It is called lazily for the first
    token and again on every refresh.
    """

    def __init__(self, fetch_token: TokenFactory, initial_token: str | None = None):
        self._fetch_token = fetch_token
        self._token = initial_token

    async def _call(self) -> str | None:
        value = self._fetch_token()
        if inspect.isawaitable(value):
            value = await value
        return value or None

    async def get_token(self) -> str | None:
        if self._token is None:
            self._token = await self._call()
        return self._token

    async def refresh(self) -> str | None:
        self._token = await self._call()
        return self._token

    def clear(self) -> None:
        self._token = None
