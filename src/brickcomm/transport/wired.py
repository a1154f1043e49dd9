"""Wired binding: connections whose counterpart needs no discovery."""

from __future__ import annotations

from .connection import Connection


class WiredConnection(Connection):
    """Connection over a wired transport.

    A wire has exactly one counterpart, so the identifier given to
    ``connect()`` is handed to the provider as the endpoint unchanged.
    """

    def _resolve(self, identifier: str) -> str | None:
        return identifier
