"""Radio binding: connections that resolve peers by discovery."""

from __future__ import annotations

from typing import Any

from .connection import Connection
from .discovery import PeerResolver
from .provider import RadioTransportProvider


class RadioConnection(Connection):
    """Connection over a radio transport.

    ``connect(identifier)`` accepts a transport address or a friendly name.
    The pairing cache is consulted first; otherwise an active scan runs and a
    matching peer is paired before dialing its address.

    Reading the local identity from a radio can take seconds. Create the
    first connection without name/address and derive the others with
    ``clone()``.
    """

    provider: RadioTransportProvider

    def __init__(
        self,
        provider: RadioTransportProvider,
        name: str | None = None,
        address: str | None = None,
        *,
        resolver: PeerResolver | None = None,
        strict: bool | None = None,
        grace_ms: int | None = None,
    ):
        super().__init__(provider, name, address, strict=strict, grace_ms=grace_ms)
        self.resolver = resolver or PeerResolver(provider)

    def _clone_kwargs(self) -> dict[str, Any]:
        kwargs = super()._clone_kwargs()
        kwargs["resolver"] = self.resolver
        return kwargs

    def _resolve(self, identifier: str) -> str | None:
        peer = self.resolver.resolve(identifier)
        return peer.address if peer is not None else None
