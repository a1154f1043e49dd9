"""Peer discovery and pairing for radio transports.

Resolves a human-meaningful identifier (transport address or friendly name)
to a concrete peer: first from the provider's pairing cache, then from an
active scan. A peer found by scanning is paired so later lookups hit the
cache.

The resolver holds no locks. Providers exposed to concurrent callers must
synchronize their pairing cache themselves.
"""

from __future__ import annotations

from collections.abc import Iterable

from brickcomm import const
from brickcomm.logging_abstraction import get_logger
from brickcomm.metrics import registry

from .provider import RadioTransportProvider
from .types import Peer

logger = get_logger(__name__)

SOURCE_CACHE = "cache"
SOURCE_SCAN = "scan"
SOURCE_MISS = "miss"


def first_match(peers: Iterable[Peer], identifier: str, *, by_address: bool) -> Peer | None:
    """Return the first peer exactly matching the identifier, if any."""
    for peer in peers:
        if peer.matches(identifier, by_address=by_address):
            return peer
    return None


class PeerResolver:
    """Resolve identifiers to peers using the pairing cache, then a scan.

    Attributes:
        provider: Radio provider supplying the cache and the scan
        max_results: Inquiry result limit
        duration: Inquiry length in units of 1.28 seconds
        device_class: Only peers advertising this class are considered
    """

    def __init__(
        self,
        provider: RadioTransportProvider,
        max_results: int | None = None,
        duration: int | None = None,
        device_class: int | None = None,
    ):
        self.provider = provider
        self.max_results = const.BRICKCOMM_INQUIRY_MAX_RESULTS if max_results is None else max_results
        self.duration = const.BRICKCOMM_INQUIRY_DURATION if duration is None else duration
        self.device_class = const.PEER_DEVICE_CLASS if device_class is None else device_class

    def find_known(self, identifier: str) -> Peer | None:
        """Look the identifier up in the pairing cache only."""
        by_address = self.provider.is_address(identifier)
        return first_match(self.provider.known_peers(), identifier, by_address=by_address)

    def inquire(self, identifier: str) -> Peer | None:
        """Scan for the identifier and pair the first match."""
        by_address = self.provider.is_address(identifier)
        logger.debug(
            "Inquiring for %s (max_results=%d, duration=%d)",
            identifier,
            self.max_results,
            self.duration,
            extra={"identifier": identifier, "device_class": f"0x{self.device_class:06x}"},
        )
        discovered = self.provider.scan(self.max_results, self.duration, self.device_class)
        peer = first_match(discovered, identifier, by_address=by_address)
        if peer is not None:
            self.provider.remember(peer)
            logger.info(
                "Paired %s (%s)",
                peer.name or "<unnamed>",
                peer.address,
                extra={"address": peer.address, "name": peer.name},
            )
        return peer

    def resolve(self, identifier: str) -> Peer | None:
        """Resolve an address or friendly name to a peer.

        Returns:
            The first exact match from the cache, else from a scan, else None
        """
        logger.debug("Looking up known peer %s", identifier, extra={"identifier": identifier})
        peer = self.find_known(identifier)
        if peer is not None:
            registry.record_discovery_lookup(SOURCE_CACHE)
            return peer

        peer = self.inquire(identifier)
        if peer is not None:
            registry.record_discovery_lookup(SOURCE_SCAN)
            return peer

        registry.record_discovery_lookup(SOURCE_MISS)
        logger.debug("Peer %s not found", identifier, extra={"identifier": identifier})
        return None
