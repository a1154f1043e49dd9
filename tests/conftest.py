"""
Shared fixtures for brickcomm tests.

Provides a scriptable provider for state machine tests, plus loopback hubs
for end-to-end exchanges over real socket pairs.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from brickcomm.transport.loopback import LoopbackHub, LoopbackRadio, LoopbackWire
from tests.helpers.fakes import FakeProvider


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def radio_hub() -> Iterator[tuple[LoopbackRadio, LoopbackRadio]]:
    """Two radio providers on one hub: NXT-A and NXT-B."""
    hub = LoopbackHub()
    radio_a = LoopbackRadio(hub, "NXT-A", "00:16:53:00:00:0A")
    radio_b = LoopbackRadio(hub, "NXT-B", "00:16:53:00:00:0B")
    yield radio_a, radio_b
    radio_a.close()
    radio_b.close()


@pytest.fixture
def wire_hub() -> Iterator[tuple[LoopbackWire, LoopbackWire]]:
    """Two wire providers on one hub: brick and host."""
    hub = LoopbackHub()
    brick = LoopbackWire(hub, "NXT-A", "usb-brick")
    host = LoopbackWire(hub, "host", "usb-host")
    yield brick, host
    brick.close()
    host.close()
