"""Protocol chain analysis: which hops carry UDP over a TCP tunnel."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass


class ProtocolType(enum.Enum):
    """Kinds of stream builders that can appear in an outbound chain."""

    SS = enum.auto()
    TLS = enum.auto()
    VMESS = enum.auto()
    GRPC = enum.auto()
    WS = enum.auto()
    TROJAN = enum.auto()
    DIRECT = enum.auto()
    H2 = enum.auto()
    BLACKHOLE = enum.auto()

    def is_uot(self) -> bool:
        """Whether this protocol carries UDP packets over a TCP stream."""
        return self in (ProtocolType.VMESS, ProtocolType.TROJAN)


@dataclass(frozen=True)
class ChainMarkers:
    """Markers derived from a chain of builders.

    ``udp_marker[i]`` tells whether hop ``i`` (left to right, the last
    builder included at the end) must build a TCP stream for UDP traffic.
    ``last_udp_builder`` is the index of the builder whose address the last
    builder targets for UDP; ``last_udp_is_remote`` means the chain's remote
    address is used instead.
    """

    is_blackhole: bool
    udp_marker: tuple[bool, ...]
    last_udp_builder: int | None = None
    last_udp_is_remote: bool = False

    @property
    def first_builds_tcp(self) -> bool:
        """Whether the outermost connection for UDP is a TCP connection."""
        return self.udp_marker[0]


def iter_protocol_types(
    builder_types: Sequence[ProtocolType], last_type: ProtocolType | None
) -> Iterator[ProtocolType]:
    """Yield protocol types from right to left: the last builder first."""
    if last_type is not None:
        yield last_type
    yield from reversed(builder_types)


def build_udp_marker(protocol_types: Iterable[ProtocolType]) -> list[bool]:
    """Compute UDP markers from types ordered right to left.

    Every hop to the left of the rightmost UoT protocol must build TCP
    inside; the result is ordered left to right.
    """
    markers: list[bool] = []
    seen_uot = False
    for ty in protocol_types:
        if ty.is_uot() and not seen_uot:
            markers.append(False)
            seen_uot = True
        else:
            markers.append(seen_uot)
    markers.reverse()
    return markers


def compute_chain_markers(
    builder_types: Sequence[ProtocolType], last_type: ProtocolType | None
) -> ChainMarkers:
    """Derive blackhole, UDP markers and the UDP target of a chain."""
    types = list(iter_protocol_types(builder_types, last_type))
    is_blackhole = ProtocolType.BLACKHOLE in types
    marker = tuple(build_udp_marker(types))

    uot_index = next((i for i, ty in enumerate(types) if ty.is_uot()), None)
    if uot_index is None:
        return ChainMarkers(is_blackhole, marker, None, True)
    if uot_index == 0:
        return ChainMarkers(is_blackhole, marker, None, False)
    return ChainMarkers(is_blackhole, marker, len(builder_types) - uot_index, False)