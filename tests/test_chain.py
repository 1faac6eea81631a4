import pytest

from veilproxy.chain import (
    ChainMarkers,
    ProtocolType,
    build_udp_marker,
    compute_chain_markers,
    iter_protocol_types,
)

SS = ProtocolType.SS
WS = ProtocolType.WS
TLS = ProtocolType.TLS
VMESS = ProtocolType.VMESS
TROJAN = ProtocolType.TROJAN
BLACKHOLE = ProtocolType.BLACKHOLE


@pytest.mark.parametrize(
    "types, expected",
    [
        ([WS, VMESS, SS], [True, False, False]),
        ([WS, VMESS, SS, SS], [True, False, False, False]),
        ([TROJAN, WS, VMESS], [True, True, False]),
    ],
)
def test_build_udp_marker_source_cases(types, expected):
    assert build_udp_marker(reversed(types)) == expected


def test_build_udp_marker_without_uot():
    assert build_udp_marker(reversed([TLS, WS, SS])) == [False, False, False]


def test_is_uot():
    assert VMESS.is_uot()
    assert TROJAN.is_uot()
    assert not SS.is_uot()
    assert not BLACKHOLE.is_uot()


def test_iter_protocol_types_with_last():
    assert list(iter_protocol_types([TLS, WS], SS)) == [SS, WS, TLS]


def test_iter_protocol_types_without_last():
    assert list(iter_protocol_types([TLS, WS], None)) == [WS, TLS]


def test_markers_builder_is_uot():
    markers = compute_chain_markers([WS, VMESS], SS)
    assert markers == ChainMarkers(False, (True, False, False), 1, False)
    assert markers.first_builds_tcp is True


def test_markers_without_uot_use_remote():
    markers = compute_chain_markers([TLS], SS)
    assert markers.last_udp_is_remote is True
    assert markers.last_udp_builder is None
    assert markers.udp_marker == (False, False)


def test_markers_last_builder_is_uot():
    markers = compute_chain_markers([TLS, WS], VMESS)
    assert markers.udp_marker == (True, True, False)
    assert markers.last_udp_builder is None
    assert markers.last_udp_is_remote is False


def test_markers_detect_blackhole():
    assert compute_chain_markers([], BLACKHOLE).is_blackhole is True
    assert compute_chain_markers([TLS], SS).is_blackhole is False