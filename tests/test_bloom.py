import pytest

from veilproxy.bloom import BloomContext, BloomFilter, PingPongBloom


def test_filter_membership():
    bloom = BloomFilter(100, 1e-9)
    bloom.add(b"alpha")
    assert b"alpha" in bloom
    assert b"beta" not in bloom


def test_filter_clear():
    bloom = BloomFilter(100, 1e-9)
    for item in (b"a", b"b", b"c"):
        bloom.add(item)
    bloom.clear()
    assert not any(item in bloom for item in (b"a", b"b", b"c"))


@pytest.mark.parametrize("capacity,fp_rate", [(0, 0.1), (10, 0.0), (10, 1.0), (-1, 0.5)])
def test_filter_rejects_bad_parameters(capacity, fp_rate):
    with pytest.raises(ValueError):
        BloomFilter(capacity, fp_rate)


def test_check_and_set_detects_repeat():
    bloom = PingPongBloom(True)
    assert bloom.check_and_set(b"salt-one") is False
    assert bloom.check_and_set(b"salt-one") is True
    assert bloom.check_and_set(b"salt-two") is False


def test_ping_pong_rotation_forgets_oldest():
    bloom = PingPongBloom(True, capacity=4)
    for item in (b"a", b"b", b"c", b"d"):
        assert bloom.check_and_set(item) is False
    # both halves are still remembered
    assert bloom.check_and_set(b"a") is True
    assert bloom.check_and_set(b"c") is True
    # a fifth entry recycles the first half
    assert bloom.check_and_set(b"e") is False
    assert bloom.check_and_set(b"c") is True
    assert bloom.check_and_set(b"a") is False


def test_ping_pong_rejects_tiny_capacity():
    with pytest.raises(ValueError):
        PingPongBloom(True, capacity=1)


def test_context_empty_nonce_never_repeats():
    context = BloomContext(True)
    assert context.check_nonce_and_set(b"") is False
    assert context.check_nonce_and_set(b"") is False


def test_context_detects_repeat():
    context = BloomContext(True)
    assert context.check_nonce_and_set(b"nonce") is False
    assert context.check_nonce_and_set(b"nonce") is True


def test_generate_nonce_length():
    context = BloomContext(True)
    assert len(context.generate_nonce(32, False)) == 32
    assert context.generate_nonce(0, True) == b""


def test_unique_nonce_is_recorded():
    context = BloomContext(True)
    nonce = context.generate_nonce(16, True)
    assert context.check_nonce_and_set(nonce) is True


def test_non_unique_nonce_is_not_recorded():
    context = BloomContext(True)
    nonce = context.generate_nonce(16, False)
    assert context.check_nonce_and_set(nonce) is False