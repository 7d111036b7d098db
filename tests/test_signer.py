import asyncio
import hashlib
import logging

import pytest

from bilidown.api import signer as signer_module
from bilidown.api.signer import MIXIN_KEY_ENC_TAB, WbiSigner, derive_mixin_key
from bilidown.exceptions import SigningKeyError, TransportError

IMG_KEY = "7cd084941338484aae1ad9425b84077c"
SUB_KEY = "4932caff0ff746eab6f01bf08b70ac45"
MIXIN_KEY = "ea1db124af3c7062474693fa704f4ff8"


def nav_payload(code=0, img_key=IMG_KEY, sub_key=SUB_KEY):
    return {
        "code": code,
        "message": "账号未登录" if code else "0",
        "data": {
            "isLogin": False,
            "wbi_img": {
                "img_url": f"https://i0.hdslb.com/bfs/wbi/{img_key}.png",
                "sub_url": f"https://i0.hdslb.com/bfs/wbi/{sub_key}.png",
            },
        },
    }


class FakeNavClient:
    def __init__(self, payload=None, error=None):
        self.payload = payload if payload is not None else nav_payload()
        self.error = error
        self.calls = 0

    async def fetch_nav(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def clock(monkeypatch):
    now = [1_700_000_000.0]
    monkeypatch.setattr(signer_module.time, "time", lambda: now[0])
    return now


def test_permutation_table_is_a_permutation_of_64_indices():
    assert sorted(MIXIN_KEY_ENC_TAB) == list(range(64))


def test_derive_mixin_key_known_vector():
    assert derive_mixin_key(IMG_KEY + SUB_KEY) == MIXIN_KEY


def test_derive_mixin_key_rejects_short_lookup():
    with pytest.raises(SigningKeyError):
        derive_mixin_key("a" * 63)


def test_sign_known_vector():
    signer = WbiSigner(FakeNavClient())
    params = [("foo", "114"), ("bar", "514"), ("zab", 1919810)]

    signed = signer.sign(params, mixin_key=MIXIN_KEY, timestamp=1702204169)

    query = "bar=514&foo=114&wts=1702204169&zab=1919810"
    expected = hashlib.md5((query + MIXIN_KEY).encode()).hexdigest()
    assert signed == [
        ("bar", "514"),
        ("foo", "114"),
        ("wts", "1702204169"),
        ("zab", "1919810"),
        ("w_rid", expected),
    ]


def test_sign_is_deterministic_and_sorted_regardless_of_input_order():
    signer = WbiSigner(FakeNavClient())
    a = [("qn", "80"), ("bvid", "BV1xx411c7mD"), ("cid", "123")]
    b = list(reversed(a))

    signed_a = signer.sign(a, mixin_key=MIXIN_KEY, timestamp=100)
    signed_b = signer.sign(b, mixin_key=MIXIN_KEY, timestamp=100)

    assert signed_a == signed_b
    keys = [k for k, _ in signed_a[:-1]]
    assert keys == sorted(keys)
    assert signed_a[-1][0] == "w_rid"


def test_sign_changes_hash_when_any_value_changes():
    signer = WbiSigner(FakeNavClient())
    base = signer.sign([("qn", "80"), ("cid", "1")], mixin_key=MIXIN_KEY, timestamp=100)
    changed = signer.sign([("qn", "64"), ("cid", "1")], mixin_key=MIXIN_KEY, timestamp=100)
    later = signer.sign([("qn", "80"), ("cid", "1")], mixin_key=MIXIN_KEY, timestamp=101)

    assert base[-1] != changed[-1]
    assert base[-1] != later[-1]


def test_sign_strips_reserved_characters_from_values():
    signer = WbiSigner(FakeNavClient())

    signed = signer.sign([("keyword", "a!b'c(d)e*f")], mixin_key=MIXIN_KEY, timestamp=1)

    assert ("keyword", "abcdef") in signed


def test_sign_without_key_raises():
    with pytest.raises(SigningKeyError):
        WbiSigner(FakeNavClient()).sign([("a", "1")])


def test_signing_key_is_cached_for_thirty_seconds(clock):
    client = FakeNavClient()
    signer = WbiSigner(client)

    assert asyncio.run(signer.get_signing_key()) == MIXIN_KEY
    clock[0] += 29
    assert asyncio.run(signer.get_signing_key()) == MIXIN_KEY
    assert client.calls == 1

    clock[0] += 1
    asyncio.run(signer.get_signing_key())
    assert client.calls == 2


def test_non_zero_code_is_logged_but_key_still_derived(clock, caplog):
    signer = WbiSigner(FakeNavClient(nav_payload(code=-101)))

    with caplog.at_level(logging.WARNING):
        key = asyncio.run(signer.get_signing_key())

    assert key == MIXIN_KEY
    assert "-101" in caplog.text


@pytest.mark.parametrize(
    "payload",
    [
        nav_payload(img_key="short", sub_key="keys"),
        {"code": -101, "message": "账号未登录"},
        {"code": 0, "data": {"wbi_img": None}},
    ],
)
def test_unusable_nav_data_raises(clock, payload):
    signer = WbiSigner(FakeNavClient(payload))

    with pytest.raises(SigningKeyError):
        asyncio.run(signer.get_signing_key())
    assert signer.context.key == ""


def test_unreachable_endpoint_raises_signing_key_error(clock):
    signer = WbiSigner(FakeNavClient(error=TransportError("timeout")))

    with pytest.raises(SigningKeyError):
        asyncio.run(signer.get_signing_key())


def test_sign_params_fetches_key_and_signs(clock):
    signer = WbiSigner(FakeNavClient())

    signed = asyncio.run(signer.sign_params([("bvid", "BV1xx411c7mD")]))

    assert ("wts", str(int(clock[0]))) in signed
    assert signed[-1][0] == "w_rid"
    assert len(signed[-1][1]) == 32
