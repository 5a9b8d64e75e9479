"""
Tests for the share-link codec.
"""

import base64
import json
import zlib

import pytest

from miroyo.models.result import normalize_result
from miroyo.services.share_codec import (
    InvalidShareData, ShareDataTooLarge, ShareFormat, canonical_json,
    decode, decode_or_none, detect_format, encode, encode_legacy, share_url,
)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


@pytest.fixture
def rich_result():
    return normalize_result({
        "period": "week",
        "periodLabel": "1週間",
        "achievements": [
            {"content": "ジョギング", "value": 35, "unit": "km", "frequency": "毎日"},
            {"content": "読書", "value": 2.5, "unit": "冊", "frequency": ""},
            {"content": "腕立て伏せ", "value": 0, "unit": "回", "frequency": "3回"},
        ],
        "djComment": "Yo! " + "最高" * 50,
        "djTrivia": "35kmってことは" + "すごい" * 40,
    })


@pytest.fixture
def oversized_result():
    return normalize_result({
        "periodLabel": "期" * 40,
        "achievements": [
            {"content": "成" * 60, "value": 1, "unit": "単" * 20, "frequency": "頻" * 30},
        ] * 5,
        "djComment": "コ" * 300,
        "djTrivia": "ト" * 400,
    })


class TestEncode:
    def test_round_trip(self, sample_result, rich_result):
        for result in (sample_result, rich_result):
            decoded = decode(encode(result))
            assert decoded == result
            assert decoded.to_wire() == result.to_wire()

    def test_token_is_fragment_safe(self, rich_result):
        token = encode(rich_result)
        assert token.startswith("z_")
        for ch in "+/=":
            assert ch not in token

    def test_compressed_smaller_than_legacy(self, rich_result):
        assert len(encode(rich_result)) < len(encode_legacy(rich_result))

    def test_too_large_raises(self, oversized_result):
        assert len(canonical_json(oversized_result)) > 2800
        with pytest.raises(ShareDataTooLarge):
            encode(oversized_result)
        with pytest.raises(ShareDataTooLarge):
            encode_legacy(oversized_result)

    def test_canonical_json_shape(self, sample_result):
        text = canonical_json(sample_result).decode("utf-8")
        assert text.startswith('{"period":"day","periodLabel":"今日","achievements":[{"content":"ジョギング","value":5,')
        assert " " not in text.split('"djComment"')[0]

    def test_share_url(self, sample_result):
        url = share_url("https://miroyo.example/", sample_result)
        prefix = "https://miroyo.example/result#"
        assert url.startswith(prefix)
        assert decode(url[len(prefix):]) == sample_result

    def test_share_url_too_large(self, oversized_result):
        with pytest.raises(ShareDataTooLarge):
            share_url("https://miroyo.example", oversized_result)


class TestLegacyFormat:
    def test_legacy_token_decodes(self, rich_result):
        token = encode_legacy(rich_result)
        assert detect_format(token) is ShareFormat.LEGACY
        assert decode(token) == rich_result

    def test_browser_produced_legacy_token(self, sample_result):
        # btoa(utf8(JSON.stringify(result))) with the URL-safe alphabet
        raw = json.dumps(sample_result.to_wire(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        token = base64.b64encode(raw).decode().replace("+", "-").replace("/", "_").rstrip("=")
        assert decode(token) == sample_result

    def test_legacy_over_byte_limit_rejected(self):
        raw = json.dumps({"djComment": "a" * 3000}).encode("utf-8")
        token = _b64url(raw)
        assert len(token) <= 4096
        with pytest.raises(InvalidShareData):
            decode(token)


class TestDecodeFailures:
    @pytest.mark.parametrize("token", [
        "",
        "z" * 4097,
        "z_" + "A" * 4095,
        "z_",
        "z_!!!!",
        "z_" + _b64url(b"definitely not deflate"),
        "z_" + _b64url(zlib.compress(b"not json at all")),
        "z_" + _b64url(zlib.compress(b"[1, 2, 3]")),
        "z_" + _b64url(zlib.compress(b'{"period": "day"}')[:-4]),
        "z_" + _b64url(zlib.compress(b"\xc3\x28")),
        "%%%",
        "A",
        _b64url(b"not json"),
        _b64url(b'"just a string"'),
        _b64url(b"[" * 2800),
        "z_" + _b64url(zlib.compress(b"[" * 2800)),
    ])
    def test_invalid_tokens(self, token):
        with pytest.raises(InvalidShareData):
            decode(token)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidShareData):
            decode(None)

    def test_decompression_bomb_rejected(self):
        payload = json.dumps({"djComment": "a" * 100_000}).encode()
        token = "z_" + _b64url(zlib.compress(payload, 9))
        assert len(token) <= 4096
        with pytest.raises(InvalidShareData):
            decode(token)

    def test_decode_or_none(self, sample_result):
        assert decode_or_none("z_!!!!") is None
        assert decode_or_none("") is None
        assert decode_or_none(_b64url(b"[" * 2800)) is None
        assert decode_or_none("z_" + _b64url(zlib.compress(b"[" * 2800))) is None
        assert decode_or_none(encode(sample_result)) == sample_result


class TestDecodeNormalizes:
    def test_hand_crafted_payload_is_capped(self):
        payload = json.dumps({"period": "year", "djComment": "x" * 2000}).encode()
        result = decode("z_" + _b64url(zlib.compress(payload)))
        assert result.period == "day"
        assert len(result.dj_comment) == 300
        assert len(result.achievements) == 1

    def test_detect_format(self):
        assert detect_format("z_abc") is ShareFormat.COMPRESSED
        assert detect_format("eyJwZXJpb2Qi") is ShareFormat.LEGACY
