"""
分享链接编解码 - Result <-> URL fragment token

Formats:
  COMPRESSED  "z_" + base64url(zlib(json))   current encoder output
  LEGACY      base64url(json)                links shared before compression

Tokens never contain "+", "/" or "=". A token must stay decodable forever
once shared, so new formats get a new tag and a new decoder in _DECODERS.
"""

import base64
import binascii
import json
import logging
import zlib
from enum import Enum
from typing import Callable, Dict, Optional

from miroyo.config.settings import settings
from miroyo.models.result import Result, normalize_result
from miroyo.observability import metrics as obs

logger = logging.getLogger(__name__)

MAX_SHARE_BYTES = settings.share.max_bytes
MAX_TOKEN_LENGTH = settings.share.max_token_length


class ShareCodecError(ValueError):
    pass


class ShareDataTooLarge(ShareCodecError):
    """Canonical JSON exceeds MAX_SHARE_BYTES; the content must be shortened."""


class InvalidShareData(ShareCodecError):
    """Token is empty, oversized, corrupt, or not an encoded Result."""


class ShareFormat(Enum):
    LEGACY = ""
    COMPRESSED = "z_"

    @property
    def tag(self) -> str:
        return self.value


def canonical_json(result: Result) -> bytes:
    text = json.dumps(result.to_wire(), ensure_ascii=False, separators=(",", ":"))
    return text.encode("utf-8")


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(token: str) -> bytes:
    padded = token.replace("-", "+").replace("_", "/")
    padded += "=" * ((4 - len(padded) % 4) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidShareData("invalid base64 payload") from e


def _checked_payload(result: Result) -> bytes:
    payload = canonical_json(result)
    if len(payload) > MAX_SHARE_BYTES:
        raise ShareDataTooLarge(f"share payload is {len(payload)} bytes, limit {MAX_SHARE_BYTES}")
    return payload


def encode(result: Result) -> str:
    """Serialize result into a compressed, fragment-safe token."""
    compressed = zlib.compress(_checked_payload(result))
    return ShareFormat.COMPRESSED.tag + _b64url_encode(compressed)


def encode_legacy(result: Result) -> str:
    """Pre-compression token format, still accepted by decode()."""
    return ShareFormat.LEGACY.tag + _b64url_encode(_checked_payload(result))


def detect_format(token: str) -> ShareFormat:
    if token.startswith(ShareFormat.COMPRESSED.tag):
        return ShareFormat.COMPRESSED
    return ShareFormat.LEGACY


def _inflate(data: bytes) -> bytes:
    inflater = zlib.decompressobj()
    try:
        out = inflater.decompress(data, MAX_SHARE_BYTES + 1)
    except zlib.error as e:
        raise InvalidShareData("corrupt deflate stream") from e
    if len(out) > MAX_SHARE_BYTES:
        raise InvalidShareData("decompressed payload too large")
    if not inflater.eof:
        raise InvalidShareData("truncated deflate stream")
    return out


def _decode_compressed(body: str) -> bytes:
    return _inflate(_b64url_decode(body))


def _decode_legacy(body: str) -> bytes:
    data = _b64url_decode(body)
    if len(data) > MAX_SHARE_BYTES:
        raise InvalidShareData("legacy payload too large")
    return data


_DECODERS: Dict[ShareFormat, Callable[[str], bytes]] = {
    ShareFormat.LEGACY: _decode_legacy,
    ShareFormat.COMPRESSED: _decode_compressed,
}


def decode(token: str) -> Result:
    """Reconstruct a Result from a share token; raises InvalidShareData."""
    if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
        raise InvalidShareData("token empty or too long")

    fmt = detect_format(token)
    payload = _DECODERS[fmt](token[len(fmt.tag):])
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise InvalidShareData("payload is not JSON") from e
    if not isinstance(data, dict):
        raise InvalidShareData("payload is not an object")
    return normalize_result(data)


def decode_or_none(token: str) -> Optional[Result]:
    """decode() for page loads: bad links fall back to an empty state."""
    try:
        result = decode(token)
    except InvalidShareData as e:
        obs.record_share("decode", "invalid")
        logger.warning("Failed to decode share data: %s", e)
        return None
    obs.record_share("decode", "ok")
    return result


def share_url(origin: str, result: Result) -> str:
    try:
        token = encode(result)
    except ShareDataTooLarge:
        obs.record_share("encode", "too_large")
        raise
    obs.record_share("encode", "ok")
    return f"{origin.rstrip('/')}/result#{token}"
