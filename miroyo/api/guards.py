"""
请求来源检查与客户端标识

Origin / Sec-Fetch-Site 检查只是跨站请求的纵深防御, 不签发也不校验 CSRF token。
headers 参数要求小写键 (Starlette Headers 与 InterpretRequest 均满足)。
"""

from typing import Mapping

UNKNOWN_CLIENT = "unknown"
ALLOWED_FETCH_SITES = ("same-origin", "none")


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    return value if isinstance(value, str) else ""


def is_invalid_origin(headers: Mapping[str, str]) -> bool:
    origin = _header(headers, "origin")
    if not origin:
        return False

    host = _header(headers, "host")
    if not host:
        return True

    return origin not in (f"https://{host}", f"http://{host}")


def is_cross_site_request(headers: Mapping[str, str]) -> bool:
    fetch_site = _header(headers, "sec-fetch-site")
    if not fetch_site:
        return False
    return fetch_site not in ALLOWED_FETCH_SITES


def is_forbidden(headers: Mapping[str, str]) -> bool:
    return is_invalid_origin(headers) or is_cross_site_request(headers)


def get_client_identity(headers: Mapping[str, str]) -> str:
    """Rate-limit key: first X-Forwarded-For hop, then X-Real-IP."""
    forwarded_for = _header(headers, "x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = _header(headers, "x-real-ip").strip()
    if real_ip:
        return real_ip

    return UNKNOWN_CLIENT
