from __future__ import annotations

from fastapi import Request


def resolve_client_ip(request: Request) -> str | None:
    """First X-Forwarded-For hop when present, otherwise the socket peer."""
    forwarded = request.headers.get("x-forwarded-for") or ""
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def resolve_user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent") or None
