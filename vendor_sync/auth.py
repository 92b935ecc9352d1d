# vendor_sync/auth.py
"""
Service-to-service auth for the vendor sync endpoints.

Tokens are HS256 JWTs carrying `sub`, `aud` and `scopes` (list or space separated
string). Sent as `Authorization: Bearer <token>` or `X-Service-Token: <token>`.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Iterable, List, Optional, Union

import jwt
from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse

ALGORITHM = "HS256"

ScopesArg = Union[str, Iterable[str]]


class ServiceAuthError(Exception):
    def __init__(self, message: str, status: int, code: str):
        super().__init__(message)
        self.status = status
        self.code = code


def _secret() -> str:
    return settings.SERVICE_JWT_SECRET


def _audience() -> str:
    return settings.SERVICE_JWT_AUDIENCE


def normalize_scopes(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [s for s in value.split() if s]
    if isinstance(value, (list, tuple, set)):
        return [str(s) for s in value]
    return []


def mint_service_token(
    scopes: ScopesArg,
    *,
    subject: str = "service",
    ttl_seconds: int = 300,
    audience: Optional[str] = None,
) -> str:
    """Short-lived service token (tests, CLI, other internal services)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "aud": audience or _audience(),
        "scopes": [scopes] if isinstance(scopes, str) else list(scopes),
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def verify_service_token(token: str, *, audience: Optional[str] = None) -> Dict[str, Any]:
    """Decoded claims with `scopes` normalized to a list. Raises ServiceAuthError."""
    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[ALGORITHM],
            options={"verify_aud": False},
        )
    except jwt.InvalidTokenError as e:
        raise ServiceAuthError(f"Service token invalid: {e}", 401, "invalid_token") from e

    expected = audience or _audience()
    aud = claims.get("aud")
    auds = aud if isinstance(aud, list) else [aud]
    if expected and expected not in auds:
        raise ServiceAuthError("Service token audience mismatch", 403, "forbidden")

    claims["scopes"] = normalize_scopes(claims.get("scopes"))
    return claims


def extract_token(request: HttpRequest) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    if header[:7].lower() == "bearer ":
        return header[7:].strip() or None
    alt = request.headers.get("X-Service-Token")
    return alt.strip() if alt and alt.strip() else None


def authenticate(request: HttpRequest) -> Dict[str, Any]:
    token = extract_token(request)
    if not token:
        raise ServiceAuthError("Service token missing", 401, "missing_token")
    return verify_service_token(token)


def json_error(status: int, code: str, detail: Optional[str] = None, **extra: Any) -> JsonResponse:
    body: Dict[str, Any] = {"ok": False, "error": code, "detail": detail}
    body.update(extra)
    return JsonResponse(body, status=status)


def service_scope_required(scopes: ScopesArg):
    """
    Any one of `scopes` grants access. `{slug}` is filled from the URL kwargs.

    Usage:
      @service_scope_required("catalog:sync:write")
      @service_scope_required(["catalog:sync:write", "catalog:sync:{slug}"])

    The verified claims are left on request.service_claims.
    """
    wanted = [scopes] if isinstance(scopes, str) else list(scopes)

    def decorator(viewfunc):
        @wraps(viewfunc)
        def _wrapped(request: HttpRequest, *args, **kwargs) -> HttpResponse:
            try:
                claims = authenticate(request)
            except ServiceAuthError as e:
                return json_error(e.status, e.code, str(e))

            slug = str(kwargs.get("slug") or "").strip().lower()
            accepted = {s.format(slug=slug) for s in wanted}
            if accepted.isdisjoint(claims["scopes"]):
                return json_error(
                    403, "insufficient_scope", f"One of {', '.join(sorted(accepted))} scope required"
                )
            request.service_claims = claims
            return viewfunc(request, *args, **kwargs)

        return _wrapped

    return decorator
