"""
Session verification for HTTP triggers.

The Function App sits behind App Service Authentication, which signs the
caller in and forwards the identity as ``X-MS-CLIENT-PRINCIPAL*`` headers.
Requests that reach the function without those headers are anonymous.
"""
from __future__ import annotations

import base64
import binascii
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import azure.functions as func

from src.specs.common.errors import Unauthorized
from src.specs.common.identity import SessionIdentity

PRINCIPAL_HEADER = "X-MS-CLIENT-PRINCIPAL"
PRINCIPAL_ID_HEADER = "X-MS-CLIENT-PRINCIPAL-ID"
PRINCIPAL_NAME_HEADER = "X-MS-CLIENT-PRINCIPAL-NAME"
PRINCIPAL_IDP_HEADER = "X-MS-CLIENT-PRINCIPAL-IDP"

# Claim types that carry an email address, in preference order
EMAIL_CLAIM_TYPES = (
    "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress",
    "email",
    "emails",
    "preferred_username",
)


class SessionVerifier(ABC):
    """Resolves the authenticated caller of a request, if any."""

    @abstractmethod
    def verify(self, req: func.HttpRequest) -> Optional[SessionIdentity]:
        """Return the caller's identity or None when not signed in."""


def _decode_principal(raw: str) -> Optional[Dict[str, Any]]:
    try:
        padded = raw + "=" * (-len(raw) % 4)
        data = json.loads(base64.b64decode(padded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _email_from_claims(claims: List[Dict[str, Any]]) -> Optional[str]:
    for claim_type in EMAIL_CLAIM_TYPES:
        for claim in claims:
            if not isinstance(claim, dict) or claim.get("typ") != claim_type:
                continue
            val = claim.get("val")
            if isinstance(val, str) and "@" in val:
                return val
    return None


class EasyAuthSessionVerifier(SessionVerifier):
    """Reads the identity App Service Authentication injects into requests."""

    def verify(self, req: func.HttpRequest) -> Optional[SessionIdentity]:
        headers = req.headers
        raw = headers.get(PRINCIPAL_HEADER)
        name = headers.get(PRINCIPAL_NAME_HEADER)
        user_id = headers.get(PRINCIPAL_ID_HEADER)
        provider = headers.get(PRINCIPAL_IDP_HEADER)

        email: Optional[str] = None
        if raw:
            principal = _decode_principal(raw)
            if principal is None:
                return None
            provider = provider or principal.get("auth_typ")
            claims = principal.get("claims")
            email = _email_from_claims(claims) if isinstance(claims, list) else None
        if not email and name and "@" in name:
            email = name
        if not (raw or name or user_id):
            return None
        return SessionIdentity(userId=user_id, email=email, provider=provider)


def require_identity(req: func.HttpRequest, verifier: SessionVerifier) -> SessionIdentity:
    """Return the caller's identity or raise Unauthorized.

    An identity without an email counts as not signed in.
    """
    identity = verifier.verify(req)
    if identity is None or not identity.email:
        raise Unauthorized()
    return identity


__all__ = [
    "SessionVerifier",
    "EasyAuthSessionVerifier",
    "require_identity",
]
