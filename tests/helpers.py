# tests/helpers.py
import base64
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import azure.functions as func

from src.specs.agents.image import ImageResult


class FakeChatClient:
    """Stand-in for the OpenAI client: replays canned replies or raises."""

    def __init__(self, replies: List[Any]):
        self._replies = list(replies)
        self.calls: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(role="assistant", content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message)])


class FakeImageSearch:
    def __init__(self, image: Optional[ImageResult] = None):
        self.image = image
        self.calls: List[Dict[str, Any]] = []

    def find_image(self, query, page=None, orientation="landscape", *, request_id=None):
        self.calls.append({"query": query, "page": page, "request_id": request_id})
        return self.image


def principal_header(email: Optional[str] = "owner@example.com", auth_typ: str = "google") -> str:
    claims = []
    if email:
        claims.append(
            {"typ": "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress", "val": email}
        )
    claims.append({"typ": "name", "val": "Shop Owner"})
    payload = {"auth_typ": auth_typ, "claims": claims, "name_typ": "name", "role_typ": "roles"}
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def make_request(
    body: Any = None,
    *,
    headers: Optional[Dict[str, str]] = None,
    raw_body: Optional[bytes] = None,
    method: str = "POST",
) -> func.HttpRequest:
    data = raw_body if raw_body is not None else json.dumps(body).encode("utf-8")
    return func.HttpRequest(
        method=method,
        url="http://localhost:7071/api/generate-posts",
        headers=headers or {},
        params={},
        body=data,
    )


def signed_in_headers(email: str = "owner@example.com") -> Dict[str, str]:
    return {
        "X-MS-CLIENT-PRINCIPAL": principal_header(email),
        "X-MS-CLIENT-PRINCIPAL-ID": "user-123",
        "X-MS-CLIENT-PRINCIPAL-NAME": email,
        "X-MS-CLIENT-PRINCIPAL-IDP": "google",
    }


