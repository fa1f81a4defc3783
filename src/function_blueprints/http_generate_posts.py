import os
import uuid
from functools import lru_cache
from time import perf_counter
from typing import Any, Callable, Optional

import azure.functions as func
from pydantic import BaseModel, ValidationError

from src.http.generate_posts_workflow import GeneratePostsWorkflow
from src.specs.agents.copywriter import GenerationRequest
from src.specs.common.errors import (
    AutocaptionError,
    GenerationFailed,
    InvalidRequest,
    ProviderTimeout,
    Unauthorized,
)
from src.specs.http.generate_posts import ErrorResponse, GeneratePostsRequest
from src.shared.logging_utils import info as log_info, warning as log_warning, error as log_error
from src.shared.session import EasyAuthSessionVerifier, SessionVerifier, require_identity


bp = func.Blueprint()

REQUIRED_FIELDS = ("industry", "tone", "length")
DEFAULT_MAX_CAPTIONS = 10

MSG_MISSING = "Missing parameters"
MSG_INVALID = "Invalid parameters"
MSG_FAILED = "Failed to generate captions"


def _json_response(model: BaseModel, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        body=model.model_dump_json(),
        mimetype="application/json",
        status_code=status_code,
    )


def _error(message: str, status_code: int) -> func.HttpResponse:
    return _json_response(ErrorResponse(error=message), status_code)


def _error_from(ex: AutocaptionError) -> func.HttpResponse:
    return _error(ex.public_error(), ex.status_code)


def max_captions_from_env() -> int:
    raw = os.getenv("MAX_CAPTIONS")
    try:
        return int(raw) if raw else DEFAULT_MAX_CAPTIONS
    except ValueError:
        return DEFAULT_MAX_CAPTIONS


def _is_missing(value: Any) -> bool:
    # null, "", 0 and false all count as missing
    if value is None or value is False or value == "":
        return True
    return isinstance(value, (int, float)) and value == 0


def parse_generation_request(req: func.HttpRequest, max_captions: int) -> GenerationRequest:
    """Validate the body and map it onto a GenerationRequest.

    Raises:
        InvalidRequest: "Missing parameters" when the body is not a JSON object
            or a required field is absent/empty; "Invalid parameters" when a
            field is present but has the wrong type or range.
    """
    try:
        data: Any = req.get_json()
    except ValueError:
        raise InvalidRequest(MSG_MISSING, details={"reason": "body is not JSON"})
    if not isinstance(data, dict):
        raise InvalidRequest(MSG_MISSING, details={"reason": "body is not an object"})

    missing = [f for f in REQUIRED_FIELDS if _is_missing(data.get(f))]
    if missing:
        raise InvalidRequest(MSG_MISSING, details={"missing": missing})

    try:
        body = GeneratePostsRequest.model_validate({f: data[f] for f in REQUIRED_FIELDS})
    except ValidationError as ex:
        fields = [".".join(str(p) for p in err["loc"]) for err in ex.errors()]
        raise InvalidRequest(MSG_INVALID, details={"fields": fields})
    if body.length > max_captions:
        raise InvalidRequest(MSG_INVALID, details={"fields": ["length"], "max": max_captions})

    return GenerationRequest(topic=body.industry, tone=body.tone, count=body.length)


async def handle_generate_posts(
    req: func.HttpRequest,
    get_workflow: Callable[[], GeneratePostsWorkflow],
    verifier: SessionVerifier,
    max_captions: Optional[int] = None,
) -> func.HttpResponse:
    start = perf_counter()
    request_id = uuid.uuid4().hex

    try:
        identity = require_identity(req, verifier)
    except Unauthorized as ex:
        log_warning(request_id, "generate:unauthorized")
        return _error_from(ex)

    try:
        request = parse_generation_request(
            req, max_captions if max_captions is not None else max_captions_from_env()
        )
    except InvalidRequest as ex:
        log_warning(request_id, "generate:invalid_request", detail=str(ex), **ex.details)
        return _error_from(ex)

    log_info(
        request_id,
        "generate:accepted",
        user=identity.userId or identity.email,
        topic=request.topic,
        count=request.count,
    )

    try:
        response = await get_workflow().run(request, request_id)
    except ProviderTimeout as ex:
        log_error(request_id, "generate:timeout", error=str(ex), **ex.details)
        return _error_from(ex)
    except GenerationFailed as ex:
        dims = dict(ex.details)
        if ex.__cause__ is not None:
            dims["cause"] = repr(ex.__cause__)
        log_error(request_id, "generate:failed", error=str(ex), **dims)
        return _error_from(ex)
    except Exception as ex:
        log_error(request_id, "generate:error", errorType=type(ex).__name__, error=str(ex))
        return _error(MSG_FAILED, 500)

    log_info(
        request_id,
        "generate:completed",
        results=len(response.results),
        durationMs=int((perf_counter() - start) * 1000),
    )
    return _json_response(response, 200)


@lru_cache(maxsize=1)
def _default_workflow() -> GeneratePostsWorkflow:
    return GeneratePostsWorkflow.from_env()


_VERIFIER = EasyAuthSessionVerifier()


@bp.function_name(name="generate_posts")
@bp.route(route="generate-posts", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
async def generate_posts(req: func.HttpRequest) -> func.HttpResponse:
    return await handle_generate_posts(req, _default_workflow, _VERIFIER)


@bp.function_name(name="health")
@bp.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health(req: func.HttpRequest) -> func.HttpResponse:
    return func.HttpResponse(
        body='{"status": "ok"}',
        mimetype="application/json",
        status_code=200,
    )
