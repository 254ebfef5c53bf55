import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

TRACE_ID_CTX_VAR: ContextVar[str] = ContextVar("trace_id", default="")
TRACE_HEADER = "x-trace-id"

# Caller-supplied ids are reused only when they look like ids
_SAFE_TRACE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def _incoming_trace_id(request: Request) -> str:
    candidate = (request.headers.get(TRACE_HEADER) or "").strip()
    if candidate and _SAFE_TRACE_ID.match(candidate):
        return candidate
    return str(uuid.uuid4())


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a trace_id, kept in a context variable for logging
    and echoed back in the x-trace-id response header. A well-formed id sent
    by the frontend is kept so client and server logs line up.
    """
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = _incoming_trace_id(request)
        TRACE_ID_CTX_VAR.set(trace_id)
        request.state.trace_id = trace_id

        response = await call_next(request)

        response.headers[TRACE_HEADER] = trace_id
        return response
