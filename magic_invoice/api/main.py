"""FastAPI application for natural-language invoice parsing.

Production-ready API with:
- Health and readiness checks for Kubernetes
- Rate-limited, optionally token-protected parse endpoint
- Structured ``{"error": ...}`` responses
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time

from fastapi import Depends, FastAPI, Header, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from magic_invoice.api import metrics
from magic_invoice.api.auth import authenticate, create_token_verifier
from magic_invoice.models.factory import create_model_provider
from magic_invoice.parsing.errors import InvalidPayloadError, InvoiceParseError, RateLimitedError
from magic_invoice.parsing.pipeline import InvoiceParsePipeline
from magic_invoice.parsing.schema import InvoiceDefaults, InvoiceDraft, InvoiceTotals
from magic_invoice.ratelimit.limiter import create_rate_limiter, get_client_ip
from magic_invoice.shared.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Magic Invoice Parser",
    description="Turns a one-sentence job description into a structured invoice draft",
    version=settings.service_version,
)

model_provider = create_model_provider(settings)
pipeline = InvoiceParsePipeline(settings, model_provider)
rate_limiter = create_rate_limiter(settings)
token_verifier = create_token_verifier(settings)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


@app.exception_handler(InvoiceParseError)
async def parse_error_handler(request: Request, exc: InvoiceParseError) -> JSONResponse:
    """Render parse errors as ``{"error": message}`` with the error's status."""
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    model_configured: bool


class ParseRequest(BaseModel):
    """Invoice parse request."""

    prompt: str = Field("", description="One-sentence description of the work to invoice")
    defaults: InvoiceDefaults | None = Field(
        None, description="Profile defaults used when the sentence is silent"
    )


class ParseResponse(BaseModel):
    """Invoice parse response."""

    invoice: InvoiceDraft
    totals: InvoiceTotals
    warning: str | None = None


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe."""
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe.

    The service is ready without a model key (empty prompts still work), so
    model configuration is reported separately.
    """
    return ReadinessResponse(ready=True, model_configured=model_provider.is_available())


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


def enforce_access(request: Request, authorization: str | None = Header(None)) -> None:
    """Authenticate and rate-limit a parse request before its body is read.

    Raises:
        UnauthenticatedError, InvalidTokenError: Missing or rejected bearer token
        RateLimitedError: Client exceeded the rate limit
    """
    authenticate(token_verifier, authorization)

    client_ip = get_client_ip(request.headers, request.client.host if request.client else None)
    decision = rate_limiter.check(f"parse:{client_ip}")
    if not decision.allowed:
        metrics.rate_limited_requests_total.inc()
        logger.info(f"Rate limit exceeded for {client_ip}; retry after {decision.retry_after}s")
        raise RateLimitedError(retry_after=decision.retry_after)


async def read_parse_request(request: Request) -> ParseRequest:
    """Validate the JSON body into a ParseRequest.

    Raises:
        InvalidPayloadError: Body is not JSON or does not match ParseRequest
    """
    try:
        return ParseRequest.model_validate_json(await request.body())
    except ValidationError as e:
        logger.debug(f"Rejected request body: {e.errors()}")
        raise InvalidPayloadError() from e


@app.post(
    "/api/parse",
    response_model=ParseResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(enforce_access)],
    tags=["Invoices"],
)
def parse_invoice(body: ParseRequest = Depends(read_parse_request)) -> ParseResponse:
    """Parse a free-text invoice description into a structured draft.

    Auth and rate limiting run before the body is read, so malformed bodies
    are still rejected with 401 or 429 first.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/parse" \\
      -H "Content-Type: application/json" \\
      -d '{"prompt": "Invoice Jane Doe, for 2 x strategy sessions @ $850, due by March 5"}'
    ```

    ## Error Handling

    - 401 when API tokens are configured and the bearer token is missing or wrong
    - 429 when the client exceeds the rate limit (see `Retry-After`)
    - 400 for invalid JSON bodies and prompts over 2000 characters
    - 503 when no model API key is configured (empty prompts still succeed)
    - 502 when the model call fails
    - 200 with `warning` when the model reply was empty or unreadable and a
      fallback draft was generated instead

    Raises:
        InvoiceParseError: Rendered as ``{"error": message}``
    """
    start_time = time.time()
    try:
        outcome = pipeline.parse(body.prompt, body.defaults)
    except InvoiceParseError as e:
        metrics.invoice_parse_requests_total.labels(outcome=type(e).__name__).inc()
        raise
    finally:
        metrics.invoice_parse_duration_seconds.observe(time.time() - start_time)

    label = "warning" if outcome.warning else outcome.source
    metrics.invoice_parse_requests_total.labels(outcome=label).inc()

    return ParseResponse(
        invoice=outcome.invoice, totals=outcome.invoice.totals(), warning=outcome.warning
    )
