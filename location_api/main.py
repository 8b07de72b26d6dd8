import logging
import os
from functools import lru_cache
from typing import List, Optional

from fastapi import Body, Depends, FastAPI, Header, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from location_api.models import (
    ErrorResponse,
    LocationRecord,
    ReloadRequest,
    ReloadResponse,
    SearchRequest,
    Suggestion,
)
from location_api.search.dataset_loader import load_bundled_records
from location_api.search.errors import DatasetLoadError, InvalidArgument
from location_api.search.location_store import LocationStore
from location_api.search.rules import Locale
from location_api.search.search_engine import SearchEngine

# several keys separated by commas:
# export API_KEYS="test123,anotherKey987"
ALLOWED_API_KEYS = {
    key.strip()
    for key in os.getenv("API_KEYS", "").split(",")
    if key.strip()
}
_TRUTHY = {"1", "true", "yes", "on"}
ALLOW_KEYLESS_ACCESS = (
    os.getenv("ALLOW_KEYLESS_ACCESS", "true").lower() in _TRUTHY
)

logger = logging.getLogger(__name__)


def _parse_locale(value: str) -> Locale:
    try:
        return Locale(value.strip().lower())
    except ValueError:
        logger.warning(
            "Unsupported SEARCH_DEFAULT_LOCALE %r, using %s", value, Locale.EN.value
        )
        return Locale.EN


DEFAULT_LOCALE = _parse_locale(os.getenv("SEARCH_DEFAULT_LOCALE", "en"))


class APIError(Exception):
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        *,
        request_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.request_id = request_id
        self.details = details


@lru_cache()
def get_engine() -> SearchEngine:
    """
    Process-wide engine over the bundled dataset. Built on first use;
    tests swap it out through app.dependency_overrides.
    """
    store = LocationStore()
    try:
        store.load(load_bundled_records())
    except DatasetLoadError:
        # the service still starts; /search answers 503 until a reload succeeds
        logger.exception("Bundled location dataset could not be loaded")
    return SearchEngine(store)


def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
):
    """
    Guards the dataset reload endpoint:
    - Clients send `X-API-Key`, which must be listed in the API_KEYS env var.
    - Local dev: with no keys configured and ALLOW_KEYLESS_ACCESS=true
      (the default) the check is skipped.
    Search endpoints are public and never go through this.
    """
    if not ALLOWED_API_KEYS:
        if ALLOW_KEYLESS_ACCESS:
            return
        raise APIError(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="auth_not_configured",
            message=(
                "Authentication is not configured. Set the API_KEYS "
                "environment variable, or explicitly opt-in to keyless "
                "access with ALLOW_KEYLESS_ACCESS=true."
            ),
        )

    if x_api_key is not None and x_api_key in ALLOWED_API_KEYS:
        return {"token": x_api_key}

    raise APIError(
        status_code=status.HTTP_401_UNAUTHORIZED,
        error="unauthorized",
        message="Invalid or missing API credentials. Send header 'X-API-Key'.",
    )


app = FastAPI(
    title="Swiss Location Search API",
    description=(
        "Search-as-you-type lookup of Swiss cities, municipalities, cantons "
        "and districts by name or postal code.\n"
        "- Exact matches first, then prefix matches, then substring matches.\n"
        "- All-digit queries are matched against postal codes.\n"
        "- Primary cities rank above sub-localities, shorter names first.\n"
        "- Empty query returns a fixed list of popular cities.\n"
        "- Type labels in English, French or German."
    ),
    version="1.0.0",
)


def _error_response(status_code: int, payload: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload),
    )


@app.exception_handler(APIError)
async def handle_api_error(_, exc: APIError):
    payload = ErrorResponse(
        error=exc.error,
        message=exc.message,
        request_id=exc.request_id,
        details=exc.details,
    )
    return _error_response(exc.status_code, payload)


@app.exception_handler(InvalidArgument)
async def handle_invalid_argument(_, exc: InvalidArgument):
    payload = ErrorResponse(error="invalid_argument", message=str(exc))
    return _error_response(status.HTTP_400_BAD_REQUEST, payload)


@app.exception_handler(DatasetLoadError)
async def handle_dataset_load_error(_, exc: DatasetLoadError):
    payload = ErrorResponse(
        error="dataset_load_error",
        message=exc.message,
        details=exc.details,
    )
    return _error_response(status.HTTP_400_BAD_REQUEST, payload)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(_, exc: RequestValidationError):
    payload = ErrorResponse(
        error="validation_error",
        message="Request failed validation",
        details={"errors": exc.errors()},
    )
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, payload)


@app.exception_handler(Exception)
async def handle_unexpected_error(_, exc: Exception):
    logger.exception("Unhandled application error: %s", exc)
    payload = ErrorResponse(
        error="internal_error",
        message="Internal server error",
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, payload)


_ERROR_RESPONSES = {
    status.HTTP_422_UNPROCESSABLE_ENTITY: {
        "model": ErrorResponse,
        "description": "Validation error, request failed schema checks",
    },
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "model": ErrorResponse,
        "description": "Internal server error",
    },
}

_SEARCH_RESPONSES = {
    **_ERROR_RESPONSES,
    status.HTTP_503_SERVICE_UNAVAILABLE: {
        "model": ErrorResponse,
        "description": "No location dataset has been loaded yet",
    },
}


def _require_ready(engine: SearchEngine) -> None:
    if not engine.is_ready():
        raise APIError(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="search_unavailable",
            message="Location search is temporarily unavailable",
        )


@app.get("/health")
def healthcheck(engine: SearchEngine = Depends(get_engine)):
    return {
        "ok": True,
        "ready": engine.is_ready(),
        "records": len(engine.store),
    }


@app.post(
    "/search",
    response_model=List[Suggestion],
    responses=_SEARCH_RESPONSES,
)
def search_endpoint(
    req: SearchRequest,
    engine: SearchEngine = Depends(get_engine),
) -> List[Suggestion]:
    _require_ready(engine)
    return engine.search(req.query, req.limit, req.locale or DEFAULT_LOCALE)


@app.get(
    "/search",
    response_model=List[Suggestion],
    responses=_SEARCH_RESPONSES,
)
def search_get_endpoint(
    q: str = Query("", description="Text or postal code typed so far"),
    limit: int = Query(10, gt=0, description="Maximum number of suggestions"),
    locale: Optional[Locale] = Query(None, description="en, fr or de"),
    engine: SearchEngine = Depends(get_engine),
) -> List[Suggestion]:
    _require_ready(engine)
    return engine.search(q, limit, locale or DEFAULT_LOCALE)


@app.get("/locations/primary", response_model=List[LocationRecord])
def primary_locations(engine: SearchEngine = Depends(get_engine)):
    return engine.store.primary_records()


@app.get("/locations", response_model=List[LocationRecord])
def locations_by_region(
    region: str = Query(..., min_length=1, description="Region (canton) name"),
    engine: SearchEngine = Depends(get_engine),
):
    return engine.store.by_region(region)


@app.get(
    "/locations/{location_id}",
    response_model=LocationRecord,
    responses={
        status.HTTP_404_NOT_FOUND: {
            "model": ErrorResponse,
            "description": "No location with this id",
        },
    },
)
def location_by_id(location_id: str, engine: SearchEngine = Depends(get_engine)):
    record = engine.store.by_id(location_id)
    if record is None:
        raise APIError(
            status_code=status.HTTP_404_NOT_FOUND,
            error="not_found",
            message=f"Location {location_id!r} does not exist",
        )
    return record


@app.post(
    "/locations/reload",
    response_model=ReloadResponse,
    responses={
        **_ERROR_RESPONSES,
        status.HTTP_400_BAD_REQUEST: {
            "model": ErrorResponse,
            "description": "Dataset rejected, the previous dataset stays active",
        },
        status.HTTP_401_UNAUTHORIZED: {
            "model": ErrorResponse,
            "description": "Unauthorized, missing or invalid X-API-Key",
        },
    },
    dependencies=[Depends(verify_api_key)],
)
def reload_locations(
    req: Optional[ReloadRequest] = Body(None),
    engine: SearchEngine = Depends(get_engine),
) -> ReloadResponse:
    if req is None or req.records is None:
        records = load_bundled_records()
    else:
        records = req.records
    engine.store.load(records)
    return ReloadResponse(records=len(engine.store), keys=len(engine.store.index))
