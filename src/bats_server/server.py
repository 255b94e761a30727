"""FastAPI REST API for resume keyword embedding and ATS analysis."""

import asyncio
import json
import re
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal

from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, ValidationError

from . import __version__, service
from .ats import (
    ATSAnalysisResult,
    TaxonomyEntry,
    load_taxonomy,
    normalize_keywords,
    parse_keyword_source,
)
from .ats.keyword_source import ExternalSource, StaticSource
from .config import get_settings
from .errors import InputError, LogicError, NotFound, OperationCancelled, ResourceError
from .logger import clear_context, logger, set_context

PDF_MEDIA_TYPE = "application/pdf"

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


# --- Request/Response Models ---


class HealthResponse(BaseModel):
    status: str
    version: str = __version__


class ErrorResponse(BaseModel):
    code: str
    message: str


class KeywordsResponse(BaseModel):
    keywords: list[str]
    count: int


class CategoryListResponse(BaseModel):
    categories: list[TaxonomyEntry]
    count: int


class CategoryKeywordsResponse(BaseModel):
    category_id: str
    keywords: list[str]


class CombineRequest(BaseModel):
    category_ids: list[str] = Field(..., min_length=1)
    tiers: list[Literal["required", "preferred", "bonus"]] = Field(
        default_factory=lambda: ["required", "preferred", "bonus"]
    )


class CreateRequest(BaseModel):
    keywords: list[str] | None = None
    visible_lines: list[str] | None = Field(default=None, max_length=50)


# --- App State ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the taxonomy before serving so the first request does not pay for it."""
    logger.info("starting server", version=__version__)
    load_taxonomy()
    yield
    logger.info("server shutdown")


app = FastAPI(
    title="BATS API",
    description="Invisible resume keyword embedding and ATS compatibility scoring",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    set_context(request_id=request_id, path=request.url.path)
    try:
        response = await call_next(request)
    finally:
        clear_context()
    response.headers["X-Request-ID"] = request_id
    return response


# --- Exception Handlers ---


def _error(status_code: int, code: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=str(exc)).model_dump(),
    )


@app.exception_handler(NotFound)
async def not_found_handler(request, exc: NotFound):
    return _error(404, "NOT_FOUND", exc)


@app.exception_handler(InputError)
async def input_error_handler(request, exc: InputError):
    return _error(400, type(exc).__name__.upper(), exc)


@app.exception_handler(ResourceError)
async def resource_error_handler(request, exc: ResourceError):
    return _error(503, "RESOURCE_ERROR", exc)


@app.exception_handler(OperationCancelled)
async def cancelled_handler(request, exc: OperationCancelled):
    return _error(409, "CANCELLED", exc)


@app.exception_handler(LogicError)
async def logic_error_handler(request, exc: LogicError):
    logger.error("internal error", error=str(exc))
    return _error(500, "INTERNAL_ERROR", exc)


# --- Health Endpoints ---


@app.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check."""
    return HealthResponse(status="healthy")


# --- Keyword Endpoints ---


@app.get("/api/v1/keywords", response_model=KeywordsResponse)
async def default_keywords():
    """The configured default keyword set."""
    keywords = StaticSource().resolve().keywords
    return KeywordsResponse(keywords=keywords, count=len(keywords))


@app.get("/api/v1/categories", response_model=CategoryListResponse)
async def list_categories(q: str = ""):
    """All categories, or those whose name or tags contain ``q``."""
    categories = load_taxonomy().search(q)
    return CategoryListResponse(categories=categories, count=len(categories))


@app.get("/api/v1/categories/recommend", response_model=CategoryListResponse)
async def recommend_categories(
    role: str = Query(..., min_length=1, max_length=200),
    confidence: float = Query(default=0.0, ge=0.0, le=1.0),
):
    """Categories matching a job role."""
    categories = load_taxonomy().recommend_for_role(role, confidence)
    return CategoryListResponse(categories=categories, count=len(categories))


@app.post("/api/v1/categories/combine", response_model=KeywordsResponse)
async def combine_categories(request: CombineRequest):
    """Keywords of several categories, duplicates removed in first-seen order."""
    keywords = load_taxonomy().combine(request.category_ids, request.tiers)
    return KeywordsResponse(keywords=keywords, count=len(keywords))


@app.get("/api/v1/categories/{category_id}", response_model=TaxonomyEntry)
async def get_category(category_id: str):
    return load_taxonomy().get(category_id)


@app.get("/api/v1/categories/{category_id}/keywords", response_model=CategoryKeywordsResponse)
async def category_keywords(category_id: str):
    return CategoryKeywordsResponse(
        category_id=category_id, keywords=load_taxonomy().keywords(category_id)
    )


# --- Resume Endpoints ---


async def _read_upload(file: UploadFile) -> bytes:
    """Read an uploaded PDF, enforcing the size cap and the %PDF- header."""
    limit = get_settings().max_upload_bytes
    if file.size and file.size > limit:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {limit // (1024 * 1024)}MB",
        )
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {limit // (1024 * 1024)}MB",
        )
    if not data.startswith(b"%PDF-"):
        raise HTTPException(
            status_code=400,
            detail="Invalid PDF file. File does not have valid PDF header.",
        )
    return data


def _pdf_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _split_keywords(keywords: str | None) -> list[str] | None:
    """Form field: comma- or newline-separated keywords."""
    if keywords is None or not keywords.strip():
        return None
    return normalize_keywords(keywords.replace("\n", ",").split(","))


@app.post("/api/v1/resumes/create")
async def create_resume(request: CreateRequest):
    """Generate a one-page resume carrying the invisible keyword layer."""
    data = await asyncio.to_thread(
        service.create_resume_bytes, request.keywords, request.visible_lines
    )
    return _pdf_response(data, "resume.pdf")


@app.post("/api/v1/resumes/modify")
async def modify_resume(
    file: UploadFile = File(...),
    keywords: str | None = Form(default=None),
):
    """Append the invisible keyword layer to every page of an uploaded PDF."""
    data = await _read_upload(file)
    # Run in thread pool to avoid blocking event loop
    output = await asyncio.to_thread(service.modify_resume_bytes, data, _split_keywords(keywords))
    stem = Path(file.filename or "resume").stem
    stem = _UNSAFE_FILENAME.sub("_", stem).strip("._") or "resume"
    return _pdf_response(output, f"bats_{stem}.pdf")


@app.post("/api/v1/resumes/analyze", response_model=ATSAnalysisResult)
async def analyze_resume(
    file: UploadFile = File(...),
    keyword_source: str | None = Form(default=None),
    keywords: str | None = Form(default=None),
):
    """Score an uploaded PDF.

    ``keyword_source`` is a JSON keyword source (``{"kind": "taxonomy", ...}``);
    ``keywords`` is a shortcut for an external list. Neither means the
    configured defaults.
    """
    data = await _read_upload(file)
    source = None
    if keyword_source:
        try:
            source = parse_keyword_source(_json_object(keyword_source))
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=json.loads(e.json(include_url=False))) from e
    elif _split_keywords(keywords):
        source = ExternalSource(keywords=_split_keywords(keywords))
    return await asyncio.to_thread(service.analyze_resume, data, source)


@app.post("/api/v1/resumes/extract", response_model=service.ExtractionResult)
async def extract_resume(
    file: UploadFile = File(...),
    exclude_invisible: bool = Form(default=False),
):
    """Plain text of an uploaded PDF with word and character counts."""
    data = await _read_upload(file)
    return await asyncio.to_thread(service.extract_resume_text, data, exclude_invisible)


def _json_object(raw: str) -> dict:
    try:
        value = json.loads(raw)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"keyword_source is not JSON: {e}") from e
    if not isinstance(value, dict):
        raise HTTPException(status_code=422, detail="keyword_source must be a JSON object")
    return value
