"""FastAPI service exposing article detection, validation and allocation."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional, Type, TypeVar

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .calculator import filtered_articles_message
from .config import get_settings
from .dedup import filter_already_allocated, handled_article_ids
from .distributor import current_month_and_date, distribute, preview, rows_payload
from .extractor import extract_from_sources, format_entries, parse_entries, parse_pasted
from .logging_utils import log_event, setup_logging
from .models import (
    AllocationRequest,
    CamelModel,
    FinalAllocationResult,
    ParsedArticle,
    ValidationRequest,
)
from .validation import parse_allocation_method, resolve_ddn_ids, validate_allocation

logger = logging.getLogger(__name__)

app = FastAPI(title="Article Allocator")

ModelT = TypeVar("ModelT", bound=BaseModel)


def _add_cors(app: FastAPI) -> None:
    """Allow the portal front end to call the API from another origin."""
    allow_all = os.getenv("CORS_ALLOW_ALL", "true").lower() == "true"
    origins_env = os.getenv("CORS_ALLOW_ORIGINS", "")
    origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    allow_credentials = (
        os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true"
    )
    if allow_all or not origins:
        origins = ["*"]
    if origins == ["*"] and allow_credentials:
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )


_add_cors(app)
setup_logging(get_settings())


# --- Request bodies ---------------------------------------------------------

class ExtractRequest(CamelModel):
    text: Optional[str] = None
    sources: Optional[List[str]] = None
    handled_rows: Optional[List[Dict[str, Any]]] = None


class ParseEntriesRequest(CamelModel):
    entries: Optional[List[str]] = None
    new_articles_with_pages: Optional[List[str]] = None


class ParsePastedRequest(CamelModel):
    pasted_text: str


class FilterAllocatedRequest(CamelModel):
    parsed_articles: List[ParsedArticle]
    handled_rows: List[Dict[str, Any]] = Field(default_factory=list)


# --- Helpers ----------------------------------------------------------------

def _parse(model: Type[ModelT], payload: Dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc


def _log_request(endpoint: str, started: float, **fields: Any) -> None:
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    log_event(logger, f"{endpoint} ok", endpoint=endpoint, duration_ms=duration_ms, **fields)


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def _batch_stamp(request: AllocationRequest) -> tuple[str, str]:
    """Use the request's month/date, filling gaps from the configured timezone."""
    if request.month and request.date:
        return request.month, request.date
    month, date = current_month_and_date(get_settings().app_timezone)
    return request.month or month, request.date or date


def _ddn_ids(request: AllocationRequest) -> List[str]:
    return resolve_ddn_ids(
        request.ddn_articles,
        request.ddn_text,
        [article.article_id for article in request.parsed_articles],
    )


def _run_distribution(request: AllocationRequest) -> FinalAllocationResult:
    try:
        method = parse_allocation_method(
            request.allocation_method or get_settings().default_allocation_method
        )
        month, date = _batch_stamp(request)
        return distribute(
            request.priority_fields,
            request.parsed_articles,
            _ddn_ids(request),
            method,
            month,
            date,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    except Exception as exc:
        logger.exception("Distribution failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc


# --- Routes -----------------------------------------------------------------

@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/articles/extract")
def extract(payload: Dict[str, Any]) -> JSONResponse:
    """
    Detect articles in one text (`text`) or several (`sources`, in order).
    Optional `handledRows` removes articles already in the allocation history.
    """
    started = time.perf_counter()
    request = _parse(ExtractRequest, payload)
    if request.text is None and request.sources is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide `text` or `sources`.",
        )

    texts = request.sources if request.sources is not None else [request.text]
    extraction = extract_from_sources(texts)
    articles = extraction.articles

    body: Dict[str, Any] = {}
    if request.handled_rows is not None:
        filtered = filter_already_allocated(articles, handled_article_ids(request.handled_rows))
        articles = filtered.parsed_articles
        body["filteredOutArticles"] = filtered.filtered_out_articles
        body["message"] = filtered_articles_message(
            filtered.filtered_out_count, filtered.filtered_out_articles
        )

    body.update(
        {
            "articles": [_dump(article) for article in articles],
            "entries": format_entries(articles),
            "totalArticles": len(articles),
            "totalPages": sum(article.pages for article in articles),
            "hasArticles": bool(articles),
            "droppedIds": extraction.dropped_ids,
            "sources": extraction.sources,
        }
    )
    _log_request(
        "articles/extract",
        started,
        source_count=len(texts),
        article_count=len(articles),
        dropped_count=len(extraction.dropped_ids),
    )
    return JSONResponse(content=body)


@app.post("/articles/parse")
def parse_articles(payload: Dict[str, Any]) -> JSONResponse:
    started = time.perf_counter()
    request = _parse(ParseEntriesRequest, payload)
    entries = request.entries if request.entries is not None else request.new_articles_with_pages
    if entries is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="entries is required and must be an array",
        )
    try:
        parsed = parse_entries(entries)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    _log_request("articles/parse", started, input_count=len(entries), parsed_count=len(parsed))
    return JSONResponse(content={"parsedArticles": [_dump(a) for a in parsed]})


@app.post("/articles/parse-pasted")
def parse_pasted_articles(payload: Dict[str, Any]) -> JSONResponse:
    started = time.perf_counter()
    request = _parse(ParsePastedRequest, payload)
    entries = parse_pasted(request.pasted_text)
    _log_request(
        "articles/parse-pasted",
        started,
        entries_count=len(entries),
        input_length=len(request.pasted_text),
    )
    return JSONResponse(content={"entries": [_dump(entry) for entry in entries]})


@app.post("/articles/filter-allocated")
def filter_allocated(payload: Dict[str, Any]) -> JSONResponse:
    started = time.perf_counter()
    request = _parse(FilterAllocatedRequest, payload)
    filtered = filter_already_allocated(
        request.parsed_articles, handled_article_ids(request.handled_rows)
    )
    _log_request(
        "articles/filter-allocated",
        started,
        kept_count=len(filtered.parsed_articles),
        filtered_count=filtered.filtered_out_count,
    )
    return JSONResponse(
        content={
            "parsedArticles": [_dump(a) for a in filtered.parsed_articles],
            "filteredOutCount": filtered.filtered_out_count,
            "filteredOutArticles": filtered.filtered_out_articles,
            "message": filtered_articles_message(
                filtered.filtered_out_count, filtered.filtered_out_articles
            ),
        }
    )


@app.post("/allocations/validate")
def validate(payload: Dict[str, Any]) -> JSONResponse:
    started = time.perf_counter()
    request = _parse(ValidationRequest, payload)
    report = validate_allocation(
        request.priority_fields,
        request.total_articles,
        ddn_text=request.ddn_text,
        available_ids=request.available_article_ids,
    )
    _log_request(
        "allocations/validate",
        started,
        total_articles=request.total_articles,
        allocated_count=report.allocated_article_count,
        error_count=len(report.errors),
    )
    body = _dump(report)
    body["isValid"] = report.is_valid
    return JSONResponse(content=body)


@app.post("/allocations/compute")
def compute(payload: Dict[str, Any]) -> JSONResponse:
    started = time.perf_counter()
    request = _parse(AllocationRequest, payload)
    result = _run_distribution(request)
    _log_request(
        "allocations/compute",
        started,
        person_count=len(result.person_allocations),
        ddn_count=len(result.ddn_articles),
        unallocated_count=len(result.unallocated_articles),
    )
    return JSONResponse(content=_dump(result))


@app.post("/allocations/preview")
def preview_allocation(payload: Dict[str, Any]) -> JSONResponse:
    started = time.perf_counter()
    request = _parse(AllocationRequest, payload)
    try:
        month, date = _batch_stamp(request)
        result = preview(
            request.priority_fields,
            request.parsed_articles,
            _ddn_ids(request),
            request.allocation_method or get_settings().default_allocation_method,
            month,
            date,
            overrides=request.article_display_overrides,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    _log_request(
        "allocations/preview",
        started,
        allocated_count=len(result.allocated_articles),
        unallocated_count=len(result.unallocated_articles),
    )
    return JSONResponse(content=_dump(result))


@app.post("/allocations/rows")
def allocation_rows(payload: Dict[str, Any]) -> JSONResponse:
    """Distribute and flatten into the tabular rows the export step stores."""
    started = time.perf_counter()
    request = _parse(AllocationRequest, payload)
    result = _run_distribution(request)
    try:
        rows = rows_payload(result)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    _log_request("allocations/rows", started, row_count=len(rows))
    return JSONResponse(content={"rows": rows})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "article_allocator.server:app",
        host=os.getenv("ALLOCATOR_HOST", "0.0.0.0"),
        port=int(os.getenv("ALLOCATOR_PORT", "8000")),
        reload=os.getenv("ALLOCATOR_RELOAD", "false").lower() == "true",
    )
