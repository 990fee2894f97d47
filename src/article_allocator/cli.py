"""Command-line entry points for article detection and allocation."""

import dataclasses
import json
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import BaseModel
from rich import print as rprint

from .calculator import filtered_articles_message
from .config import get_settings
from .dedup import filter_already_allocated, handled_article_ids
from .distributor import current_month_and_date, distribute, rows_payload
from .extractor import extract_from_sources, format_entries
from .logging_utils import setup_logging
from .models import AllocationRequest, ValidationRequest
from .validation import parse_allocation_method, resolve_ddn_ids, validate_allocation

app = typer.Typer(
    help="Detect article IDs and page counts in portal text and allocate them to people."
)


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc


def _to_plain(value: Any) -> Any:
    """
    Convert pydantic models, dataclasses, Paths, and date-like objects into
    JSON-serializable primitives. Models are dumped with their camelCase aliases.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_plain(item) for item in value]
    return value


def _write_output(out_path: Optional[Path], payload: Any) -> None:
    text = json.dumps(_to_plain(payload), ensure_ascii=False, indent=2)
    if out_path is None:
        typer.echo(text)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    rprint(f"[cyan]Wrote output to {out_path}[/cyan]")


def _parse_request(model, path: Path):
    try:
        return model.model_validate(_load_json(path))
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid request in {path}: {exc}") from exc


@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override LOG_LEVEL for this run (DEBUG, INFO, WARNING, ...).",
    ),
):
    """Set up logging before any command runs."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    setup_logging(settings)


@app.command("extract")
def extract_command(
    files: List[Path] = typer.Argument(
        ..., help="HTML or text files to scan, merged in the order given."
    ),
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Write the JSON result here instead of stdout."
    ),
    output_format: str = typer.Option(
        "json",
        "--format",
        "-f",
        help="'json' for the full result or 'entries' for 'ID [PAGES]' lines.",
        case_sensitive=False,
    ),
    handled: Optional[Path] = typer.Option(
        None,
        "--handled",
        help="JSON array of allocation history rows; those articles are skipped.",
    ),
):
    """Detect articles and page counts in one or more portal/email files."""
    fmt = output_format.lower()
    if fmt not in {"json", "entries"}:
        raise typer.BadParameter("format must be 'json' or 'entries'.")
    missing = [path for path in files if not path.is_file()]
    if missing:
        raise typer.BadParameter(f"File not found: {missing[0]}")

    extraction = extract_from_sources(
        [path.read_text(encoding="utf-8") for path in files],
        labels=[path.name for path in files],
    )
    articles = extraction.articles

    message = None
    if handled is not None:
        rows = _load_json(handled)
        if not isinstance(rows, list):
            raise typer.BadParameter("--handled must contain a JSON array of rows.")
        filtered = filter_already_allocated(articles, handled_article_ids(rows))
        articles = filtered.parsed_articles
        message = filtered_articles_message(
            filtered.filtered_out_count, filtered.filtered_out_articles
        )

    if fmt == "entries":
        lines = "\n".join(format_entries(articles))
        if out:
            out.write_text(lines + "\n" if lines else "", encoding="utf-8")
            rprint(f"[cyan]Wrote output to {out}[/cyan]")
        elif lines:
            typer.echo(lines)
    else:
        _write_output(
            out,
            {
                "articles": articles,
                "totalArticles": len(articles),
                "totalPages": sum(article.pages for article in articles),
                "droppedIds": extraction.dropped_ids,
                "sources": extraction.sources,
            },
        )

    if message:
        rprint(f"[yellow]{message}[/yellow]")
    if extraction.dropped_ids:
        rprint(
            f"[yellow]No page count for: {', '.join(extraction.dropped_ids)}[/yellow]"
        )


@app.command("validate")
def validate_command(
    request_path: Path = typer.Argument(..., help="JSON validation request."),
):
    """Check the over-allocation and DDN rules; exit 1 when any fails."""
    request = _parse_request(ValidationRequest, request_path)
    report = validate_allocation(
        request.priority_fields,
        request.total_articles,
        ddn_text=request.ddn_text,
        available_ids=request.available_article_ids,
    )
    payload = _to_plain(report)
    payload["isValid"] = report.is_valid
    _write_output(None, payload)
    if not report.is_valid:
        raise typer.Exit(code=1)


@app.command("allocate")
def allocate_command(
    request_path: Path = typer.Argument(..., help="JSON allocation request."),
    out: Optional[Path] = typer.Option(
        None, "--out", "-o", help="Write the JSON result here instead of stdout."
    ),
    rows: bool = typer.Option(
        False, "--rows", help="Emit flat export rows instead of grouped buckets."
    ),
    method: Optional[str] = typer.Option(
        None,
        "--method",
        "-m",
        help="'allocate by priority' or 'allocate by pages' (overrides the request).",
    ),
):
    """Validate, then split the articles into person, DDN and unallocated buckets."""
    request = _parse_request(AllocationRequest, request_path)
    available_ids = [article.article_id for article in request.parsed_articles]

    report = validate_allocation(
        request.priority_fields,
        len(request.parsed_articles),
        ddn_text=request.ddn_text,
        available_ids=available_ids,
    )
    if not report.is_valid:
        for error in report.errors:
            rprint(f"[red]{error}[/red]")
        raise typer.Exit(code=1)

    settings = get_settings()
    try:
        allocation_method = parse_allocation_method(
            method or request.allocation_method or settings.default_allocation_method
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    month, today = current_month_and_date(settings.app_timezone)
    result = distribute(
        request.priority_fields,
        request.parsed_articles,
        resolve_ddn_ids(request.ddn_articles, request.ddn_text, available_ids),
        allocation_method,
        request.month or month,
        request.date or today,
    )
    _write_output(out, {"rows": rows_payload(result)} if rows else result)


@app.command("serve")
def serve_command(
    host: str = typer.Option(
        os.getenv("ALLOCATOR_HOST", "127.0.0.1"), "--host", help="Bind address."
    ),
    port: int = typer.Option(
        int(os.getenv("ALLOCATOR_PORT", "8000")), "--port", help="Bind port."
    ),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    rprint(f"[green]Serving on http://{host}:{port}[/green]")
    uvicorn.run("article_allocator.server:app", host=host, port=port, reload=reload)


def main():
    app()


if __name__ == "__main__":
    main()
