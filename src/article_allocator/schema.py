"""Helpers to load and validate the allocation rows JSON schema."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError


def default_schema_path() -> Path:
    """Return the path to the packaged allocation rows schema."""
    return Path(__file__).resolve().parent / "schemas" / "allocation_rows.schema.json"


@lru_cache(maxsize=1)
def load_schema(path: Optional[Path | str] = None) -> Dict[str, Any]:
    """Load and cache the rows schema as a dictionary."""
    schema_path = Path(path) if path else default_schema_path()
    return json.loads(schema_path.read_text(encoding="utf-8"))


def format_errors(errors: Iterable[ValidationError]) -> str:
    """Turn jsonschema errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.absolute_path) or "<root>"
        parts.append(f"{location}: {err.message}")
    return "; ".join(parts)


def validate_rows_payload(
    payload: List[Dict[str, Any]], schema: Optional[Dict[str, Any]] = None
) -> List[Dict[str, Any]]:
    """
    Validate export rows against the schema.

    Raises ValueError with a readable message if validation fails.
    """
    schema_dict = schema or load_schema()
    validator = Draft202012Validator(schema_dict)
    errors = list(validator.iter_errors(payload))
    if errors:
        raise ValueError(f"Allocation rows failed validation: {format_errors(errors)}")
    return payload
