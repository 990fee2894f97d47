"""Data models for article detection and allocation."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationCode


DDN_NAME = "DDN"
UNALLOCATED_NAME = "NEED TO ALLOCATE"
NOT_STARTED = "Not started"


class AllocationMethod(str, Enum):
    BY_PRIORITY = "allocate by priority"
    BY_PAGES = "allocate by pages"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParsedArticle(CamelModel):
    """An article ID with its page count, as detected in source text."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    article_id: str = Field(..., min_length=1)
    pages: int = Field(..., ge=0)

    @field_validator("article_id", mode="before")
    @classmethod
    def _normalize_id(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class PriorityField(CamelModel):
    """A person's requested article count in allocation order."""

    id: str
    label: str
    value: int = Field(0, ge=0, description="Requested article count; missing means 0.")

    @field_validator("value", mode="before")
    @classmethod
    def _missing_value_is_zero(cls, value):
        return 0 if value is None else value


class AllocatedArticle(CamelModel):
    """One article assigned to a person, to DDN, or left unallocated."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str
    article_id: str
    pages: int = Field(..., ge=0)
    month: str
    date: str = Field(..., description="Batch date in DD/MM/YYYY format.")


class PersonAllocation(CamelModel):
    person: str
    articles: List[AllocatedArticle] = Field(default_factory=list)


class FinalAllocationResult(CamelModel):
    """Every input article lands in exactly one of the three buckets."""

    person_allocations: List[PersonAllocation] = Field(default_factory=list)
    ddn_articles: List[AllocatedArticle] = Field(default_factory=list)
    unallocated_articles: List[AllocatedArticle] = Field(default_factory=list)

    def iter_articles(self) -> Iterator[AllocatedArticle]:
        for allocation in self.person_allocations:
            yield from allocation.articles
        yield from self.ddn_articles
        yield from self.unallocated_articles


class DdnValidationResult(CamelModel):
    articles: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    code: Optional[ValidationCode] = None


class AllocationValidationReport(CamelModel):
    """Capacity and DDN checks collected together for display."""

    allocated_article_count: int
    remaining_articles: int
    is_over_allocated: bool
    ddn_validation_error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    codes: List[ValidationCode] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class DisplayOverride(CamelModel):
    name: Optional[str] = None
    month: Optional[str] = None
    date: Optional[str] = None


class PreviewResult(CamelModel):
    allocated_articles: List[AllocatedArticle] = Field(default_factory=list)
    unallocated_articles: List[AllocatedArticle] = Field(default_factory=list)
    display_articles: List[AllocatedArticle] = Field(default_factory=list)


class AllocationRow(BaseModel):
    """Flat row handed to the submission/export step."""

    model_config = ConfigDict(populate_by_name=True)

    month: str = Field(..., alias="Month")
    date: str = Field(..., alias="Date")
    article_number: str = Field(..., alias="Article number")
    pages: int = Field(..., alias="Pages", ge=0)
    completed: str = Field(NOT_STARTED, alias="Completed")
    done_by: str = Field(..., alias="Done by")
    time: str = Field("", alias="Time")


class ValidationRequest(CamelModel):
    priority_fields: List[PriorityField]
    total_articles: int = Field(..., ge=0)
    ddn_text: Optional[str] = None
    available_article_ids: List[str] = Field(default_factory=list)


class AllocationRequest(CamelModel):
    """Inputs for one allocation batch, as posted by the allocation form."""

    priority_fields: List[PriorityField]
    parsed_articles: List[ParsedArticle]
    ddn_articles: List[str] = Field(default_factory=list)
    ddn_text: Optional[str] = None
    allocation_method: Optional[str] = None
    month: Optional[str] = None
    date: Optional[str] = None
    article_display_overrides: Dict[str, DisplayOverride] = Field(default_factory=dict)
