"""Phenotype matcher contract and record review.

The matcher itself is a separate ranking service; this module only relies
on its call shape.
"""
from __future__ import annotations

import re
from collections.abc import Collection, Iterable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from family_studies.logging import get_logger
from family_studies.pedigree.converter import IndividualRecord

logger = get_logger(__name__)

HPO_ID = re.compile(r"^HP:\d{7}$")


class SearchResult(BaseModel):
    """An identifier (disease or phenotype) with its fitness score."""
    identifier: str
    score: float


@runtime_checkable
class PhenotypeMatcher(Protocol):
    """Ranks diseases and differential phenotypes for a set of HPO ids.

    Both calls return results ordered by descending score.
    """

    def get_matches(self, phenotypes: Collection[str]) -> list[SearchResult]: ...

    def get_differential_phenotypes(self, phenotypes: Collection[str]) -> list[SearchResult]: ...


class RecordReview(BaseModel):
    """Diagnosis suggestions for one patient record."""
    external_id: str | None = None
    phenotypes: list[str] = Field(default_factory=list)
    matches: list[SearchResult] = Field(default_factory=list)
    differential: list[SearchResult] = Field(default_factory=list)


def collect_phenotypes(fields: dict[str, Any]) -> list[str]:
    """HPO ids found among clinical field values, in first-seen order."""
    found: list[str] = []

    def visit(value: Any) -> None:
        if isinstance(value, str):
            if HPO_ID.match(value) and value not in found:
                found.append(value)
        elif isinstance(value, dict):
            for v in value.values():
                visit(v)
        elif isinstance(value, Iterable):
            for v in value:
                visit(v)

    visit(fields)
    return found


def _ranked(results: Iterable[SearchResult], limit: int | None) -> list[SearchResult]:
    ranked = sorted(results, key=lambda r: r.score, reverse=True)
    return ranked if limit is None else ranked[:limit]


def review_record(
    record: IndividualRecord | dict[str, Any],
    matcher: PhenotypeMatcher,
    limit: int | None = 10,
) -> RecordReview:
    """Ask ``matcher`` for disease and differential suggestions for a record."""
    if isinstance(record, IndividualRecord):
        external_id, fields = record.external_id, record.clinical_fields
    else:
        external_id, fields = record.get("id"), record

    phenotypes = collect_phenotypes(fields)
    if not phenotypes:
        return RecordReview(external_id=external_id)

    review = RecordReview(
        external_id=external_id,
        phenotypes=phenotypes,
        matches=_ranked(matcher.get_matches(phenotypes), limit),
        differential=_ranked(matcher.get_differential_phenotypes(phenotypes), limit),
    )
    logger.debug("record.review", external_id=external_id, phenotypes=len(phenotypes), matches=len(review.matches))
    return review
