"""Pydantic models for feature records and the assembled forest."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrphanPolicy(str, Enum):
    """What happens to records whose parent id is never defined."""

    DROP = "drop"
    PROMOTE = "promote"


# ── Input ──────────────────────────────────────────────────────────

class FeatureRecord(BaseModel):
    """One parsed input line."""

    model_config = ConfigDict(frozen=True)

    id: str
    parent_id: Optional[str] = None  # None marks a root feature
    program_id: str
    progress_status: str
    assigned_team: str
    start: datetime
    end: datetime


# ── Output ─────────────────────────────────────────────────────────

class Feature(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(serialization_alias="feature")
    start: datetime
    end: datetime
    progress_status: str
    assigned_team: str
    subfeatures: list[Feature] = Field(default_factory=list)

    @field_validator("subfeatures")
    @classmethod
    def _sort_by_start(cls, value: list[Feature]) -> list[Feature]:
        # sorted() is stable: equal starts keep insertion order.
        return sorted(value, key=lambda feature: feature.start)

    @classmethod
    def from_record(cls, record: FeatureRecord, subfeatures: Optional[list[Feature]] = None) -> Feature:
        return cls(
            id=record.id,
            start=record.start,
            end=record.end,
            progress_status=record.progress_status,
            assigned_team=record.assigned_team,
            subfeatures=subfeatures or [],
        )

    def _own_fields(self) -> tuple:
        return (self.id, self.start, self.end, self.progress_status, self.assigned_team, len(self.subfeatures))

    def __eq__(self, other: object) -> bool:
        # Pairwise walk instead of field-by-field recursion; chains can be
        # deeper than the interpreter recursion limit.
        if not isinstance(other, Feature):
            return NotImplemented
        pairs = [(self, other)]
        while pairs:
            left, right = pairs.pop()
            if left is right:
                continue
            if type(left) is not type(right) or left._own_fields() != right._own_fields():
                return False
            pairs.extend(zip(left.subfeatures, right.subfeatures))
        return True

    __hash__ = None

    def walk(self):
        """Yield this feature and every descendant, parents first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.subfeatures))


class Program(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    root: Feature


class Forest(BaseModel):
    """All programs produced by one assembly run, ordered by root start.

    Equal root starts fall back to program id, then root id, so the order
    (and therefore equality) does not depend on construction order.
    """

    model_config = ConfigDict(frozen=True)

    programs: list[Program] = Field(default_factory=list)

    @field_validator("programs")
    @classmethod
    def _sort_by_root_start(cls, value: list[Program]) -> list[Program]:
        return sorted(value, key=lambda program: (program.root.start, program.id, program.root.id))

    def feature_ids(self) -> list[str]:
        return [feature.id for program in self.programs for feature in program.root.walk()]

    def find_feature(self, feature_id: str) -> Optional[Feature]:
        for program in self.programs:
            for feature in program.root.walk():
                if feature.id == feature_id:
                    return feature
        return None

    @property
    def program_count(self) -> int:
        return len(self.programs)
