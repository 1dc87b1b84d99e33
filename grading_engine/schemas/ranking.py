"""Schemas for aggregates, ranks and committed cycle results."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from grading_engine.schemas.grading import SortOrder
from grading_engine.schemas.scores import StudentId, SubjectResult, SubjectStatistics


class StudentAggregate(BaseModel):
    """Best-N aggregate and rank for one student."""

    student_id: StudentId
    student_name: str | None = None
    aggregate: float = Field(..., description="Sum of best-N grade values; lower is better")
    best_subjects: list[str] = Field(default_factory=list, description="Subjects counted in the aggregate")
    subjects_counted: int = 0
    total_score: float = Field(0.0, description="Sum of all subject composites")
    category: str | None = None
    rank: int = Field(0, ge=0)
    missing: bool = Field(False, description="True when no grades exist and the sentinel aggregate was used")


class AggregateRecord(BaseModel):
    """Aggregate and rank frozen for one student when a cycle is committed."""

    model_config = ConfigDict(frozen=True)

    student_id: StudentId
    cycle_id: str
    best_n_aggregate: float
    rank: int = Field(..., ge=1)
    committed_at: datetime


class StudentResult(BaseModel):
    """Graded subjects plus overall standing for one student in a cycle."""

    student_id: StudentId
    student_name: str | None = None
    subjects: list[SubjectResult]
    standing: StudentAggregate


class CycleSummary(BaseModel):
    """Institution-wide averages for one cycle."""

    cycle_id: str
    student_count: int
    avg_composite: float = Field(..., description="Mean subject composite across the cohort")
    avg_aggregate: float = Field(..., description="Mean best-N aggregate, students with grades only")
    avg_objective: float = Field(..., description="Mean section A score")
    avg_theory: float = Field(..., description="Mean section B score")


class CycleResult(BaseModel):
    """Complete grading output for one cycle."""

    cycle_id: str
    statistics: dict[str, SubjectStatistics]
    students: list[StudentResult] = Field(..., description="Students in the configured display order")
    summary: CycleSummary


class RankRequest(BaseModel):
    """Request body for ranking a cohort from grade values."""

    student_grades: dict[str, dict[str, int]] = Field(..., description="Student id -> subject -> grade value")
    best_n: int = Field(6, ge=1)
    sentinel_for_missing: float = 54
    total_scores: dict[str, float] | None = None
    sort_order: SortOrder = SortOrder.AGGREGATE_ASC
