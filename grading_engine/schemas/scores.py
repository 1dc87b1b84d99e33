"""Schemas for raw score records, composites and per-subject results."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grading_engine.schemas.grading import GradingConfig, NormalizationRule, SbaConfig

StudentId = int | str


class ScoreRecord(BaseModel):
    """Raw scores for one student, subject and assessment cycle."""

    model_config = ConfigDict(validate_assignment=True)

    student_id: StudentId
    cycle_id: str = Field(..., min_length=1, description="Assessment cycle, e.g. MOCK 3")
    subject: str = Field(..., min_length=1)
    section_a_score: float = Field(0.0, description="Objective section")
    section_b_score: float = Field(0.0, description="Theory section")
    sba_score: float = Field(0.0, description="School-Based Assessment score")
    student_name: str | None = None
    total_score: float | None = Field(
        None, description="Exam total entered without a section split; used only when both sections are 0"
    )

    @field_validator("section_a_score", "section_b_score", "sba_score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        """Negative scores are stored as 0."""
        return max(0.0, v)

    @field_validator("total_score")
    @classmethod
    def clamp_total(cls, v: float | None) -> float | None:
        if v is None:
            return v
        return max(0.0, v)


class CompositeScore(BaseModel):
    """One subject composite for a student in a cycle, with the raw sub-scores kept for display."""

    student_id: StudentId
    cycle_id: str
    subject: str
    section_a: float
    section_b: float
    exam_score: float = Field(..., description="Exam composite after any normalization")
    sba_score: float
    composite: float = Field(..., description="Score used for grading")
    normalized: bool = False
    sba_blended: bool = False


class CohortStatistics(BaseModel):
    """Mean and standard deviation of a cohort sample."""

    count: int = Field(..., ge=0)
    mean: float
    std_dev: float = Field(..., ge=0.0)


class CohortSnapshot(BaseModel):
    """Composites and section scores for one subject in one cycle."""

    subject: str
    cycle_id: str
    composites: list[float] = Field(default_factory=list)
    section_a: list[float] = Field(default_factory=list)
    section_b: list[float] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.composites

    @classmethod
    def from_composites(cls, subject: str, cycle_id: str, composites: list["CompositeScore"]) -> "CohortSnapshot":
        """Collect the composites of one subject and cycle; other subjects and cycles are skipped."""
        selected = [c for c in composites if c.subject == subject and c.cycle_id == cycle_id]
        return cls(
            subject=subject,
            cycle_id=cycle_id,
            composites=[c.composite for c in selected],
            section_a=[c.section_a for c in selected],
            section_b=[c.section_b for c in selected],
        )


class SubjectStatistics(BaseModel):
    """Cohort statistics for one subject in one cycle."""

    subject: str
    composite: CohortStatistics
    section_a: CohortStatistics
    section_b: CohortStatistics


class SubjectResult(BaseModel):
    """A graded subject for one student."""

    subject: str
    section_a: float
    section_b: float
    exam_score: float
    sba_score: float
    composite: float
    z_score: float = Field(..., description="Standardized score (z or t depending on the distribution model)")
    grade: str
    grade_value: int
    remark: str = ""


class StatisticsRequest(BaseModel):
    """Request body for cohort statistics."""

    sample: list[float]
    use_sample_correction: bool = False


class ScoreSubjectRequest(BaseModel):
    """Request body for scoring a single record."""

    record: ScoreRecord
    normalization_rule: NormalizationRule | None = None
    sba_config: SbaConfig | None = None


class ProcessCycleRequest(BaseModel):
    """Request body for grading and ranking a whole cycle."""

    records: list[ScoreRecord]
    config: GradingConfig | None = Field(None, description="Defaults to the institution's configuration")
    roster: list[StudentId] | None = None
    strict: bool = False
