"""API endpoints for statistics, grading and cohort ranking."""

import logging

from fastapi import APIRouter, HTTPException, status

from grading_engine.core.exceptions import GradingError, ResultProcessingError
from grading_engine.dependencies.grading_config import GradingConfigDep
from grading_engine.schemas.grading import GradeResolution, ResolveGradeRequest
from grading_engine.schemas.ranking import CycleResult, RankRequest, StudentAggregate
from grading_engine.schemas.scores import (
    CohortStatistics,
    CompositeScore,
    ProcessCycleRequest,
    ScoreSubjectRequest,
    StatisticsRequest,
)
from grading_engine.services.aggregate_ranking import order_cohort, rank_cohort
from grading_engine.services.composite_scoring import score_subject
from grading_engine.services.grade_resolution import resolve_band
from grading_engine.services.result_processing import ResultProcessingService
from grading_engine.utils.statistics_utils import compute_statistics

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/grading", tags=["grading"])


@router.post("/statistics", response_model=CohortStatistics)
def get_statistics(request: StatisticsRequest) -> CohortStatistics:
    """Mean and standard deviation of a sample."""
    return compute_statistics(request.sample, request.use_sample_correction)


@router.post("/resolve-grade", response_model=GradeResolution)
def resolve_grade_endpoint(request: ResolveGradeRequest) -> GradeResolution:
    """Resolve a standardized score against a grading scheme."""
    band = resolve_band(request.standardized_score, request.scheme)
    return GradeResolution(label=band.label, value=band.value, remark=band.remark)


@router.post("/score-subject", response_model=CompositeScore)
def score_subject_endpoint(request: ScoreSubjectRequest) -> CompositeScore:
    """Composite score for a single record."""
    return score_subject(request.record, request.normalization_rule, request.sba_config)


@router.post("/rank", response_model=list[StudentAggregate])
def rank_students(request: RankRequest) -> list[StudentAggregate]:
    """Best-N aggregates and ranks for a cohort, in the requested display order."""
    standings = rank_cohort(
        request.student_grades,
        best_n=request.best_n,
        sentinel_for_missing=request.sentinel_for_missing,
        total_scores=request.total_scores,
    )
    return order_cohort(standings, request.sort_order)


@router.post("/cycles/{cycle_id}/process", response_model=CycleResult)
def process_cycle(cycle_id: str, request: ProcessCycleRequest, default_config: GradingConfigDep) -> CycleResult:
    """Grade and rank every student in a cycle."""
    try:
        return ResultProcessingService.process_cycle(
            request.records, request.config or default_config, cycle_id, strict=request.strict, roster=request.roster
        )
    except ResultProcessingError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Error processing cycle: {str(e)}",
        )
    except GradingError as e:
        logger.error("Grading failed for cycle %s", cycle_id, exc_info=e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
