"""API endpoints for cycle growth ratios and reward allocation."""

import logging

from fastapi import APIRouter, HTTPException, status

from grading_engine.config import settings
from grading_engine.core.exceptions import GradingError
from grading_engine.dependencies.grading_config import GradingConfigDep
from grading_engine.schemas.rewards import (
    AllocateRequest,
    DeltaRequest,
    DeltaResponse,
    EfficiencyReport,
    EfficiencyRequest,
    RewardShare,
)
from grading_engine.services.cycle_delta import compute_delta
from grading_engine.services.result_processing import ResultProcessingService
from grading_engine.services.reward_allocation import allocate_rewards

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/rewards", tags=["rewards"])


@router.post("/delta", response_model=DeltaResponse)
def get_delta(request: DeltaRequest) -> DeltaResponse:
    return DeltaResponse(growth_ratio=compute_delta(request.current_mean, request.previous_mean))


@router.post("/allocate", response_model=list[RewardShare])
def allocate(request: AllocateRequest) -> list[RewardShare]:
    """Split a reward pool across subjects by efficiency index."""
    return allocate_rewards(request.subject_factors, request.pool_amount)


@router.post("/cycles/{cycle_id}/efficiency", response_model=EfficiencyReport)
def get_efficiency_report(
    cycle_id: str, request: EfficiencyRequest, default_config: GradingConfigDep
) -> EfficiencyReport:
    """Efficiency indices, reward shares and sig-diff ranking for a cycle."""
    try:
        return ResultProcessingService.efficiency_report(
            request.records,
            request.config or default_config,
            current_cycle=cycle_id,
            previous_cycle=request.previous_cycle,
            pool_amount=request.pool_amount if request.pool_amount is not None else settings.default_reward_pool,
            staff=request.staff,
            external_grades=request.external_grades,
            institutional_standard=(
                request.institutional_standard
                if request.institutional_standard is not None
                else settings.institutional_standard
            ),
            external_baseline_default=settings.external_baseline_default,
        )
    except GradingError as e:
        logger.error("Efficiency report failed for cycle %s", cycle_id, exc_info=e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Error building efficiency report: {str(e)}",
        )
