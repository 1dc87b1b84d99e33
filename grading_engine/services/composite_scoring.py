"""Service for turning raw section scores into one composite per subject."""

import logging
from typing import Iterable

from grading_engine.schemas.grading import GradingConfig, NormalizationRule, SbaConfig
from grading_engine.schemas.scores import CompositeScore, ScoreRecord
from grading_engine.utils.score_utils import blend_sba, calculate_exam_total, normalize_score

logger = logging.getLogger(__name__)


def score_subject(
    record: ScoreRecord,
    normalization_rule: NormalizationRule | None = None,
    sba_config: SbaConfig | None = None,
) -> CompositeScore:
    """
    Calculate the composite score for one score record.

    Steps:
    1. exam = section A + section B (or the entered total, see calculate_exam_total)
    2. If a normalization rule for the record's subject is enabled and unlocked,
       exam = round(exam / max_raw_score * 100)
    3. If SBA is enabled and unlocked, composite = sba * sba_weight% + exam * exam_weight%,
       otherwise composite = exam and the SBA score is only carried for display

    Args:
        record: The raw score record
        normalization_rule: Rule for this subject, if any. Rules for other subjects are ignored.
        sba_config: SBA blending configuration; None disables blending

    Returns:
        CompositeScore with the composite and the raw sub-scores
    """
    exam_score = calculate_exam_total(record.section_a_score, record.section_b_score, record.total_score)

    normalized = False
    if (
        normalization_rule is not None
        and normalization_rule.subject == record.subject
        and normalization_rule.is_active
    ):
        exam_score = float(normalize_score(exam_score, normalization_rule.max_raw_score))
        normalized = True

    composite = exam_score
    sba_blended = False
    if sba_config is not None and sba_config.is_active:
        composite = blend_sba(exam_score, record.sba_score, sba_config.sba_weight, sba_config.exam_weight)
        sba_blended = True

    return CompositeScore(
        student_id=record.student_id,
        cycle_id=record.cycle_id,
        subject=record.subject,
        section_a=record.section_a_score,
        section_b=record.section_b_score,
        exam_score=exam_score,
        sba_score=record.sba_score,
        composite=composite,
        normalized=normalized,
        sba_blended=sba_blended,
    )


def apply_configuration(records: Iterable[ScoreRecord], config: GradingConfig) -> list[CompositeScore]:
    """Score a batch of records, using the normalization rule for each record's subject."""
    composites = [score_subject(record, config.rule_for(record.subject), config.sba) for record in records]
    logger.debug("Scored %d records", len(composites))
    return composites
