"""
Legacy survey-identity backfill for SEL Insights.

Older answer batches were stored without a survey reference. This module
infers which survey each one came from and writes the link back, once:

    1. batches that already have a survey id (or a link) are skipped;
    2. if every question id looks like a built-in template id, the survey
       id comes from the batch's survey type ("daily" -> "daily-survey");
    3. otherwise the custom survey with the highest question-id overlap
       wins, if the overlap reaches the threshold (0.8 by default);
    4. otherwise a fallback id from the survey type, or "unknown-survey".

The backfill is idempotent and safe to run multiple times. A storage error
on one batch is logged and counted; the run carries on with the next.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sel_insights.config import InferencePolicy
from sel_insights.database import SurveyIdentityLinkRecord, SurveyResponse
from sel_insights.models import InferenceMethod, RecordFormatError, SurveyIdentityLink
from sel_insights.question_resolver import QuestionResolver
from sel_insights.storage import (
    get_identity_link,
    list_custom_surveys,
    list_responses_for_backfill,
    response_question_ids,
    survey_question_ids,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegacyBatch:
    batch_id: str
    question_ids: Tuple[Any, ...]
    survey_type: Optional[str] = None
    existing_survey_id: Optional[str] = None


@dataclass(frozen=True)
class CandidateSurvey:
    id: str
    question_ids: Tuple[str, ...]


def overlap_ratio(question_ids: Sequence[str], survey_ids: Sequence[str]) -> float:
    """Fraction of the batch's distinct ids that the survey declares."""
    ids = set(question_ids)
    if not ids:
        return 0.0
    return len(ids & set(survey_ids)) / len(ids)


class LegacyIdentityInferencer:
    def __init__(self, resolver: QuestionResolver, policy: Optional[InferencePolicy] = None):
        self.resolver = resolver
        self.policy = policy or InferencePolicy()

    def survey_id_for_type(self, survey_type: Optional[str]) -> str:
        return f"{survey_type}-survey"

    def best_overlap(
        self, question_ids: Sequence[str], surveys: Sequence[CandidateSurvey]
    ) -> Tuple[Optional[CandidateSurvey], float]:
        """Survey with the highest overlap; the earliest survey wins a tie."""
        best, best_ratio = None, 0.0
        for survey in surveys:
            ratio = overlap_ratio(question_ids, survey.question_ids)
            if best is None or ratio > best_ratio:
                best, best_ratio = survey, ratio
        return best, best_ratio

    def infer(self, batch: LegacyBatch, surveys: Sequence[CandidateSurvey]) -> Optional[SurveyIdentityLink]:
        """Infer the survey a legacy batch belongs to.

        Returns None when the batch already carries a survey id.
        """
        if batch.existing_survey_id:
            return None

        question_ids = batch.question_ids
        if question_ids and all(self.resolver.is_template_shaped(qid) for qid in question_ids):
            return SurveyIdentityLink(
                answer_batch_id=batch.batch_id,
                inferred_survey_id=self.survey_id_for_type(batch.survey_type or self.policy.default_survey_type),
                method=InferenceMethod.TEMPLATE_PATTERN,
            )

        usable_ids = [qid for qid in question_ids if isinstance(qid, str) and qid]
        survey, ratio = self.best_overlap(usable_ids, surveys)
        if survey is not None and ratio >= self.policy.overlap_threshold:
            logger.debug("Batch %s matched survey %s (overlap %.2f)", batch.batch_id, survey.id, ratio)
            return SurveyIdentityLink(
                answer_batch_id=batch.batch_id,
                inferred_survey_id=survey.id,
                method=InferenceMethod.OVERLAP_MATCH,
                overlap_ratio=ratio,
            )

        if batch.survey_type:
            fallback_id = self.survey_id_for_type(batch.survey_type)
        else:
            fallback_id = self.policy.unknown_survey_id
        logger.debug("Batch %s unmatched (best overlap %.2f); using %s", batch.batch_id, ratio, fallback_id)
        return SurveyIdentityLink(
            answer_batch_id=batch.batch_id,
            inferred_survey_id=fallback_id,
            method=InferenceMethod.FALLBACK_DEFAULT,
        )


@dataclass
class BackfillSummary:
    total: int = 0
    updated: int = 0
    custom_matched: int = 0
    skipped: int = 0
    errors: int = 0
    dry_run: bool = False
    details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_documents": self.total,
            "updated": self.updated,
            "custom_matched": self.custom_matched,
            "skipped": self.skipped,
            "errors": self.errors,
            "dry_run": self.dry_run,
            "details": list(self.details),
        }


def _dedupe(values):
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


def batch_from_response(response: SurveyResponse) -> LegacyBatch:
    return LegacyBatch(
        batch_id=response.id,
        question_ids=_dedupe(response_question_ids(response)),
        survey_type=response.survey_type or None,
        existing_survey_id=response.survey_id or None,
    )


def load_candidate_surveys(session: Session) -> List[CandidateSurvey]:
    return [CandidateSurvey(id=s.id, question_ids=tuple(survey_question_ids(s))) for s in list_custom_surveys(session)]


def persist_link(session: Session, response: SurveyResponse, link: SurveyIdentityLink) -> None:
    """Write the link and stamp the response with its survey id, in one commit."""
    session.add(
        SurveyIdentityLinkRecord(
            answer_batch_id=link.answer_batch_id,
            survey_id=link.inferred_survey_id,
            method=link.method.value,
            overlap_ratio=link.overlap_ratio,
        )
    )
    if not response.survey_id:
        response.survey_id = link.inferred_survey_id
    session.commit()


def _record_storage_error(session: Session, summary: BackfillSummary, response_id: str, exc: SQLAlchemyError) -> None:
    session.rollback()
    summary.errors += 1
    summary.details.append({"response_id": response_id, "method": "error", "error": str(exc)})
    logger.exception("Storage error on response %s: %s", response_id, exc)


def backfill_survey_links(
    session: Session,
    inferencer: LegacyIdentityInferencer,
    dry_run: bool = False,
) -> BackfillSummary:
    """Infer and persist survey links for every legacy response.

    Args:
        session: SQLAlchemy session.
        inferencer: Configured inferencer.
        dry_run: Infer and report without writing anything.

    Returns:
        BackfillSummary with update/skip/error counts and per-batch details.
    """
    summary = BackfillSummary(dry_run=dry_run)
    surveys = load_candidate_surveys(session)
    responses = list_responses_for_backfill(session)
    summary.total = len(responses)
    logger.info("Survey id backfill: %d response(s), %d custom survey(s)", len(responses), len(surveys))

    for response in responses:
        response_id = response.id
        try:
            already_linked = bool(response.survey_id) or get_identity_link(session, response_id) is not None
        except SQLAlchemyError as exc:
            _record_storage_error(session, summary, response_id, exc)
            continue
        if already_linked:
            summary.skipped += 1
            logger.debug("Skipping %s: survey id already present", response_id)
            continue

        try:
            batch = batch_from_response(response)
        except RecordFormatError as exc:
            summary.errors += 1
            summary.details.append({"response_id": response_id, "method": "error", "error": str(exc)})
            logger.warning("Cannot read response %s: %s", response_id, exc)
            continue

        link = inferencer.infer(batch, surveys)
        detail = {
            "response_id": response_id,
            "question_ids": list(batch.question_ids),
            "survey_id": link.inferred_survey_id,
            **link.to_dict(),
        }

        if not dry_run:
            try:
                persist_link(session, response, link)
            except SQLAlchemyError as exc:
                _record_storage_error(session, summary, response_id, exc)
                continue

        summary.updated += 1
        if link.method is InferenceMethod.OVERLAP_MATCH:
            summary.custom_matched += 1
        summary.details.append(detail)

    logger.info(
        "Survey id backfill finished: %d updated (%d custom matches), %d skipped, %d error(s)%s",
        summary.updated,
        summary.custom_matched,
        summary.skipped,
        summary.errors,
        " [dry run]" if dry_run else "",
    )
    return summary
