"""
Match-quality aggregation for SEL Insights.

Summarizes how well a batch of answer records lines up with the template
registry. The summary gates downstream AI reporting: a ``poor`` quality
level means generated insights should be trusted less, not that the
feature failed.

Conventions:
    - match_rate counts unique question ids, so a question answered many
      times weighs the same as one answered once.
    - An empty batch has match_rate 1.0 (vacuously perfect) and average
      confidence 100.0; nothing in it failed to match.
    - Domain distribution uses the domain recorded on each answer, not the
      resolved template's domain, so drift stays visible.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sel_insights.config import QualityPolicy
from sel_insights.models import (
    AnswerKind,
    AnswerRecord,
    ConfidenceLevel,
    MatchResult,
    MatchTier,
    QualityLevel,
    QualityReport,
    SELDomain,
)
from sel_insights.question_resolver import QuestionResolver

logger = logging.getLogger(__name__)


def classify_quality(match_rate: float, policy: Optional[QualityPolicy] = None) -> QualityLevel:
    """Map a match rate to a quality level.

    Args:
        match_rate: Fraction of unique ids matched exactly or cross-grade.
        policy: Threshold policy (defaults 0.9 / 0.7 / 0.5).

    Returns:
        One of excellent, good, fair, poor.
    """
    policy = policy or QualityPolicy()
    if match_rate >= policy.excellent:
        return QualityLevel.EXCELLENT
    elif match_rate >= policy.good:
        return QualityLevel.GOOD
    elif match_rate >= policy.fair:
        return QualityLevel.FAIR
    else:
        return QualityLevel.POOR


def classify_confidence(average_confidence: float, policy: Optional[QualityPolicy] = None) -> ConfidenceLevel:
    policy = policy or QualityPolicy()
    if average_confidence >= policy.high_confidence:
        return ConfidenceLevel.HIGH
    elif average_confidence >= policy.medium_confidence:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


class MatchQualityAggregator:
    """Runs the resolver over answer batches and folds the results into reports.

    Holds no per-batch state; each call builds its own memo.
    """

    def __init__(self, resolver: QuestionResolver, policy: Optional[QualityPolicy] = None):
        self.resolver = resolver
        self.policy = policy or QualityPolicy()

    def _resolve_unique(self, records: List[AnswerRecord]) -> Dict[object, MatchResult]:
        """Resolve each distinct question id once, in first-seen order.

        Ids are keyed by value; an id repeated with a different grade band
        keeps the result from its first occurrence.
        """
        memo: Dict[object, MatchResult] = {}
        for record in records:
            key = _memo_key(record.question_id)
            if key in memo:
                continue
            memo[key] = self.resolver.resolve(record.question_id, record.respondent_grade_band)
        return memo

    def resolve_answers(self, records: Iterable[AnswerRecord]) -> List[MatchResult]:
        """Per-answer match results, in record order."""
        records = list(records)
        memo = self._resolve_unique(records)
        return [memo[_memo_key(r.question_id)] for r in records]

    def summarize(self, records: Iterable[AnswerRecord]) -> QualityReport:
        records = list(records)
        memo = self._resolve_unique(records)
        unique_results = list(memo.values())

        counts_by_tier = {tier: 0 for tier in MatchTier}
        for result in unique_results:
            counts_by_tier[result.tier] += 1

        if unique_results:
            matched = counts_by_tier[MatchTier.EXACT] + counts_by_tier[MatchTier.CROSS_GRADE]
            match_rate = matched / len(unique_results)
        else:
            match_rate = 1.0

        domain_distribution = {domain: 0 for domain in SELDomain}
        answer_type_distribution = {kind: 0 for kind in AnswerKind}
        confidence_total = 0
        unmatched_answers = 0
        for record in records:
            domain_distribution[record.domain] += 1
            answer_type_distribution[record.answer_value.kind] += 1
            result = memo[_memo_key(record.question_id)]
            confidence_total += result.confidence
            if not result.resolved:
                unmatched_answers += 1

        average_confidence = round(confidence_total / len(records), 1) if records else 100.0

        report = QualityReport(
            total_answers=len(records),
            counts_by_tier=counts_by_tier,
            match_rate=match_rate,
            domain_distribution=domain_distribution,
            answer_type_distribution=answer_type_distribution,
            quality_level=classify_quality(match_rate, self.policy),
            unique_question_count=len(unique_results),
            unmatched_answer_count=unmatched_answers,
            average_confidence=average_confidence,
            confidence_level=classify_confidence(average_confidence, self.policy),
            question_matches=tuple(unique_results),
        )
        logger.debug(
            "Quality summary: %d answers, %d unique ids, match rate %.3f (%s)",
            report.total_answers,
            report.unique_question_count,
            report.match_rate,
            report.quality_level.value,
        )
        return report


def _memo_key(question_id):
    # Unhashable ids (e.g. a list stored by mistake) still need a stable key.
    try:
        hash(question_id)
    except TypeError:
        return ("unhashable", repr(question_id))
    return question_id


def quality_advisories(report: QualityReport, policy: Optional[QualityPolicy] = None) -> List[str]:
    """Human-readable advisories for a report, most severe first."""
    policy = policy or QualityPolicy()
    advisories = []
    if report.total_answers == 0:
        advisories.append("No survey answers to analyze yet.")
        return advisories
    if report.quality_level is QualityLevel.POOR:
        advisories.append(
            f"Question match rate is below {policy.fair:.0%}. AI report quality may be limited; "
            "check the survey templates and question id scheme."
        )
    if report.match_rate < 1.0:
        advisory = "Some questions did not match a template exactly."
        if report.unmatched_answer_count:
            advisory += (
                f" {report.unmatched_answer_count} answer(s) could not be matched at all "
                "and may be left out of the analysis."
            )
        advisories.append(advisory)
    if report.counts_by_tier[MatchTier.HEURISTIC]:
        advisories.append(
            f"{report.counts_by_tier[MatchTier.HEURISTIC]} question(s) were matched to a "
            "similar question only; treat their text as approximate."
        )
    return advisories
