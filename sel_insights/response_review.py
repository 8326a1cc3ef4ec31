"""
Response review context for SEL Insights.

Builds the annotated view of one submitted survey: every answer next to the
question it resolved to, plus the match-quality report for the batch. The
result is a plain dict ready for JSON, which is what the AI report
generator and the review screens consume.
"""

import logging
from typing import Any, Dict, List

from sel_insights.match_quality import MatchQualityAggregator, quality_advisories
from sel_insights.models import MatchResult, QualityReport, answer_value_to_raw
from sel_insights.storage import answer_records_for_response

logger = logging.getLogger(__name__)


def _answer_row(index: int, record, match: MatchResult) -> Dict[str, Any]:
    template = match.template
    row = {
        "index": index,
        "question_id": record.question_id,
        "question_text": match.display_text,
        "answer": answer_value_to_raw(record.answer_value),
        "answer_kind": record.answer_value.kind.value,
        "domain": record.domain.value,
        "match_tier": match.tier.value,
        "confidence": match.confidence,
        "source_set_title": match.source_set_title,
        "response_type": None,
        "options": [],
        "scale_labels": None,
        "sub_category": None,
    }
    if template is not None:
        row["response_type"] = template.response_type.value
        row["options"] = list(template.choice_options)
        if template.scale_labels:
            row["scale_labels"] = {"min": template.scale_labels.min, "max": template.scale_labels.max}
        row["sub_category"] = template.sub_category
    return row


def quality_note(report: QualityReport) -> str:
    """One-line summary shown above a reviewed response."""
    if report.total_answers == 0:
        return "No answers submitted."
    return (
        f"{report.total_answers - report.unmatched_answer_count} of {report.total_answers} answers "
        f"matched to a question (average confidence {report.average_confidence:.1f}%, "
        f"{report.confidence_level.value})."
    )


def build_response_review(response, aggregator: MatchQualityAggregator) -> Dict[str, Any]:
    """Annotated answers and quality report for one stored response.

    Args:
        response: A SurveyResponse row.
        aggregator: Shared aggregator (carries the resolver and registry).

    Returns:
        Dict with response metadata, ``answers`` rows, ``quality`` report,
        ``quality_note`` and ``advisories``.

    Raises:
        RecordFormatError: if the stored response cannot be read.
    """
    records = answer_records_for_response(response)
    matches = aggregator.resolve_answers(records)
    report = aggregator.summarize(records)

    answers: List[Dict[str, Any]] = [
        _answer_row(i, record, match) for i, (record, match) in enumerate(zip(records, matches), start=1)
    ]
    logger.debug("Built review for response %s (%d answers)", response.id, len(answers))

    return {
        "response_id": response.id,
        "student_id": response.student_id,
        "survey_id": response.survey_id,
        "survey_type": response.survey_type,
        "grade": response.grade,
        "grade_band": records[0].respondent_grade_band.value if records else None,
        "submitted_at": response.submitted_at.isoformat() if response.submitted_at else None,
        "answers": answers,
        "quality": report.to_dict(),
        "quality_note": quality_note(report),
        "advisories": quality_advisories(report, aggregator.policy),
    }
