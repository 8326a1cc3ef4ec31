"""Tests for sel_insights/match_quality.py: quality reports and advisories."""

import pytest

from sel_insights.config import QualityPolicy
from sel_insights.match_quality import (
    MatchQualityAggregator,
    classify_confidence,
    classify_quality,
    quality_advisories,
)
from sel_insights.models import (
    AnswerKind,
    AnswerRecord,
    ConfidenceLevel,
    GradeBand,
    MatchTier,
    QualityLevel,
    SELDomain,
    answer_value_from_raw,
)
from sel_insights.question_resolver import QuestionResolver


@pytest.fixture
def aggregator(builtin_registry):
    return MatchQualityAggregator(QuestionResolver(builtin_registry))


def record(qid, answer=3, domain=SELDomain.SELF_AWARENESS, band=GradeBand.LOWER):
    return AnswerRecord(
        question_id=qid,
        answer_value=answer_value_from_raw(answer),
        domain=domain,
        respondent_grade_band=band,
    )


class TestClassification:
    @pytest.mark.parametrize(
        "rate,level",
        [
            (1.0, QualityLevel.EXCELLENT),
            (0.9, QualityLevel.EXCELLENT),
            (0.89, QualityLevel.GOOD),
            (0.7, QualityLevel.GOOD),
            (0.5, QualityLevel.FAIR),
            (0.49, QualityLevel.POOR),
            (0.0, QualityLevel.POOR),
        ],
    )
    def test_quality_thresholds(self, rate, level):
        assert classify_quality(rate) is level

    def test_custom_policy(self):
        assert classify_quality(0.9, QualityPolicy(excellent=0.95)) is QualityLevel.GOOD

    def test_confidence_levels(self):
        assert classify_confidence(85) is ConfidenceLevel.HIGH
        assert classify_confidence(60) is ConfidenceLevel.MEDIUM
        assert classify_confidence(59.9) is ConfidenceLevel.LOW


class TestSummarize:
    def test_all_exact(self, aggregator):
        report = aggregator.summarize([record("sa1"), record("sm1"), record("rs2")])
        assert report.match_rate == 1.0
        assert report.quality_level is QualityLevel.EXCELLENT
        assert report.counts_by_tier[MatchTier.EXACT] == 3
        assert report.average_confidence == 100.0
        assert report.confidence_level is ConfidenceLevel.HIGH

    def test_empty_batch(self, aggregator):
        report = aggregator.summarize([])
        assert report.total_answers == 0
        assert report.match_rate == 1.0
        assert report.quality_level is QualityLevel.EXCELLENT
        assert report.average_confidence == 100.0
        assert all(count == 0 for count in report.counts_by_tier.values())

    def test_distributions_are_exhaustive(self, aggregator):
        report = aggregator.summarize([record("sa1")])
        assert set(report.counts_by_tier) == set(MatchTier)
        assert set(report.domain_distribution) == set(SELDomain)
        assert set(report.answer_type_distribution) == set(AnswerKind)

    def test_repeated_id_counts_once_for_rate(self, aggregator):
        records = [record("sa1")] * 10 + [record("custom_q")]
        report = aggregator.summarize(records)
        assert report.total_answers == 11
        assert report.unique_question_count == 2
        assert report.match_rate == 0.5
        assert report.quality_level is QualityLevel.FAIR
        assert report.unmatched_answer_count == 1
        # Average confidence is per answer: (10 * 100 + 0) / 11
        assert report.average_confidence == 90.9

    def test_ten_repeats_of_one_exact_id(self, aggregator):
        report = aggregator.summarize([record("sa1")] * 10)
        assert report.match_rate == 1.0
        assert report.unique_question_count == 1
        assert report.counts_by_tier[MatchTier.EXACT] == 1

    def test_heuristic_and_cross_grade(self, aggregator):
        report = aggregator.summarize([record("sa5"), record("sa99"), record("zz1")])
        assert report.counts_by_tier[MatchTier.CROSS_GRADE] == 1
        assert report.counts_by_tier[MatchTier.HEURISTIC] == 1
        assert report.counts_by_tier[MatchTier.UNRESOLVED] == 1
        # Only exact and cross-grade count as matched.
        assert report.match_rate == pytest.approx(1 / 3)
        assert report.quality_level is QualityLevel.POOR
        assert report.average_confidence == 41.7
        assert report.confidence_level is ConfidenceLevel.LOW

    def test_domain_from_answer_not_template(self, aggregator):
        report = aggregator.summarize([record("sa1", domain=SELDomain.RELATIONSHIP_SKILLS)])
        assert report.domain_distribution[SELDomain.RELATIONSHIP_SKILLS] == 1
        assert report.domain_distribution[SELDomain.SELF_AWARENESS] == 0

    def test_answer_kinds(self, aggregator):
        records = [record("sa1", 4), record("open1", "fun"), record("sa2", ["Happy"]), record("sa3", True)]
        report = aggregator.summarize(records)
        assert report.answer_type_distribution == {
            AnswerKind.NUMERIC: 1,
            AnswerKind.TEXTUAL: 1,
            AnswerKind.LIST: 1,
            AnswerKind.UNRECOGNIZED: 1,
        }

    def test_question_matches_in_first_seen_order(self, aggregator):
        report = aggregator.summarize([record("sm1"), record("sa1"), record("sm1")])
        assert [m.question_id for m in report.question_matches] == ["sm1", "sa1"]

    def test_idempotent(self, aggregator):
        records = [record("sa1"), record("x9"), record("sa5", band=GradeBand.UPPER)]
        assert aggregator.summarize(records) == aggregator.summarize(records)

    def test_unhashable_id(self, aggregator):
        report = aggregator.summarize([record(["sa1"]), record(["sa1"])])
        assert report.unique_question_count == 1
        assert report.counts_by_tier[MatchTier.UNRESOLVED] == 1

    def test_to_dict_uses_plain_keys(self, aggregator):
        data = aggregator.summarize([record("sa1")]).to_dict()
        assert data["counts_by_tier"]["exact"] == 1
        assert data["quality_level"] == "excellent"
        assert data["question_matches"][0]["question_id"] == "sa1"


class TestResolveAnswers:
    def test_one_result_per_answer(self, aggregator):
        results = aggregator.resolve_answers([record("sa1"), record("sa1"), record("nope1")])
        assert len(results) == 3
        assert results[0] is results[1]
        assert not results[2].resolved

    def test_first_occurrence_band_wins(self, aggregator):
        results = aggregator.resolve_answers([record("sa1", band=GradeBand.UPPER), record("sa1")])
        assert results[1].source_set_id == "sel-grade-5-6"


class TestAdvisories:
    def test_empty(self, aggregator):
        assert quality_advisories(aggregator.summarize([])) == ["No survey answers to analyze yet."]

    def test_perfect_batch_has_none(self, aggregator):
        assert quality_advisories(aggregator.summarize([record("sa1")])) == []

    def test_poor_batch(self, aggregator):
        advisories = quality_advisories(aggregator.summarize([record("zz1"), record("sa99")]))
        assert advisories[0].startswith("Question match rate is below 50%")
        assert any("1 answer(s) could not be matched" in a for a in advisories)
        assert any("similar question" in a for a in advisories)

    def test_heuristic_only_batch_has_no_unmatched_count(self, aggregator):
        advisories = quality_advisories(aggregator.summarize([record("sa1"), record("sa99")]))
        assert "Some questions did not match a template exactly." in advisories
        assert not any("could not be matched" in a for a in advisories)
        assert any("similar question" in a for a in advisories)
