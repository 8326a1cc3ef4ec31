"""Tests for sel_insights/storage.py: record conversion, queries and JSON export import."""

from datetime import datetime

import pytest

from sel_insights.database import Survey, SurveyResponse
from sel_insights.models import AnswerKind, GradeBand, RecordFormatError, SELDomain
from sel_insights.storage import (
    answer_records_for_response,
    answer_records_for_student,
    import_export_document,
    list_custom_surveys,
    response_question_ids,
    survey_question_ids,
)


class TestAnswerRecords:
    def test_conversion(self, db_session, add_response):
        response = add_response(
            db_session,
            "r1",
            [
                {"questionId": "sa1", "answer": 4, "domain": "selfAwareness"},
                {"questionId": "sa2", "answer": ["Happy"], "domain": "selfAwareness"},
                {"questionId": "open1", "answer": "recess", "domain": "mystery"},
            ],
            grade=5,
        )
        records = answer_records_for_response(response)
        assert [r.question_id for r in records] == ["sa1", "sa2", "open1"]
        assert all(r.respondent_grade_band is GradeBand.UPPER for r in records)
        assert records[1].answer_value.kind is AnswerKind.LIST
        assert records[2].domain is SELDomain.UNRECOGNIZED

    def test_missing_question_id_kept(self, db_session, add_response):
        response = add_response(db_session, "r1", [{"answer": 2, "domain": "selfManagement"}])
        assert answer_records_for_response(response)[0].question_id is None

    def test_missing_grade(self, db_session, add_response, make_answers):
        response = add_response(db_session, "r1", make_answers("sa1"), grade=None)
        with pytest.raises(RecordFormatError):
            answer_records_for_response(response)

    def test_answers_not_a_list(self, db_session, add_response):
        response = add_response(db_session, "r1", {"sa1": 4})
        with pytest.raises(RecordFormatError):
            response_question_ids(response)

    def test_answer_not_an_object(self, db_session, add_response):
        response = add_response(db_session, "r1", ["sa1"])
        with pytest.raises(RecordFormatError):
            answer_records_for_response(response)

    def test_student_records_skip_bad_documents(self, db_session, add_response, make_answers):
        add_response(db_session, "r1", make_answers("sa1", "sm1"))
        add_response(db_session, "r2", "not json", minutes=1)
        add_response(db_session, "r3", make_answers("rs1"), minutes=2)
        add_response(db_session, "r4", make_answers("rdm1"), student_id="someone-else")
        records = answer_records_for_student(db_session, "student-1")
        assert [r.question_id for r in records] == ["sa1", "sm1", "rs1"]


class TestSurveys:
    def test_creation_order(self, db_session, add_survey):
        add_survey(db_session, "late", ["x1"], minutes=10)
        add_survey(db_session, "early", ["x2"], minutes=0)
        assert [s.id for s in list_custom_surveys(db_session)] == ["early", "late"]

    def test_question_ids_filtered(self, db_session, add_survey):
        survey = add_survey(db_session, "s1", ["x1", 7, None, "x2"])
        assert survey_question_ids(survey) == ["x1", "x2"]


class TestImportExportDocument:
    EXPORT = {
        "surveys": [
            {
                "id": "s1",
                "title": "Friendship check",
                "type": "custom",
                "teacherId": "t1",
                "questions": [{"id": "f1", "text": "..."}, {"id": "f2", "text": "..."}],
                "createdAt": "2024-02-01T08:00:00Z",
            },
            {"id": "s2", "questionIds": ["g1"], "createdAt": 1706774400},
        ],
        "responses": [
            {
                "id": "r1",
                "studentId": "stu",
                "surveyType": "daily",
                "grade": 4,
                "responses": [{"questionId": "sa1", "answer": 3, "domain": "selfAwareness"}],
                "submittedAt": "2024-02-02T08:00:00+09:00",
            },
            {"id": "r2", "grade": "four", "responses": []},
            {"id": "r3", "grade": 5, "responses": "oops"},
            "not an object",
        ],
    }

    def test_import(self, db_session):
        counts, errors = import_export_document(db_session, self.EXPORT)
        assert counts == {"surveys": 2, "responses": 1, "skipped": 0}
        assert len(errors) == 3
        assert any("responses[2]" in e for e in errors)

        survey = db_session.query(Survey).filter_by(id="s1").one()
        assert survey.question_ids == ["f1", "f2"]
        assert survey.created_at == datetime(2024, 2, 1, 8, 0, 0)

        response = db_session.query(SurveyResponse).filter_by(id="r1").one()
        assert response.survey_id is None
        assert response.submitted_at == datetime(2024, 2, 1, 23, 0, 0)

    def test_reimport_skips_existing(self, db_session):
        import_export_document(db_session, self.EXPORT)
        counts, _ = import_export_document(db_session, self.EXPORT)
        assert counts == {"surveys": 0, "responses": 0, "skipped": 3}

    def test_rejects_non_object(self, db_session):
        counts, errors = import_export_document(db_session, [1, 2])
        assert counts["responses"] == 0
        assert errors

    def test_section_not_a_list(self, db_session):
        counts, errors = import_export_document(db_session, {"surveys": {"id": "s1"}})
        assert errors == ["'surveys' must be an array"]

    @pytest.mark.parametrize("stamp", [1e20, -1e20])
    def test_out_of_range_timestamp_reported(self, db_session, stamp):
        data = {
            "surveys": [
                {"id": "s1", "questionIds": ["x1"], "createdAt": stamp},
                {"id": "s2", "questionIds": ["x2"]},
            ],
            "responses": [{"id": "r1", "grade": 3, "responses": [], "submittedAt": stamp}],
        }
        counts, errors = import_export_document(db_session, data)
        assert counts == {"surveys": 1, "responses": 0, "skipped": 0}
        assert errors == ["surveys[1]: Survey s1: invalid createdAt", "responses[1]: Response r1: invalid submittedAt"]
        assert db_session.query(Survey).filter_by(id="s2").count() == 1
