"""
Storage boundary for SEL Insights.

Converts stored survey documents into typed answer records and back, runs
the queries the engine needs, and imports JSON exports of the survey
document store (``{"surveys": [...], "responses": [...]}``) into the
database.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from sel_insights.database import Survey, SurveyIdentityLinkRecord, SurveyResponse
from sel_insights.models import (
    AnswerRecord,
    RecordFormatError,
    SELDomain,
    answer_value_from_raw,
    grade_band_for,
)

logger = logging.getLogger(__name__)


def _load_json_field(value: Any) -> Any:
    """JSON columns on SQLite can come back as raw strings."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, ValueError):
            return value
    return value


def response_items(response: SurveyResponse) -> List[Dict[str, Any]]:
    """The raw answer dicts of a stored response.

    Raises:
        RecordFormatError: if the stored answers are not a list of objects.
    """
    items = _load_json_field(response.responses)
    if items is None:
        return []
    if not isinstance(items, list):
        raise RecordFormatError(f"Response {response.id}: 'responses' must be a list")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise RecordFormatError(f"Response {response.id}: answer {i + 1} is not an object")
    return items


def response_question_ids(response: SurveyResponse) -> List[Any]:
    return [item.get("questionId") for item in response_items(response)]


def answer_records_for_response(response: SurveyResponse) -> List[AnswerRecord]:
    """Convert one stored response into answer records.

    A missing or malformed question id is kept as-is; resolution reports
    it as unresolved.

    Raises:
        RecordFormatError: if the document has no usable grade or answers.
    """
    if response.grade is None:
        raise RecordFormatError(f"Response {response.id}: missing grade")
    try:
        grade_band = grade_band_for(response.grade)
    except (TypeError, ValueError) as exc:
        raise RecordFormatError(f"Response {response.id}: invalid grade {response.grade!r}") from exc

    return [
        AnswerRecord(
            question_id=item.get("questionId"),
            answer_value=answer_value_from_raw(item.get("answer")),
            domain=SELDomain.parse(item.get("domain")),
            respondent_grade_band=grade_band,
        )
        for item in response_items(response)
    ]


def get_response(session: Session, response_id: str) -> Optional[SurveyResponse]:
    return session.query(SurveyResponse).filter_by(id=response_id).first()


def list_student_responses(session: Session, student_id: str) -> List[SurveyResponse]:
    return (
        session.query(SurveyResponse)
        .filter_by(student_id=student_id)
        .order_by(SurveyResponse.submitted_at, SurveyResponse.id)
        .all()
    )


def answer_records_for_student(session: Session, student_id: str) -> List[AnswerRecord]:
    """All answer records a student has submitted, oldest response first.

    Responses that cannot be converted are skipped with a warning.
    """
    records = []
    for response in list_student_responses(session, student_id):
        try:
            records.extend(answer_records_for_response(response))
        except RecordFormatError as exc:
            logger.warning("Skipping response: %s", exc)
    return records


def list_custom_surveys(session: Session) -> List[Survey]:
    """Custom survey definitions in creation order."""
    return session.query(Survey).order_by(Survey.created_at, Survey.id).all()


def survey_question_ids(survey: Survey) -> List[str]:
    ids = _load_json_field(survey.question_ids)
    if not isinstance(ids, list):
        return []
    return [qid for qid in ids if isinstance(qid, str)]


def list_responses_for_backfill(session: Session) -> List[SurveyResponse]:
    return session.query(SurveyResponse).order_by(SurveyResponse.submitted_at, SurveyResponse.id).all()


def get_identity_link(session: Session, response_id: str) -> Optional[SurveyIdentityLinkRecord]:
    return session.query(SurveyIdentityLinkRecord).filter_by(answer_batch_id=response_id).first()


# ---------------------------------------------------------------------------
# JSON export import
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"Timestamp out of range: {value!r}") from exc
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _survey_from_document(doc: Dict[str, Any]) -> Survey:
    if not doc.get("id"):
        raise RecordFormatError("Survey is missing 'id'")
    if "questionIds" in doc:
        question_ids = doc["questionIds"]
    else:
        questions = doc.get("questions") or []
        if not isinstance(questions, list):
            raise RecordFormatError(f"Survey {doc['id']}: 'questions' must be a list")
        question_ids = [q.get("id") for q in questions if isinstance(q, dict) and q.get("id")]
    if not isinstance(question_ids, list):
        raise RecordFormatError(f"Survey {doc['id']}: question ids must be a list")

    try:
        created_at = _parse_timestamp(doc.get("createdAt"))
    except ValueError as exc:
        raise RecordFormatError(f"Survey {doc['id']}: invalid createdAt") from exc

    return Survey(
        id=str(doc["id"]),
        title=doc.get("title", ""),
        description=doc.get("description", ""),
        survey_type=doc.get("type"),
        teacher_id=doc.get("teacherId"),
        class_code=doc.get("classCode"),
        question_ids=question_ids,
        created_at=created_at or datetime.utcnow(),
    )


def _response_from_document(doc: Dict[str, Any]) -> SurveyResponse:
    if not doc.get("id"):
        raise RecordFormatError("Response is missing 'id'")
    responses = doc.get("responses")
    if not isinstance(responses, list):
        raise RecordFormatError(f"Response {doc['id']}: 'responses' must be a list")
    grade = doc.get("grade")
    if not isinstance(grade, int) or isinstance(grade, bool):
        raise RecordFormatError(f"Response {doc['id']}: 'grade' must be an integer")

    try:
        submitted_at = _parse_timestamp(doc.get("submittedAt"))
    except ValueError as exc:
        raise RecordFormatError(f"Response {doc['id']}: invalid submittedAt") from exc

    return SurveyResponse(
        id=str(doc["id"]),
        student_id=doc.get("studentId"),
        survey_id=doc.get("surveyId") or None,
        survey_type=doc.get("surveyType"),
        grade=grade,
        class_code=doc.get("classCode"),
        responses=responses,
        submitted_at=submitted_at or datetime.utcnow(),
    )


def import_export_document(session: Session, data: Any) -> Tuple[Dict[str, int], List[str]]:
    """Import surveys and responses from a document-store export.

    Documents whose id already exists are skipped, so re-importing the
    same export is harmless. Malformed documents are reported and skipped.

    Args:
        session: SQLAlchemy session.
        data: Parsed export, ``{"surveys": [...], "responses": [...]}``.

    Returns:
        Tuple of (counts, errors). counts has keys surveys, responses, skipped.
    """
    counts = {"surveys": 0, "responses": 0, "skipped": 0}
    errors: List[str] = []

    if not isinstance(data, dict):
        return counts, ["Export must be a JSON object with 'surveys' and/or 'responses'"]

    for key, model, build in (
        ("surveys", Survey, _survey_from_document),
        ("responses", SurveyResponse, _response_from_document),
    ):
        documents = data.get(key) or []
        if not isinstance(documents, list):
            errors.append(f"'{key}' must be an array")
            continue
        for i, doc in enumerate(documents, start=1):
            if not isinstance(doc, dict):
                errors.append(f"{key}[{i}]: must be a JSON object")
                continue
            try:
                record = build(doc)
            except RecordFormatError as exc:
                errors.append(f"{key}[{i}]: {exc}")
                continue
            if session.query(model).filter_by(id=record.id).first() is not None:
                counts["skipped"] += 1
                continue
            session.add(record)
            counts[key] += 1

    session.commit()
    if errors:
        logger.warning("Import finished with %d error(s)", len(errors))
    logger.info(
        "Imported %d survey(s) and %d response(s); %d already present",
        counts["surveys"],
        counts["responses"],
        counts["skipped"],
    )
    return counts, errors
