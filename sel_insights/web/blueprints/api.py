"""
JSON API routes: template listing, question resolution, match quality,
response review and the legacy survey id backfill.
"""

import logging

from flask import Blueprint, jsonify, request

from sel_insights.identity_inference import backfill_survey_links
from sel_insights.match_quality import quality_advisories
from sel_insights.models import GradeBand, RecordFormatError
from sel_insights.response_review import build_response_review
from sel_insights.storage import answer_records_for_student, get_response, list_student_responses
from sel_insights.template_registry import describe_registry
from sel_insights.web.blueprints.helpers import _get_engine, _get_session

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/api/templates")
def api_templates():
    """List registered template sets."""
    return jsonify({"template_sets": describe_registry(_get_engine().registry)})


@api_bp.route("/api/questions/<question_id>/resolve")
def api_resolve_question(question_id):
    """Resolve a question id. Query: ``grade`` (1-6) or ``band`` (lower/upper)."""
    resolver = _get_engine().resolver
    band = request.args.get("band")
    grade = request.args.get("grade", type=int)
    if band:
        try:
            result = resolver.resolve(question_id, GradeBand.from_label(band))
        except ValueError:
            return jsonify({"error": f"Unknown grade band: {band}"}), 400
    elif grade is not None:
        result = resolver.resolve_for_grade(question_id, grade)
    else:
        return jsonify({"error": "Provide 'grade' or 'band'"}), 400
    return jsonify(result.to_dict())


@api_bp.route("/api/students/<student_id>/quality")
def api_student_quality(student_id):
    """Match-quality report over every answer a student has submitted."""
    session = _get_session()
    if not list_student_responses(session, student_id):
        return jsonify({"error": "No responses found for student"}), 404

    aggregator = _get_engine().aggregator
    report = aggregator.summarize(answer_records_for_student(session, student_id))
    data = report.to_dict()
    data["advisories"] = quality_advisories(report, aggregator.policy)
    return jsonify(data)


@api_bp.route("/api/responses/<response_id>/review")
def api_response_review(response_id):
    """Annotated answers and quality report for one response."""
    session = _get_session()
    response = get_response(session, response_id)
    if not response:
        return jsonify({"error": "Response not found"}), 404
    try:
        review = build_response_review(response, _get_engine().aggregator)
    except RecordFormatError as exc:
        logger.warning("Cannot review response %s: %s", response_id, exc)
        return jsonify({"error": str(exc)}), 422
    return jsonify(review)


@api_bp.route("/api/admin/migrate-survey-ids", methods=["POST"])
def api_migrate_survey_ids():
    """Backfill survey ids on legacy responses. Body: ``{"dry_run": bool}``."""
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    dry_run = bool(payload.get("dry_run", False))
    summary = backfill_survey_links(_get_session(), _get_engine().inferencer, dry_run=dry_run)
    return jsonify({"success": True, **summary.to_dict()})
