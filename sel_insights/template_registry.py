"""Template set catalog for SEL Insights.

Template sets ship as JSON files in sel_insights/data/templates/ (one file
per grade band). They are validated with validate_template_set() and loaded
once at startup into an immutable TemplateRegistry, which is then passed to
the resolver and aggregator.
"""

import json
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sel_insights.config import BUILT_IN_TEMPLATES_DIR
from sel_insights.models import (
    ConfigurationError,
    GradeBand,
    QuestionTemplate,
    ResponseType,
    ScaleLabels,
    SELDomain,
    TemplateSet,
)

logger = logging.getLogger(__name__)

TEMPLATE_VERSION = "1.0"


class TemplateRegistry:
    """Read-only catalog of template sets, one per grade band.

    Registration order is preserved; heuristic matching and legacy identity
    inference iterate sets in that order.
    """

    def __init__(self, template_sets: Iterable[TemplateSet]):
        sets = tuple(template_sets)
        if not sets:
            raise ConfigurationError("Template registry needs at least one template set")

        by_band: Dict[GradeBand, TemplateSet] = {}
        for template_set in sets:
            if template_set.grade_band in by_band:
                raise ConfigurationError(
                    f"Grade band '{template_set.grade_band.value}' registered twice "
                    f"({by_band[template_set.grade_band].id}, {template_set.id})"
                )
            by_band[template_set.grade_band] = template_set

        self._sets = sets
        self._by_band = by_band

    def primary_set_for(self, grade_band: GradeBand) -> TemplateSet:
        try:
            return self._by_band[grade_band]
        except KeyError:
            raise ConfigurationError(f"No template set registered for grade band '{grade_band}'") from None

    def all_sets_in_registration_order(self) -> Tuple[TemplateSet, ...]:
        return self._sets

    def __len__(self):
        return len(self._sets)

    def __repr__(self):
        return f"TemplateRegistry({[s.id for s in self._sets]!r})"


def validate_template_set(data: Any) -> Tuple[bool, List[str]]:
    """Validate the JSON structure of a template set file.

    Args:
        data: Parsed JSON data to validate.

    Returns:
        Tuple of (is_valid, list_of_error_strings).
    """
    errors = []

    if not isinstance(data, dict):
        return False, ["Template set must be a JSON object"]

    for key in ("template_version", "id", "grade_band", "questions"):
        if key not in data:
            errors.append(f"Missing required field: {key}")

    version = data.get("template_version")
    if version and version != TEMPLATE_VERSION:
        errors.append(f"Unsupported template version: {version} (expected {TEMPLATE_VERSION})")

    if "grade_band" in data:
        try:
            GradeBand.from_label(data["grade_band"])
        except ValueError as exc:
            errors.append(str(exc))

    questions = data.get("questions")
    if questions is None:
        return len(errors) == 0, errors
    if not isinstance(questions, list):
        errors.append("'questions' must be an array")
        return False, errors
    if not questions:
        errors.append("Template set must contain at least one question")

    seen_ids = set()
    for i, q in enumerate(questions):
        if not isinstance(q, dict):
            errors.append(f"Question {i + 1}: must be a JSON object")
            continue
        qid = q.get("id")
        if not qid or not isinstance(qid, str):
            errors.append(f"Question {i + 1}: missing 'id' field")
        elif qid in seen_ids:
            errors.append(f"Question {i + 1}: duplicate id '{qid}'")
        else:
            seen_ids.add(qid)
        if not q.get("text"):
            errors.append(f"Question {i + 1}: missing 'text' field")
        if ResponseType.parse(q.get("response_type")) is ResponseType.UNRECOGNIZED:
            errors.append(f"Question {i + 1}: unknown response_type {q.get('response_type')!r}")
        if SELDomain.parse(q.get("domain")) is SELDomain.UNRECOGNIZED:
            errors.append(f"Question {i + 1}: unknown domain {q.get('domain')!r}")
        weight = q.get("analysis_weight", 1)
        if not isinstance(weight, int) or isinstance(weight, bool) or weight < 1:
            errors.append(f"Question {i + 1}: analysis_weight must be a positive integer")

    return len(errors) == 0, errors


def _template_from_dict(data: Dict[str, Any], grade_band: GradeBand) -> QuestionTemplate:
    labels = data.get("scale_labels")
    return QuestionTemplate(
        id=data["id"],
        text=data["text"],
        response_type=ResponseType.parse(data.get("response_type")),
        domain=SELDomain.parse(data.get("domain")),
        grade_band=grade_band,
        choice_options=tuple(data.get("options") or ()),
        scale_labels=ScaleLabels(min=labels["min"], max=labels["max"]) if labels else None,
        sub_category=data.get("sub_category"),
        analysis_weight=data.get("analysis_weight", 1),
        required=bool(data.get("required", True)),
    )


def template_set_from_dict(data: Dict[str, Any]) -> TemplateSet:
    """Build a TemplateSet from validated JSON data.

    Raises:
        ConfigurationError: if the data does not pass validation.
    """
    is_valid, errors = validate_template_set(data)
    if not is_valid:
        raise ConfigurationError("Invalid template set: " + "; ".join(errors))

    grade_band = GradeBand.from_label(data["grade_band"])
    return TemplateSet(
        id=data["id"],
        title=data.get("title", data["id"]),
        grade_band=grade_band,
        templates=tuple(_template_from_dict(q, grade_band) for q in data["questions"]),
    )


def _load_json_file(filepath: str) -> Any:
    try:
        with open(filepath, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Failed to load template set {filepath}: {exc}") from exc


def load_registry(directory: Optional[str] = None) -> TemplateRegistry:
    """Load every ``*.json`` template set in a directory.

    Files are registered in filename order.

    Args:
        directory: Directory holding template set files. Defaults to the
            built-in sets shipped with the package.

    Raises:
        ConfigurationError: if the directory is missing, holds no template
            sets, or any file is invalid.
    """
    if directory is None:
        directory = BUILT_IN_TEMPLATES_DIR

    if not os.path.isdir(directory):
        raise ConfigurationError(f"Template directory not found: {directory}")

    template_sets = []
    for filename in sorted(os.listdir(directory)):
        if not filename.endswith(".json"):
            continue
        filepath = os.path.join(directory, filename)
        if not os.path.isfile(filepath):
            continue
        try:
            template_sets.append(template_set_from_dict(_load_json_file(filepath)))
        except ConfigurationError as exc:
            raise ConfigurationError(f"{filename}: {exc}") from exc
        logger.debug("Registered template set from %s", filepath)

    registry = TemplateRegistry(template_sets)
    logger.info("Loaded %d template set(s) from %s", len(registry), directory)
    return registry


def describe_registry(registry: TemplateRegistry) -> List[Dict[str, Any]]:
    """Summaries of each registered set, in registration order."""
    summaries = []
    for template_set in registry.all_sets_in_registration_order():
        domain_counts: Dict[str, int] = {}
        for template in template_set.templates:
            domain_counts[template.domain.value] = domain_counts.get(template.domain.value, 0) + 1
        summaries.append(
            {
                "id": template_set.id,
                "title": template_set.title,
                "grade_band": template_set.grade_band.value,
                "question_count": len(template_set.templates),
                "domains": domain_counts,
            }
        )
    return summaries
