"""
Question resolution for SEL Insights.

Maps an opaque question id plus the respondent's grade band to a template
through a fixed fallback chain:

    1. exact id in the respondent's own grade-band set     (confidence 100)
    2. exact id in any other set, registration order       (confidence 75)
    3. shared leading alphabetic prefix, all sets in order  (confidence 50)
    4. unresolved                                          (confidence 0)

Within a tier the first candidate in registration order wins. Resolution
never raises for bad input; an unusable id is simply unresolved.
"""

import dataclasses
import logging
import re
from typing import Any, Optional, Tuple

from sel_insights.config import ResolverPolicy
from sel_insights.models import (
    DOMAIN_CODES,
    ConfigurationError,
    GradeBand,
    MatchResult,
    MatchTier,
    QuestionTemplate,
    TemplateSet,
    grade_band_for,
)
from sel_insights.template_registry import TemplateRegistry

logger = logging.getLogger(__name__)

APPROXIMATE_MATCH_NOTE = "(matched to a similar question)"

_LEADING_ALPHA = re.compile(r"^[A-Za-z]+")

TEMPLATE_ID_PATTERN = re.compile(
    r"^(" + "|".join(sorted(DOMAIN_CODES, key=len, reverse=True)) + r")\d+$"
)


def is_template_shaped(question_id: Any) -> bool:
    """True when the id looks like a built-in template id (domain code + digits)."""
    return isinstance(question_id, str) and bool(TEMPLATE_ID_PATTERN.match(question_id))


class QuestionResolver:
    """Resolves question ids against an injected TemplateRegistry.

    Stateless apart from the registry and policy; safe to share.
    """

    def __init__(self, registry: TemplateRegistry, policy: Optional[ResolverPolicy] = None):
        self.registry = registry
        self.policy = policy or ResolverPolicy()

    def resolve(self, question_id: Any, respondent_grade_band: GradeBand) -> MatchResult:
        if not isinstance(question_id, str) or not question_id.strip():
            logger.debug("Unusable question id %r; unresolved", question_id)
            return MatchResult(question_id=question_id, tier=MatchTier.UNRESOLVED)

        try:
            primary = self.registry.primary_set_for(respondent_grade_band)
        except ConfigurationError:
            # No set for this band: every registered set counts as "other".
            logger.debug("No primary set for band %r", respondent_grade_band)
            primary = None

        if primary is not None:
            template = primary.find(question_id)
            if template is not None:
                return self._matched(question_id, MatchTier.EXACT, template, primary)

        for template_set in self.registry.all_sets_in_registration_order():
            if template_set is primary:
                continue
            template = template_set.find(question_id)
            if template is not None:
                logger.debug("'%s' matched across grade bands in %s", question_id, template_set.id)
                return self._matched(question_id, MatchTier.CROSS_GRADE, template, template_set)

        for prefix in self.heuristic_prefixes(question_id):
            for template_set in self.registry.all_sets_in_registration_order():
                for template in template_set.templates:
                    if template.id.startswith(prefix):
                        logger.debug(
                            "'%s' approximated by '%s' in %s", question_id, template.id, template_set.id
                        )
                        return self._matched(
                            question_id,
                            MatchTier.HEURISTIC,
                            _annotate_approximate(template),
                            template_set,
                            matched_template_id=template.id,
                        )

        logger.debug("'%s' unresolved", question_id)
        return MatchResult(question_id=question_id, tier=MatchTier.UNRESOLVED)

    def resolve_for_grade(self, question_id: Any, grade: int) -> MatchResult:
        """Resolve using a school grade (1-6) instead of a band."""
        return self.resolve(question_id, grade_band_for(grade))

    def heuristic_prefix(self, question_id: str) -> Optional[str]:
        """Longest candidate prefix of the id, or None if the heuristic is off for it."""
        prefixes = self.heuristic_prefixes(question_id)
        return prefixes[0] if prefixes else None

    def heuristic_prefixes(self, question_id: str) -> Tuple[str, ...]:
        """Candidate prefixes for the heuristic tier, longest first.

        The id's leading alphabetic run is capped at max_prefix_length and
        then shortened one letter at a time down to min_prefix_length, so
        "sam1" tries "sam" before falling back to the domain code "sa".
        Empty when the run is shorter than the minimum.
        """
        match = _LEADING_ALPHA.match(question_id)
        if not match:
            return ()
        longest = min(len(match.group(0)), self.policy.max_prefix_length)
        return tuple(
            match.group(0)[:length] for length in range(longest, self.policy.min_prefix_length - 1, -1) if length > 0
        )

    is_template_shaped = staticmethod(is_template_shaped)

    @staticmethod
    def _matched(
        question_id: str,
        tier: MatchTier,
        template: QuestionTemplate,
        template_set: TemplateSet,
        matched_template_id: Optional[str] = None,
    ) -> MatchResult:
        return MatchResult(
            question_id=question_id,
            tier=tier,
            template=template,
            source_set_id=template_set.id,
            source_set_title=template_set.title,
            matched_template_id=matched_template_id or template.id,
        )


def _annotate_approximate(template: QuestionTemplate) -> QuestionTemplate:
    return dataclasses.replace(template, text=f"{template.text} {APPROXIMATE_MATCH_NOTE}")
