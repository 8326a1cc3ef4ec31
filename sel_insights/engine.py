"""
Wiring for the SEL question resolution and data-quality engine.

The CLI and the web app both build one QualityEngine at startup and share
it across every call that needs resolution, quality reports or backfill.
"""

from dataclasses import dataclass

from sel_insights.config import InferencePolicy, QualityPolicy, ResolverPolicy, get_templates_dir
from sel_insights.identity_inference import LegacyIdentityInferencer
from sel_insights.match_quality import MatchQualityAggregator
from sel_insights.question_resolver import QuestionResolver
from sel_insights.template_registry import TemplateRegistry, load_registry


@dataclass
class QualityEngine:
    registry: TemplateRegistry
    resolver: QuestionResolver
    aggregator: MatchQualityAggregator
    inferencer: LegacyIdentityInferencer


def build_quality_engine(config, registry=None):
    """Load the template registry and wire resolver, aggregator and inferencer.

    Args:
        config: Application config dict.
        registry: Pre-built registry; loaded from ``paths.templates_dir``
            (or the built-in sets) when omitted.

    Raises:
        ConfigurationError: if the template sets cannot be loaded.
    """
    if registry is None:
        registry = load_registry(get_templates_dir(config))
    resolver = QuestionResolver(registry, ResolverPolicy.from_config(config))
    return QualityEngine(
        registry=registry,
        resolver=resolver,
        aggregator=MatchQualityAggregator(resolver, QualityPolicy.from_config(config)),
        inferencer=LegacyIdentityInferencer(resolver, InferencePolicy.from_config(config)),
    )
