"""
Configuration loading and policy constants for SEL Insights.

Thresholds that the platform has always used as fixed numbers (quality
levels, overlap cut-off, heuristic prefix lengths) are read from the
``quality``, ``resolver`` and ``inference`` sections of config.yaml.
Missing keys fall back to the defaults below.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

BUILT_IN_TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "data", "templates")


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load config.yaml and apply environment overrides.

    Raises:
        FileNotFoundError: if the file does not exist.
    """
    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return apply_env_overrides(config)


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    if os.environ.get("DATABASE_PATH"):
        config.setdefault("paths", {})["database_file"] = os.environ["DATABASE_PATH"]
    if os.environ.get("SEL_TEMPLATES_DIR"):
        config.setdefault("paths", {})["templates_dir"] = os.environ["SEL_TEMPLATES_DIR"]
    return config


def get_templates_dir(config: Dict[str, Any]) -> str:
    return config.get("paths", {}).get("templates_dir") or BUILT_IN_TEMPLATES_DIR


def _section(config: Optional[Dict[str, Any]], name: str) -> Dict[str, Any]:
    if not config:
        return {}
    section = config.get(name) or {}
    if not isinstance(section, dict):
        logger.warning("Config section '%s' is not a mapping; using defaults", name)
        return {}
    return section


@dataclass(frozen=True)
class QualityPolicy:
    """Match-rate cut-offs for quality levels and average-confidence cut-offs."""

    excellent: float = 0.9
    good: float = 0.7
    fair: float = 0.5
    high_confidence: float = 85.0
    medium_confidence: float = 60.0

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "QualityPolicy":
        section = _section(config, "quality")
        defaults = cls()
        return cls(
            excellent=float(section.get("excellent", defaults.excellent)),
            good=float(section.get("good", defaults.good)),
            fair=float(section.get("fair", defaults.fair)),
            high_confidence=float(section.get("high_confidence", defaults.high_confidence)),
            medium_confidence=float(section.get("medium_confidence", defaults.medium_confidence)),
        )


@dataclass(frozen=True)
class ResolverPolicy:
    """Bounds on the alphabetic prefix used by heuristic matching."""

    min_prefix_length: int = 2
    max_prefix_length: int = 3

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "ResolverPolicy":
        section = _section(config, "resolver")
        defaults = cls()
        return cls(
            min_prefix_length=int(section.get("min_prefix_length", defaults.min_prefix_length)),
            max_prefix_length=int(section.get("max_prefix_length", defaults.max_prefix_length)),
        )


@dataclass(frozen=True)
class InferencePolicy:
    overlap_threshold: float = 0.8
    default_survey_type: str = "daily"
    unknown_survey_id: str = "unknown-survey"

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "InferencePolicy":
        section = _section(config, "inference")
        defaults = cls()
        return cls(
            overlap_threshold=float(section.get("overlap_threshold", defaults.overlap_threshold)),
            default_survey_type=str(section.get("default_survey_type", defaults.default_survey_type)),
            unknown_survey_id=str(section.get("unknown_survey_id", defaults.unknown_survey_id)),
        )
