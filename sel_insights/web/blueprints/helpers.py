"""Shared utilities for SEL Insights blueprint modules."""

from flask import current_app, g

from sel_insights.database import get_session


def _get_session():
    """Get a database session from the shared app engine."""
    if "db_session" not in g:
        engine = current_app.config["DB_ENGINE"]
        g.db_session = get_session(engine)
    return g.db_session


def _get_engine():
    """The QualityEngine built at app startup."""
    return current_app.config["QUALITY_ENGINE"]
