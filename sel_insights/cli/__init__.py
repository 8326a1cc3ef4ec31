"""
CLI command modules for SEL Insights.

Provides shared helpers for all CLI command modules.
"""

import os

from sel_insights.database import get_engine, get_session, init_db


def get_db_session(config):
    """Helper to get a database engine and session.

    Uses DATABASE_URL environment variable if set, otherwise falls back to
    the SQLite path in config.
    """
    database_url = os.environ.get("DATABASE_URL")
    engine = get_engine(url=database_url) if database_url else get_engine(config["paths"]["database_file"])
    init_db(engine)
    session = get_session(engine)
    return engine, session
