"""
Flask application factory for the SEL Insights API.
"""

import os

from flask import Flask, g

from sel_insights.config import apply_env_overrides, load_config
from sel_insights.database import get_engine, init_db
from sel_insights.engine import build_quality_engine
from sel_insights.web.blueprints import register_blueprints


def create_app(config=None, registry=None):
    """
    Create and configure the Flask application.

    Args:
        config: Application config dict (paths, thresholds, etc.)
                If None, loads from config.yaml.
        registry: Optional pre-built TemplateRegistry; loaded from the
                  configured templates directory when omitted.

    Returns:
        Configured Flask app instance

    Raises:
        ConfigurationError: if the template sets cannot be loaded.
    """
    app = Flask(__name__)

    if config is None:
        config = load_config()
    else:
        config = apply_env_overrides(config)

    app.config["APP_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = 5 * 1024 * 1024  # 5 MB upload limit

    # Template sets are loaded once; a bad set fails startup, not a request.
    app.config["QUALITY_ENGINE"] = build_quality_engine(config, registry=registry)

    # DATABASE_URL (env var) takes precedence over the SQLite path in config.
    database_url = os.environ.get("DATABASE_URL")
    db_path = config.get("paths", {}).get("database_file", "sel_insights.db")
    engine = get_engine(url=database_url) if database_url else get_engine(db_path)
    init_db(engine)
    app.config["DB_ENGINE"] = engine

    @app.teardown_appcontext
    def close_db_session(exception):
        """Close the database session at the end of each request."""
        session = g.pop("db_session", None)
        if session is not None:
            session.close()

    register_blueprints(app)
    return app
