"""Flask blueprints for the SEL Insights API."""

from sel_insights.web.blueprints.api import api_bp


def register_blueprints(app):
    """Register all blueprint modules on the Flask app."""
    app.register_blueprint(api_bp)
