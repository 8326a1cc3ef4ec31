"""Flask JSON API for SEL Insights."""
