"""Admin HTTP API blueprints."""
