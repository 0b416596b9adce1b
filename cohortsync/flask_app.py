"""Flask application factory for the cohort sync admin API.

Run with:
    flask --app "cohortsync.flask_app:create_app()" run
"""
from __future__ import annotations
from typing import Optional

from flask import Flask

from cohortsync.config import SyncConfig, load_settings
from cohortsync.core.interfaces import MappingStore
from cohortsync.core.mapping_store import JsonMappingStore


def create_app(cfg: Optional[SyncConfig] = None, mapping_store: Optional[MappingStore] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings (loaded from the environment when omitted)
        mapping_store: Mapping table (JsonMappingStore at cfg.mapping_file when omitted)
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["MAPPING_STORE"] = mapping_store or JsonMappingStore(cfg.mapping_file)
    app.config["JSON_SORT_KEYS"] = False

    from cohortsync.api import health, errors, mappings

    app.register_blueprint(health.bp)
    app.register_blueprint(mappings.bp, url_prefix="/api/v1")
    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    if not cfg.api_token:
        print("[flask_app] WARNING: COHORTSYNC_API_TOKEN not set - mutating endpoints disabled")

    return app
