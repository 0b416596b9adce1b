"""Admin endpoints for the group/cohort mapping table and manual runs."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, abort

from cohortsync.api.decorators import require_api_token
from cohortsync.core.task import CohortSyncTask
from scripts import audit

bp = Blueprint("mappings", __name__)


def _store():
    return current_app.config["MAPPING_STORE"]


def _is_id(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


@bp.route("/mappings", methods=["GET"])
def list_mappings():
    """List every mapping."""
    mappings = [
        {"external_group_id": m.external_group_id, "local_group_id": m.local_group_id}
        for m in _store().list_mappings()
    ]
    return jsonify({"totalResults": len(mappings), "mappings": mappings})


@bp.route("/mappings", methods=["POST"])
@require_api_token
def create_mapping():
    """Manually link a directory group to a cohort."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    group_id = payload.get("external_group_id")
    cohort_id = payload.get("local_group_id")
    # Ids must be strings so DELETE (ids from the URL path) can match them
    if not _is_id(group_id) or not _is_id(cohort_id):
        abort(400, description="external_group_id and local_group_id must be non-empty strings")

    added = _store().add(group_id, cohort_id)
    audit.safe_log_sync_event(
        "mapping_created",
        group_id=group_id,
        cohort_id=cohort_id,
        operator="api",
        details={"reason": "manual"},
        success=added,
    )
    if not added:
        abort(400, description="Mapping rejected")
    return jsonify({"external_group_id": group_id, "local_group_id": cohort_id}), 201


@bp.route("/mappings/<external_group_id>/<local_group_id>", methods=["DELETE"])
@require_api_token
def delete_mapping(external_group_id: str, local_group_id: str):
    """Remove a mapping; succeeds even if it was already gone."""
    _store().delete_by_pair(external_group_id, local_group_id)
    audit.safe_log_sync_event(
        "mapping_deleted",
        group_id=external_group_id,
        cohort_id=local_group_id,
        operator="api",
        details={"reasons": ["manual"]},
    )
    return ("", 204)


@bp.route("/sync/run", methods=["POST"])
@require_api_token
def run_sync():
    """Trigger one reconciliation run and report its result."""
    cfg = current_app.config["APP_CONFIG"]
    result = CohortSyncTask(cfg, mapping_store=_store(), operator="api").execute()
    return jsonify(result.to_dict())
