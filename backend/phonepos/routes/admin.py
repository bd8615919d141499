# Overview: Flask API routes for backup and data maintenance; parses input and returns JSON responses.

# backend/phonepos/routes/admin.py
"""
Backup and maintenance routes.

- Export requires MANAGE_BACKUPS (admin, manager)
- Restore, reset and table clearing require SYSTEM_ADMIN (admin only)

Restore appends records as-is; it does not resolve conflicts with existing
rows. Reset keeps users, roles and sessions.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import backup_service
from ..services.backup_service import BackupError
from ..decorators import require_auth, require_permission

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _backup_payload():
    """Backup JSON from an uploaded file ("file") or the request body."""
    upload = request.files.get("file")
    if upload is not None:
        return upload.read()
    return request.get_json(silent=True)


@admin_bp.get("/backup")
@require_auth
@require_permission("MANAGE_BACKUPS")
def export_backup_route():
    backup = backup_service.export_backup()
    current_app.logger.info(
        "Backup exported by %s: %s records", g.actor.display_name, backup["metadata"]["total_records"]
    )
    return jsonify(backup)


@admin_bp.post("/restore")
@require_auth
@require_permission("SYSTEM_ADMIN")
def restore_backup_route():
    payload = _backup_payload()
    if payload is None:
        return jsonify({"error": "Backup file required"}), 400

    try:
        result = backup_service.restore_backup(payload)
    except BackupError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to restore backup")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result)


@admin_bp.post("/restore/stats")
@require_auth
@require_permission("SYSTEM_ADMIN")
def restore_stats_route():
    """Preview what a backup would restore without writing anything."""
    payload = _backup_payload()
    if payload is None:
        return jsonify({"error": "Backup file required"}), 400

    try:
        return jsonify(backup_service.get_restore_stats(payload))
    except BackupError as e:
        return jsonify({"error": str(e)}), 400


@admin_bp.post("/reset")
@require_auth
@require_permission("SYSTEM_ADMIN")
def reset_data_route():
    """Delete all business data. Body must carry {"confirm": true}."""
    data = request.get_json(silent=True) or {}
    if data.get("confirm") is not True:
        return jsonify({"error": "Confirmation required"}), 400

    current_app.logger.warning("Data reset requested by %s", g.actor.display_name)
    return jsonify(backup_service.clear_all_data())


@admin_bp.delete("/tables/<string:table>")
@require_auth
@require_permission("SYSTEM_ADMIN")
def clear_table_route(table: str):
    try:
        result = backup_service.clear_table(table)
    except BackupError as e:
        return jsonify({"error": str(e)}), 400

    current_app.logger.warning("Table %s cleared by %s", table, g.actor.display_name)
    return jsonify(result)
