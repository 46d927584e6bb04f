# Overview: Flask API routes for school off-days (parent lookup and admin management).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth
from ..errors import InvalidInputError, SchoolBitesError
from ..services import offday_service
from ..services.calendar_service import add_months
from ..time_utils import parse_iso_date, to_iso_date, today_utc


children_bp = Blueprint("children", __name__, url_prefix="/api/children")
offdays_admin_bp = Blueprint("offdays_admin", __name__, url_prefix="/api/admin/off-days")


@children_bp.get("/<int:child_id>/off-days")
@require_auth
def list_child_off_days_route(child_id: int):
    """
    Days without delivery for the child's school, for the order form.

    Query params:
    - start_date: YYYY-MM-DD (default: today)
    - end_date: YYYY-MM-DD (default: start + OFF_DAY_LOOKAHEAD_MONTHS)

    Returns:
        200: {"child_id": 3, "dates": ["2024-07-03", ...]}
    """
    try:
        start_arg = request.args.get("start_date")
        end_arg = request.args.get("end_date")
        start = parse_iso_date(start_arg, "start_date") if start_arg else today_utc()
        if end_arg:
            end = parse_iso_date(end_arg, "end_date")
        else:
            end = add_months(start, current_app.config["OFF_DAY_LOOKAHEAD_MONTHS"])

        days = offday_service.list_non_billable_days_for_child(child_id, g.current_user, start, end)
        return jsonify({"child_id": child_id, "dates": [to_iso_date(d) for d in days]}), 200
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code


@offdays_admin_bp.get("/")
@require_auth
@require_admin
def list_off_days_route():
    """
    Query params:
    - school_id: filter by school (optional)
    - start_date / end_date: YYYY-MM-DD bounds (optional)
    """
    try:
        school_id = request.args.get("school_id", type=int)
        start_arg = request.args.get("start_date")
        end_arg = request.args.get("end_date")
        off_days = offday_service.list_off_days(
            school_id=school_id,
            start=parse_iso_date(start_arg, "start_date") if start_arg else None,
            end=parse_iso_date(end_arg, "end_date") if end_arg else None,
        )
        return jsonify({"off_days": [o.to_dict() for o in off_days]}), 200
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code


@offdays_admin_bp.post("/")
@require_auth
@require_admin
def create_off_days_route():
    """
    Create off-days for a date range across schools.

    Request body:
    {
        "start_date": "2024-12-23",
        "end_date": "2025-01-03",
        "school_ids": [1, 2],
        "reason": "Winter break"  (optional)
    }

    Returns:
        201: {"created": 20, "skipped": 4}
    """
    try:
        data = request.get_json(silent=True) or {}
        school_ids = data.get("school_ids")
        if not isinstance(school_ids, list) or not all(
            isinstance(sid, int) and not isinstance(sid, bool) for sid in school_ids
        ):
            raise InvalidInputError("school_ids must be a list of integers")
        reason = data.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise InvalidInputError("reason must be text")

        result = offday_service.create_off_days(
            parse_iso_date(data.get("start_date"), "start_date"),
            parse_iso_date(data.get("end_date"), "end_date"),
            school_ids,
            reason,
        )
        return jsonify(result), 201
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create off-days")
        return jsonify({"error": "Internal server error"}), 500


@offdays_admin_bp.delete("/<int:off_day_id>")
@require_auth
@require_admin
def delete_off_day_route(off_day_id: int):
    try:
        offday_service.delete_off_day(off_day_id)
        return "", 204
    except SchoolBitesError as e:
        return jsonify({"error": str(e)}), e.status_code
