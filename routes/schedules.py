import azure.functions as func
import logging
from utils.cors import cors_response, json_response
from utils.parsing import maybe_ymd, parse_uuid, parse_uuid_list
from services.errors import NotFoundError, ValidationError
from services.recurrence import MILEAGE_FIELDS, TIME_FIELDS
from services.schedule_service import (
    create_service_schedule,
    get_service_schedule,
    update_service_schedule,
    soft_delete_service_schedule,
)
from utils.http import error_response, json_body

logger = logging.getLogger(__name__)
bp = func.Blueprint()


def _recurrence_from_body(body: dict) -> dict:
    """Pick the recurrence fields out of a request body; anchor_date arrives as YYYY-MM-DD."""
    fields = {k: body[k] for k in TIME_FIELDS + MILEAGE_FIELDS if body.get(k) is not None}
    if "anchor_date" in fields:
        fields["anchor_date"] = maybe_ymd(fields["anchor_date"])
    return fields


def _serialize_schedule(s) -> dict:
    return {
        "id": str(s.id),
        "program_id": str(s.program_id),
        "name": s.name,
        "schedule_type": s.schedule_type.name,
        "interval_value": s.interval_value,
        "interval_unit": (s.interval_unit.name if s.interval_unit else None),
        "buffer_value": s.buffer_value,
        "buffer_unit": (s.buffer_unit.name if s.buffer_unit else None),
        "anchor_date": (s.anchor_date.isoformat() if s.anchor_date else None),
        "mileage_interval": s.mileage_interval,
        "mileage_buffer": s.mileage_buffer,
        "anchor_mileage": s.anchor_mileage,
        "is_active": s.is_active,
        "tasks": [{"id": str(t.id), "name": t.name} for t in s.tasks],
    }


@bp.function_name(name="ServiceSchedules")
@bp.route(route="service-schedules", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_schedules(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        body = json_body(req)
        if not body.get("program_id"):
            return json_response({"error": "Missing program_id"}, 400)
        s = create_service_schedule(
            parse_uuid(body["program_id"], "program ID"),
            body.get("name"),
            parse_uuid_list(body.get("task_ids"), "task ID"),
            **_recurrence_from_body(body),
        )
        return json_response(_serialize_schedule(s), 201)
    except (NotFoundError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Failed to create service schedule")
        return error_response(e)


@bp.function_name(name="ServiceScheduleItem")
@bp.route(route="service-schedules/{schedule_id}", methods=["GET", "PUT", "DELETE", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_schedule_item(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        sid = parse_uuid(req.route_params["schedule_id"], "schedule ID")

        if req.method == "GET":
            s = get_service_schedule(sid)
            if not s:
                return json_response({"error": "Not found"}, 404)
            return json_response(_serialize_schedule(s))

        if req.method == "PUT":
            body = json_body(req)
            recurrence = _recurrence_from_body(body)
            s = update_service_schedule(
                sid,
                name=body.get("name"),
                task_ids=(parse_uuid_list(body["task_ids"], "task ID") if "task_ids" in body else None),
                recurrence=(recurrence or None),
            )
            return json_response(_serialize_schedule(s))

        # DELETE
        ok = soft_delete_service_schedule(sid)
        return cors_response("Deleted" if ok else "Not found", 200 if ok else 404)
    except (NotFoundError, ValidationError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Failed to handle service schedule request")
        return error_response(e)
