import azure.functions as func
import logging
from datetime import datetime, timezone
from decimal import Decimal
from utils.cors import cors_response, json_response
from utils.parsing import maybe_ymd, parse_uuid
from models import ReminderStatus
from services.errors import NotFoundError, ValidationError
from utils.http import error_response, json_body
from services.reminder_sync_service import sync_service_reminders
from services.reminder_service import (
    list_service_reminders,
    complete_service_reminder,
    cancel_service_reminder,
)
from services.vehicle_service import get_vehicle
from services.work_order_service import link_reminder_to_work_order

logger = logging.getLogger(__name__)
bp = func.Blueprint()


def _task_total(tasks, key: str) -> str:
    return str(sum((Decimal(t[key]) for t in tasks or [] if t.get(key) is not None), Decimal("0")))


def _serialize_reminder(r, current_mileage=None, today=None) -> dict:
    """Reminder row plus the figures derived from today's date and the vehicle's odometer."""
    today = today or datetime.now(timezone.utc).date()
    return {
        "id": str(r.id),
        "vehicle_id": str(r.vehicle_id),
        "schedule_id": str(r.schedule_id),
        "program_id": str(r.program_id),
        "work_order_id": (str(r.work_order_id) if r.work_order_id else None),
        "schedule_type": r.schedule_type.name,
        "status": r.status.name,
        "due_date": (r.due_date.isoformat() if r.due_date else None),
        "due_mileage": r.due_mileage,
        "days_until_due": ((r.due_date - today).days if r.due_date else None),
        "current_mileage": current_mileage,
        "mileage_variance": (
            current_mileage - r.due_mileage
            if current_mileage is not None and r.due_mileage is not None else None
        ),
        "schedule_name": r.schedule_name,
        "interval_value": r.interval_value,
        "interval_unit": (r.interval_unit.name if r.interval_unit else None),
        "buffer_value": r.buffer_value,
        "buffer_unit": (r.buffer_unit.name if r.buffer_unit else None),
        "mileage_interval": r.mileage_interval,
        "mileage_buffer": r.mileage_buffer,
        "tasks": r.tasks or [],
        "task_count": len(r.tasks or []),
        "total_estimated_cost": _task_total(r.tasks, "estimated_cost"),
        "total_estimated_labour_hours": _task_total(r.tasks, "estimated_labour_hours"),
        "completed_on": (r.completed_on.isoformat() if r.completed_on else None),
        "cancel_reason": r.cancel_reason,
        "created_at": (r.created_at.isoformat() if r.created_at else None),
    }


def _current_mileages(vehicle_ids) -> dict:
    mileages = {}
    for vid in set(vehicle_ids):
        v = get_vehicle(vid)
        if v:
            mileages[vid] = v.mileage
    return mileages


def _reminder_payload(r) -> dict:
    return _serialize_reminder(r, _current_mileages([r.vehicle_id]).get(r.vehicle_id))


def _parse_statuses(raw):
    if not raw:
        return None
    out = []
    for part in raw.split(","):
        key = part.strip().upper()
        if not key:
            continue
        if key not in ReminderStatus.__members__:
            raise ValueError(f"Unknown reminder status: {part.strip()!r}")
        out.append(ReminderStatus[key])
    return out or None


# ───────────── SYNC ────────────────────────────────────────────────────────────
@bp.function_name(name="ServiceReminderSync")
@bp.route(route="service-reminders/sync", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_reminder_sync(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        body = json_body(req)
        today = maybe_ymd(body.get("today"))
        result = sync_service_reminders(today=today, max_workers=body.get("max_workers"))
        return json_response(result.to_dict(), 200)
    except (ValidationError, NotFoundError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Service reminder sync failed")
        return error_response(e)


@bp.function_name(name="ServiceReminderSyncTimer")
@bp.timer_trigger(schedule="%REMINDER_SYNC_SCHEDULE%", arg_name="timer", run_on_startup=False)
def service_reminder_sync_timer(timer: func.TimerRequest) -> None:
    if timer.past_due:
        logger.warning("Service reminder sync timer is past due")
    result = sync_service_reminders()
    if not result.success:
        logger.warning(f"Service reminder sync finished with {len(result.pair_errors)} pair errors")


# ───────────── REMINDERS ───────────────────────────────────────────────────────
@bp.function_name(name="ServiceReminders")
@bp.route(route="service-reminders", methods=["GET", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_reminders(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        vehicle_id = req.params.get("vehicle_id")
        schedule_id = req.params.get("schedule_id")
        items = list_service_reminders(
            vehicle_id=(parse_uuid(vehicle_id, "vehicle ID") if vehicle_id else None),
            schedule_id=(parse_uuid(schedule_id, "schedule ID") if schedule_id else None),
            statuses=_parse_statuses(req.params.get("status")),
        )
        mileages = _current_mileages(r.vehicle_id for r in items)
        today = datetime.now(timezone.utc).date()
        return json_response([_serialize_reminder(r, mileages.get(r.vehicle_id), today) for r in items])
    except ValueError as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Failed to list service reminders")
        return error_response(e)


@bp.function_name(name="ServiceReminderWorkOrder")
@bp.route(route="service-reminders/{reminder_id}/work-order", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_reminder_work_order(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        rid = parse_uuid(req.route_params["reminder_id"], "reminder ID")
        body = json_body(req)
        if not body.get("work_order_id"):
            return json_response({"error": "Missing work_order_id"}, 400)
        wid = parse_uuid(body["work_order_id"], "work order ID")
        r = link_reminder_to_work_order(rid, wid)
        return json_response(_reminder_payload(r))
    except (NotFoundError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Failed to link service reminder to work order")
        return error_response(e)


@bp.function_name(name="ServiceReminderComplete")
@bp.route(route="service-reminders/{reminder_id}/complete", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_reminder_complete(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        rid = parse_uuid(req.route_params["reminder_id"], "reminder ID")
        body = json_body(req)
        r = complete_service_reminder(rid, completed_on=maybe_ymd(body.get("completed_on")))
        return json_response(_reminder_payload(r))
    except (NotFoundError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Failed to complete service reminder")
        return error_response(e)


@bp.function_name(name="ServiceReminderCancel")
@bp.route(route="service-reminders/{reminder_id}/cancel", methods=["POST", "OPTIONS"], auth_level=func.AuthLevel.ANONYMOUS)
def service_reminder_cancel(req: func.HttpRequest) -> func.HttpResponse:
    if req.method == "OPTIONS":
        return cors_response("", 204)

    try:
        rid = parse_uuid(req.route_params["reminder_id"], "reminder ID")
        body = json_body(req)
        r = cancel_service_reminder(rid, reason=body.get("reason"))
        return json_response(_reminder_payload(r))
    except (NotFoundError, ValueError) as e:
        return error_response(e)
    except Exception as e:
        logger.exception("Failed to cancel service reminder")
        return error_response(e)
