import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from schedcore.alternatives import suggest_alternatives  # noqa: E402
from schedcore.availability import is_bookable, list_available_slots  # noqa: E402
from schedcore.core.logging_config import setup_logging  # noqa: E402
from schedcore.db import get_db, init_db  # noqa: E402
from schedcore.recommendations import decision_dashboard, recommend_staff  # noqa: E402
from schedcore.risk import assess_appointment_risk, cancellation_risk_notice  # noqa: E402
from schedcore.schemas import InvalidSlotInput  # noqa: E402


def _dump(value):
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if value is None:
        return None
    return value.model_dump(mode="json")


def run_command(db, args) -> dict:
    if args.command == "dashboard":
        return {"ok": True, "dashboard": _dump(decision_dashboard(db, args.date))}
    if args.command == "slot":
        return {
            "ok": True,
            "availability": _dump(is_bookable(db, args.date, args.time)),
            "notice": _dump(cancellation_risk_notice(db, args.date, args.time)),
            "alternatives": _dump(suggest_alternatives(db, args.date, args.time)),
        }
    if args.command == "free":
        return {"ok": True, "slots": _dump(list_available_slots(db, args.date))}
    if args.command == "staff":
        ranked = recommend_staff(
            db, args.date, args.time, service_type=args.service_type, customer_id=args.customer_id
        )
        return {"ok": True, "staff": _dump(ranked)}
    if args.command == "risk":
        assessment = assess_appointment_risk(db, args.appointment_id)
        return {"ok": assessment is not None, "risk": _dump(assessment)}
    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scheduling capacity and decision-support report")
    sub = parser.add_subparsers(dest="command", required=True)

    dashboard = sub.add_parser("dashboard", help="Workload overview and best time slots for a day")
    dashboard.add_argument("date", help="YYYY-MM-DD")

    slot = sub.add_parser("slot", help="Bookability, load notice and alternatives for one slot")
    slot.add_argument("date", help="YYYY-MM-DD")
    slot.add_argument("time", help="HH:MM")

    free = sub.add_parser("free", help="Bookable slots on a day")
    free.add_argument("date", help="YYYY-MM-DD")

    staff = sub.add_parser("staff", help="Top staff for a slot")
    staff.add_argument("date", help="YYYY-MM-DD")
    staff.add_argument("time", help="HH:MM")
    staff.add_argument("--service-type", default=None)
    staff.add_argument("--customer-id", type=int, default=None)

    risk = sub.add_parser("risk", help="No-show risk for an appointment")
    risk.add_argument("appointment_id", type=int)
    return parser


def main() -> int:
    args = build_parser().parse_args()
    setup_logging()
    init_db()

    for db in get_db():
        try:
            output = run_command(db, args)
        except InvalidSlotInput as exc:
            output = {"ok": False, "error": exc.kind, "message": exc.message}

    print(json.dumps(output, ensure_ascii=True))
    return 0 if output["ok"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
