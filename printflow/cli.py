from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from printflow.core.config import get_settings
from printflow.core.errors import PrintflowError
from printflow.core.logging import configure_logging
from printflow.core.session import SessionContext
from printflow.domain.models import DeliveryTier
from printflow.domain.orders.views import build_board
from printflow.domain.pipeline import Role, Stage
from printflow.runtime import Runtime, build_runtime
from printflow.workflow.capacity_gate import CapacityOverride
from printflow.workflow.quoting import QuoteItem, QuoteRequest


def _session(role: str, customer_id: str | None) -> SessionContext:
    settings = get_settings()
    role_enum = Role(role)
    user_ids = {
        Role.ADMIN: settings.admin_user_id,
        Role.SUPERADMIN: settings.superadmin_user_id,
        Role.OPERATIONS: settings.operations_user_id,
    }
    if role_enum == Role.CLIENT:
        return SessionContext(role=role_enum, user_id=customer_id or "", customer_id=customer_id)
    return SessionContext(role=role_enum, user_id=user_ids[role_enum])


def _override(args: argparse.Namespace) -> CapacityOverride | None:
    if not args.confirm_override and not args.supervisor_key:
        return None
    return CapacityOverride(confirmed=True, supervisor_key=args.supervisor_key)


def _print(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _add_session_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--role", choices=[r.value for r in Role], default=Role.ADMIN.value)
    parser.add_argument("--customer", default=None, help="Linked customer id for the client role")


def _add_override_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--confirm-override", action="store_true", help="Confirm a capacity override")
    parser.add_argument("--supervisor-key", default=None)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Printflow order pipeline CLI")
    parser.add_argument("--no-persist", action="store_true", help="Work on seed data without touching the database")
    top = parser.add_subparsers(dest="command", required=True)

    board = top.add_parser("board", help="Show the board columns")
    _add_session_args(board)

    quote = top.add_parser("quote", help="Price a single-item job, optionally creating the order")
    _add_session_args(quote)
    _add_override_args(quote)
    quote.add_argument("--customer-id", required=True)
    quote.add_argument("--material", required=True)
    quote.add_argument("--width", type=float, required=True)
    quote.add_argument("--height", type=float, required=True)
    quote.add_argument("--quantity", type=int, required=True)
    quote.add_argument("--campaign", default="CLI quote")
    quote.add_argument("--tier", choices=[t.value for t in DeliveryTier], default=DeliveryTier.STANDARD.value)
    quote.add_argument("--create", action="store_true", help="Create the order at the chosen tier")

    move = top.add_parser("move", help="Move an order to another stage")
    _add_session_args(move)
    _add_override_args(move)
    move.add_argument("order_id")
    move.add_argument("stage", choices=[s.value for s in Stage])
    move.add_argument("--index", type=int, default=None)

    top.add_parser("capacity", help="Show plant load")
    return parser


def _cmd_board(runtime: Runtime, args: argparse.Namespace) -> dict:
    session = _session(args.role, args.customer)
    return {
        "columns": [
            {
                "stage": column.stage.value,
                "count": column.count,
                "total_amount": column.total_amount,
                "orders": [o.id for o in column.orders],
            }
            for column in build_board(runtime.store, session)
        ]
    }


def _cmd_quote(runtime: Runtime, args: argparse.Namespace) -> dict:
    request = QuoteRequest(
        customer_id=args.customer_id,
        campaign_name=args.campaign,
        items=[QuoteItem(material_id=args.material, width=args.width, height=args.height, quantity=args.quantity)],
    )
    if not args.create:
        return runtime.quoting.estimate(request).to_dict()
    session = _session(args.role, args.customer)
    order = runtime.quoting.create_order(request, DeliveryTier(args.tier), session, _override(args))
    return order.model_dump(mode="json")


def _cmd_move(runtime: Runtime, args: argparse.Namespace) -> dict:
    session = _session(args.role, args.customer)
    order = runtime.board.move(args.order_id, Stage(args.stage), session, args.index, _override(args))
    return order.model_dump(mode="json")


COMMANDS = {
    "board": _cmd_board,
    "quote": _cmd_quote,
    "move": _cmd_move,
    "capacity": lambda runtime, _: runtime.capacity().to_dict(),
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging()

    runtime = build_runtime(persist=not args.no_persist)
    try:
        _print(COMMANDS[args.command](runtime, args))
    except PrintflowError as exc:
        print(json.dumps(exc.to_payload(), ensure_ascii=False, default=str), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
