# -*- coding: utf-8 -*-
# manage.py  (place this file in the backend root, next to main.py)
"""
Operator commands against the configured store.

Usage:
  $env:DATABASE_URL = "<your Postgres URL>"
  python manage.py seed --demo
  python manage.py set-status --email "john.doe@example.com" --status blocked
  python manage.py set-payment --id TXN1A2B3C --status verified
"""

import argparse
import logging

import config
from errors import AppError
from state import AppState
from storage import make_store


def _find_user(state: AppState, email: str):
    email = email.strip().lower()
    for u in state.list_users():
        if u.email == email:
            return u
    raise SystemExit(f"User not found: {email}")


def main(argv=None, state: AppState = None):
    parser = argparse.ArgumentParser(prog="manage.py")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="create plans and the welcome announcement")
    seed.add_argument("--demo", action="store_true", help="also add the sample household")

    status = sub.add_parser("set-status", help="activate, restrict or block a household")
    status.add_argument("--email", required=True)
    status.add_argument("--status", required=True, choices=["active", "restricted", "blocked"])

    payment = sub.add_parser("set-payment", help="verify or reject a pending payment")
    payment.add_argument("--id", required=True)
    payment.add_argument("--status", required=True, choices=["verified", "rejected", "failed"])

    args = parser.parse_args(argv)

    if state is None:
        state = AppState(make_store(config.STORE_BACKEND))

    try:
        if args.command == "seed":
            state.ensure_seed()
            user = state.seed_demo() if args.demo else None
            print(f"OK: seeded{' demo household ' + user.household_id if user else ''}")
        elif args.command == "set-status":
            user = _find_user(state, args.email)
            state.update_user_status(user.id, args.status)
            print(f"OK: {user.email} -> status={args.status}")
        elif args.command == "set-payment":
            p = state.update_payment_status(args.id, args.status)
            print(f"OK: {p.id} -> status={p.status}")
    except AppError as e:
        raise SystemExit(f"{e.code}: {e.message}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL)
    main()
