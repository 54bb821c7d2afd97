"""
EasyTable command-line client.

Usage:
    easytable login --email me@example.com --password secret123 --remember
    easytable whoami
    easytable restaurants search --category KOREAN --available
    easytable reserve 42
    easytable logout

Exit codes: 0 success, 1 backend/network/auth failure, 2 invalid input or access denied.
"""

import argparse
import asyncio
import sys
from typing import Optional

from pydantic import ValidationError

from core.errors import EasyTableError, safe_error_message
from easytable.app import create_app
from easytable.auth.guards import Action
from easytable.auth.session import format_remaining
from easytable.restaurants import only_available
from easytable.schemas import CATEGORIES, CreateRestaurantRequest


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="easytable", description="EasyTable reservation client")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in")
    login.add_argument("--email", help="Account email (defaults to the remembered one)")
    login.add_argument("--password", required=True)
    login.add_argument("--remember", action="store_true", help="Remember the email for next time")

    logout = sub.add_parser("logout", help="Sign out")
    logout.add_argument("--forget-email", action="store_true", help="Also drop the remembered email")
    sub.add_parser("whoami", help="Show the signed-in user and time left")

    signup = sub.add_parser("signup", help="Create an account")
    signup.add_argument("--email", required=True)
    signup.add_argument("--password", required=True)
    signup.add_argument("--confirm-password", required=True)
    signup.add_argument("--role", default="USER", choices=["USER", "OWNER"])
    signup.add_argument("--agree-terms", action="store_true")

    restaurants = sub.add_parser("restaurants", help="Browse or add restaurants")
    rsub = restaurants.add_subparsers(dest="action", required=True)

    search = rsub.add_parser("search", help="Search restaurants")
    search.add_argument("--name")
    search.add_argument("--category", choices=CATEGORIES)
    search.add_argument("--address")
    search.add_argument("--available", action="store_true", help="Only restaurants with free tables")

    show = rsub.add_parser("show", help="Show one restaurant")
    show.add_argument("restaurant_id", type=int)

    add = rsub.add_parser("add", help="Add a restaurant (owners only)")
    add.add_argument("--name", required=True)
    add.add_argument("--address", required=True)
    add.add_argument("--tables", type=int, default=1)
    add.add_argument("--category", default="KOREAN", choices=CATEGORIES)

    reserve = sub.add_parser("reserve", help="Reserve a table")
    reserve.add_argument("restaurant_id", type=int)
    reserve.add_argument("--offset-minutes", type=int, help="Minutes from now (default from settings)")

    return parser


def _print_restaurant(r) -> None:
    print(f"[{r.id}] {r.name} ({r.category or '-'}) {r.address}")
    print(f"    tables: {r.remaining_table_count}/{r.max_table_count}")


async def _guard(app, path: str) -> Optional[int]:
    """Validate the session and enforce the section policy for `path`."""
    await app.manager.initialize()
    decision = app.guard.navigate(path)
    if decision.action is Action.REDIRECT:
        print("Please sign in first: easytable login")
        return 2
    if decision.action is Action.DENY:
        print("Access denied: this action requires the OWNER role")
        return 2
    return None


async def _login(app, args) -> int:
    email = args.email or app.store.recall_email()
    if not email:
        print("--email is required")
        return 2
    user = await app.manager.login({"email": email, "password": args.password}, remember=args.remember)
    print(f"Logged in as {user.email} ({user.role or 'no role'})")
    print(f"Session expires in {format_remaining(app.manager.session.remaining_seconds)}")
    return 0


async def _logout(app, args) -> int:
    await app.manager.logout()
    if args.forget_email:
        app.store.forget_email()
    print("Logged out")
    return 0


async def _whoami(app, args) -> int:
    user = await app.manager.initialize()
    if user is None:
        print("Not signed in")
        return 1
    print(f"{user.name} <{user.email}> role={user.role}")
    print(f"Session expires in {format_remaining(app.manager.session.remaining_seconds)}")
    return 0


async def _signup(app, args) -> int:
    await app.manager.register({
        "email": args.email,
        "password": args.password,
        "confirmPassword": args.confirm_password,
        "role": args.role,
        "agreeTerms": args.agree_terms,
    })
    print(f"Account created for {args.email}. Sign in with: easytable login")
    return 0


async def _restaurants(app, args) -> int:
    if args.action == "add":
        code = await _guard(app, "/owner/restaurants/new")
        if code is not None:
            return code
        request = CreateRestaurantRequest(
            name=args.name, address=args.address, max_table_count=args.tables, category=args.category,
        )
        await app.restaurants.add(request)
        print(f"Added {request.name}")
        return 0

    if args.action == "show":
        code = await _guard(app, f"/restaurants/{args.restaurant_id}")
        if code is not None:
            return code
        _print_restaurant(await app.restaurants.get(args.restaurant_id))
        return 0

    code = await _guard(app, "/restaurants")
    if code is not None:
        return code
    results = await app.restaurants.search(args.name, args.category, args.address)
    if args.available:
        results = only_available(results)
    if not results:
        print("No restaurants found")
    for r in results:
        _print_restaurant(r)
    return 0


async def _reserve(app, args) -> int:
    code = await _guard(app, f"/restaurants/{args.restaurant_id}/reservation")
    if code is not None:
        return code
    flow = app.reservations
    if args.offset_minutes is not None:
        flow.offset_minutes = args.offset_minutes
    snapshot = await app.restaurants.get(args.restaurant_id)
    if not flow.can_submit(args.restaurant_id, snapshot):
        print(f"{snapshot.name} has no tables left")
        return 2
    result = await flow.submit(args.restaurant_id, snapshot)
    print(f"Reservation {result.reservation_id}: {result.status} at {result.reservation_time}")
    return 0


COMMANDS = {
    "login": _login,
    "logout": _logout,
    "whoami": _whoami,
    "signup": _signup,
    "restaurants": _restaurants,
    "reserve": _reserve,
}


async def run(args, app=None) -> int:
    app = app or create_app()
    try:
        return await COMMANDS[args.command](app, args)
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "input"
            print(f"{field}: {err['msg']}")
        return 2
    except EasyTableError as e:
        message, code = safe_error_message(e, args.command)
        print(message)
        return code
    finally:
        await app.aclose()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
