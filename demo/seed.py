#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample cards for demos.

!! NOT FOR PRODUCTION !!
This script creates test users with known passwords and writes opening
card balances straight into the database (there is no deposit endpoint).
It is intended ONLY for local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────┬───────────────────┬───────┐
    │ Username     │ Password          │ Role  │
    ├──────────────┼───────────────────┼───────┤
    │ admin        │ AdminDemo123!     │ ADMIN │
    │ alice        │ AliceDemo123!     │ USER  │
    │ bob          │ BobDemo123!       │ USER  │
    │ carol        │ CarolDemo123!     │ USER  │
    └──────────────┴───────────────────┴───────┘
"""

import argparse
import asyncio
import os
import random
import sys
import uuid
from decimal import Decimal

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

ADMIN = {
    "username": "admin",
    "email": "admin@bankdemo.com",
    "password": "AdminDemo123!",
}

USERS = [
    {
        "username": "alice",
        "email": "alice.chen@example.com",
        "password": "AliceDemo123!",
        "cards": [Decimal("850.00"), Decimal("5000.00")],
    },
    {
        "username": "bob",
        "email": "bob.martinez@example.com",
        "password": "BobDemo123!",
        "cards": [Decimal("1200.00"), Decimal("0.00")],
    },
    {
        "username": "carol",
        "email": "carol.nguyen@example.com",
        "password": "CarolDemo123!",
        "cards": [Decimal("3200.00"), Decimal("120.50"), Decimal("0.00")],
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup(client: httpx.AsyncClient, user: dict) -> dict:
    """Sign up a user, return {user_id, token}."""
    resp = await client.post(f"{BASE_URL}/auth/signup", json={
        "username": user["username"],
        "email": user["email"],
        "password": user["password"],
    })
    resp.raise_for_status()
    data = resp.json()
    return {"user_id": data["user_id"], "token": data["token"]}


async def issue_card(client: httpx.AsyncClient, admin_token: str, owner_id: str) -> dict:
    resp = await client.post(
        f"{BASE_URL}/admin/cards",
        json={"owner_id": owner_id},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()
    return resp.json()


async def do_transfer(client: httpx.AsyncClient, token: str,
                      from_id: str, to_id: str, amount: Decimal) -> dict:
    resp = await client.post(
        f"{BASE_URL}/transfers",
        json={"from_card_id": from_id, "to_card_id": to_id, "amount": str(amount)},
        headers=auth_header(token),
    )
    return resp.json()


# ---------------------------------------------------------------------------
# Direct DB access (operator actions with no API endpoint)
# ---------------------------------------------------------------------------

async def promote_to_admin(username: str) -> None:
    """Directly update the user's role to ADMIN in the database.

    Admin provisioning is an operator action, not self-service.
    """
    from sqlalchemy import update
    from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
    from bankcards.config import settings
    from bankcards.models.user import User, UserRole

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)

    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.username == username)
            .values(role=UserRole.ADMIN)
        )
        await session.commit()

    await engine.dispose()


async def set_opening_balances(balances: dict[str, Decimal]) -> None:
    """Write opening balances for freshly issued cards (card_id -> amount)."""
    from sqlalchemy import update
    from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
    from bankcards.config import settings
    from bankcards.models.card import Card

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)

    async with session_factory() as session:
        for card_id, amount in balances.items():
            await session.execute(
                update(Card)
                .where(Card.id == uuid.UUID(card_id))
                .values(balance=amount)
            )
        await session.commit()

    await engine.dispose()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn bankcards.main:app --reload\n")
            sys.exit(1)

        # --- Admin ---
        print("Creating admin user...")
        admin = await signup(client, ADMIN)
        await promote_to_admin(ADMIN["username"])
        log(f"Admin: {ADMIN['username']} / {ADMIN['password']}")

        # --- Users and cards ---
        opening: dict[str, Decimal] = {}
        holders: list[dict] = []

        for user in USERS:
            print(f"\nCreating {user['username']}...")
            account = await signup(client, user)
            cards = []
            for amount in user["cards"]:
                card = await issue_card(client, admin["token"], account["user_id"])
                opening[card["id"]] = amount
                cards.append(card["id"])
                log(f"Card {card['masked_number']} (opening balance {amount})")
            holders.append({"name": user["username"], "token": account["token"], "cards": cards})

        await set_opening_balances(opening)

        # --- Transfers between each user's own cards ---
        print("\nCreating transfers...")
        for holder in holders:
            first, second = holder["cards"][0], holder["cards"][1]
            amount = Decimal(random.randint(10_00, 200_00)) / 100
            result = await do_transfer(client, holder["token"], first, second, amount)
            if "error_type" not in result:
                log(f"{holder['name']}: {result['from_card_masked']} -> "
                    f"{result['to_card_masked']}: {amount}")
            else:
                log(f"{holder['name']}: transfer rejected ({result['error_type']})")

        # --- A pending block request for the admin to review ---
        carol = holders[-1]
        resp = await client.patch(
            f"{BASE_URL}/cards/request-block",
            json={"card_id": carol["cards"][-1]},
            headers=auth_header(carol["token"]),
        )
        resp.raise_for_status()
        log(f"{carol['name']} requested a block on {resp.json()['masked_number']}")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Username':<14s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 14} {'─' * 20} {'─' * 5}")
    print(f"  {ADMIN['username']:<14s} {ADMIN['password']:<20s} ADMIN")
    for user in USERS:
        print(f"  {user['username']:<14s} {user['password']:<20s} USER")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "bankcards.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, cards, and transfers for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
