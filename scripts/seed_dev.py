#!/usr/bin/env python
"""Seed development database with fixture users.

Seeds three users covering every tone variant and identity provider combination:
- alice (female, Apple)
- bob (male, Google)
- charlie (neutral, Apple and Google)

Constraints:
- Refuses to run in staging or prod (PRECIOUS_ENV check)
- Idempotent: users that already exist (by email) are left untouched
- Never runs automatically (manual invocation only)

Usage:
    pip install -e . && DATABASE_URL=... python scripts/seed_dev.py
"""

import os
import sys

SEED_USERS = [
    {
        "email": "alice@example.com",
        "display_name": "Alice",
        "gender": "female",
        "apple_id": "apple-alice-001",
        "google_id": None,
    },
    {
        "email": "bob@example.com",
        "display_name": "Bob",
        "gender": "male",
        "apple_id": None,
        "google_id": "google-bob-001",
    },
    {
        "email": "charlie@example.com",
        "display_name": "Charlie",
        "gender": "neutral",
        "apple_id": "apple-charlie-001",
        "google_id": "google-charlie-001",
    },
]


def main():
    # 1. Environment check (hard fail in staging/prod)
    precious_env = os.getenv("PRECIOUS_ENV", "local")
    if precious_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in PRECIOUS_ENV={precious_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from precious.db.engine import create_db_engine
    from precious.db.models import ToneVariant
    from precious.db.session import create_session_factory
    from precious.services import users as users_service

    session_factory = create_session_factory(create_db_engine(database_url))

    # 3. Idempotent seeding
    results = []
    with session_factory() as db:
        for seed in SEED_USERS:
            if users_service.find_user_by_email(db, seed["email"]) is not None:
                results.append((False, seed["email"]))
                continue
            users_service.create_user(
                db,
                email=seed["email"],
                display_name=seed["display_name"],
                gender=ToneVariant(seed["gender"]),
                apple_id=seed["apple_id"],
                google_id=seed["google_id"],
            )
            results.append((True, seed["email"]))

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"PRECIOUS_ENV: {precious_env}")
    print()
    for created, email in results:
        print(f"{'✓ Created' if created else '• Exists'}: user {email}")


if __name__ == "__main__":
    main()
