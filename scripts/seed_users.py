#!/usr/bin/env python3
"""CLI script to seed the users collection from the allow-list.

Usage:
    python scripts/seed_users.py --email admin@example.com
    python scripts/seed_users.py --email admin@example.com --allowed "a@example.com,b@example.com"

Reads FIREBASE_* settings and ALLOWED_EMAILS from environment or .env file.
Signs in with the given account (password is prompted), then writes one user
record per allow-listed address if the collection is still empty.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import os
import sys

# Ensure project root is on sys.path so we can import src.bizops
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def seed(email: str, allowed: list[str] | None) -> None:
    """Sign in and run the one-shot users seed."""
    from src.bizops.access.seeding import seed_users
    from src.bizops.auth.firebase import FirebasePasswordAuthProvider
    from src.bizops.config import get_settings
    from src.bizops.core.logging import configure_structlog
    from src.bizops.store.firebase import FirebaseRestStore

    settings = get_settings()
    configure_structlog(settings)
    settings.require_store_credentials()
    allowed_emails = allowed if allowed is not None else settings.allowed_emails
    if not allowed_emails:
        print("No allow-listed e-mails configured; nothing to seed.")
        return

    async def prompt() -> tuple[str, str]:
        return email, getpass.getpass(f"Password for {email}: ")

    auth = FirebasePasswordAuthProvider(settings.FIREBASE_API_KEY, prompt)
    store = FirebaseRestStore(
        settings.FIREBASE_DATABASE_URL,
        token_provider=auth.id_token,
        timeout=settings.STORE_TIMEOUT,
        max_retries=settings.STORE_READ_MAX_RETRIES,
    )
    try:
        await auth.begin_interactive_login()
        created = await seed_users(store, allowed_emails)
        if created:
            print(f"Seeded {created} user(s):")
            for index, address in enumerate(allowed_emails, start=1):
                print(f"  user_{index}: {address}")
        else:
            print("Users already exist; nothing written.")
    finally:
        await store.aclose()
        await auth.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed default users from the allow-list")
    parser.add_argument("--email", required=True, help="Account used to sign in")
    parser.add_argument(
        "--allowed",
        default=None,
        help="Comma-separated allow-list overriding ALLOWED_EMAILS",
    )
    args = parser.parse_args()

    allowed = None
    if args.allowed is not None:
        allowed = [e.strip().lower() for e in args.allowed.split(",") if e.strip()]

    asyncio.run(seed(args.email, allowed))


if __name__ == "__main__":
    main()
