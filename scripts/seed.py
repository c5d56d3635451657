#!/usr/bin/env python3
"""Seed the development database with the model pricing catalog.

Creates:
  - One model_pricing row per entry in the seed catalog, quality scored
  - Optionally, connected providers for a demo user (--demo-user)
  - Prints a dev JWT token for the demo user

Idempotent: catalog rows are upserted by model name and provider
connections by (user, provider), so re-running refreshes prices instead of
duplicating rows.

Usage:
    # From project root (database must be running and migrated)
    python scripts/seed.py

    # Also connect anthropic + openai for a demo user
    python scripts/seed.py --demo-user dev-user --providers anthropic openai
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so "model_routing.*" imports work
# whether this script is run directly or via "python scripts/seed.py".
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the model routing database")
    parser.add_argument(
        "--demo-user",
        default=None,
        help="User id (JWT sub) to connect demo providers for",
    )
    parser.add_argument(
        "--providers",
        nargs="*",
        default=["anthropic", "openai"],
        help="Providers to connect for the demo user",
    )
    return parser.parse_args(argv)


async def seed(demo_user: str | None, providers: list[str]) -> None:
    """Main seed routine - idempotent."""
    from model_routing.auth.tokens import create_token
    from model_routing.config import get_settings
    from model_routing.database import close_db, get_session_factory, init_db
    from model_routing.routing.engine import build_engine
    from model_routing.routing.seed_catalog import seed_catalog
    from model_routing.routing.sql_store import SqlRoutingStore

    settings = get_settings()
    init_db(settings)
    store = SqlRoutingStore(get_session_factory())

    count = await seed_catalog(store)
    print(f"  [+] Catalog seeded: {count} models")

    token: str | None = None
    if demo_user:
        engine = build_engine(store, settings)
        await engine.cache.reload()
        for provider in providers:
            # Placeholder keys; replace via the API to route for real
            _row, is_new = await engine.orchestrator.upsert_provider(
                demo_user, provider, f"sk-dev-{provider}-placeholder"
            )
            marker = "+" if is_new else "~"
            print(f"  [{marker}] Provider connected: {provider} ({demo_user})")

        for row in await engine.orchestrator.get_tiers(demo_user):
            effective = await engine.orchestrator.get_effective_model(demo_user, row)
            print(f"      {row.tier.value:<10} -> {effective}")

        token = create_token(
            sub=demo_user,
            secret=settings.jwt_secret.get_secret_value(),
            audience=settings.jwt_audience,
            expires_in=30 * 24 * 3600,
        )

    await close_db()

    divider = "=" * 72
    print(f"\n{divider}")
    print("SEED COMPLETE")
    if token:
        print(f"\n  User  : {demo_user}\n  Token : {token}")
        print(
            f"\n  curl -s -H 'Authorization: Bearer {token[:60]}...' "
            "http://localhost:8000/api/v1/routing/tiers | python3 -m json.tool"
        )
    print(f"\n{divider}")
    print("  API Docs : http://localhost:8000/docs")
    print(f"{divider}\n")


if __name__ == "__main__":
    args = _parse_args()
    asyncio.run(seed(args.demo_user, args.providers))
