"""Operator command that grants administrator status.

Usage:
    python -m ecredit.seed_admin --identity <sub> --email admin@example.com
    python -m ecredit.seed_admin --identity <sub> --force   # even if an admin exists
"""

import argparse
import asyncio
import logging
import sys

from ecredit.core.config import settings
from ecredit.core.database import AsyncSessionLocal, async_engine
from ecredit.core.exceptions import BootstrapRefused
from ecredit.modules.profiles.bootstrap import seed_admin


async def main(identity: str, email: str = None, force: bool = False) -> int:
    try:
        async with AsyncSessionLocal() as session:
            try:
                profile = await seed_admin(session, identity, email=email, force=force)
            except BootstrapRefused as e:
                print(f"{e.message}. Use --force to add another.", file=sys.stderr)
                return 1
            print(f"Administrator: {profile.id} ({profile.email or 'no email'})")
            return 0
    finally:
        await async_engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    parser = argparse.ArgumentParser(description="Seed an eCredit administrator")
    parser.add_argument("--identity", required=True, help="Identity (token subject) to promote")
    parser.add_argument("--email", default=None, help="Email for a newly created profile")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Seed even when another administrator already exists",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.identity, email=args.email, force=args.force)))
