from __future__ import annotations

import argparse
import asyncio
import sys

from docgate.core.errors import DocgateError
from docgate.core.logging import configure_logging
from docgate.domain.models import ROLE_SUPER_ADMIN, User
from docgate.persistence.db import SessionLocal
from docgate.services.categories import seed_default_categories
from docgate.services.grants import grant_role


def _build_parser() -> argparse.ArgumentParser:
    # Trusted operator path for creating the first super admin.
    parser = argparse.ArgumentParser(description="Grant global super_admin to a principal")
    parser.add_argument("--principal-id", required=True, help="Principal (user) id")
    parser.add_argument("--email", default=None, help="Optional user email")
    parser.add_argument(
        "--seed-categories",
        action="store_true",
        help="Also seed the system default categories",
    )
    return parser


async def _bootstrap(args: argparse.Namespace) -> int:
    async with SessionLocal() as session:
        user = await session.get(User, args.principal_id)
        if user is None:
            session.add(User(id=args.principal_id, email=args.email))
            await session.commit()
        result = await grant_role(
            session,
            actor_id=None,
            principal_id=args.principal_id,
            role=ROLE_SUPER_ADMIN,
        )
        if args.seed_categories:
            await seed_default_categories(session)

    print(f"principal_id={result.principal_id}")
    print(f"role={result.role}")
    print(f"created={result.created}")
    print(f"removed_grants={result.removed_grants}")
    print(f"removed_registered={result.removed_registered}")
    return 0


def main() -> int:
    configure_logging()
    args = _build_parser().parse_args()
    try:
        return asyncio.run(_bootstrap(args))
    except DocgateError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
