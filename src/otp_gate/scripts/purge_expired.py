"""Delete expired challenges, lockouts, verified sessions and rate windows.

Every read path already ignores these rows; this only reclaims space.
Run periodically, e.g. ``python -m otp_gate.scripts.purge_expired``.
"""

from __future__ import annotations

import argparse

from sqlalchemy.orm import Session

from otp_gate.core.clock import Clock, system_clock
from otp_gate.db.session import SessionLocal
from otp_gate.services.store import ChallengeStore


def purge(db: Session, clock: Clock = system_clock, *, dry_run: bool = False) -> dict[str, int]:
    """Remove expired rows and return the per-table counts."""
    try:
        removed = ChallengeStore(db).purge_expired(clock.now())
        if dry_run:
            db.rollback()
        else:
            db.commit()
    except Exception:
        db.rollback()
        raise
    return removed


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be removed without deleting anything",
    )
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        removed = purge(db, dry_run=args.dry_run)
    finally:
        db.close()

    summary = ", ".join(f"{table}={count}" for table, count in removed.items())
    prefix = "dry run" if args.dry_run else "ok"
    print(f"{prefix}: purge completed ({summary})")


if __name__ == "__main__":
    main()
