"""Tests for the expired-row purge script."""

from datetime import timedelta

from otp_gate.models import OtpChallenge
from otp_gate.scripts.purge_expired import purge
from otp_gate.services.store import ChallengeStore


def _seed(db_session, clock):
    now = clock.now()
    ChallengeStore(db_session).save_challenge(
        subject_id="cart-1",
        contact="+34600123456",
        code_digest="a" * 64,
        created_at=now,
        expires_at=now + timedelta(seconds=300),
        resend_eligible_at=now + timedelta(seconds=45),
        request_origin=None,
    )
    db_session.commit()


class TestPurgeExpired:
    """Housekeeping entry point."""

    def test_purge_commits(self, db_session, clock):
        _seed(db_session, clock)
        clock.advance(300)

        removed = purge(db_session, clock)

        assert removed["otp_challenge"] == 1
        assert db_session.query(OtpChallenge).count() == 0

    def test_dry_run_keeps_rows(self, db_session, clock):
        _seed(db_session, clock)
        clock.advance(300)

        removed = purge(db_session, clock, dry_run=True)

        assert removed["otp_challenge"] == 1
        assert db_session.query(OtpChallenge).count() == 1

    def test_live_rows_survive(self, db_session, clock):
        _seed(db_session, clock)
        assert purge(db_session, clock)["otp_challenge"] == 0
