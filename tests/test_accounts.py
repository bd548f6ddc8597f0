"""
Test accounts, sessions and saved jobs

Tests:
1. Password hashing
2. Registration and sign in
3. Session tokens (lookup, expiry, logout)
4. Profile types and profile updates
5. Saved jobs (published only)
6. Admin bootstrap from ADMIN_EMAILS
"""

from datetime import timedelta

import pytest
from sqlmodel import select

import accounts
import config
from conftest import NOW, make_job, make_profile
from errors import NotFoundError, PermissionDenied, ValidationError
from models import AuthSession


class TestPasswords:
    """PBKDF2 hashing"""

    def test_round_trip(self):
        stored = accounts.hash_password("hunter22")
        assert stored.startswith("pbkdf2_sha256$")
        assert accounts.verify_password("hunter22", stored)
        assert not accounts.verify_password("hunter23", stored)

    def test_salted(self):
        assert accounts.hash_password("same") != accounts.hash_password("same")

    def test_malformed_hash(self):
        assert not accounts.verify_password("x", "not-a-hash")


class TestRegistration:
    """Sign up and sign in"""

    def test_register_normalizes_email(self, session):
        profile = accounts.register(session, "  Jane@Example.COM ", "secret123")
        assert profile.email == "jane@example.com"
        assert profile.user_type is None

    def test_duplicate_email(self, session):
        accounts.register(session, "jane@example.com", "secret123")
        with pytest.raises(ValidationError):
            accounts.register(session, "JANE@example.com", "other123")

    @pytest.mark.parametrize("email, password", [("no-at-sign", "secret123"), ("a@b.com", "123")])
    def test_invalid_input(self, session, email, password):
        with pytest.raises(ValidationError):
            accounts.register(session, email, password)

    def test_authenticate(self, session):
        profile = accounts.register(session, "jane@example.com", "secret123")
        assert accounts.authenticate(session, "Jane@example.com", "secret123").id == profile.id
        with pytest.raises(PermissionDenied):
            accounts.authenticate(session, "jane@example.com", "wrong")
        with pytest.raises(PermissionDenied):
            accounts.authenticate(session, "nobody@example.com", "secret123")


class TestSessions:
    """Cookie session tokens"""

    def test_token_resolves_to_profile(self, session):
        profile = make_profile(session)
        token = accounts.create_session(session, profile)
        assert accounts.current_profile(session, token).id == profile.id

    def test_only_hash_is_stored(self, session):
        profile = make_profile(session)
        token = accounts.create_session(session, profile)
        row = session.exec(select(AuthSession)).one()
        assert row.token_hash != token
        assert row.token_hash == accounts.hash_token(token)

    def test_expired_session(self, session):
        profile = make_profile(session)
        token = accounts.create_session(session, profile, now=NOW)
        assert accounts.current_profile(session, token, now=NOW + timedelta(days=15)) is None
        assert session.exec(select(AuthSession)).all() == []

    def test_unknown_and_missing_tokens(self, session):
        assert accounts.current_profile(session, None) is None
        assert accounts.current_profile(session, "bogus") is None

    def test_logout(self, session):
        profile = make_profile(session)
        token = accounts.create_session(session, profile)
        accounts.logout(session, token)
        assert accounts.current_profile(session, token) is None


class TestProfiles:
    """Profile types, admin flag and updates"""

    def test_set_user_type(self, session):
        profile = make_profile(session, user_type=None)
        accounts.set_user_type(session, profile, "job_poster")
        assert profile.user_type == "job_poster"
        with pytest.raises(ValidationError):
            accounts.set_user_type(session, profile, "recruiter")

    def test_admin_flag(self, session):
        profile = make_profile(session)
        assert not accounts.is_admin(session, profile)
        accounts.grant_admin(session, profile.id)
        assert accounts.is_admin(session, profile)
        assert not accounts.is_admin(session, None)

    def test_grant_admin_unknown_profile(self, session):
        with pytest.raises(NotFoundError):
            accounts.grant_admin(session, 999)

    def test_update_only_fields_for_type(self, session):
        profile = make_profile(session, user_type="job_seeker")
        accounts.update_profile(session, profile, {
            "job_title": "Analyst",
            "skills": ["SQL", "Python"],
            "company_name": "Should be ignored",
        })
        assert profile.job_title == "Analyst"
        assert profile.skills == ["SQL", "Python"]
        assert profile.company_name is None

    def test_update_requires_type(self, session):
        profile = make_profile(session, user_type=None)
        with pytest.raises(ValidationError):
            accounts.update_profile(session, profile, {"full_name": "X"})


class TestSavedJobs:
    """Saving jobs"""

    def test_save_is_idempotent(self, session):
        profile = make_profile(session)
        job = make_job(session)
        first = accounts.save_job(session, profile.id, job.id)
        second = accounts.save_job(session, profile.id, job.id)
        assert first.id == second.id
        assert [j.id for j in accounts.saved_jobs(session, profile.id)] == [job.id]

    def test_toggle(self, session):
        profile = make_profile(session)
        job = make_job(session)
        assert accounts.toggle_saved(session, profile.id, job.id) is True
        assert accounts.is_saved(session, profile.id, job.id)
        assert accounts.toggle_saved(session, profile.id, job.id) is False
        assert accounts.saved_jobs(session, profile.id) == []

    def test_save_missing_job(self, session):
        profile = make_profile(session)
        with pytest.raises(NotFoundError):
            accounts.save_job(session, profile.id, 404)

    def test_unsave_missing_is_noop(self, session):
        profile = make_profile(session)
        accounts.unsave_job(session, profile.id, 404)

    def test_drafts_cannot_be_saved(self, session):
        profile = make_profile(session)
        draft = make_job(session, is_draft=True)
        with pytest.raises(NotFoundError):
            accounts.save_job(session, profile.id, draft.id)

    def test_saved_list_hides_jobs_moved_back_to_draft(self, session):
        profile = make_profile(session)
        job = make_job(session)
        accounts.save_job(session, profile.id, job.id)
        job.is_draft = True
        session.add(job)
        session.commit()
        assert accounts.saved_jobs(session, profile.id) == []


class TestAdminEmails:
    """Admins named in ADMIN_EMAILS"""

    def test_register_grants_admin(self, session, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_EMAILS", {"boss@example.com"})
        boss = accounts.register(session, "Boss@Example.com", "secret123")
        other = accounts.register(session, "staff@example.com", "secret123")
        assert accounts.is_admin(session, boss)
        assert not accounts.is_admin(session, other)

    def test_existing_account_promoted_on_sign_in(self, session, monkeypatch):
        profile = accounts.register(session, "boss@example.com", "secret123")
        assert not accounts.is_admin(session, profile)

        monkeypatch.setattr(config, "ADMIN_EMAILS", {"boss@example.com"})
        accounts.authenticate(session, "boss@example.com", "secret123")
        assert accounts.is_admin(session, profile)
