# accounts.py
"""
Email/password accounts, cookie sessions, profile types and saved jobs.
"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Optional

from sqlmodel import Session, select

import config
from errors import NotFoundError, PermissionDenied, ValidationError
from jobs import get_job
from models import AdminUser, AuthSession, JobPosting, Profile, SavedJob, utcnow

logger = logging.getLogger("accounts")

USER_TYPES = ("job_seeker", "job_poster")
PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 6

PROFILE_FIELDS = {
    "job_poster": (
        "full_name", "company_name", "company_website", "company_description",
        "company_size", "industry", "logo_url",
    ),
    "job_seeker": (
        "full_name", "job_title", "experience_years", "skills", "preferred_locations",
        "preferred_job_types", "resume_url", "website",
    ),
}


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def register(session: Session, email: str, password: str, full_name: Optional[str] = None) -> Profile:
    email = _normalize_email(email)
    if "@" not in email:
        raise ValidationError("Please enter a valid email address")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if session.exec(select(Profile).where(Profile.email == email)).first():
        raise ValidationError("An account with this email already exists")

    profile = Profile(email=email, password_hash=hash_password(password), full_name=full_name or None)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    logger.info("👤 Registered profile %s", profile.id)
    _grant_configured_admin(session, profile)
    return profile


def authenticate(session: Session, email: str, password: str) -> Profile:
    profile = session.exec(select(Profile).where(Profile.email == _normalize_email(email))).first()
    if profile is None or not verify_password(password or "", profile.password_hash):
        raise PermissionDenied("Invalid email or password")
    _grant_configured_admin(session, profile)
    return profile


def create_session(session: Session, profile: Profile, now: Optional[datetime] = None) -> str:
    """Returns the raw token for the cookie; only its hash is stored."""
    now = now or utcnow()
    token = secrets.token_urlsafe(32)
    session.add(AuthSession(
        profile_id=profile.id,
        token_hash=hash_token(token),
        created_at=now,
        expires_at=now + timedelta(days=config.SESSION_DAYS),
    ))
    session.commit()
    return token


def logout(session: Session, token: Optional[str]):
    if not token:
        return
    row = session.exec(select(AuthSession).where(AuthSession.token_hash == hash_token(token))).first()
    if row is not None:
        session.delete(row)
        session.commit()


def current_profile(session: Session, token: Optional[str], now: Optional[datetime] = None) -> Optional[Profile]:
    if not token:
        return None
    now = now or utcnow()
    row = session.exec(select(AuthSession).where(AuthSession.token_hash == hash_token(token))).first()
    if row is None:
        return None
    if row.expires_at < now:
        session.delete(row)
        session.commit()
        return None
    return session.get(Profile, row.profile_id)


def is_admin(session: Session, profile: Optional[Profile]) -> bool:
    return profile is not None and session.get(AdminUser, profile.id) is not None


def grant_admin(session: Session, profile_id: int):
    if session.get(Profile, profile_id) is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    if session.get(AdminUser, profile_id) is None:
        session.add(AdminUser(id=profile_id))
        session.commit()
        logger.info("🔑 Granted admin to profile %s", profile_id)


def _grant_configured_admin(session: Session, profile: Profile):
    if profile.email in config.ADMIN_EMAILS and not is_admin(session, profile):
        grant_admin(session, profile.id)


def set_user_type(session: Session, profile: Profile, user_type: str) -> Profile:
    if user_type not in USER_TYPES:
        raise ValidationError(f"Unknown profile type: {user_type}")
    profile.user_type = user_type
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def update_profile(session: Session, profile: Profile, data: dict) -> Profile:
    """Apply the fields that belong to the profile's type; others are ignored."""
    if profile.user_type not in PROFILE_FIELDS:
        raise ValidationError("Choose a profile type first")
    for name in PROFILE_FIELDS[profile.user_type]:
        if name in data:
            setattr(profile, name, data[name])
    profile.updated_at = utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


# ------------------------------
# Saved jobs
# ------------------------------
def _saved_row(session: Session, profile_id: int, job_id: int) -> Optional[SavedJob]:
    stmt = select(SavedJob).where(SavedJob.profile_id == profile_id, SavedJob.job_id == job_id)
    return session.exec(stmt).first()


def save_job(session: Session, profile_id: int, job_id: int) -> SavedJob:
    get_job(session, job_id)
    row = _saved_row(session, profile_id, job_id)
    if row is None:
        row = SavedJob(profile_id=profile_id, job_id=job_id)
        session.add(row)
        session.commit()
        session.refresh(row)
    return row


def unsave_job(session: Session, profile_id: int, job_id: int):
    row = _saved_row(session, profile_id, job_id)
    if row is not None:
        session.delete(row)
        session.commit()


def toggle_saved(session: Session, profile_id: int, job_id: int) -> bool:
    """Returns True when the job ends up saved."""
    if _saved_row(session, profile_id, job_id):
        unsave_job(session, profile_id, job_id)
        return False
    save_job(session, profile_id, job_id)
    return True


def is_saved(session: Session, profile_id: int, job_id: int) -> bool:
    return _saved_row(session, profile_id, job_id) is not None


def saved_jobs(session: Session, profile_id: int) -> List[JobPosting]:
    stmt = (
        select(JobPosting)
        .join(SavedJob, SavedJob.job_id == JobPosting.id)
        .where(SavedJob.profile_id == profile_id, JobPosting.is_draft == False)  # noqa: E712
        .order_by(SavedJob.saved_at.desc())
    )
    return list(session.exec(stmt).all())
