# jobs.py
"""
Job listings: reading published jobs, employer posting/editing, admin
moderation of drafts, and the expiry sweep.
"""
import json
import logging
import math
import os
import re
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlmodel import Session, select

import config
from errors import NotFoundError, PermissionDenied, ValidationError
from models import JobPosting, SavedJob, utcnow

logger = logging.getLogger("jobs")

PLACEHOLDER_LOGO = "/static/placeholder.svg"

JOB_TYPES = ["Full-time", "Part-time", "Contract", "Remote", "Freelance", "Internship"]

ADMIN_STATUS_FILTERS = ("all", "draft", "published", "expired", "featured")
ADMIN_SORT_COLUMNS = ("created_at", "updated_at", "title", "company", "expires_at")


class JobForm(BaseModel):
    title: str = ""
    company: str = ""
    location: str = ""
    type: str = "Full-time"
    salary: str = ""
    description: str = ""
    responsibilities: List[str] = []
    requirements: List[str] = []
    benefits: List[str] = []
    logo: str = ""
    featured: bool = False
    application_url: str = ""
    contact_email: Optional[str] = None
    department: Optional[str] = None
    seniority_level: Optional[str] = None
    salary_range: Optional[str] = None
    equity: Optional[str] = None
    remote_onsite: Optional[str] = None
    work_hours: Optional[str] = None
    visa_sponsorship: Optional[bool] = None
    hiring_urgency: Optional[str] = None
    investment_stage: Optional[str] = None
    team_size: Optional[str] = None
    revenue_model: Optional[str] = None
    expires_at: Optional[datetime] = None

    def missing_fields(self) -> List[str]:
        required = ("title", "company", "location", "description")
        return [name for name in required if not getattr(self, name).strip()]


def split_lines(text: Optional[str]) -> List[str]:
    """Textarea input -> list of non-empty, stripped lines."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_list_field(value) -> List[str]:
    """
    Normalize a list-ish column value.

    Older rows and imported data sometimes hold a JSON-encoded string or a
    bare string instead of a list.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value]
        return parsed if isinstance(parsed, list) else [value]
    return []


def format_posted_date(posted: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    diff_days = abs((now - posted).days)

    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "1 day ago"
    if diff_days < 7:
        return f"{diff_days} days ago"
    if diff_days < 30:
        weeks = diff_days // 7
        return "1 week ago" if weeks == 1 else f"{weeks} weeks ago"
    months = diff_days // 30
    return "1 month ago" if months == 1 else f"{months} months ago"


def format_days_remaining(expires_at: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    diff_days = math.ceil((expires_at - now).total_seconds() / 86400)
    if diff_days <= 0:
        return "Expired"
    if diff_days == 1:
        return "1 day left"
    return f"{diff_days} days left"


def default_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + timedelta(days=config.JOB_EXPIRY_DAYS)


# ------------------------------
# Reads
# ------------------------------
def published_filter():
    return (JobPosting.is_draft == False, JobPosting.is_expired == False)  # noqa: E712


def list_jobs(session: Session, department: Optional[str] = None) -> List[JobPosting]:
    stmt = select(JobPosting).where(*published_filter())
    if department:
        stmt = stmt.where(JobPosting.department == department)
    stmt = stmt.order_by(JobPosting.created_at.desc())
    return list(session.exec(stmt).all())


def trending_jobs(session: Session, limit: int = 3) -> List[JobPosting]:
    stmt = (
        select(JobPosting)
        .where(JobPosting.featured == True, *published_filter())  # noqa: E712
        .order_by(JobPosting.created_at.desc())
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def get_job(session: Session, job_id: int, include_drafts: bool = False) -> JobPosting:
    job = session.get(JobPosting, job_id)
    if job is None or (job.is_draft and not include_drafts):
        raise NotFoundError(f"Job {job_id} not found")
    return job


def jobs_for_user(session: Session, user_id: int) -> List[JobPosting]:
    stmt = (
        select(JobPosting)
        .where(JobPosting.user_id == user_id)
        .order_by(JobPosting.created_at.desc())
    )
    return list(session.exec(stmt).all())


def draft_jobs(session: Session) -> List[JobPosting]:
    stmt = (
        select(JobPosting)
        .where(JobPosting.is_draft == True)  # noqa: E712
        .order_by(JobPosting.created_at.desc())
    )
    return list(session.exec(stmt).all())


def admin_job_query(
    session: Session,
    search: str = "",
    status: str = "published",
    department: str = "all",
    sort_by: str = "created_at",
    order: str = "desc",
    page: int = 1,
    page_size: int = config.ADMIN_PAGE_SIZE,
) -> Tuple[List[JobPosting], int]:
    """Filtered, sorted, paged listing for the admin jobs table."""
    conditions = []
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(
            or_(
                func.lower(JobPosting.title).like(pattern),
                func.lower(JobPosting.company).like(pattern),
                func.lower(JobPosting.location).like(pattern),
            )
        )
    if status == "draft":
        conditions.append(JobPosting.is_draft == True)  # noqa: E712
    elif status == "published":
        conditions.extend(published_filter())
    elif status == "expired":
        conditions.append(JobPosting.is_expired == True)  # noqa: E712
    elif status == "featured":
        conditions.append(JobPosting.featured == True)  # noqa: E712
    if department and department != "all":
        conditions.append(JobPosting.department == department)

    total = session.exec(select(func.count()).select_from(JobPosting).where(*conditions)).one()

    column = getattr(JobPosting, sort_by if sort_by in ADMIN_SORT_COLUMNS else "created_at")
    stmt = (
        select(JobPosting)
        .where(*conditions)
        .order_by(column.asc() if order == "asc" else column.desc())
        .offset((max(page, 1) - 1) * page_size)
        .limit(page_size)
    )
    return list(session.exec(stmt).all()), total


# ------------------------------
# Writes
# ------------------------------
def _apply_form(job: JobPosting, form: JobForm):
    job.title = form.title.strip()
    job.company = form.company.strip()
    job.location = form.location.strip()
    job.type = form.type or "Full-time"
    job.salary = form.salary
    job.description = form.description
    job.responsibilities = list(form.responsibilities)
    job.requirements = list(form.requirements)
    job.benefits = list(form.benefits)
    job.logo = form.logo or PLACEHOLDER_LOGO
    job.featured = form.featured
    job.application_url = form.application_url or None
    job.contact_email = form.contact_email
    for name in (
        "department", "seniority_level", "salary_range", "equity", "remote_onsite",
        "work_hours", "visa_sponsorship", "hiring_urgency", "investment_stage",
        "team_size", "revenue_model",
    ):
        setattr(job, name, getattr(form, name))
    if form.expires_at:
        job.expires_at = form.expires_at


def create_job(
    session: Session,
    form: JobForm,
    user_id: Optional[int],
    is_draft: bool = False,
    now: Optional[datetime] = None,
) -> JobPosting:
    missing = form.missing_fields()
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    now = now or utcnow()
    job = JobPosting(
        title="",
        company="",
        location="",
        user_id=user_id,
        is_draft=is_draft,
        posted=now,
        created_at=now,
        updated_at=now,
        expires_at=default_expiry(now),
    )
    _apply_form(job, form)
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info("📝 Created job %s: %s at %s", job.id, job.title, job.company)
    return job


def update_job(
    session: Session,
    job_id: int,
    form: JobForm,
    user_id: Optional[int],
    is_admin: bool = False,
) -> JobPosting:
    job = get_job(session, job_id, include_drafts=True)
    if not is_admin and job.user_id != user_id:
        raise PermissionDenied("Only the poster can edit this job")
    missing = form.missing_fields()
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    _apply_form(job, form)
    job.updated_at = utcnow()
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info("✏️ Updated job %s", job.id)
    return job


def delete_job(session: Session, job_id: int):
    job = get_job(session, job_id, include_drafts=True)
    for saved in session.exec(select(SavedJob).where(SavedJob.job_id == job_id)).all():
        session.delete(saved)
    session.delete(job)
    session.commit()
    logger.info("🗑️ Deleted job %s", job_id)


def publish_draft(session: Session, job_id: int, now: Optional[datetime] = None) -> JobPosting:
    job = get_job(session, job_id, include_drafts=True)
    now = now or utcnow()
    job.is_draft = False
    job.posted = now
    job.updated_at = now
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info("📢 Published draft %s: %s", job.id, job.title)
    return job


def set_featured(session: Session, job_id: int, featured: bool) -> JobPosting:
    job = get_job(session, job_id, include_drafts=True)
    job.featured = featured
    job.updated_at = utcnow()
    session.add(job)
    session.commit()
    session.refresh(job)
    return job


def mark_expired_jobs(session: Session, now: Optional[datetime] = None) -> List[JobPosting]:
    """Flag every unexpired job whose expires_at is in the past."""
    now = now or utcnow()
    stmt = select(JobPosting).where(
        JobPosting.expires_at < now,
        JobPosting.is_expired == False,  # noqa: E712
    )
    expired = list(session.exec(stmt).all())
    for job in expired:
        job.is_expired = True
        session.add(job)
    session.commit()

    logger.info("⌛ Marked %d jobs as expired", len(expired))
    for job in expired:
        logger.info("  expired: %s %s at %s (expires_at=%s)", job.id, job.title, job.company, job.expires_at)
    return expired


def save_logo(content: bytes, filename: str, user_id: int, now: Optional[datetime] = None) -> str:
    """Write an uploaded logo under LOGO_DIR and return its public path."""
    if not content:
        raise ValidationError("Empty logo file")
    now = now or utcnow()
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", os.path.basename(filename or "logo"))
    stored_name = f"{user_id}-{int(now.timestamp() * 1000)}-{safe_name}"

    os.makedirs(config.LOGO_DIR, exist_ok=True)
    with open(os.path.join(config.LOGO_DIR, stored_name), "wb") as f:
        f.write(content)

    logger.info("🖼️ Stored logo %s", stored_name)
    return f"/static/logos/{stored_name}"


SAMPLE_JOBS = [
    {
        "title": "Senior Frontend Developer",
        "company": "TechVision",
        "location": "San Francisco, CA",
        "salary": "$120,000 - $150,000",
        "type": "Full-time",
        "description": "TechVision is looking for a Senior Frontend Developer to build and maintain "
                       "high-quality user interfaces for our web applications.",
        "responsibilities": [
            "Develop user interface components using React.js",
            "Optimize applications for maximum speed and scalability",
            "Write unit and integration tests for your code",
        ],
        "requirements": [
            "5+ years of experience with JavaScript and front-end frameworks",
            "Experience with responsive design and CSS frameworks",
        ],
        "benefits": ["Competitive salary and equity package", "Professional development budget"],
        "featured": True,
        "application_url": "https://techvision.com/careers/senior-frontend-developer",
        "department": "Engineering",
        "seniority_level": "Senior",
        "remote_onsite": "Hybrid",
    },
    {
        "title": "Product Designer",
        "company": "DesignPulse",
        "location": "Remote",
        "salary": "$90,000 - $120,000",
        "type": "Remote",
        "description": "DesignPulse is seeking a Product Designer to create user experiences for our "
                       "digital products alongside product managers and engineers.",
        "responsibilities": [
            "Create wireframes, prototypes, and high-fidelity mockups",
            "Conduct user research and usability testing",
        ],
        "requirements": ["3+ years of experience in UI/UX design", "Proficiency with Figma"],
        "benefits": ["Completely remote work environment", "Annual company retreats"],
        "featured": True,
        "application_url": "https://designpulse.io/jobs/product-designer",
        "department": "Design",
        "seniority_level": "Mid-Level",
        "remote_onsite": "Fully Remote",
    },
    {
        "title": "Growth Marketing Lead",
        "company": "Seedling",
        "location": "New York, NY",
        "salary": "$100,000 - $130,000",
        "type": "Full-time",
        "description": "Seedling needs a Growth Marketing Lead to own acquisition experiments from "
                       "idea to analysis.",
        "responsibilities": ["Run paid and organic acquisition experiments"],
        "requirements": ["4+ years in growth or performance marketing"],
        "benefits": ["Early-stage equity"],
        "featured": False,
        "application_url": "https://seedling.co/careers/growth",
        "department": "Marketing",
        "seniority_level": "Lead",
        "remote_onsite": "Onsite",
        "investment_stage": "Seed",
        "equity": "0.5%-1%",
    },
]


def seed_jobs(session: Session) -> int:
    """Insert the sample listings when the board is empty."""
    existing = session.exec(select(func.count()).select_from(JobPosting)).one()
    if existing:
        return 0
    for data in SAMPLE_JOBS:
        create_job(session, JobForm(**data), user_id=None)
    logger.info("🌱 Seeded %d sample jobs", len(SAMPLE_JOBS))
    return len(SAMPLE_JOBS)
