# models.py
from typing import Any, List, Optional
from datetime import datetime, timezone

from sqlalchemy import Column, JSON, UniqueConstraint
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    # naive UTC, which is what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


# scraping job statuses
PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"

# batch-only statuses
PROCESSING = "processing"
CANCELLED = "cancelled"


class JobPosting(SQLModel, table=True):
    __tablename__ = "job_postings"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    company: str
    location: str
    type: str = "Full-time"
    salary: str = ""
    description: str = ""
    responsibilities: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    requirements: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    benefits: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    logo: str = ""
    featured: bool = False
    application_url: Optional[str] = None
    contact_email: Optional[str] = None
    user_id: Optional[int] = Field(default=None, foreign_key="profiles.id")

    # startup / role details used by the filters
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

    is_draft: bool = False
    is_expired: bool = False
    posted: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    # provenance of scraped drafts
    scraped_at: Optional[datetime] = None
    scraping_job_id: Optional[int] = Field(default=None, foreign_key="scraping_jobs.id")
    source_url: Optional[str] = None


class CareerPageSource(SQLModel, table=True):
    __tablename__ = "career_page_sources"

    id: Optional[int] = Field(default=None, primary_key=True)
    url: str = Field(index=True, unique=True)
    company_name: Optional[str] = None
    added_by: Optional[int] = None
    is_active: bool = True
    last_scraped_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ScrapingBatch(SQLModel, table=True):
    __tablename__ = "scraping_batches"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_by: Optional[int] = None
    status: str = PENDING
    total_urls: int = 0
    completed_urls: int = 0
    failed_urls: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class ScrapingJob(SQLModel, table=True):
    __tablename__ = "scraping_jobs"

    id: Optional[int] = Field(default=None, primary_key=True)
    # null for single job-URL scrapes, which record the URL directly
    source_id: Optional[int] = Field(default=None, foreign_key="career_page_sources.id")
    batch_id: Optional[int] = Field(default=None, foreign_key="scraping_batches.id")
    url: Optional[str] = None
    created_by: Optional[int] = None
    status: str = Field(default=PENDING, index=True)
    priority: int = 0
    retry_count: int = 0
    max_retries: int = 3
    gobi_task_id: Optional[str] = Field(default=None, index=True)
    task_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    task_timeout_minutes: Optional[int] = None
    timeout_at: Optional[datetime] = None
    jobs_found: Optional[int] = None
    jobs_created: Optional[int] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    last_polled_at: Optional[datetime] = None
    gobi_status_checked_at: Optional[datetime] = None


class TaskStatusHistory(SQLModel, table=True):
    __tablename__ = "task_status_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    scraping_job_id: Optional[int] = Field(default=None, foreign_key="scraping_jobs.id")
    status: str
    gobi_response: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    response_time_ms: Optional[int] = None
    checked_at: datetime = Field(default_factory=utcnow)


class JobRecoveryLog(SQLModel, table=True):
    __tablename__ = "job_recovery_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    scraping_job_id: Optional[int] = Field(default=None, foreign_key="scraping_jobs.id")
    recovery_action: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    recovery_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class QueueMonitoring(SQLModel, table=True):
    __tablename__ = "queue_monitoring"

    id: Optional[int] = Field(default=None, primary_key=True)
    queue_size: int = 0
    processed_jobs: int = 0
    failed_jobs: int = 0
    processing_time_ms: Optional[int] = None
    trigger_source: str = "cron"
    created_at: datetime = Field(default_factory=utcnow)


class WebhookHealth(SQLModel, table=True):
    __tablename__ = "webhook_health"

    id: Optional[int] = Field(default=None, primary_key=True)
    webhook_type: str = Field(index=True, unique=True)
    last_received_at: Optional[datetime] = None
    is_active: bool = True
    failure_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ScrapingConfig(SQLModel, table=True):
    __tablename__ = "scraping_config"

    key: str = Field(primary_key=True)
    value: Any = Field(default=None, sa_column=Column(JSON))
    description: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    full_name: Optional[str] = None
    user_type: Optional[str] = None  # "job_seeker" | "job_poster"

    # job poster fields
    company_name: Optional[str] = None
    company_website: Optional[str] = None
    company_description: Optional[str] = None
    company_size: Optional[str] = None
    industry: Optional[str] = None
    logo_url: Optional[str] = None

    # job seeker fields
    job_title: Optional[str] = None
    experience_years: Optional[int] = None
    skills: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    preferred_locations: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    preferred_job_types: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    resume_url: Optional[str] = None
    website: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AdminUser(SQLModel, table=True):
    __tablename__ = "admin_users"

    id: int = Field(primary_key=True, foreign_key="profiles.id")
    created_at: datetime = Field(default_factory=utcnow)


class AuthSession(SQLModel, table=True):
    __tablename__ = "auth_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profiles.id", index=True)
    token_hash: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


class SavedJob(SQLModel, table=True):
    __tablename__ = "saved_jobs"
    __table_args__ = (UniqueConstraint("profile_id", "job_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profiles.id", index=True)
    job_id: int = Field(foreign_key="job_postings.id")
    saved_at: datetime = Field(default_factory=utcnow)
