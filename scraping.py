# scraping.py
"""
Career-page scraping pipeline.

A scraping job moves pending -> running -> completed | failed. Work is
submitted to the browser automation API by the queue processor; results come
back either on the webhook or through the poller, and both paths funnel into
reconcile_results(), which claims the job before importing drafts so a
result is only imported once.
"""
import ast
import json
import logging
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, select

import config
from errors import AutomationAPIError, NotFoundError, ValidationError
from gobii import GobiiClient, build_career_page_prompt
from jobs import default_expiry, parse_list_field
from models import (
    CANCELLED, COMPLETED, FAILED, PENDING, PROCESSING, RUNNING,
    CareerPageSource, JobPosting, JobRecoveryLog, QueueMonitoring, ScrapingBatch,
    ScrapingConfig, ScrapingJob, TaskStatusHistory, WebhookHealth, utcnow,
)

logger = logging.getLogger("scraping")

WEBHOOK_TYPE = "gobii-webhook"
IN_FLIGHT_STATUSES = ("in_progress", "running", "pending")


# ------------------------------
# Helpers
# ------------------------------
def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_urls(text: str) -> List[str]:
    """One URL per line; blank lines and anything that isn't an absolute http(s) URL are dropped."""
    return [line.strip() for line in (text or "").splitlines() if line.strip() and is_valid_url(line.strip())]


def backoff_seconds(retry_count: int) -> float:
    if retry_count <= 0:
        return 0
    return min(2 ** (retry_count - 1), config.MAX_BACKOFF_SECONDS)


def webhook_url() -> str:
    return f"{config.PUBLIC_BASE_URL}/functions/gobii-webhook"


def get_timeout_minutes(session: Session) -> int:
    row = session.get(ScrapingConfig, "task_timeout_minutes")
    if row is not None and isinstance(row.value, (int, float)) and row.value > 0:
        return int(row.value)
    return config.TASK_TIMEOUT_MINUTES


def _count(session: Session, *conditions) -> int:
    return session.exec(select(func.count()).select_from(ScrapingJob).where(*conditions)).one()


def log_recovery(
    session: Session,
    job: ScrapingJob,
    action: str,
    old_status: str,
    new_status: str,
    reason: str,
):
    session.add(JobRecoveryLog(
        scraping_job_id=job.id,
        recovery_action=action,
        old_status=old_status,
        new_status=new_status,
        recovery_reason=reason,
    ))


def source_for(session: Session, job: ScrapingJob) -> Optional[CareerPageSource]:
    if job.source_id is None:
        return None
    return session.get(CareerPageSource, job.source_id)


# ------------------------------
# Submission
# ------------------------------
def upsert_source(
    session: Session,
    url: str,
    company_name: Optional[str] = None,
    added_by: Optional[int] = None,
) -> CareerPageSource:
    url = url.strip()
    if not is_valid_url(url):
        raise ValidationError(f"Invalid URL: {url}")

    source = session.exec(select(CareerPageSource).where(CareerPageSource.url == url)).first()
    now = utcnow()
    if source is None:
        source = CareerPageSource(url=url, company_name=company_name or None, added_by=added_by)
    else:
        if company_name:
            source.company_name = company_name
        source.updated_at = now
    session.add(source)
    session.commit()
    session.refresh(source)
    return source


def enqueue_career_page(
    session: Session,
    url: str,
    company_name: Optional[str] = None,
    created_by: Optional[int] = None,
    priority: int = 0,
    batch_id: Optional[int] = None,
) -> ScrapingJob:
    source = upsert_source(session, url, company_name, created_by)
    job = ScrapingJob(
        source_id=source.id,
        batch_id=batch_id,
        created_by=created_by,
        priority=priority,
        max_retries=config.MAX_RETRIES,
        status=PENDING,
    )
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info("📥 Queued scraping job %s for %s", job.id, source.url)
    return job


def create_batch(session: Session, urls_text: str, created_by: Optional[int] = None) -> Tuple[ScrapingBatch, int]:
    urls = parse_urls(urls_text)
    if not urls:
        raise ValidationError("Please enter at least one valid URL")
    if len(urls) > config.MAX_BATCH_URLS:
        raise ValidationError(f"Maximum {config.MAX_BATCH_URLS} URLs allowed per batch")

    batch = ScrapingBatch(created_by=created_by, total_urls=len(urls), status=PENDING)
    session.add(batch)
    session.commit()
    session.refresh(batch)

    queued = 0
    for url in urls:
        try:
            enqueue_career_page(session, url, created_by=created_by, batch_id=batch.id)
            queued += 1
        except Exception:
            session.rollback()
            logger.exception("Error queueing URL %s", url)

    if queued == 0:
        batch.status = FAILED
        session.add(batch)
        session.commit()
        raise ValidationError("No valid URLs to process")

    batch.status = PROCESSING
    batch.total_urls = queued
    batch.updated_at = utcnow()
    session.add(batch)
    session.commit()
    session.refresh(batch)
    logger.info("📦 Created batch %s with %d jobs", batch.id, queued)
    return batch, queued


def submit_job(session: Session, job: ScrapingJob, client: GobiiClient, now: datetime):
    source = source_for(session, job)
    url = source.url if source else job.url
    company = source.company_name if source else None
    if not url:
        raise ValidationError(f"Scraping job {job.id} has no URL")

    job.status = RUNNING
    job.started_at = now
    session.add(job)
    session.commit()

    logger.info("🚀 Submitting job %s to Gobii: %s", job.id, url)
    task = client.submit_task(build_career_page_prompt(url, company), webhook_url=webhook_url())
    status = task.get("status")

    if source is not None:
        source.last_scraped_at = now
        session.add(source)

    if status == COMPLETED:
        job.gobi_task_id = task.get("id")
        job.task_data = task
        job.retry_count = 0
        session.add(job)
        session.commit()
        reconcile_results(session, job, task_jobs(task), now)
    elif status in IN_FLIGHT_STATUSES:
        timeout = job.task_timeout_minutes or get_timeout_minutes(session)
        job.gobi_task_id = task.get("id")
        job.task_data = task
        job.retry_count = 0
        job.timeout_at = now + timedelta(minutes=timeout)
        session.add(job)
        session.commit()
        logger.info("⏳ Job %s running asynchronously as task %s", job.id, job.gobi_task_id)
    elif status == FAILED:
        raise AutomationAPIError(f"Gobii task failed: {task.get('error_message') or 'no error given'}")
    else:
        raise AutomationAPIError(f"Unexpected Gobii status: {status}")


def process_queue(
    session: Session,
    client: GobiiClient,
    now: Optional[datetime] = None,
    sleep=time.sleep,
    trigger_source: str = "cron",
) -> dict:
    """Submit the next few pending jobs, retrying failures with exponential backoff."""
    started = time.monotonic()
    now = now or utcnow()
    processed = failed = 0

    queue_size = _count(session, ScrapingJob.status == PENDING)
    logger.info("📋 Pending jobs in queue: %d", queue_size)

    stmt = (
        select(ScrapingJob)
        .where(ScrapingJob.status == PENDING, ScrapingJob.retry_count < config.MAX_RETRIES)
        .order_by(ScrapingJob.priority.desc(), ScrapingJob.started_at.asc())
        .limit(config.QUEUE_BATCH_SIZE)
    )
    pending = list(session.exec(stmt).all())

    for index, job in enumerate(pending):
        if job.retry_count and (now - job.started_at).total_seconds() < backoff_seconds(job.retry_count):
            logger.info("Job %s in backoff period, skipping for now", job.id)
            continue

        try:
            submit_job(session, job, client, now)
            processed += 1
        except Exception as e:
            session.rollback()
            failed += 1
            logger.exception("Error processing job %s: %s", job.id, e)

            retry_count = job.retry_count + 1
            max_retries = job.max_retries or config.MAX_RETRIES
            give_up = retry_count >= max_retries
            job.retry_count = retry_count
            job.status = FAILED if give_up else PENDING
            job.error_message = str(e) if give_up else f"Retry {retry_count}/{max_retries}: {e}"
            job.completed_at = now if give_up else None
            session.add(job)
            session.commit()
            if give_up:
                logger.warning("Job %s failed permanently after %d retries", job.id, retry_count)
                update_batch_progress(session, job.batch_id)

        if index < len(pending) - 1 and config.SUBMIT_DELAY_SECONDS:
            sleep(config.SUBMIT_DELAY_SECONDS)

    elapsed_ms = int((time.monotonic() - started) * 1000)
    session.add(QueueMonitoring(
        processed_jobs=processed,
        failed_jobs=failed,
        queue_size=queue_size,
        processing_time_ms=elapsed_ms,
        trigger_source=trigger_source,
    ))
    session.commit()

    logger.info("✅ Queue processed: %d/%d submitted, %d failed, %dms", processed, len(pending), failed, elapsed_ms)
    return {
        "processed": processed,
        "failed": failed,
        "total": len(pending),
        "queueSize": queue_size,
        "processingTime": elapsed_ms,
    }


# ------------------------------
# Reconciliation
# ------------------------------
def task_result(data: dict) -> dict:
    """The task's result object; anything that is not a dict counts as empty."""
    result = data.get("result")
    return result if isinstance(result, dict) else {}


def task_jobs(data: dict) -> list:
    jobs = task_result(data).get("jobs")
    return jobs if isinstance(jobs, list) else []


def draft_from_task_job(
    data: dict,
    job: ScrapingJob,
    source: Optional[CareerPageSource],
    now: datetime,
) -> JobPosting:
    source_url = source.url if source else job.url
    company = data.get("company") or (source.company_name if source else None) or "Unknown Company"
    visa = data.get("visa_sponsorship")
    return JobPosting(
        title=(data.get("title") or "Untitled Position").strip(),
        company=company.strip(),
        location=data.get("location") or "Remote",
        type=data.get("type") or "Full-time",
        salary=data.get("salary") or "Competitive",
        description=data.get("description") or "No description available",
        responsibilities=parse_list_field(data.get("responsibilities")),
        requirements=parse_list_field(data.get("requirements")),
        benefits=parse_list_field(data.get("benefits")),
        logo=data.get("logo") or "",
        featured=False,
        application_url=data.get("application_url") or data.get("url") or source_url,
        user_id=None,
        department=data.get("department") or None,
        seniority_level=data.get("seniority_level") or None,
        remote_onsite=data.get("remote_onsite") or None,
        equity=data.get("equity") or None,
        visa_sponsorship=visa if isinstance(visa, bool) else None,
        is_draft=True,
        posted=now,
        created_at=now,
        updated_at=now,
        scraped_at=now,
        scraping_job_id=job.id,
        source_url=source_url,
        expires_at=default_expiry(now),
    )


def reconcile_results(
    session: Session,
    job: ScrapingJob,
    postings: Iterable,
    now: Optional[datetime] = None,
) -> int:
    """
    Import a finished task's postings as drafts and complete the job.

    The job row is claimed with a conditional UPDATE first; whichever of the
    webhook or poller gets there second sees zero rows updated and does
    nothing. Within one import, postings already present as drafts for this
    job (same title and company) are skipped.

    Returns the number of drafts created.
    """
    now = now or utcnow()
    postings = list(postings or [])

    claimed = session.execute(
        update(ScrapingJob)
        .where(ScrapingJob.id == job.id, ScrapingJob.status != COMPLETED)
        .values(status=COMPLETED, completed_at=now)
    )
    if claimed.rowcount == 0:
        session.rollback()
        logger.info("Scraping job %s already reconciled, skipping", job.id)
        return 0

    source = source_for(session, job)
    existing = {
        (p.title, p.company)
        for p in session.exec(
            select(JobPosting).where(JobPosting.scraping_job_id == job.id, JobPosting.is_draft == True)  # noqa: E712
        ).all()
    }

    created = 0
    errors = []
    for data in postings:
        if not isinstance(data, dict):
            errors.append(f"unreadable posting: {data!r}"[:200])
            continue
        draft = draft_from_task_job(data, job, source, now)
        key = (draft.title, draft.company)
        if key in existing:
            logger.info("Skipping duplicate draft %s at %s", draft.title, draft.company)
            continue
        session.add(draft)
        existing.add(key)
        created += 1
        logger.info("✅ Created draft: %s at %s", draft.title, draft.company)

    job.status = COMPLETED
    job.completed_at = now
    job.jobs_found = len(postings)
    job.jobs_created = created
    job.error_message = f"Some jobs failed: {'; '.join(errors)}" if errors else None
    session.add(job)
    session.commit()
    session.refresh(job)

    update_batch_progress(session, job.batch_id)
    logger.info("🎉 Scraping job %s completed: %d/%d drafts created", job.id, created, len(postings))
    return created


def mark_failed(session: Session, job: ScrapingJob, message: str, now: Optional[datetime] = None):
    now = now or utcnow()
    job.status = FAILED
    job.completed_at = now
    job.error_message = message
    session.add(job)
    session.commit()
    update_batch_progress(session, job.batch_id)
    logger.warning("❌ Scraping job %s failed: %s", job.id, message)


def update_batch_progress(session: Session, batch_id: Optional[int]):
    if batch_id is None:
        return
    batch = session.get(ScrapingBatch, batch_id)
    if batch is None or batch.status == CANCELLED:
        return

    completed = _count(session, ScrapingJob.batch_id == batch_id, ScrapingJob.status == COMPLETED)
    failed = _count(session, ScrapingJob.batch_id == batch_id, ScrapingJob.status == FAILED)
    batch.completed_urls = completed
    batch.failed_urls = failed
    batch.updated_at = utcnow()
    if completed + failed >= batch.total_urls:
        batch.status = FAILED if completed == 0 else COMPLETED
        batch.completed_at = batch.updated_at
    session.add(batch)
    session.commit()


def handle_webhook(session: Session, payload: dict, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    task_id = payload.get("task_id") or payload.get("id")
    if not task_id:
        raise ValidationError("Missing task_id")

    job = session.exec(select(ScrapingJob).where(ScrapingJob.gobi_task_id == str(task_id))).first()
    if job is None:
        raise NotFoundError(f"Scraping job not found for task {task_id}")

    status = payload.get("status")
    result = task_result(payload)
    logger.info("📨 Webhook for task %s (job %s): %s", task_id, job.id, status)

    if status == COMPLETED:
        created = reconcile_results(session, job, task_jobs(payload), now)
        record_webhook_success(session, now)
        return {"success": True, "jobs_created": created}
    if status == FAILED:
        mark_failed(session, job, result.get("error") or "Job failed without specific error", now)
        record_webhook_success(session, now)
        return {"success": True, "message": "Job marked as failed"}
    raise ValidationError(f"Unknown status: {status}")


def _webhook_row(session: Session) -> WebhookHealth:
    row = session.exec(select(WebhookHealth).where(WebhookHealth.webhook_type == WEBHOOK_TYPE)).first()
    return row or WebhookHealth(webhook_type=WEBHOOK_TYPE)


def record_webhook_success(session: Session, now: Optional[datetime] = None):
    now = now or utcnow()
    row = _webhook_row(session)
    row.last_received_at = now
    row.is_active = True
    row.failure_count = 0
    row.updated_at = now
    session.add(row)
    session.commit()


def record_webhook_failure(session: Session, now: Optional[datetime] = None):
    now = now or utcnow()
    row = _webhook_row(session)
    row.failure_count = (row.failure_count or 0) + 1
    row.is_active = False
    row.updated_at = now
    session.add(row)
    session.commit()


def reset_webhook_health(session: Session, webhook_id: int) -> WebhookHealth:
    row = session.get(WebhookHealth, webhook_id)
    if row is None:
        raise NotFoundError(f"Webhook health row {webhook_id} not found")
    row.failure_count = 0
    row.is_active = True
    row.updated_at = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def list_webhook_health(session: Session) -> List[WebhookHealth]:
    return list(session.exec(select(WebhookHealth).order_by(WebhookHealth.created_at.desc())).all())


# ------------------------------
# Polling and timeouts
# ------------------------------
def poll_tasks(session: Session, client: GobiiClient, now: Optional[datetime] = None) -> dict:
    """Pull-side reconciliation for tasks whose webhook may never arrive."""
    now = now or utcnow()
    cutoff = now - timedelta(minutes=config.POLL_INTERVAL_MINUTES)
    stmt = select(ScrapingJob).where(
        ScrapingJob.status == RUNNING,
        ScrapingJob.gobi_task_id.is_not(None),
        or_(ScrapingJob.last_polled_at.is_(None), ScrapingJob.last_polled_at < cutoff),
    )
    running = list(session.exec(stmt).all())
    summary = {"polled": 0, "completed": 0, "failed": 0, "timed_out": 0}
    logger.info("🔄 Polling %d running tasks", len(running))

    for job in running:
        try:
            started = time.monotonic()
            data = client.get_status(job.gobi_task_id)
        except AutomationAPIError as e:
            logger.warning("Failed to get status for task %s: %s", job.gobi_task_id, e)
            continue

        try:
            status = data.get("status")
            job.last_polled_at = now
            job.gobi_status_checked_at = now
            session.add(job)
            session.add(TaskStatusHistory(
                scraping_job_id=job.id,
                status=status or "unknown",
                gobi_response=data,
                response_time_ms=int((time.monotonic() - started) * 1000),
                checked_at=now,
            ))
            session.commit()
            summary["polled"] += 1

            if status in IN_FLIGHT_STATUSES:
                timeout = job.task_timeout_minutes or get_timeout_minutes(session)
                if now - job.started_at > timedelta(minutes=timeout):
                    message = f"Task timed out after {timeout} minutes"
                    log_recovery(session, job, "timeout_recovery", RUNNING, FAILED, message)
                    mark_failed(session, job, message, now)
                    summary["timed_out"] += 1
            elif status == COMPLETED:
                has_drafts = session.exec(
                    select(JobPosting.id).where(JobPosting.scraping_job_id == job.id)
                ).first()
                # drafts can already exist when an admin re-ran the job; reconcile skips those
                created = reconcile_results(session, job, task_jobs(data), now)
                if has_drafts is None:
                    logger.info("No drafts for completed task %s, webhook may have missed it", job.gobi_task_id)
                    log_recovery(
                        session, job, "webhook_backup_trigger", RUNNING, COMPLETED,
                        f"Poller imported {created} drafts for completed task",
                    )
                    session.commit()
                summary["completed"] += 1
            elif status == FAILED:
                mark_failed(session, job, task_result(data).get("error") or "Task failed without specific error", now)
                summary["failed"] += 1
        except Exception:
            session.rollback()
            logger.exception("Error polling job %s", job.id)

    counts = dict(session.exec(select(ScrapingJob.status, func.count()).group_by(ScrapingJob.status)).all())
    logger.info("Job processing health stats: %s", counts)
    session.add(QueueMonitoring(
        queue_size=counts.get(PENDING, 0),
        processed_jobs=counts.get(COMPLETED, 0),
        failed_jobs=counts.get(FAILED, 0),
        trigger_source="polling_health_check",
    ))
    session.commit()
    return summary


def handle_task_timeouts(session: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    default_minutes = get_timeout_minutes(session)
    stmt = (
        select(ScrapingJob)
        .where(
            ScrapingJob.status == RUNNING,
            or_(
                ScrapingJob.timeout_at < now,
                and_(
                    ScrapingJob.timeout_at.is_(None),
                    ScrapingJob.started_at < now - timedelta(minutes=default_minutes),
                ),
            ),
        )
        .order_by(ScrapingJob.started_at.asc())
    )
    timed_out = 0
    for job in session.exec(stmt).all():
        try:
            age_minutes = int((now - job.started_at).total_seconds() // 60)
            threshold = job.task_timeout_minutes or default_minutes
            session.add(TaskStatusHistory(
                scraping_job_id=job.id,
                status="timeout",
                gobi_response={
                    "reason": "Task exceeded timeout threshold",
                    "age_minutes": age_minutes,
                    "timeout_threshold_minutes": threshold,
                },
                checked_at=now,
            ))
            message = f"Task timed out after {age_minutes} minutes (threshold: {threshold} minutes)"
            log_recovery(session, job, "timeout_recovery", RUNNING, FAILED, message)
            mark_failed(session, job, message, now)
            timed_out += 1
        except Exception:
            session.rollback()
            logger.exception("Error timing out task %s", job.id)

    logger.info("⏰ Timeout handling completed, timed out: %d", timed_out)
    return {"timedOutTasks": timed_out}


# ------------------------------
# Admin recovery tools
# ------------------------------
def find_stuck_jobs(session: Session, now: Optional[datetime] = None) -> List[Tuple[ScrapingJob, Optional[CareerPageSource]]]:
    now = now or utcnow()
    stmt = (
        select(ScrapingJob, CareerPageSource)
        .join(CareerPageSource, ScrapingJob.source_id == CareerPageSource.id, isouter=True)
        .where(
            ScrapingJob.status == RUNNING,
            ScrapingJob.started_at < now - timedelta(minutes=config.STUCK_JOB_MINUTES),
        )
        .order_by(ScrapingJob.started_at.asc())
    )
    return list(session.exec(stmt).all())


def _get_scraping_job(session: Session, job_id: int) -> ScrapingJob:
    job = session.get(ScrapingJob, job_id)
    if job is None:
        raise NotFoundError(f"Scraping job {job_id} not found")
    return job


def cancel_job(session: Session, job_id: int) -> ScrapingJob:
    job = _get_scraping_job(session, job_id)
    log_recovery(session, job, "manual_cancellation", job.status, FAILED, "Cancelled by admin")
    mark_failed(session, job, "Job cancelled manually by admin")
    return job


def retry_job(session: Session, job_id: int) -> ScrapingJob:
    job = _get_scraping_job(session, job_id)
    log_recovery(session, job, "manual_retry", job.status, PENDING, "Retried by admin")
    job.status = PENDING
    job.retry_count = 0
    job.error_message = None
    job.gobi_task_id = None
    job.task_data = None
    job.timeout_at = None
    job.completed_at = None
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info("🔁 Scraping job %s re-queued by admin", job.id)
    return job


def _draft_groups(session: Session) -> dict:
    stmt = (
        select(JobPosting)
        .where(JobPosting.is_draft == True, JobPosting.scraping_job_id.is_not(None))  # noqa: E712
        .order_by(JobPosting.created_at.asc(), JobPosting.id.asc())
    )
    groups = {}
    for draft in session.exec(stmt).all():
        groups.setdefault((draft.scraping_job_id, draft.title, draft.company), []).append(draft)
    return groups


def duplicate_stats(session: Session) -> dict:
    groups = _draft_groups(session)
    total = sum(len(g) for g in groups.values())
    duplicate_groups = [g for g in groups.values() if len(g) > 1]
    duplicate_jobs = sum(len(g) - 1 for g in duplicate_groups)
    return {
        "totalDrafts": total,
        "duplicateGroups": len(duplicate_groups),
        "duplicateJobs": duplicate_jobs,
        "uniqueJobs": len(groups),
        "duplicateRate": (duplicate_jobs / total * 100) if total else 0.0,
    }


def cleanup_duplicates(session: Session) -> dict:
    """Keep the earliest draft of each (scraping job, title, company) group, delete the rest."""
    groups = _draft_groups(session)
    total = sum(len(g) for g in groups.values())
    doomed = [draft for group in groups.values() for draft in group[1:]]
    for draft in doomed:
        session.delete(draft)
    session.commit()
    logger.info("🧹 Cleaned up %d duplicate drafts, %d remain", len(doomed), total - len(doomed))
    return {"deleted": len(doomed), "remaining": total - len(doomed)}


# ------------------------------
# Monitoring
# ------------------------------
def queue_stats(session: Session, history: int = 10) -> dict:
    counts = dict(session.exec(select(ScrapingJob.status, func.count()).group_by(ScrapingJob.status)).all())
    recent = session.exec(
        select(QueueMonitoring).order_by(QueueMonitoring.created_at.desc()).limit(history)
    ).all()
    return {
        "pending": counts.get(PENDING, 0),
        "running": counts.get(RUNNING, 0),
        "completed": counts.get(COMPLETED, 0),
        "failed": counts.get(FAILED, 0),
        "recent_runs": list(recent),
    }


def system_health(session: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    last_run = session.exec(
        select(QueueMonitoring.created_at).order_by(QueueMonitoring.created_at.desc()).limit(1)
    ).first()
    return {
        "activeJobs": _count(session, ScrapingJob.status == RUNNING),
        "completedToday": _count(session, ScrapingJob.status == COMPLETED, ScrapingJob.completed_at >= today),
        "failedToday": _count(session, ScrapingJob.status == FAILED, ScrapingJob.completed_at >= today),
        "lastPollingRun": last_run,
    }


def recovery_log(session: Session, limit: int = 50) -> List[JobRecoveryLog]:
    stmt = select(JobRecoveryLog).order_by(JobRecoveryLog.created_at.desc(), JobRecoveryLog.id.desc()).limit(limit)
    return list(session.exec(stmt).all())


def recovery_stats(session: Session, now: Optional[datetime] = None) -> Optional[dict]:
    now = now or utcnow()
    logs = recovery_log(session)
    if not logs:
        return None
    actions = Counter(log.recovery_action for log in logs)
    successful = sum(1 for log in logs if log.new_status in (COMPLETED, PENDING))
    return {
        "totalRecoveries": len(logs),
        "last24Hours": sum(1 for log in logs if log.created_at > now - timedelta(hours=24)),
        "mostCommonAction": actions.most_common(1)[0][0],
        "successRate": successful / len(logs) * 100,
    }


def recent_scraping_jobs(session: Session, limit: int = 10) -> List[Tuple[ScrapingJob, Optional[CareerPageSource]]]:
    stmt = (
        select(ScrapingJob, CareerPageSource)
        .join(CareerPageSource, ScrapingJob.source_id == CareerPageSource.id, isouter=True)
        .order_by(ScrapingJob.started_at.desc(), ScrapingJob.id.desc())
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def recent_batches(session: Session, limit: int = 20) -> List[ScrapingBatch]:
    stmt = select(ScrapingBatch).order_by(ScrapingBatch.created_at.desc(), ScrapingBatch.id.desc()).limit(limit)
    return list(session.exec(stmt).all())


# ------------------------------
# Manual import of task output
# ------------------------------
def parse_task_output(text: str) -> List[dict]:
    """
    Accept task output pasted by an admin: JSON, or the Python-literal dict
    repr some task runners print (single quotes, True/False/None).
    """
    if not text or not text.strip():
        raise ValidationError("Nothing to import")
    try:
        parsed = json.loads(text)
    except ValueError:
        try:
            parsed = ast.literal_eval(text.strip())
        except (ValueError, SyntaxError) as e:
            raise ValidationError(f"Invalid JSON syntax: {e}")

    if not isinstance(parsed, dict):
        raise ValidationError("Invalid JSON format")
    jobs = parsed.get("jobs")
    if not isinstance(jobs, list):
        raise ValidationError('JSON must contain a "jobs" array')
    if not jobs:
        raise ValidationError("No jobs found in the JSON")
    return jobs


def validate_imported_job(data) -> List[str]:
    if not isinstance(data, dict):
        return ["Entry is not an object"]
    errors = []
    for name in ("title", "company", "description"):
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"{name.capitalize()} must be text")
        elif not (value or "").strip():
            errors.append(f"{name.capitalize()} is required")
    return errors


def import_jobs(
    session: Session,
    entries: List[dict],
    user_id: Optional[int],
    now: Optional[datetime] = None,
) -> Tuple[List[JobPosting], int]:
    """Create drafts for every valid entry; returns (drafts, skipped_count)."""
    now = now or utcnow()
    created = []
    skipped = 0
    for data in entries:
        if validate_imported_job(data):
            skipped += 1
            continue
        visa = data.get("visa_sponsorship")
        draft = JobPosting(
            title=data["title"].strip(),
            company=data["company"].strip(),
            location=data.get("location") or "Remote",
            type=data.get("type") or "Full-time",
            salary=data.get("salary") or "Competitive",
            description=data["description"],
            responsibilities=parse_list_field(data.get("responsibilities")),
            requirements=parse_list_field(data.get("requirements")),
            benefits=parse_list_field(data.get("benefits")),
            logo="",
            application_url=data.get("url") or data.get("application_url") or "",
            user_id=user_id,
            department=data.get("department"),
            seniority_level=data.get("seniority_level"),
            remote_onsite=data.get("remote_onsite"),
            equity=data.get("equity"),
            visa_sponsorship=visa if isinstance(visa, bool) else None,
            is_draft=True,
            posted=now,
            created_at=now,
            updated_at=now,
            source_url=data.get("url"),
            expires_at=default_expiry(now),
        )
        session.add(draft)
        created.append(draft)
    session.commit()
    for draft in created:
        session.refresh(draft)
    logger.info("📥 Imported %d drafts (%d invalid skipped)", len(created), skipped)
    return created, skipped
