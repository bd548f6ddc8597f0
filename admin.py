# admin.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from sqlmodel import Session

import config
import jobs
import scraping
from database import get_session
from errors import ValidationError
from extractor import scrape_job_url
from gobii import GobiiClient
from models import Profile
from web import job_form_from_request, redirect, render, require_admin

logger = logging.getLogger("admin")

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def get_client() -> GobiiClient:
    return GobiiClient()


# ------------------------------
# Dashboard and job tables
# ------------------------------
@router.get("", response_class=HTMLResponse)
def dashboard(
    request: Request,
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return render(
        request,
        "admin/dashboard.html",
        user,
        queue=scraping.queue_stats(session),
        health=scraping.system_health(session),
        recent_jobs=scraping.recent_scraping_jobs(session),
        batches=scraping.recent_batches(session),
        draft_count=len(jobs.draft_jobs(session)),
    )


@router.get("/jobs", response_class=HTMLResponse)
def jobs_table(
    request: Request,
    search: str = "",
    status: str = "published",
    department: str = "all",
    sort_by: str = "created_at",
    order: str = "desc",
    page: int = 1,
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    rows, total = jobs.admin_job_query(session, search, status, department, sort_by, order, page)
    pages = max(1, -(-total // config.ADMIN_PAGE_SIZE))
    return render(
        request,
        "admin/jobs.html",
        user,
        rows=rows,
        total=total,
        page=page,
        pages=pages,
        search=search,
        status=status,
        department=department,
        sort_by=sort_by,
        order=order,
        statuses=jobs.ADMIN_STATUS_FILTERS,
    )


@router.get("/jobs/{job_id}/edit", response_class=HTMLResponse)
def edit_job_page(
    request: Request,
    job_id: int,
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    job = jobs.get_job(session, job_id, include_drafts=True)
    return render(request, "post_job.html", user, job=job, action=f"/admin/jobs/{job_id}/edit")


@router.post("/jobs/{job_id}/edit")
async def edit_job_submit(
    request: Request,
    job_id: int,
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    form = job_form_from_request(await request.form())
    try:
        jobs.update_job(session, job_id, form, user.id, is_admin=True)
    except ValidationError as e:
        return redirect(f"/admin/jobs/{job_id}/edit", str(e))
    return redirect("/admin/jobs", "Job updated")


@router.post("/jobs/{job_id}/feature")
def toggle_featured(job_id: int, session: Session = Depends(get_session)):
    job = jobs.get_job(session, job_id, include_drafts=True)
    jobs.set_featured(session, job_id, not job.featured)
    return redirect("/admin/jobs")


@router.post("/jobs/{job_id}/delete")
def delete_job(job_id: int, session: Session = Depends(get_session)):
    jobs.delete_job(session, job_id)
    return redirect("/admin/jobs", "Job deleted")


@router.get("/drafts", response_class=HTMLResponse)
def drafts(
    request: Request,
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return render(request, "admin/drafts.html", user, drafts=jobs.draft_jobs(session))


@router.post("/drafts/{job_id}/publish")
def publish(job_id: int, session: Session = Depends(get_session)):
    job = jobs.publish_draft(session, job_id)
    return redirect("/admin/drafts", f"Published {job.title}")


@router.post("/drafts/{job_id}/delete")
def delete_draft(job_id: int, session: Session = Depends(get_session)):
    jobs.delete_job(session, job_id)
    return redirect("/admin/drafts", "Draft deleted")


# ------------------------------
# Scrapers
# ------------------------------
@router.get("/scraper", response_class=HTMLResponse)
def scraper_page(request: Request, user: Profile = Depends(require_admin)):
    return render(request, "admin/scraper.html", user, max_urls=config.MAX_BATCH_URLS)


@router.post("/scrape-job")
def scrape_job(
    url: str = Form(...),
    render_js: Optional[str] = Form(None),
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    try:
        draft = scrape_job_url(session, url.strip(), user.id, render=bool(render_js))
    except ValidationError as e:
        return redirect("/admin/scraper", f"Scraping failed: {e}")
    return redirect("/admin/drafts", f"Draft created: {draft.title}")


@router.post("/career-pages")
def queue_career_page(
    url: str = Form(...),
    company_name: str = Form(""),
    priority: int = Form(0),
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    try:
        job = scraping.enqueue_career_page(session, url, company_name.strip() or None, user.id, priority)
    except ValidationError as e:
        return redirect("/admin/scraper", str(e))
    return redirect("/admin", f"Career page queued as scraping job {job.id}")


@router.post("/batches")
def bulk_upload(
    urls: str = Form(...),
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    try:
        batch, queued = scraping.create_batch(session, urls, user.id)
    except ValidationError as e:
        return redirect("/admin/scraper", str(e))
    return redirect("/admin", f"Batch {batch.id} queued with {queued} URLs")


@router.post("/queue/run")
def run_queue(session: Session = Depends(get_session), client: GobiiClient = Depends(get_client)):
    result = scraping.process_queue(session, client, trigger_source="manual")
    return redirect("/admin", f"Processed {result['processed']} of {result['total']} jobs")


# ------------------------------
# Monitoring and recovery
# ------------------------------
@router.get("/monitor", response_class=HTMLResponse)
def monitor(
    request: Request,
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    return render(
        request,
        "admin/monitor.html",
        user,
        stuck=scraping.find_stuck_jobs(session),
        duplicates=scraping.duplicate_stats(session),
        webhooks=scraping.list_webhook_health(session),
        recoveries=scraping.recovery_log(session),
        recovery_stats=scraping.recovery_stats(session),
        health=scraping.system_health(session),
    )


@router.post("/scraping-jobs/{job_id}/cancel")
def cancel(job_id: int, session: Session = Depends(get_session)):
    scraping.cancel_job(session, job_id)
    return redirect("/admin/monitor", f"Scraping job {job_id} cancelled")


@router.post("/scraping-jobs/{job_id}/retry")
def retry(job_id: int, session: Session = Depends(get_session)):
    scraping.retry_job(session, job_id)
    return redirect("/admin/monitor", f"Scraping job {job_id} re-queued")


@router.post("/duplicates/cleanup")
def cleanup(session: Session = Depends(get_session)):
    result = scraping.cleanup_duplicates(session)
    return redirect("/admin/monitor", f"Removed {result['deleted']} duplicate drafts")


@router.post("/webhooks/{webhook_id}/reset")
def reset_webhook(webhook_id: int, session: Session = Depends(get_session)):
    scraping.reset_webhook_health(session, webhook_id)
    return redirect("/admin/monitor", "Webhook health reset")


@router.post("/timeouts/run")
def run_timeouts(session: Session = Depends(get_session)):
    result = scraping.handle_task_timeouts(session)
    return redirect("/admin/monitor", f"Timed out {result['timedOutTasks']} tasks")


# ------------------------------
# Manual import
# ------------------------------
@router.get("/import", response_class=HTMLResponse)
def import_page(request: Request, user: Profile = Depends(require_admin)):
    return render(request, "admin/import.html", user, raw="", preview=None, errors=None)


@router.post("/import", response_class=HTMLResponse)
def import_submit(
    request: Request,
    raw: str = Form(""),
    confirm: Optional[str] = Form(None),
    user: Profile = Depends(require_admin),
    session: Session = Depends(get_session),
):
    try:
        entries = scraping.parse_task_output(raw)
    except ValidationError as e:
        return render(request, "admin/import.html", user, status_code=400, raw=raw, preview=None, errors=[str(e)])

    if not confirm:
        preview = [(entry, scraping.validate_imported_job(entry)) for entry in entries]
        return render(request, "admin/import.html", user, raw=raw, preview=preview, errors=None)

    created, skipped = scraping.import_jobs(session, entries, user.id)
    return redirect("/admin/drafts", f"Imported {len(created)} drafts, skipped {skipped} invalid")
