# main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

import accounts
import admin
import config
import jobs
import scraping
from database import engine, get_session, init_db
from errors import LoginRequired, NotFoundError, PermissionDenied, ValidationError
from filters import active_filters, category_by_slug, filter_jobs, filters_from_params, remove_filter
from gobii import GobiiClient
from models import Profile
from sitemap import CACHE_HEADERS, build_sitemap
from web import current_user, job_form_from_request, redirect, render, require_user, safe_next

# ------------------------------
# Logging
# ------------------------------
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("app")

# ------------------------------
# Scheduler
# ------------------------------
scheduler = BackgroundScheduler()


def run_scheduled(name: str, fn):
    """Run one pipeline step in its own session; a failed run is logged and the next tick retries."""
    try:
        with Session(engine) as session:
            fn(session)
    except Exception as e:
        logger.exception("Scheduled job %s failed: %s", name, e)


def scheduled_process_queue():
    run_scheduled("process_queue", lambda s: scraping.process_queue(s, GobiiClient()))


def scheduled_poll_tasks():
    run_scheduled("poll_tasks", lambda s: scraping.poll_tasks(s, GobiiClient()))


def scheduled_handle_timeouts():
    run_scheduled("handle_timeouts", scraping.handle_task_timeouts)


def scheduled_mark_expired():
    run_scheduled("mark_expired", jobs.mark_expired_jobs)


def start_scheduler():
    scheduler.add_job(scheduled_process_queue, IntervalTrigger(minutes=1), id="process_queue", replace_existing=True)
    scheduler.add_job(
        scheduled_poll_tasks,
        IntervalTrigger(minutes=config.POLL_INTERVAL_MINUTES),
        id="poll_tasks",
        replace_existing=True,
    )
    scheduler.add_job(scheduled_handle_timeouts, IntervalTrigger(minutes=5), id="handle_timeouts", replace_existing=True)
    scheduler.add_job(scheduled_mark_expired, CronTrigger(hour=0, minute=0), id="mark_expired", replace_existing=True)
    scheduler.start()
    logger.info("🕒 Scheduler started: queue every minute, polling every %d min, daily expiry at 00:00.",
                config.POLL_INTERVAL_MINUTES)


# ------------------------------
# FastAPI setup
# ------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    with Session(engine) as session:
        jobs.seed_jobs(session)
    if config.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("🧹 Scheduler stopped.")

app = FastAPI(title="Job Board", lifespan=lifespan)

app.mount("/static", StaticFiles(directory=config.STATIC_DIR), name="static")
app.include_router(admin.router)


@app.exception_handler(LoginRequired)
def login_required_handler(request: Request, exc: LoginRequired):
    return redirect(f"/auth?next={request.url.path}")


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    if request.url.path.startswith(("/api", "/functions")):
        return JSONResponse({"error": str(exc)}, status_code=404)
    return render(request, "error.html", None, status_code=404, title="Not found", detail=str(exc))


@app.exception_handler(PermissionDenied)
def permission_denied_handler(request: Request, exc: PermissionDenied):
    if request.url.path.startswith(("/api", "/functions")):
        return JSONResponse({"error": str(exc)}, status_code=403)
    return render(request, "error.html", None, status_code=403, title="Access denied", detail=str(exc))


# ------------------------------
# Public pages
# ------------------------------
@app.get("/", response_class=HTMLResponse)
def index(
    request: Request,
    user: Optional[Profile] = Depends(current_user),
    session: Session = Depends(get_session),
):
    return render(
        request,
        "index.html",
        user,
        trending=jobs.trending_jobs(session),
        latest=jobs.list_jobs(session)[:6],
    )


@app.get("/jobs", response_class=HTMLResponse)
def jobs_page(
    request: Request,
    query: str = "",
    location: str = "",
    category: str = "",
    remove: str = "",
    user: Optional[Profile] = Depends(current_user),
    session: Session = Depends(get_session),
):
    filters = filters_from_params(request.query_params)
    if remove:
        filters, query, location = remove_filter(filters, query, location, remove)

    selected = category_by_slug(category) if category else None
    if category and selected is None:
        raise NotFoundError(f"Unknown category: {category}")

    rows = jobs.list_jobs(session, department=selected["department"] if selected else None)
    results = filter_jobs(rows, filters, query, location)

    chips = active_filters(filters, query, location)
    for chip in chips:
        param = "query" if chip["type"] == "search" else chip["type"]
        chip["href"] = str(request.url.remove_query_params(param))

    return render(
        request,
        "jobs.html",
        user,
        jobs=results,
        filters=filters,
        chips=chips,
        query=query,
        location=location,
        category=selected,
    )


@app.get("/jobs/{job_id}", response_class=HTMLResponse)
def job_detail(
    request: Request,
    job_id: int,
    user: Optional[Profile] = Depends(current_user),
    session: Session = Depends(get_session),
):
    job = jobs.get_job(session, job_id)
    saved = user is not None and accounts.is_saved(session, user.id, job_id)
    return render(request, "job_detail.html", user, job=job, saved=saved)


@app.get("/jobs/{job_id}/apply")
def apply(job_id: int, user: Profile = Depends(require_user), session: Session = Depends(get_session)):
    job = jobs.get_job(session, job_id)
    if job.application_url:
        logger.info("➡️ Profile %s applying to job %s", user.id, job_id)
        return RedirectResponse(url=job.application_url, status_code=303)
    return redirect(f"/jobs/{job_id}", "This job has no application link, contact the company directly")


@app.post("/jobs/{job_id}/save")
def toggle_save(job_id: int, user: Profile = Depends(require_user), session: Session = Depends(get_session)):
    saved = accounts.toggle_saved(session, user.id, job_id)
    return redirect(f"/jobs/{job_id}", "Job saved" if saved else "Job removed from saved")


@app.get("/saved", response_class=HTMLResponse)
def saved(request: Request, user: Profile = Depends(require_user), session: Session = Depends(get_session)):
    return render(request, "saved.html", user, jobs=accounts.saved_jobs(session, user.id))


@app.get("/sitemap.xml")
def sitemap(session: Session = Depends(get_session)):
    return Response(content=build_sitemap(session), media_type="application/xml", headers=CACHE_HEADERS)


# ------------------------------
# Auth and profiles
# ------------------------------
def _signed_in(token: str, target: str) -> RedirectResponse:
    response = redirect(target)
    response.set_cookie(
        config.SESSION_COOKIE,
        token,
        max_age=config.SESSION_DAYS * 86400,
        httponly=True,
        samesite="lax",
    )
    return response


@app.get("/auth", response_class=HTMLResponse)
def auth_page(request: Request, next: str = "/", user: Optional[Profile] = Depends(current_user)):
    next = safe_next(next)
    if user is not None:
        return redirect(next)
    return render(request, "auth.html", None, next=next, error=None)


@app.post("/auth/signin")
def signin(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    next: str = Form("/"),
    session: Session = Depends(get_session),
):
    next = safe_next(next)
    try:
        profile = accounts.authenticate(session, email, password)
    except PermissionDenied as e:
        return render(request, "auth.html", None, status_code=400, next=next, error=str(e))
    target = next if profile.user_type else f"/profile-type?next={next}"
    return _signed_in(accounts.create_session(session, profile), target)


@app.post("/auth/signup")
def signup(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    full_name: str = Form(""),
    next: str = Form("/"),
    session: Session = Depends(get_session),
):
    next = safe_next(next)
    try:
        profile = accounts.register(session, email, password, full_name.strip())
    except ValidationError as e:
        return render(request, "auth.html", None, status_code=400, next=next, error=str(e))
    return _signed_in(accounts.create_session(session, profile), f"/profile-type?next={next}")


@app.post("/logout")
def logout(request: Request, session: Session = Depends(get_session)):
    accounts.logout(session, request.cookies.get(config.SESSION_COOKIE))
    response = redirect("/")
    response.delete_cookie(config.SESSION_COOKIE)
    return response


@app.get("/profile-type", response_class=HTMLResponse)
def profile_type_page(request: Request, next: str = "/", user: Profile = Depends(require_user)):
    return render(request, "profile_type.html", user, next=safe_next(next))


@app.post("/profile-type")
def profile_type_submit(
    user_type: str = Form(...),
    next: str = Form("/"),
    user: Profile = Depends(require_user),
    session: Session = Depends(get_session),
):
    try:
        accounts.set_user_type(session, user, user_type)
    except ValidationError as e:
        return redirect("/profile-type", str(e))
    return redirect(safe_next(next))


@app.get("/profile", response_class=HTMLResponse)
def profile_page(request: Request, user: Profile = Depends(require_user)):
    if not user.user_type:
        return redirect("/profile-type?next=/profile")
    return render(request, "profile.html", user)


@app.post("/profile")
async def profile_submit(
    request: Request,
    user: Profile = Depends(require_user),
    session: Session = Depends(get_session),
):
    form = await request.form()
    data = {name: (form.get(name) or "").strip() or None for name in accounts.PROFILE_FIELDS.get(user.user_type, ())}
    for name in ("skills", "preferred_locations", "preferred_job_types"):
        if name in data:
            data[name] = jobs.split_lines(form.get(name))
    if data.get("experience_years"):
        try:
            data["experience_years"] = int(data["experience_years"])
        except ValueError:
            return redirect("/profile", "Experience must be a whole number of years")
    try:
        accounts.update_profile(session, user, data)
    except ValidationError as e:
        return redirect("/profile", str(e))
    return redirect("/profile", "Profile updated")


# ------------------------------
# Employers
# ------------------------------
def _require_poster(user: Profile, session: Session):
    if user.user_type != "job_poster" and not accounts.is_admin(session, user):
        raise PermissionDenied("Only employer accounts can post jobs")


@app.get("/post-job", response_class=HTMLResponse)
def post_job_page(request: Request, user: Profile = Depends(require_user), session: Session = Depends(get_session)):
    _require_poster(user, session)
    return render(request, "post_job.html", user, job=None, action="/post-job")


@app.post("/post-job")
async def post_job_submit(
    request: Request,
    user: Profile = Depends(require_user),
    session: Session = Depends(get_session),
):
    _require_poster(user, session)
    raw = await request.form()
    form = job_form_from_request(raw)
    upload = raw.get("logo_file")
    try:
        if upload is not None and getattr(upload, "filename", ""):
            form.logo = jobs.save_logo(await upload.read(), upload.filename, user.id)
        job = jobs.create_job(session, form, user.id)
    except ValidationError as e:
        return render(request, "post_job.html", user, status_code=400, job=None, action="/post-job", error=str(e))
    return redirect(f"/jobs/{job.id}", "Job posted")


@app.get("/edit-job/{job_id}", response_class=HTMLResponse)
def edit_job_page(
    request: Request,
    job_id: int,
    user: Profile = Depends(require_user),
    session: Session = Depends(get_session),
):
    job = jobs.get_job(session, job_id, include_drafts=True)
    if job.user_id != user.id and not accounts.is_admin(session, user):
        raise PermissionDenied("Only the poster can edit this job")
    return render(request, "post_job.html", user, job=job, action=f"/edit-job/{job_id}")


@app.post("/edit-job/{job_id}")
async def edit_job_submit(
    request: Request,
    job_id: int,
    user: Profile = Depends(require_user),
    session: Session = Depends(get_session),
):
    raw = await request.form()
    form = job_form_from_request(raw)
    upload = raw.get("logo_file")
    try:
        if upload is not None and getattr(upload, "filename", ""):
            form.logo = jobs.save_logo(await upload.read(), upload.filename, user.id)
        jobs.update_job(session, job_id, form, user.id, is_admin=accounts.is_admin(session, user))
    except ValidationError as e:
        return redirect(f"/edit-job/{job_id}", str(e))
    return redirect("/dashboard", "Job updated")


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, user: Profile = Depends(require_user), session: Session = Depends(get_session)):
    _require_poster(user, session)
    return render(request, "dashboard.html", user, jobs=jobs.jobs_for_user(session, user.id))


# ------------------------------
# Functions (webhook + cron-style triggers)
# ------------------------------
def check_secret(request: Request):
    if config.WEBHOOK_SECRET and request.headers.get("X-Webhook-Secret") != config.WEBHOOK_SECRET:
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


@app.post("/functions/gobii-webhook", dependencies=[Depends(check_secret)])
async def gobii_webhook(request: Request, session: Session = Depends(get_session)):
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    try:
        return scraping.handle_webhook(session, payload)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        session.rollback()
        logger.exception("Webhook processing failed: %s", e)
        scraping.record_webhook_failure(session)
        raise HTTPException(status_code=500, detail="Webhook processing failed")


@app.post("/functions/process-queue", dependencies=[Depends(check_secret)])
def process_queue(session: Session = Depends(get_session)):
    return scraping.process_queue(session, GobiiClient(), trigger_source="http")


@app.post("/functions/poll-tasks", dependencies=[Depends(check_secret)])
def poll_tasks(session: Session = Depends(get_session)):
    return scraping.poll_tasks(session, GobiiClient())


@app.post("/functions/handle-timeouts", dependencies=[Depends(check_secret)])
def handle_timeouts(session: Session = Depends(get_session)):
    return scraping.handle_task_timeouts(session)


@app.post("/functions/mark-expired", dependencies=[Depends(check_secret)])
def mark_expired(session: Session = Depends(get_session)):
    expired = jobs.mark_expired_jobs(session)
    return {
        "success": True,
        "message": f"Marked {len(expired)} jobs as expired",
        "expiredJobs": [{"id": j.id, "title": j.title, "company": j.company} for j in expired],
    }


# ------------------------------
# JSON API
# ------------------------------
@app.get("/api/jobs")
def api_jobs(
    request: Request,
    query: str = "",
    location: str = "",
    limit: int = 50,
    session: Session = Depends(get_session),
):
    rows = filter_jobs(jobs.list_jobs(session), filters_from_params(request.query_params), query, location)
    return rows[:limit]


@app.get("/api/jobs/{job_id}")
def api_job(job_id: int, session: Session = Depends(get_session)):
    return jobs.get_job(session, job_id)


@app.get("/api/queue")
def api_queue(session: Session = Depends(get_session)):
    stats = scraping.queue_stats(session)
    stats["health"] = scraping.system_health(session)
    return stats


@app.get("/health")
def health():
    jobs_list = scheduler.get_jobs() if scheduler.running else []
    return {"status": "ok", "scheduler": {"running": scheduler.running, "jobs": [str(j) for j in jobs_list]}}
