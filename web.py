# web.py
"""Shared bits for the HTML routes: templates, the signed-in user, form parsing."""
from typing import Optional
from urllib.parse import urlencode, urlparse

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlmodel import Session

import accounts
import config
from database import get_session
from errors import LoginRequired, PermissionDenied
from filters import CATEGORY_CONFIG, FILTER_LABELS, FILTER_OPTIONS
from jobs import JobForm, format_days_remaining, format_posted_date, split_lines
from models import Profile

templates = Jinja2Templates(directory=config.TEMPLATES_DIR)
templates.env.filters["posted"] = format_posted_date
templates.env.filters["days_left"] = format_days_remaining
templates.env.globals.update(
    categories=CATEGORY_CONFIG,
    filter_options=FILTER_OPTIONS,
    filter_labels=FILTER_LABELS,
    base_url=config.PUBLIC_BASE_URL,
)


def current_user(request: Request, session: Session = Depends(get_session)) -> Optional[Profile]:
    return accounts.current_profile(session, request.cookies.get(config.SESSION_COOKIE))


def require_user(request: Request, user: Optional[Profile] = Depends(current_user)) -> Profile:
    if user is None:
        raise LoginRequired(request.url.path)
    return user


def require_admin(
    user: Profile = Depends(require_user),
    session: Session = Depends(get_session),
) -> Profile:
    if not accounts.is_admin(session, user):
        raise PermissionDenied("Admin access required")
    return user


def render(request: Request, name: str, user: Optional[Profile] = None, status_code: int = 200, **context):
    context.update(user=user, message=request.query_params.get("message"))
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _optional(form, name: str) -> Optional[str]:
    value = (form.get(name) or "").strip()
    return value or None


def job_form_from_request(form) -> JobForm:
    """Build a JobForm from a submitted job posting form."""
    return JobForm(
        title=form.get("title") or "",
        company=form.get("company") or "",
        location=form.get("location") or "",
        type=form.get("type") or "Full-time",
        salary=form.get("salary") or "",
        description=form.get("description") or "",
        responsibilities=split_lines(form.get("responsibilities")),
        requirements=split_lines(form.get("requirements")),
        benefits=split_lines(form.get("benefits")),
        logo=form.get("logo") or "",
        featured=form.get("featured") in ("on", "true", "1"),
        application_url=form.get("application_url") or "",
        contact_email=_optional(form, "contact_email"),
        department=_optional(form, "department"),
        seniority_level=_optional(form, "seniority_level"),
        salary_range=_optional(form, "salary_range"),
        equity=_optional(form, "equity"),
        remote_onsite=_optional(form, "remote_onsite"),
        work_hours=_optional(form, "work_hours"),
        visa_sponsorship=True if form.get("visa_sponsorship") in ("on", "true", "1") else None,
        hiring_urgency=_optional(form, "hiring_urgency"),
        investment_stage=_optional(form, "investment_stage"),
        team_size=_optional(form, "team_size"),
        revenue_model=_optional(form, "revenue_model"),
    )


def safe_next(target: Optional[str]) -> str:
    """Only same-site paths are followed after sign-in; anything else goes home."""
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return "/"
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc:
        return "/"
    return target


def redirect(url: str, message: Optional[str] = None) -> RedirectResponse:
    if message:
        url = f"{url}{'&' if '?' in url else '?'}{urlencode({'message': message})}"
    return RedirectResponse(url=url, status_code=303)
