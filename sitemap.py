# sitemap.py
from datetime import date
from typing import List, Optional

from jinja2 import Environment, select_autoescape
from sqlmodel import Session, select

import config
from filters import CATEGORY_CONFIG
from jobs import published_filter
from models import JobPosting, utcnow

CACHE_HEADERS = {"Cache-Control": "public, max-age=3600"}

SITEMAP_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
{%- for url in urls %}
  <url>
    <loc>{{ url.loc }}</loc>
    <lastmod>{{ url.lastmod }}</lastmod>
    <changefreq>{{ url.changefreq }}</changefreq>
    <priority>{{ url.priority }}</priority>
  </url>
{%- endfor %}
</urlset>
"""

_env = Environment(autoescape=select_autoescape(default_for_string=True, default=True))
_template = _env.from_string(SITEMAP_TEMPLATE)


def sitemap_urls(session: Session, base_url: str, today: date) -> List[dict]:
    stamp = today.isoformat()
    urls = [
        {"loc": f"{base_url}/", "lastmod": stamp, "changefreq": "daily", "priority": "1.0"},
        {"loc": f"{base_url}/jobs", "lastmod": stamp, "changefreq": "hourly", "priority": "0.9"},
        {"loc": f"{base_url}/post-job", "lastmod": stamp, "changefreq": "monthly", "priority": "0.8"},
    ]
    for category in CATEGORY_CONFIG:
        urls.append({
            "loc": f"{base_url}/jobs?category={category['slug']}",
            "lastmod": stamp,
            "changefreq": "daily",
            "priority": "0.7",
        })

    stmt = select(JobPosting).where(*published_filter()).order_by(JobPosting.updated_at.desc())
    for job in session.exec(stmt).all():
        urls.append({
            "loc": f"{base_url}/jobs/{job.id}",
            "lastmod": (job.updated_at or job.created_at).date().isoformat(),
            "changefreq": "weekly",
            "priority": "0.6",
        })
    return urls


def build_sitemap(session: Session, base_url: Optional[str] = None, today: Optional[date] = None) -> str:
    base_url = (base_url or config.PUBLIC_BASE_URL).rstrip("/")
    today = today or utcnow().date()
    return _template.render(urls=sitemap_urls(session, base_url, today))
