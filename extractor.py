# extractor.py
import logging
import re
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup
from playwright.sync_api import sync_playwright, TimeoutError as PlaywrightTimeoutError
from sqlmodel import Session

from errors import ValidationError
from jobs import PLACEHOLDER_LOGO, default_expiry
from models import COMPLETED, FAILED, RUNNING, JobPosting, ScrapingJob, utcnow

logger = logging.getLogger("extractor")

FETCH_TIMEOUT = 10
MAX_HTML_SIZE = 2_000_000
MAX_DESCRIPTION = 5000
MAX_LIST_ITEMS = 10
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

DEFAULT_LISTS = {
    "requirements": [
        "Experience with relevant skills",
        "Strong communication abilities",
        "Bachelor's degree or equivalent experience",
    ],
    "responsibilities": [
        "Contribute to team projects",
        "Collaborate with other departments",
        "Drive innovation in your area of expertise",
    ],
    "benefits": [
        "Competitive compensation",
        "Professional development opportunities",
        "Flexible work arrangements",
    ],
}

# section -> heading keywords, first match wins
SECTION_KEYWORDS = {
    "requirements": ("requirements", "qualifications"),
    "responsibilities": ("responsibilities", "duties"),
    "benefits": ("benefits", "perks"),
}

SITE_SELECTORS = {
    "linkedin": {
        "title": "h1.job-title, h1.top-card-layout__title",
        "company": "span.company-name, a.topcard__org-name-link",
        "location": "span.job-location, span.topcard__flavor--bullet",
        "description": "div.description, div.show-more-less-html__markup",
    },
    "indeed": {
        "title": "h1.jobsearch-JobInfoHeader-title",
        "company": "div.jobsearch-InlineCompanyName, div[data-company-name]",
        "location": "div.jobsearch-JobInfoHeader-subtitle div",
        "description": "div#jobDescriptionText",
    },
    "glassdoor": {
        "title": "h1.job-title",
        "company": "div.employerName",
        "location": "div.location",
        "description": "div.jobDescriptionContent",
    },
}


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def identify_job_site(domain: str) -> Optional[str]:
    domain = domain.lower()
    for name, markers in (
        ("linkedin", ("linkedin",)),
        ("indeed", ("indeed",)),
        ("glassdoor", ("glassdoor",)),
        ("ziprecruiter", ("ziprecruiter",)),
        ("monster", ("monster",)),
        ("angellist", ("angellist", "wellfound")),
    ):
        if any(m in domain for m in markers):
            return name
    return None


def _meta(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    return clean_text(tag.get("content")) if tag else ""


def _select_text(soup: BeautifulSoup, selector: str) -> str:
    node = soup.select_one(selector)
    return clean_text(node.get_text(" ", strip=True)) if node else ""


def _search(pattern: str, text: str) -> str:
    match = re.search(pattern, text, re.IGNORECASE)
    return clean_text(match.group(1)) if match else ""


def _company_from_domain(domain: str) -> str:
    name = re.sub(r"www\.|\.com|\.org|\.net|\.io", "", domain).split(".")[0]
    return name[:1].upper() + name[1:]


def extract_list_items(soup: BeautifulSoup, section: str) -> List[str]:
    """Bullets under the first heading that mentions one of the section's keywords."""
    for keyword in SECTION_KEYWORDS[section]:
        for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "strong"]):
            if keyword not in heading.get_text(" ", strip=True).lower():
                continue
            items = []
            for sibling in heading.find_all_next(["li", "h1", "h2", "h3", "h4", "h5", "h6", "strong"]):
                if sibling.name != "li":
                    break
                item = clean_text(sibling.get_text(" ", strip=True))
                if item:
                    items.append(item)
                if len(items) >= MAX_LIST_ITEMS:
                    break
            if items:
                return items
    return list(DEFAULT_LISTS[section])


def extract_job_data(html: str, domain: str) -> dict:
    soup = BeautifulSoup(html, "html.parser")
    page_text = soup.get_text("\n", strip=True)

    title = clean_text(soup.title.get_text()) if soup.title else ""
    company = ""
    if "|" in title:
        parts = title.split("|")
        title, company = parts[0].strip(), parts[1].strip()
    elif "-" in title:
        parts = title.split("-")
        title, company = parts[0].strip(), parts[-1].strip()
    if not company:
        company = (
            _meta(soup, property="og:site_name")
            or _meta(soup, name="company")
            or _company_from_domain(domain)
        )

    location = description = ""
    site = identify_job_site(domain)
    if site in SITE_SELECTORS:
        logger.info("Using %s-specific extraction", site)
        selectors = SITE_SELECTORS[site]
        title = _select_text(soup, selectors["title"]) or title
        company = _select_text(soup, selectors["company"]) or company
        location = _select_text(soup, selectors["location"])
        description = _select_text(soup, selectors["description"])

    if not description:
        for selector in ("div[class*=job-description]", "section[class*=job-description]", "div[class*=description]"):
            description = _select_text(soup, selector)
            if description:
                break
    if len(description) > MAX_DESCRIPTION:
        description = description[:MAX_DESCRIPTION] + "..."

    location = (
        location
        or _meta(soup, name="job-location")
        or _select_text(soup, "span[class*=location]")
        or _search(r"location:\s*([^,.\n]+)", page_text)
        or _search(r"based in\s*([^,.\n]+)", page_text)
        or "Remote"
    )
    job_type = (
        _meta(soup, name="job-type")
        or _search(r"job type:\s*([^,.\n]+)", page_text)
        or _search(r"(full-time|part-time|contract|freelance|remote)", page_text)
        or "Full-time"
    )
    salary = (
        _meta(soup, name="salary")
        or _search(r"salary:\s*([^,\n]+)", page_text)
        or _search(r"\$\s*(\d+[kK]?\s*-\s*\$?\d+[kK]?)", page_text)
        or "Competitive"
    )

    logo = _meta(soup, property="og:image")
    if not logo:
        img = soup.find("img", class_=re.compile("logo", re.I))
        logo = img.get("src", "") if img else ""

    return {
        "title": title,
        "company": company,
        "location": location,
        "type": job_type,
        "salary": salary,
        "description": description,
        "requirements": extract_list_items(soup, "requirements"),
        "responsibilities": extract_list_items(soup, "responsibilities"),
        "benefits": extract_list_items(soup, "benefits"),
        "logo": logo or PLACEHOLDER_LOGO,
    }


def fetch_html(url: str) -> str:
    response = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=FETCH_TIMEOUT)
    if not response.ok:
        raise ValidationError(f"Failed to fetch URL: {response.status_code} {response.reason}")
    if "text/html" not in response.headers.get("content-type", ""):
        raise ValidationError("URL did not return HTML content")
    html = response.text
    logger.info("Fetched HTML content: %d bytes", len(html))
    return html[:MAX_HTML_SIZE]


def render_html(url: str) -> str:
    """Load the page in headless Chromium for sites that build the posting with JS."""
    with sync_playwright() as p:
        browser = p.chromium.launch(headless=True)
        page = browser.new_context(user_agent=USER_AGENT).new_page()
        try:
            page.goto(url, timeout=FETCH_TIMEOUT * 1000)
            page.wait_for_load_state("networkidle", timeout=FETCH_TIMEOUT * 1000)
        except PlaywrightTimeoutError:
            logger.warning("⚠️ Page did not settle in %ss, using what loaded", FETCH_TIMEOUT)
        html = page.content()
        browser.close()
    return html[:MAX_HTML_SIZE]


def scrape_job_url(
    session: Session,
    url: str,
    user_id: Optional[int],
    render: bool = False,
    now: Optional[datetime] = None,
) -> JobPosting:
    """Scrape one job posting page into a single draft."""
    now = now or utcnow()
    job = ScrapingJob(url=url, created_by=user_id, status=RUNNING, started_at=now)
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info("🔍 Scraping job URL %s (scraping job %s)", url, job.id)

    def fail(message: str):
        job.status = FAILED
        job.error_message = message
        job.completed_at = utcnow()
        session.add(job)
        session.commit()
        logger.warning("❌ Scraping job %s failed: %s", job.id, message)

    domain = urlparse(url or "").hostname
    if not domain or urlparse(url).scheme not in ("http", "https"):
        fail("Invalid URL format")
        raise ValidationError("Invalid URL format")

    try:
        html = render_html(url) if render else fetch_html(url)
        data = extract_job_data(html, domain)
    except ValidationError as e:
        fail(str(e))
        raise
    except Exception as e:
        logger.exception("Error scraping %s", url)
        fail(str(e))
        raise ValidationError(f"Scraping failed: {e}")

    draft = JobPosting(
        title=data["title"] or "Untitled Position",
        company=data["company"] or "Unknown Company",
        location=data["location"] or "Remote",
        type=data["type"] or "Full-time",
        salary=data["salary"] or "Competitive",
        description=data["description"],
        requirements=data["requirements"],
        responsibilities=data["responsibilities"],
        benefits=data["benefits"],
        logo=data["logo"],
        application_url=url,
        source_url=url,
        user_id=user_id,
        is_draft=True,
        posted=now,
        created_at=now,
        updated_at=now,
        scraped_at=now,
        scraping_job_id=job.id,
        expires_at=default_expiry(now),
    )
    session.add(draft)

    job.status = COMPLETED
    job.completed_at = utcnow()
    job.jobs_found = 1
    job.jobs_created = 1
    job.task_data = data
    session.add(job)
    session.commit()
    session.refresh(draft)

    logger.info("🎉 Created draft %s from %s", draft.id, url)
    return draft
