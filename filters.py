# filters.py
"""
In-memory job search and filtering for the public listing page, plus the
category <-> department mapping used by category landing pages.
"""
from typing import Dict, List, Optional, Union

FilterValue = Union[str, bool]

# UI filter key -> JobPosting attribute
FIELD_MAPPINGS: Dict[str, str] = {
    "department": "department",
    "seniority": "seniority_level",
    "salaryRange": "salary_range",
    "teamSize": "team_size",
    "investmentStage": "investment_stage",
    "remote": "remote_onsite",
    "jobType": "type",
    "workHours": "work_hours",
    "equity": "equity",
    "hiringUrgency": "hiring_urgency",
    "revenueModel": "revenue_model",
    "visaSponsorship": "visa_sponsorship",
}

BOOLEAN_FILTERS = {"visaSponsorship"}

FILTER_OPTIONS: Dict[str, List[str]] = {
    "department": [
        "Engineering", "Product", "Design", "Marketing", "Sales", "Operations",
        "HR", "Customer Support", "Legal", "Finance", "Other",
    ],
    "seniority": [
        "Internship", "Entry-Level", "Mid-Level", "Senior", "Lead", "Director", "VP", "C-Level",
    ],
    "salaryRange": ["Negotiable", "$40K-$60K", "$60K-$80K", "$80K-$120K", "$120K+"],
    "teamSize": ["1-10", "11-50", "51-200", "201-500", "500+"],
    "investmentStage": [
        "Bootstrapped", "Pre-Seed", "Seed", "Series A", "Series B", "Series C+", "Public",
    ],
    "remote": ["Fully Remote", "Hybrid", "Onsite"],
    "jobType": ["Full-time", "Part-time", "Contract", "Remote", "Freelance", "Internship"],
    "workHours": ["Flexible", "Fixed", "Async Work"],
    "equity": ["None", "0.1%-0.5%", "0.5%-1%", "1%+"],
    "hiringUrgency": ["Immediate Hire", "Within a Month", "Open to Future Applicants"],
    "revenueModel": [
        "SaaS", "Marketplace", "E-commerce", "Subscription", "Advertising", "Services",
        "Enterprise", "Other",
    ],
}

FILTER_LABELS: Dict[str, str] = {
    "department": "Department",
    "seniority": "Seniority",
    "salaryRange": "Salary Range",
    "teamSize": "Team Size",
    "investmentStage": "Investment Stage",
    "remote": "Remote / Onsite",
    "jobType": "Job Type",
    "workHours": "Work Hours",
    "equity": "Equity",
    "hiringUrgency": "Hiring Urgency",
    "revenueModel": "Revenue Model",
    "visaSponsorship": "Visa Sponsorship",
}

CATEGORY_CONFIG = [
    {"name": "Software Engineering", "department": "Engineering", "slug": "software-engineering"},
    {"name": "Design", "department": "Design", "slug": "design"},
    {"name": "Marketing", "department": "Marketing", "slug": "marketing"},
    {"name": "Product Management", "department": "Product", "slug": "product-management"},
    {"name": "Sales", "department": "Sales", "slug": "sales"},
    {"name": "Operations", "department": "Operations", "slug": "operations"},
    {"name": "Finance", "department": "Finance", "slug": "finance"},
    {"name": "Customer Support", "department": "Customer Support", "slug": "customer-support"},
    {"name": "HR", "department": "HR", "slug": "hr"},
    {"name": "Other", "department": "Other", "slug": "other"},
]


def empty_filters() -> Dict[str, FilterValue]:
    return {key: (False if key in BOOLEAN_FILTERS else "") for key in FIELD_MAPPINGS}


def filters_from_params(params) -> Dict[str, FilterValue]:
    """Build a filter dict from query parameters; unknown keys are ignored."""
    filters = empty_filters()
    for key in FIELD_MAPPINGS:
        raw = params.get(key)
        if raw is None:
            continue
        if key in BOOLEAN_FILTERS:
            filters[key] = str(raw).lower() in ("1", "true", "on", "yes")
        elif raw != "all":
            filters[key] = str(raw).strip()
    return filters


def normalize(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _is_active(value: FilterValue) -> bool:
    return value if isinstance(value, bool) else value != ""


def job_matches_filters(job, filters: Dict[str, FilterValue], search: str = "", location: str = "") -> bool:
    if search:
        needle = normalize(search)
        if not any(needle in normalize(field) for field in (job.title, job.company, job.description)):
            return False
    if location and normalize(location) not in normalize(job.location):
        return False

    for key, value in filters.items():
        if not _is_active(value):
            continue
        attr = FIELD_MAPPINGS.get(key)
        if attr is None:
            continue

        job_value = getattr(job, attr, None)
        if key in BOOLEAN_FILTERS:
            if value is True and job_value is not True:
                return False
            continue

        if job_value is None or job_value == "":
            return False
        if normalize(job_value) != normalize(value):
            return False

    return True


def filter_jobs(jobs, filters: Dict[str, FilterValue], search: str = "", location: str = "") -> list:
    return [job for job in jobs if job_matches_filters(job, filters, search, location)]


def active_filters(filters: Dict[str, FilterValue], search: str = "", location: str = "") -> List[dict]:
    """Chips shown above the results, in display order."""
    chips = []
    if search:
        chips.append({"type": "search", "label": search})
    if location:
        chips.append({"type": "location", "label": location})
    for key in FIELD_MAPPINGS:
        value = filters.get(key)
        if not value:
            continue
        label = FILTER_LABELS[key] if key in BOOLEAN_FILTERS else value
        chips.append({"type": key, "label": label})
    return chips


def remove_filter(filters: Dict[str, FilterValue], search: str, location: str, filter_type: str):
    """Return (filters, search, location) with one chip cleared."""
    filters = dict(filters)
    if filter_type == "search":
        search = ""
    elif filter_type == "location":
        location = ""
    elif filter_type in FIELD_MAPPINGS:
        filters[filter_type] = False if filter_type in BOOLEAN_FILTERS else ""
    return filters, search, location


def category_by_slug(slug: str) -> Optional[dict]:
    return next((c for c in CATEGORY_CONFIG if c["slug"] == slug), None)


def category_by_department(department: str) -> Optional[dict]:
    return next((c for c in CATEGORY_CONFIG if c["department"] == department), None)


def slug_to_category(slug: str) -> str:
    category = category_by_slug(slug)
    return category["name"] if category else ""


def category_to_slug(name: str) -> str:
    category = next((c for c in CATEGORY_CONFIG if c["name"] == name), None)
    return category["slug"] if category else ""
