# gobii.py
import logging
from typing import Optional

import requests

import config
from errors import AutomationAPIError

logger = logging.getLogger("gobii")

JOB_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "jobs": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "location": {"type": "string"},
                    "type": {"type": "string"},
                    "salary": {"type": "string"},
                    "description": {"type": "string"},
                    "requirements": {"type": "array", "items": {"type": "string"}},
                    "responsibilities": {"type": "array", "items": {"type": "string"}},
                    "benefits": {"type": "array", "items": {"type": "string"}},
                    "application_url": {"type": "string"},
                    "department": {"type": "string"},
                    "seniority_level": {"type": "string"},
                },
                "required": ["title", "location", "type", "description"],
            },
        }
    },
    "required": ["jobs"],
    "additionalProperties": False,
}


def build_career_page_prompt(url: str, company_name: Optional[str]) -> str:
    company = company_name or "Unknown Company"
    return (
        f"Please scrape the career page at {url} for {company}.\n\n"
        "Extract all job listings and return them as a JSON array. For each job, extract:\n"
        "- title: Job title\n"
        '- location: Job location (city, state, country or "Remote")\n'
        "- type: Employment type (Full-time, Part-time, Contract, Internship)\n"
        "- salary: Salary range if available\n"
        "- description: Job description\n"
        "- requirements: List of requirements/qualifications\n"
        "- responsibilities: List of key responsibilities\n"
        "- benefits: List of benefits if mentioned\n"
        "- application_url: Direct link to apply for the job\n"
        "- department: Department or team if specified\n"
        "- seniority_level: Experience level (Entry, Mid, Senior, Executive)\n\n"
        "Navigate through pagination if there are multiple pages of jobs. Click on individual "
        "job listings to get detailed information when needed.\n\n"
        'Return the data as {"jobs": [...]} using exactly the fields above.'
    )


class GobiiClient:
    """Thin wrapper over the browser-use task endpoints."""

    def __init__(self, api_key: str = None, base_url: str = None, timeout: float = 150):
        self.api_key = api_key if api_key is not None else config.GOBII_API_KEY
        self.base_url = (base_url or config.GOBII_API_URL).rstrip("/") + "/"
        self.timeout = timeout
        self.http = requests.Session()
        self.http.headers.update({
            "X-Api-Key": self.api_key,
            "Content-Type": "application/json",
            "User-Agent": "jobboard-pipeline/1.0",
        })

    def _parse(self, response: requests.Response) -> dict:
        if not response.ok:
            raise AutomationAPIError(
                f"Gobii API error: {response.status_code} {response.reason} - {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            raise AutomationAPIError(f"Invalid JSON response from Gobii: {response.text[:500]}")
        if not isinstance(data, dict):
            raise AutomationAPIError(f"Unexpected Gobii payload: {data!r}")
        return data

    def submit_task(
        self,
        prompt: str,
        output_schema: dict = JOB_OUTPUT_SCHEMA,
        wait: int = None,
        webhook_url: Optional[str] = None,
    ) -> dict:
        if not self.api_key:
            raise AutomationAPIError("GOBII_API_KEY not configured")

        payload = {
            "prompt": prompt,
            "wait": config.GOBII_WAIT_SECONDS if wait is None else wait,
            "output_schema": output_schema,
        }
        if webhook_url:
            payload["webhook"] = webhook_url

        try:
            response = self.http.post(self.base_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise AutomationAPIError(f"Gobii API unreachable: {e}")

        task = self._parse(response)
        logger.info("🤖 Gobii task %s submitted (status=%s)", task.get("id"), task.get("status"))
        return task

    def get_status(self, task_id: str) -> dict:
        try:
            response = self.http.get(f"{self.base_url}{task_id}/", timeout=30)
        except requests.RequestException as e:
            raise AutomationAPIError(f"Gobii API unreachable: {e}")
        return self._parse(response)
