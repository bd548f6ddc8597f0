"""
Test single job URL scraping

All HTTP calls mocked. Tests:
1. Job site identification
2. Field extraction from HTML (title split, company fallbacks, lists, defaults)
3. scrape_job_url() creates exactly one draft, and failure handling
"""

from unittest.mock import Mock, patch

import pytest
import requests
from sqlmodel import select

from conftest import NOW
from errors import ValidationError
from extractor import DEFAULT_LISTS, extract_job_data, identify_job_site, scrape_job_url
from models import JobPosting, ScrapingJob

JOB_PAGE = """
<html>
<head>
  <title>Senior Data Engineer | Acme Robotics</title>
  <meta property="og:image" content="https://acme.com/logo.png">
  <meta name="job-location" content="Austin, TX">
</head>
<body>
  <div class="job-description">We are building robots that <b>sort parcels</b>.</div>
  <p>Salary: $120k - $150k</p>
  <h3>Responsibilities</h3>
  <ul><li>Own the data platform</li><li>Mentor engineers</li></ul>
  <h3>Requirements</h3>
  <ul><li>5+ years with Python</li><li>SQL</li></ul>
  <h3>About us</h3>
  <ul><li>Founded 2019</li></ul>
</body>
</html>
"""


def html_response(text=JOB_PAGE, status=200, content_type="text/html; charset=utf-8"):
    response = Mock()
    response.ok = status < 400
    response.status_code = status
    response.reason = "OK" if status < 400 else "Not Found"
    response.headers = {"content-type": content_type}
    response.text = text
    return response


class TestIdentifyJobSite:
    """Known job boards by domain"""

    @pytest.mark.parametrize("domain, site", [
        ("www.linkedin.com", "linkedin"),
        ("uk.indeed.com", "indeed"),
        ("www.glassdoor.co.uk", "glassdoor"),
        ("wellfound.com", "angellist"),
        ("careers.acme.com", None),
    ])
    def test_domains(self, domain, site):
        assert identify_job_site(domain) == site


class TestExtractJobData:
    """Field extraction"""

    def test_generic_page(self):
        data = extract_job_data(JOB_PAGE, "careers.acme.com")
        assert data["title"] == "Senior Data Engineer"
        assert data["company"] == "Acme Robotics"
        assert data["location"] == "Austin, TX"
        assert data["description"] == "We are building robots that sort parcels ."
        assert data["salary"] == "$120k - $150k"
        assert data["responsibilities"] == ["Own the data platform", "Mentor engineers"]
        assert data["requirements"] == ["5+ years with Python", "SQL"]
        assert data["benefits"] == DEFAULT_LISTS["benefits"]
        assert data["logo"] == "https://acme.com/logo.png"

    def test_dash_title_uses_last_part_as_company(self):
        html = "<html><head><title>Designer - Remote - Pixel Co</title></head><body></body></html>"
        data = extract_job_data(html, "pixel.co")
        assert data["title"] == "Designer"
        assert data["company"] == "Pixel Co"

    def test_company_fallbacks(self):
        html = ('<html><head><title>Designer</title>'
                '<meta property="og:site_name" content="Pixel Studio"></head><body></body></html>')
        assert extract_job_data(html, "pixel.co")["company"] == "Pixel Studio"

        bare = "<html><head><title>Designer</title></head><body></body></html>"
        assert extract_job_data(bare, "www.pixelstudio.com")["company"] == "Pixelstudio"

    def test_defaults(self):
        data = extract_job_data("<html><body><p>Nothing useful</p></body></html>", "example.com")
        assert data["location"] == "Remote"
        assert data["type"] == "Full-time"
        assert data["salary"] == "Competitive"
        assert data["logo"] == "/static/placeholder.svg"
        assert data["requirements"] == DEFAULT_LISTS["requirements"]

    def test_description_is_capped(self):
        html = f'<html><body><div class="job-description">{"x" * 6000}</div></body></html>'
        data = extract_job_data(html, "example.com")
        assert len(data["description"]) == 5003
        assert data["description"].endswith("...")

    def test_site_specific_selectors(self):
        html = """
        <html><head><title>Jobs | Indeed</title></head><body>
          <h1 class="jobsearch-JobInfoHeader-title">Barista</h1>
          <div class="jobsearch-InlineCompanyName">Bean There</div>
          <div id="jobDescriptionText">Make coffee.</div>
        </body></html>
        """
        data = extract_job_data(html, "www.indeed.com")
        assert data["title"] == "Barista"
        assert data["company"] == "Bean There"
        assert data["description"] == "Make coffee."


class TestScrapeJobUrl:
    """End to end with a mocked fetch"""

    @patch("extractor.requests.get")
    def test_creates_exactly_one_draft(self, mock_get, session):
        mock_get.return_value = html_response()

        draft = scrape_job_url(session, "https://careers.acme.com/jobs/42", user_id=None, now=NOW)

        drafts = session.exec(select(JobPosting)).all()
        assert len(drafts) == 1
        assert draft.is_draft is True
        assert draft.title == "Senior Data Engineer"
        assert draft.source_url == "https://careers.acme.com/jobs/42"

        job = session.exec(select(ScrapingJob)).one()
        assert job.status == "completed"
        assert job.jobs_found == 1
        assert job.jobs_created == 1
        assert draft.scraping_job_id == job.id

    def test_invalid_url_fails_job(self, session):
        with pytest.raises(ValidationError):
            scrape_job_url(session, "not-a-url", user_id=None)
        job = session.exec(select(ScrapingJob)).one()
        assert job.status == "failed"
        assert job.error_message == "Invalid URL format"
        assert session.exec(select(JobPosting)).all() == []

    @patch("extractor.requests.get")
    def test_non_html_rejected(self, mock_get, session):
        mock_get.return_value = html_response(content_type="application/pdf")
        with pytest.raises(ValidationError) as exc:
            scrape_job_url(session, "https://acme.com/job.pdf", user_id=None)
        assert "HTML" in str(exc.value)
        assert session.exec(select(ScrapingJob)).one().status == "failed"

    @patch("extractor.requests.get")
    def test_http_error(self, mock_get, session):
        mock_get.return_value = html_response(status=404)
        with pytest.raises(ValidationError):
            scrape_job_url(session, "https://acme.com/gone", user_id=None)
        assert session.exec(select(JobPosting)).all() == []

    @patch("extractor.requests.get")
    def test_network_error(self, mock_get, session):
        mock_get.side_effect = requests.Timeout("timed out")
        with pytest.raises(ValidationError) as exc:
            scrape_job_url(session, "https://acme.com/slow", user_id=None)
        assert "timed out" in str(exc.value)
        job = session.exec(select(ScrapingJob)).one()
        assert job.status == "failed"

    @patch("extractor.render_html")
    def test_render_uses_browser(self, mock_render, session):
        mock_render.return_value = JOB_PAGE
        draft = scrape_job_url(session, "https://careers.acme.com/jobs/42", user_id=None, render=True)
        mock_render.assert_called_once_with("https://careers.acme.com/jobs/42")
        assert draft.company == "Acme Robotics"
