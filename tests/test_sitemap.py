"""
Test sitemap generation

Tests:
1. Static pages and category pages with priorities
2. Published jobs only, lastmod from updated_at
"""

from datetime import date
from xml.etree import ElementTree

from conftest import NOW, make_job
from filters import CATEGORY_CONFIG
from sitemap import build_sitemap

NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}


def parse(xml):
    root = ElementTree.fromstring(xml.encode())
    return {
        url.find("sm:loc", NS).text: {
            "lastmod": url.find("sm:lastmod", NS).text,
            "changefreq": url.find("sm:changefreq", NS).text,
            "priority": url.find("sm:priority", NS).text,
        }
        for url in root.findall("sm:url", NS)
    }


class TestSitemap:
    """build_sitemap()"""

    def test_static_pages(self, session):
        urls = parse(build_sitemap(session, "https://jobs.example", date(2025, 6, 1)))
        assert urls["https://jobs.example/"] == {"lastmod": "2025-06-01", "changefreq": "daily", "priority": "1.0"}
        assert urls["https://jobs.example/jobs"]["changefreq"] == "hourly"
        assert urls["https://jobs.example/jobs"]["priority"] == "0.9"
        assert urls["https://jobs.example/post-job"]["priority"] == "0.8"
        assert len(urls) == 3 + len(CATEGORY_CONFIG)

    def test_category_pages(self, session):
        urls = parse(build_sitemap(session, "https://jobs.example/", date(2025, 6, 1)))
        entry = urls["https://jobs.example/jobs?category=software-engineering"]
        assert entry["priority"] == "0.7"
        assert entry["changefreq"] == "daily"

    def test_only_published_jobs(self, session):
        live = make_job(session, title="Live")
        draft = make_job(session, title="Draft", is_draft=True)
        expired = make_job(session, title="Old")
        expired.is_expired = True
        session.add(expired)
        session.commit()

        urls = parse(build_sitemap(session, "https://jobs.example", date(2025, 6, 1)))

        job_url = urls[f"https://jobs.example/jobs/{live.id}"]
        assert job_url == {"lastmod": NOW.date().isoformat(), "changefreq": "weekly", "priority": "0.6"}
        assert f"https://jobs.example/jobs/{draft.id}" not in urls
        assert f"https://jobs.example/jobs/{expired.id}" not in urls
