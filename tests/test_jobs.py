"""
Test job listing service

Tests:
1. Date formatting helpers
2. List field normalization
3. Create / update / delete with validation and ownership
4. Published listing, trending, drafts and publishing
5. Expiry sweep
6. Admin table query
7. Logo storage and sample seeding
"""

from datetime import timedelta

import pytest
from sqlmodel import select

from conftest import NOW, days_ago, make_job, make_profile
from errors import NotFoundError, PermissionDenied, ValidationError
from jobs import (
    JobForm,
    admin_job_query,
    delete_job,
    draft_jobs,
    format_days_remaining,
    format_posted_date,
    get_job,
    jobs_for_user,
    list_jobs,
    mark_expired_jobs,
    parse_list_field,
    publish_draft,
    save_logo,
    seed_jobs,
    set_featured,
    split_lines,
    trending_jobs,
    update_job,
)
from models import JobPosting, SavedJob


class TestFormatting:
    """Posted date and days-remaining labels"""

    @pytest.mark.parametrize("delta, expected", [
        (timedelta(hours=3), "Today"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(days=5), "5 days ago"),
        (timedelta(days=7), "1 week ago"),
        (timedelta(days=20), "2 weeks ago"),
        (timedelta(days=30), "1 month ago"),
        (timedelta(days=95), "3 months ago"),
    ])
    def test_posted_date(self, delta, expected):
        assert format_posted_date(NOW - delta, NOW) == expected

    def test_days_remaining(self):
        assert format_days_remaining(NOW - timedelta(hours=1), NOW) == "Expired"
        assert format_days_remaining(NOW + timedelta(hours=5), NOW) == "1 day left"
        assert format_days_remaining(NOW + timedelta(days=29, hours=1), NOW) == "30 days left"


class TestListFields:
    """Normalizing list-valued columns"""

    def test_list_passthrough(self):
        assert parse_list_field(["a", "b"]) == ["a", "b"]

    def test_json_string(self):
        assert parse_list_field('["a", "b"]') == ["a", "b"]

    def test_plain_string(self):
        assert parse_list_field("just one") == ["just one"]

    def test_other_values(self):
        assert parse_list_field(None) == []
        assert parse_list_field(42) == []

    def test_split_lines(self):
        assert split_lines("  one \n\n two\n") == ["one", "two"]
        assert split_lines(None) == []


class TestCreateAndUpdate:
    """Posting and editing jobs"""

    def test_create_sets_expiry_and_placeholder_logo(self, session):
        job = make_job(session)
        assert job.id is not None
        assert job.expires_at == NOW + timedelta(days=30)
        assert job.logo == "/static/placeholder.svg"
        assert job.is_draft is False

    def test_create_rejects_missing_required_fields(self, session):
        with pytest.raises(ValidationError) as exc:
            make_job(session, title=" ", description="")
        assert "title" in str(exc.value)
        assert "description" in str(exc.value)

    def test_update_by_owner(self, session):
        poster = make_profile(session, "poster@example.com", "job_poster")
        job = make_job(session, user_id=poster.id)
        form = JobForm(title="Staff Engineer", company="Acme", location="Remote", description="Lead")
        updated = update_job(session, job.id, form, poster.id)
        assert updated.title == "Staff Engineer"
        assert updated.updated_at > NOW

    def test_update_by_stranger_denied(self, session):
        poster = make_profile(session, "poster@example.com", "job_poster")
        other = make_profile(session, "other@example.com", "job_poster")
        job = make_job(session, user_id=poster.id)
        form = JobForm(title="X", company="Acme", location="Remote", description="d")
        with pytest.raises(PermissionDenied):
            update_job(session, job.id, form, other.id)

    def test_update_by_admin_allowed(self, session):
        job = make_job(session, user_id=None)
        form = JobForm(title="Edited", company="Acme", location="Remote", description="d")
        assert update_job(session, job.id, form, user_id=999, is_admin=True).title == "Edited"

    def test_delete_removes_saved_rows(self, session):
        seeker = make_profile(session)
        job = make_job(session)
        session.add(SavedJob(profile_id=seeker.id, job_id=job.id))
        session.commit()

        delete_job(session, job.id)

        assert session.get(JobPosting, job.id) is None
        assert session.exec(select(SavedJob)).all() == []

    def test_get_missing_job(self, session):
        with pytest.raises(NotFoundError):
            get_job(session, 12345)


class TestListing:
    """Published listing, trending and drafts"""

    def test_list_excludes_drafts_and_expired(self, session):
        live = make_job(session, title="Live")
        make_job(session, title="Draft", is_draft=True)
        expired = make_job(session, title="Old")
        expired.is_expired = True
        session.add(expired)
        session.commit()

        assert [j.id for j in list_jobs(session)] == [live.id]

    def test_list_by_department(self, session):
        make_job(session, title="Eng", department="Engineering")
        make_job(session, title="Design", department="Design")
        assert [j.title for j in list_jobs(session, department="Design")] == ["Design"]

    def test_newest_first(self, session):
        make_job(session, title="Older", now=days_ago(3))
        make_job(session, title="Newer", now=days_ago(1))
        assert [j.title for j in list_jobs(session)] == ["Newer", "Older"]

    def test_trending_only_featured(self, session):
        make_job(session, title="Plain")
        make_job(session, title="Hot", featured=True)
        make_job(session, title="Hidden", featured=True, is_draft=True)
        assert [j.title for j in trending_jobs(session)] == ["Hot"]

    def test_drafts_hidden_from_get_job(self, session):
        draft = make_job(session, is_draft=True)
        with pytest.raises(NotFoundError):
            get_job(session, draft.id)
        assert get_job(session, draft.id, include_drafts=True).id == draft.id

    def test_publish_draft(self, session):
        draft = make_job(session, is_draft=True, now=days_ago(2))
        assert [d.id for d in draft_jobs(session)] == [draft.id]

        published = publish_draft(session, draft.id, now=NOW)

        assert published.is_draft is False
        assert published.posted == NOW
        assert draft_jobs(session) == []

    def test_set_featured(self, session):
        job = make_job(session)
        assert set_featured(session, job.id, True).featured is True

    def test_jobs_for_user(self, session):
        poster = make_profile(session, "poster@example.com", "job_poster")
        mine = make_job(session, user_id=poster.id)
        make_job(session)
        assert [j.id for j in jobs_for_user(session, poster.id)] == [mine.id]


class TestExpiry:
    """Expiry sweep"""

    def test_flags_jobs_past_expiry(self, session):
        old = make_job(session, title="Old", now=days_ago(40))
        fresh = make_job(session, title="Fresh", now=days_ago(5))

        expired = mark_expired_jobs(session, NOW)

        assert [j.id for j in expired] == [old.id]
        session.refresh(old)
        session.refresh(fresh)
        assert old.is_expired is True
        assert fresh.is_expired is False

    def test_already_expired_not_returned_again(self, session):
        make_job(session, now=days_ago(40))
        assert len(mark_expired_jobs(session, NOW)) == 1
        assert mark_expired_jobs(session, NOW) == []

    def test_boundary_is_strict(self, session):
        job = make_job(session, now=days_ago(30))
        assert job.expires_at == NOW
        assert mark_expired_jobs(session, NOW) == []


class TestAdminQuery:
    """Admin jobs table"""

    def test_status_filters(self, session):
        make_job(session, title="Live")
        make_job(session, title="Draft", is_draft=True)
        make_job(session, title="Star", featured=True)

        rows, total = admin_job_query(session, status="draft")
        assert total == 1 and rows[0].title == "Draft"
        rows, total = admin_job_query(session, status="featured")
        assert [r.title for r in rows] == ["Star"]
        _, total = admin_job_query(session, status="all")
        assert total == 3
        _, total = admin_job_query(session, status="published")
        assert total == 2

    def test_search_and_sort(self, session):
        make_job(session, title="Zeta", company="Beta Corp", location="Paris")
        make_job(session, title="Alpha", company="Gamma", location="Paris")
        make_job(session, title="Other", company="Gamma", location="Tokyo")

        rows, total = admin_job_query(session, search="paris", sort_by="title", order="asc")
        assert total == 2
        assert [r.title for r in rows] == ["Alpha", "Zeta"]

    def test_paging(self, session):
        for i in range(5):
            make_job(session, title=f"Job {i}", now=days_ago(i))
        rows, total = admin_job_query(session, status="all", page=2, page_size=2)
        assert total == 5
        assert [r.title for r in rows] == ["Job 2", "Job 3"]


class TestLogosAndSeeding:
    """Logo storage and sample data"""

    def test_save_logo(self, logo_dir):
        url = save_logo(b"\x89PNG", "my logo.png", 7, now=NOW)
        stored = list(logo_dir.iterdir())
        assert len(stored) == 1
        assert stored[0].name.startswith("7-")
        assert stored[0].name.endswith("-my_logo.png")
        assert url == f"/static/logos/{stored[0].name}"

    def test_save_empty_logo_rejected(self, logo_dir):
        with pytest.raises(ValidationError):
            save_logo(b"", "logo.png", 7)

    def test_seed_only_when_empty(self, session):
        assert seed_jobs(session) == 3
        assert seed_jobs(session) == 0
