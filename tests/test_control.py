"""Tests for operator actions: pause, cancel, resume, republish and status."""

import threading

import pytest

from ifrit.jobs.builder import create_job
from ifrit.jobs.models import CompletedItem, ContentType, ErrorLogItem, ItemStatus, JobStatus
from ifrit.jobs.store import JobNotFoundError
from ifrit.publish.github import PublishResult
from ifrit.runner.control import (
    RECENT_ERRORS,
    ItemNotFoundError,
    JobStateError,
    cancel_job,
    find_paused_job,
    job_summary,
    mark_resumed,
    pause_job,
    republish_item,
)


class StubPublisher:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def publish(self, article_slug, destination, domain=""):
        self.calls.append((article_slug, domain))
        return self.result


@pytest.fixture
def job(store, site_config, github_config):
    job = create_job(site_config, {"gemini": ["k" * 12]}, github_config, job_id="job_ctl")
    store.save(job)
    return job


@pytest.fixture
def unpublished(store, job):
    item = job.queue[0]
    item.status = ItemStatus.COMPLETE
    item.article_slug = "about-balcony-greens"
    item.last_error = "GitHub API error 500"
    job.completed_items.append(
        CompletedItem(
            id=item.id,
            type=ContentType.ABOUT,
            topic=item.topic,
            article_slug=item.article_slug,
            provider="gemini",
            content_length=1200,
            generated_at=1,
        )
    )
    job.recompute_progress()
    store.save(job)
    return item


class TestStateTransitions:

    def test_pause_waits_for_an_open_transaction(self, store, job):
        results = []
        with store.transaction():
            worker = threading.Thread(target=lambda: results.append(pause_job(store, "job_ctl")))
            worker.start()
            worker.join(0.1)
            assert worker.is_alive()
            running = store.get("job_ctl")
            running.status = JobStatus.RUNNING
            store.save(running)
        worker.join(5)

        assert not worker.is_alive()
        assert results[0].status == JobStatus.PAUSED
        assert store.load("job_ctl").status == JobStatus.PAUSED

    def test_pause_and_resume(self, store, job):
        assert pause_job(store, "job_ctl").status == JobStatus.PAUSED
        assert store.load("job_ctl").status == JobStatus.PAUSED
        assert find_paused_job(store).id == "job_ctl"
        assert mark_resumed(store, "job_ctl").status == JobStatus.RUNNING
        assert find_paused_job(store) is None

    def test_cancel_paused_job(self, store, job):
        pause_job(store, "job_ctl")
        assert cancel_job(store, "job_ctl").status == JobStatus.CANCELLED

    @pytest.mark.parametrize("status", [JobStatus.COMPLETE, JobStatus.FAILED, JobStatus.CANCELLED])
    def test_finished_jobs_reject_actions(self, store, job, status):
        job.status = status
        store.save(job)
        with pytest.raises(JobStateError):
            pause_job(store, "job_ctl")
        with pytest.raises(JobStateError):
            cancel_job(store, "job_ctl")
        with pytest.raises(JobStateError):
            mark_resumed(store, "job_ctl")

    def test_resume_requires_paused(self, store, job):
        with pytest.raises(JobStateError, match="Cannot resume job with status: pending"):
            mark_resumed(store, "job_ctl")

    def test_unknown_job(self, store):
        with pytest.raises(JobNotFoundError):
            pause_job(store, "job_missing")


class TestRepublish:

    def test_success_marks_published(self, store, job, unpublished):
        publisher = StubPublisher(PublishResult(True, article_url="https://balconygreens.com/about", commit_url="c1"))
        result = republish_item(store, publisher, "job_ctl", unpublished.id, clock=lambda: 42)

        assert result.success
        assert publisher.calls == [("about-balcony-greens", "balconygreens.com")]
        stored = store.load("job_ctl")
        item = stored.find_item(unpublished.id)
        assert item.published and item.last_error is None
        assert stored.progress.published == 1
        record = stored.completed_items[0]
        assert record.published_at == 42
        assert record.commit_url == "c1"

    def test_failure_is_logged(self, store, job, unpublished):
        result = republish_item(store, StubPublisher(PublishResult(False, error="GitHub API error 403")), "job_ctl", unpublished.id)
        assert not result.success
        stored = store.load("job_ctl")
        assert not stored.find_item(unpublished.id).published
        assert stored.errors[-1].error == "Publish failed: GitHub API error 403"

    def test_rejects_unsaved_or_published_items(self, store, job, unpublished):
        publisher = StubPublisher(PublishResult(True))
        with pytest.raises(JobStateError):
            republish_item(store, publisher, "job_ctl", job.queue[1].id)
        republish_item(store, publisher, "job_ctl", unpublished.id)
        with pytest.raises(JobStateError, match="already published"):
            republish_item(store, publisher, "job_ctl", unpublished.id)

    def test_unknown_item(self, store, job):
        with pytest.raises(ItemNotFoundError):
            republish_item(store, StubPublisher(PublishResult(True)), "job_ctl", "item_999")


class TestSummary:

    def test_summary_hides_credentials(self, job):
        summary = job_summary(job)
        assert summary["id"] == "job_ctl"
        assert summary["status"] == "pending"
        assert summary["config"]["siteName"] == "Balcony Greens"
        assert summary["config"]["totalPillars"] == 2
        assert summary["progress"]["total"] == len(job.queue)
        assert len(summary["queueSummary"]) == len(job.queue)
        assert "providerKeys" not in summary and "githubConfig" not in summary
        assert "k" * 12 not in str(summary)

    def test_recent_errors_are_capped(self, job):
        for n in range(RECENT_ERRORS + 3):
            job.errors.append(ErrorLogItem(id=f"e{n}", item_id="item_1", topic="t", error=f"boom {n}", timestamp=n))
        job.current_item = job.queue[2].id
        summary = job_summary(job)
        assert [e["error"] for e in summary["recentErrors"]] == [f"boom {n}" for n in range(3, 8)]
        assert summary["currentItem"] == job.queue[2].topic
