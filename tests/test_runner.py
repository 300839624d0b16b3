"""Tests for the job runner loop and per-item processing."""

import logging
import threading

import httpx
import pytest

from conftest import START_MS, make_article
from ifrit.jobs.builder import create_job
from ifrit.jobs.models import ItemStatus, JobStatus, ProviderUsage
from ifrit.llm.base import GenerationResult
from ifrit.publish.content_writer import ContentWriter
from ifrit.publish.github import GitHubPublisher, PublishResult
from ifrit.runner.control import cancel_job, pause_job
from ifrit.runner.processor import INTERRUPTED_MESSAGE, JOB_ERROR_ITEM_ID, JobRunner, retry_delay_ms

KEY = "test-key-0123456789"
DAY_MS = 24 * 60 * 60 * 1000


class FakeGenerator:
    """Returns ``outcome(provider, request)``; defaults to a passing article."""

    def __init__(self, outcome=None):
        self.calls = []
        self.outcome = outcome or (lambda provider, request: GenerationResult(True, make_article()))

    def generate(self, provider, api_keys, request):
        self.calls.append((provider, request.topic))
        return self.outcome(provider, request)


class FakePublisher:
    def __init__(self, success=True, error="GitHub API error 409: conflict"):
        self.success = success
        self.error = error
        self.calls = []

    def publish(self, article_slug, destination, domain=""):
        self.calls.append(article_slug)
        if self.success:
            return PublishResult(
                success=True,
                article_url=f"https://{domain}/{article_slug}",
                commit_url=f"https://github.test/commit/{len(self.calls)}",
            )
        return PublishResult(success=False, error=self.error)


class FakeVerifier:
    def __init__(self, warning=None):
        self.warning = warning
        self.calls = []

    def verify(self, article_slug, destination):
        self.calls.append(article_slug)
        return self.warning


def failing(error):
    return lambda provider, request: GenerationResult(False, error=error)


@pytest.fixture
def one_pillar(site_config):
    site_config.include_about = False
    site_config.include_essential_pages = False
    site_config.pillars = ["Balcony Herb Growing"]
    site_config.clusters_per_pillar = 1
    return site_config


@pytest.fixture
def make_job(store, one_pillar, github_config):
    def make(keys=None, clusters=1):
        one_pillar.clusters_per_pillar = clusters
        job = create_job(one_pillar, keys if keys is not None else {"gemini": [KEY]}, github_config, job_id="job_test")
        store.save(job)
        return job

    return make


@pytest.fixture
def make_runner(store, clock, tmp_path):
    def bounded_sleep(seconds):
        clock.sleep(seconds)
        if clock.now - START_MS > DAY_MS:
            raise AssertionError("runner did not settle within a simulated day")

    def make(generator=None, publisher=None, **kwargs):
        return JobRunner(
            store,
            generator or FakeGenerator(),
            publisher or FakePublisher(),
            ContentWriter(tmp_path / "content"),
            clock=clock,
            sleep=bounded_sleep,
            **kwargs,
        )

    return make


def assert_progress_consistent(job):
    p = job.progress
    assert p.total == len(job.queue)
    assert p.completed + p.failed + p.retrying + p.pending + p.processing == p.total
    assert p.published <= p.completed


class TestHappyPath:

    def test_generates_and_publishes_every_item(self, make_job, make_runner, store, tmp_path):
        make_job()
        publisher = FakePublisher()
        verifier = FakeVerifier()
        job = make_runner(publisher=publisher, verifier=verifier).run("job_test")

        assert job.status == JobStatus.COMPLETE
        assert job.completed_at is not None and job.started_at == START_MS
        assert [i.status for i in job.queue] == [ItemStatus.COMPLETE, ItemStatus.COMPLETE]
        assert all(i.published for i in job.queue)
        assert job.progress.completed == 2 and job.progress.published == 2
        assert_progress_consistent(job)

        assert publisher.calls == ["balcony-herb-growing", "balcony-herb-growing-part-1"]
        assert verifier.calls == publisher.calls
        assert (tmp_path / "content" / "balcony-herb-growing.md").exists()
        assert [c.article_url for c in job.completed_items] == [
            "https://balconygreens.com/balcony-herb-growing",
            "https://balconygreens.com/balcony-herb-growing-part-1",
        ]
        assert job.provider_usage["gemini"].daily_requests == 2
        assert job.current_item is None and job.current_provider is None
        assert store.load("job_test").status == JobStatus.COMPLETE

    def test_request_carries_site_context(self, make_job, make_runner):
        make_job()
        seen = []

        def capture(provider, request):
            seen.append(request)
            return GenerationResult(True, make_article())

        make_runner(generator=FakeGenerator(capture)).run("job_test")
        pillar, cluster = seen
        assert pillar.content_type == "pillar"
        assert pillar.site_context["siteName"] == "Balcony Greens"
        assert pillar.site_context["author"]["name"] == "Sam Rivera"
        assert cluster.parent_pillar == "Balcony Herb Growing"

    def test_verification_warning_is_only_logged(self, make_job, make_runner, caplog):
        make_job(clusters=0)
        with caplog.at_level(logging.WARNING, logger="ifrit.runner.processor"):
            job = make_runner(verifier=FakeVerifier("File not found in repository")).run("job_test")
        assert job.status == JobStatus.COMPLETE
        assert job.queue[0].published
        assert "File not found in repository" in caplog.text


class TestFailures:

    def test_short_pillar_is_rescheduled_with_backoff(self, make_job, make_runner, store, clock):
        job = make_job(clusters=0)
        runner = make_runner(generator=FakeGenerator(lambda p, r: GenerationResult(True, make_article(words=200))))
        item = job.queue[0]

        runner.process_item(job, item)

        assert item.status == ItemStatus.SCHEDULED
        assert item.retries == 1
        assert item.scheduled_at == clock.now + 30_000
        assert item.last_error.startswith("Quality check failed: Word count")
        error = job.errors[-1]
        assert error.will_retry and error.retry_at == item.scheduled_at
        stored = store.load("job_test")
        assert stored.progress.retrying == 1
        assert_progress_consistent(stored)

    def test_last_attempt_failing_the_gate_is_final(self, make_job, make_runner, store):
        job = make_job(clusters=0)
        item = job.queue[0]
        item.status = ItemStatus.SCHEDULED
        item.retries = item.max_retries - 1
        runner = make_runner(generator=FakeGenerator(lambda p, r: GenerationResult(True, make_article(words=200))))

        runner.process_item(job, item)

        assert item.status == ItemStatus.FAILED
        assert item.retries == item.max_retries
        assert item.scheduled_at is None
        assert store.load("job_test").progress.failed == 1
        assert not job.errors[-1].will_retry

    def test_exhausted_retries_fail_the_item_not_the_job(self, make_job, make_runner):
        make_job(clusters=0)
        generator = FakeGenerator(failing("HTTP 500: upstream exploded"))
        job = make_runner(generator=generator).run("job_test")

        item = job.queue[0]
        assert len(generator.calls) == 3
        assert item.status == ItemStatus.FAILED
        assert item.retries == item.max_retries == 3
        assert item.scheduled_at is None
        assert job.status == JobStatus.COMPLETE
        assert job.progress.failed == 1
        assert [e.will_retry for e in job.errors] == [True, True, False]
        assert job.errors[0].retry_at == START_MS + 30_000
        assert job.errors[2].retry_at is None
        assert_progress_consistent(job)

    def test_retry_ladder(self):
        assert [retry_delay_ms(n) for n in (1, 2, 3, 4)] == [30_000, 60_000, 120_000, 120_000]

    def test_publish_failure_keeps_item_complete(self, make_job, make_runner):
        make_job(clusters=0)
        job = make_runner(publisher=FakePublisher(success=False)).run("job_test")

        item = job.queue[0]
        assert item.status == ItemStatus.COMPLETE
        assert not item.published
        assert item.last_error == "GitHub API error 409: conflict"
        assert job.errors[-1].error == "Publish failed: GitHub API error 409: conflict"
        assert not job.errors[-1].will_retry
        assert job.progress.completed == 1 and job.progress.published == 0
        assert job.completed_items[0].published_at is None
        assert job.status == JobStatus.COMPLETE

    def test_unexpected_exception_fails_the_job(self, make_job, make_runner, store):
        make_job()

        def explode(provider, request):
            raise RuntimeError("disk on fire")

        job = make_runner(generator=FakeGenerator(explode)).run("job_test")
        assert job.status == JobStatus.FAILED
        error = job.errors[-1]
        assert error.item_id == JOB_ERROR_ITEM_ID
        assert error.topic == "Job Processing"
        assert error.error == "disk on fire"
        assert store.load("job_test").status == JobStatus.FAILED
        assert job.queue[0].status == ItemStatus.PENDING
        assert job.queue[0].last_error == INTERRUPTED_MESSAGE
        assert job.progress.processing == 0
        assert_progress_consistent(job)


class TestProviders:

    def test_no_provider_is_a_scheduling_stall(self, make_job, make_runner, store, clock):
        job = make_job(keys={}, clusters=0)
        generator = FakeGenerator()
        item = job.queue[0]

        make_runner(generator=generator).process_item(job, item)

        assert generator.calls == []
        assert item.status == ItemStatus.SCHEDULED
        assert item.retries == 0
        assert item.scheduled_at == clock.now + 5_000
        assert job.errors == []
        stored = store.load("job_test")
        assert stored.progress.pending == 1 and stored.progress.retrying == 0

    def test_rate_limited_provider_cools_down_and_falls_over(self, make_job, make_runner):
        make_job(keys={"gemini": [KEY], "deepseek": [KEY]})

        def gemini_throttled(provider, request):
            if provider == "gemini":
                return GenerationResult(False, error="Rate limit exceeded (429): slow down")
            return GenerationResult(True, make_article())

        generator = FakeGenerator(gemini_throttled)
        job = make_runner(generator=generator).run("job_test")

        assert job.status == JobStatus.COMPLETE
        assert generator.calls[0] == ("gemini", "Balcony Herb Growing")
        assert [p for p, _ in generator.calls[1:]] == ["deepseek", "deepseek"]
        assert job.provider_usage["gemini"].cooldown_until == START_MS + 60_000
        assert [c.provider for c in job.completed_items] == ["deepseek", "deepseek"]
        assert job.queue[0].retries == 1

    def test_idle_wait_is_capped(self, make_job, make_runner, clock):
        job = make_job(clusters=0)
        item = job.queue[0]
        item.status = ItemStatus.SCHEDULED
        item.scheduled_at = clock.now + 2_000
        runner = make_runner(max_wait=5.0)
        assert runner._idle_wait_seconds(job, clock.now) == 2.0
        item.scheduled_at = clock.now + 90_000
        assert runner._idle_wait_seconds(job, clock.now) == 5.0

    def test_rpm_window_defers_work(self, make_job, make_runner, clock):
        job = make_job(clusters=0)
        job.provider_usage["gemini"] = ProviderUsage(requests_this_minute=15, last_request_at=clock.now, daily_requests=15)
        runner = make_runner()
        assert runner.scheduler_for(job).next_provider() is None
        runner.process_item(job, job.queue[0])
        assert job.queue[0].status == ItemStatus.SCHEDULED
        assert job.queue[0].scheduled_at == clock.now + 60_000


class TestLifecycle:

    def test_orphaned_processing_items_are_reset(self, make_job, make_runner, store):
        job = make_job()
        job.status = JobStatus.RUNNING
        job.queue[0].status = ItemStatus.PROCESSING
        job.current_item = job.queue[0].id
        store.save(job)

        stop = threading.Event()
        stop.set()
        make_runner().run("job_test", stop)

        stored = store.load("job_test")
        assert stored.queue[0].status == ItemStatus.PENDING
        assert stored.queue[0].last_error == INTERRUPTED_MESSAGE
        assert stored.current_item is None
        assert stored.progress.processing == 0

    def test_resumed_job_finishes(self, make_job, make_runner, store):
        job = make_job()
        job.status = JobStatus.RUNNING
        job.queue[0].status = ItemStatus.PROCESSING
        store.save(job)

        job = make_runner().run("job_test")
        assert job.status == JobStatus.COMPLETE
        assert job.queue[0].last_error is None

    def test_pause_between_items_is_honoured(self, make_job, make_runner, store):
        make_job()

        def pause_then_write(provider, request):
            pause_job(store, "job_test")
            return GenerationResult(True, make_article())

        generator = FakeGenerator(pause_then_write)
        job = make_runner(generator=generator).run("job_test")

        assert job.status == JobStatus.PAUSED
        assert len(generator.calls) == 1
        assert job.queue[0].status == ItemStatus.COMPLETE
        assert job.queue[1].status == ItemStatus.PENDING
        assert_progress_consistent(job)

    def test_cancel_stops_the_loop(self, make_job, make_runner, store):
        make_job()

        def cancel_then_write(provider, request):
            cancel_job(store, "job_test")
            return GenerationResult(True, make_article())

        job = make_runner(generator=FakeGenerator(cancel_then_write)).run("job_test")
        assert job.status == JobStatus.CANCELLED
        assert job.queue[1].status == ItemStatus.PENDING

    def test_stop_event_leaves_job_running(self, make_job, make_runner):
        make_job()
        stop = threading.Event()

        def stop_after_first(provider, request):
            stop.set()
            return GenerationResult(True, make_article())

        job = make_runner(generator=FakeGenerator(stop_after_first)).run("job_test", stop)
        assert job.status == JobStatus.RUNNING
        assert job.progress.completed == 1 and job.progress.pending == 1

    def test_finished_job_is_left_alone(self, make_job, make_runner, store):
        job = make_job()
        job.status = JobStatus.COMPLETE
        store.save(job)
        generator = FakeGenerator()
        assert make_runner(generator=generator).run("job_test").status == JobStatus.COMPLETE
        assert generator.calls == []


class TestGitHubPublishing:

    def test_non_json_commit_body_does_not_fail_the_job(self, make_job, make_runner, tmp_path):
        make_job()

        def handler(request):
            if request.method == "GET":
                return httpx.Response(404)
            return httpx.Response(201, text="<html>created</html>")

        publisher = GitHubPublisher(
            ContentWriter(tmp_path / "content"),
            api_url="https://api.github.test",
            client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        job = make_runner(publisher=publisher).run("job_test")

        assert job.status == JobStatus.COMPLETE
        assert all(item.published for item in job.queue)
        assert [c.commit_url for c in job.completed_items] == [None] * len(job.queue)

    def test_close_releases_publisher_and_verifier(self, make_runner):
        closed = []

        class Closing:
            def __init__(self, name):
                self.name = name

            def close(self):
                closed.append(self.name)

        runner = make_runner(publisher=Closing("publisher"), verifier=Closing("verifier"))
        runner.close()
        assert closed == ["publisher", "verifier"]

    def test_close_tolerates_collaborators_without_close(self, make_runner):
        make_runner(publisher=FakePublisher(), verifier=FakeVerifier()).close()
