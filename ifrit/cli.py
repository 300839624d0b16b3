"""CLI entry-point: pre-flight, run and operate site builder jobs."""

import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ifrit.config import get_settings
from ifrit.jobs import JobNotFoundError, JobStatus, StartJobRequest, create_job, get_job_store
from ifrit.jobs.models import ACTIVE_JOB_STATUSES
from ifrit.jobs.store import InvalidJobIdError
from ifrit.preflight import all_errors, run_preflight_checks
from ifrit.publish import ContentWriter, DeploymentVerifier, GitHubPublisher, check_page_deployment, wait_for_deployment
from ifrit.quality import clean_content, validate_content
from ifrit.runner import (
    ItemNotFoundError,
    JobAlreadyRunningError,
    JobStateError,
    cancel_job,
    create_runner,
    get_registry,
    job_summary,
    mark_resumed,
    pause_job,
    republish_item,
)
from ifrit.runner.control import find_paused_job

app = typer.Typer(help="Autonomous site content builder")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.ifrit_log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_request(path: str) -> StartJobRequest:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return StartJobRequest.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[red]Error: could not read job file {path}: {e}[/red]")
        raise typer.Exit(1)


def _print_preflight(report) -> None:
    for name, result in (("Config", report.config), ("Providers", report.providers), ("GitHub", report.github)):
        mark = "[green]ok[/green]" if result.valid else "[red]failed[/red]"
        console.print(f"{name}: {mark}")
        for e in result.errors:
            console.print(f"  [red]- {e}[/red]")
        for w in result.warnings:
            console.print(f"  [yellow]- {w}[/yellow]")
    console.print(report.summary)


def _drive(job_id: str) -> None:
    """Run a job in the foreground; Ctrl-C pauses it."""
    store = get_job_store()
    try:
        job = get_registry().run(job_id, create_runner())
    except JobAlreadyRunningError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        job = pause_job(store, job_id)
        console.print(f"[yellow]Interrupted; job {job_id} paused. Resume with `ifrit resume {job_id}`.[/yellow]")
        raise typer.Exit(130)
    if job is None:
        console.print(f"[red]Job {job_id} no longer exists[/red]")
        raise typer.Exit(1)
    p = job.progress
    color = "green" if job.status == JobStatus.COMPLETE else "yellow"
    console.print(
        f"[{color}]Job {job.id} {job.status.value}[/{color}]: "
        f"{p.completed}/{p.total} completed, {p.published} published, {p.failed} failed"
    )
    if job.status == JobStatus.FAILED:
        raise typer.Exit(1)


@app.command()
def preflight(job_file: str = typer.Argument(..., help="Job request JSON {config, providerKeys, githubConfig}")):
    """Run pre-flight checks without starting a job."""
    request = _load_request(job_file)
    settings = get_settings()
    report = run_preflight_checks(
        request.config, request.provider_keys, request.github_config, api_url=settings.github_api_url
    )
    _print_preflight(report)
    if not report.overall:
        raise typer.Exit(1)


@app.command()
def start(
    job_file: str = typer.Argument(..., help="Job request JSON {config, providerKeys, githubConfig}"),
    skip_preflight: bool = typer.Option(False, "--skip-preflight", help="Start without pre-flight checks"),
):
    """Create a job from a request file and run it in the foreground."""
    request = _load_request(job_file)
    settings = get_settings()
    store = get_job_store()

    if not skip_preflight:
        report = run_preflight_checks(
            request.config, request.provider_keys, request.github_config, api_url=settings.github_api_url
        )
        if not report.overall:
            _print_preflight(report)
            raise typer.Exit(1)

    active = store.get_active_job()
    if active and active.status in (JobStatus.RUNNING, JobStatus.PENDING):
        console.print(f"[red]Error: job {active.id} is already {active.status.value}[/red]")
        raise typer.Exit(1)

    job = create_job(request.config, request.provider_keys, request.github_config)
    store.save(job)
    console.print(f"Created job {job.id} with {len(job.queue)} items")
    _drive(job.id)


@app.command()
def resume(job_id: str = typer.Argument(None, help="Job to resume (default: most recent paused or unfinished job)")):
    """Resume a paused job, or continue one interrupted by a crash."""
    store = get_job_store()
    try:
        job = store.get(job_id) if job_id else (find_paused_job(store) or store.get_active_job())
    except (JobNotFoundError, InvalidJobIdError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if job is None:
        console.print("[yellow]No job to resume[/yellow]")
        raise typer.Exit(1)
    if job.status == JobStatus.PAUSED:
        mark_resumed(store, job.id)
    elif job.status not in ACTIVE_JOB_STATUSES:
        console.print(f"[red]Cannot resume job with status: {job.status.value}[/red]")
        raise typer.Exit(1)
    _drive(job.id)


@app.command()
def status(
    job_id: str = typer.Argument(None, help="Job id (default: active or most recent)"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
):
    """Show job progress, queue and recent errors."""
    store = get_job_store()
    try:
        job = store.get(job_id) if job_id else store.get_active_job()
    except (JobNotFoundError, InvalidJobIdError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if job is None:
        jobs = store.list_jobs()
        job = jobs[0] if jobs else None
    if job is None:
        console.print("No jobs found")
        return

    summary = job_summary(job)
    if as_json:
        console.print_json(data=summary)
        return

    p = job.progress
    console.print(f"[bold]{job.id}[/bold] {job.config.site_name} ({job.config.domain}): {job.status.value}")
    console.print(
        f"completed {p.completed}/{p.total}, published {p.published}, failed {p.failed}, "
        f"retrying {p.retrying}, pending {p.pending}, processing {p.processing}"
    )
    if summary["currentItem"]:
        console.print(f"Current: {summary['currentItem']} via {summary['currentProvider']}")

    table = Table("Item", "Type", "Status", "Retries", "Published", "Topic")
    for item in job.queue:
        table.add_row(
            item.id, item.type.value, item.status.value, str(item.retries), "yes" if item.published else "", item.topic
        )
    console.print(table)

    for err in summary["recentErrors"]:
        retry = " (will retry)" if err["willRetry"] else ""
        console.print(f"[red]{err['topic']}: {err['error']}{retry}[/red]")


@app.command("list")
def list_jobs():
    """List all jobs, most recent first."""
    jobs = get_job_store().list_jobs()
    if not jobs:
        console.print("No jobs found")
        return
    table = Table("Job", "Site", "Status", "Completed", "Published", "Failed")
    for job in jobs:
        p = job.progress
        table.add_row(job.id, job.config.domain, job.status.value, f"{p.completed}/{p.total}", str(p.published), str(p.failed))
    console.print(table)


def _control(action, job_id: str, verb: str) -> None:
    try:
        action(get_job_store(), job_id)
    except (JobNotFoundError, InvalidJobIdError, JobStateError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    get_registry().stop(job_id)
    console.print(f"[green]Job {job_id} {verb}[/green]")


@app.command()
def pause(job_id: str = typer.Argument(..., help="Job id")):
    """Pause a job; it stops after the current item."""
    _control(pause_job, job_id, "paused")


@app.command()
def cancel(job_id: str = typer.Argument(..., help="Job id")):
    """Cancel a job; it cannot be resumed."""
    _control(cancel_job, job_id, "cancelled")


@app.command()
def delete(job_id: str = typer.Argument(..., help="Job id")):
    """Delete a job document."""
    try:
        removed = get_job_store().delete(job_id)
    except InvalidJobIdError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if not removed:
        console.print(f"[red]Job not found: {job_id}[/red]")
        raise typer.Exit(1)
    console.print(f"Deleted {job_id}")


@app.command()
def validate(
    path: str = typer.Argument(..., help="Markdown file to check"),
    content_type: str = typer.Option("cluster", "--type", help="pillar | cluster | about | privacy | terms | contact | disclaimer"),
):
    """Run the content quality gate on a markdown file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    result = validate_content(text, content_type)
    m = result.metrics
    console.print(
        f"Score {result.score}/100, {m.word_count} words, {m.heading_count} headings, "
        f"{m.paragraph_count} paragraphs, {m.link_count} links"
    )
    for issue in result.issues:
        color = "red" if issue.type == "error" else "yellow"
        console.print(f"[{color}]{issue.type} {issue.code}: {issue.message}[/{color}]")
    if not result.valid:
        raise typer.Exit(1)
    console.print("[green]Valid[/green]")


@app.command()
def clean(
    path: str = typer.Argument(..., help="Markdown file to clean"),
    write: bool = typer.Option(False, "--write", help="Overwrite the file instead of printing"),
):
    """Strip citation/word-count artifacts and repair one-line tables."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    result = clean_content(text)
    for change in result.changes:
        console.print(f"[yellow]{change}[/yellow]")
    if write:
        if result.was_modified:
            Path(path).write_text(result.content + "\n", encoding="utf-8")
            console.print(f"Wrote {path}")
        else:
            console.print("No changes")
    else:
        console.print(result.content, markup=False, highlight=False)


@app.command()
def republish(
    job_id: str = typer.Argument(..., help="Job id"),
    item_id: str = typer.Argument(..., help="Queue item id"),
):
    """Publish a generated item whose automatic publish failed."""
    settings = get_settings()
    writer = ContentWriter(settings.content_dir)
    publisher = GitHubPublisher(writer, api_url=settings.github_api_url, timeout=settings.github_timeout)
    verifier = DeploymentVerifier(api_url=settings.github_api_url)
    try:
        result = republish_item(get_job_store(), publisher, job_id, item_id, verifier=verifier)
    except (JobNotFoundError, InvalidJobIdError, ItemNotFoundError, JobStateError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        publisher.close()
        verifier.close()
    if not result.success:
        console.print(f"[red]Publish failed: {result.error}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Published[/green] {result.article_url or ''} {result.commit_url or ''}".rstrip())


@app.command("check-page")
def check_page(
    url: str = typer.Argument(..., help="Page URL"),
    wait: bool = typer.Option(False, "--wait", help="Poll until the page is live"),
    attempts: int = typer.Option(10, help="Attempts when --wait is set"),
    delay: float = typer.Option(5.0, help="Seconds between attempts"),
):
    """Check that a published page is reachable and has title/description/canonical tags."""
    if wait:
        outcome = wait_for_deployment(url, max_attempts=attempts, delay=delay)
        check = outcome.final_check
        console.print(f"{'Live' if outcome.success else 'Not live'} after {outcome.attempts} attempt(s)")
    else:
        check = check_page_deployment(url)
    if not check.accessible:
        console.print(f"[red]{url}: {check.error}[/red]")
        raise typer.Exit(1)
    seo = check.seo
    console.print(f"{url}: HTTP {check.status_code} in {check.response_time_ms}ms, {check.content_length} bytes")
    console.print(f"title: {seo.title or '[yellow]missing[/yellow]'}")
    console.print(f"description: {'yes' if seo.has_description else '[yellow]missing[/yellow]'}")
    console.print(f"canonical: {'yes' if seo.has_canonical else '[yellow]missing[/yellow]'}")


if __name__ == "__main__":
    app()
