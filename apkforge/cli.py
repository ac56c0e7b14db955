"""CLI interface for apkforge."""

import asyncio
import sys
from typing import Optional

import click
import httpx

from .config import Settings
from .logging_config import setup_logging
from .models import JobStatus
from .service import ConfigurationIncomplete, build_service

DEFAULT_SERVER = "http://localhost:3000"


@click.group()
def cli():
    """apkforge - Prompt-to-APK generation service"""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (default: $HOST or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port (default: $PORT or 3000)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the HTTP API.

    Example:
        apkforge serve --port 3000
    """
    import uvicorn

    from .api import create_app

    settings = Settings()
    setup_logging(settings.log_level)
    missing = settings.missing_configuration()
    if missing:
        click.echo(f"! Missing configuration: {', '.join(missing)}", err=True)
    uvicorn.run(
        create_app(build_service(settings)),
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


async def _generate(prompt: str, user: str, webhook: Optional[str], poll_interval: float) -> int:
    service = build_service(Settings())
    try:
        job = await service.submit(prompt, user, webhook)
        click.echo(f"✓ Job {job.id} queued")
        last_step = None
        while True:
            job = await service.get_status(job.id)
            step = job.progress.get("step")
            if step and step != last_step:
                click.echo(f"  [{job.status.value}] {step}")
                last_step = step
            if job.status.is_terminal:
                break
            await asyncio.sleep(poll_interval)
    finally:
        await service.shutdown()

    if job.status is JobStatus.COMPLETED:
        data = job.progress.get("data", {})
        click.echo(f"✓ APK bundle: {service.workspace.root / data['apkDownloadUrl'].rsplit('/', 1)[-1]}")
        click.echo(f"✓ Repository: {data['githubRepo']}")
        return 0
    click.echo(f"✗ Job failed: {job.progress.get('error')}", err=True)
    return 1


@cli.command()
@click.argument("prompt")
@click.option("--user", "user", default="cli", help="Requester id recorded on the job")
@click.option("--webhook", default=None, help="URL notified when the job finishes")
@click.option("--poll-interval", default=1.0, help="Seconds between status checks")
def generate(prompt: str, user: str, webhook: Optional[str], poll_interval: float):
    """Run one generation job in this process and wait for it.

    Example:
        apkforge generate "counter app"
    """
    setup_logging(Settings().log_level)
    try:
        code = asyncio.run(_generate(prompt, user, webhook, poll_interval))
    except ConfigurationIncomplete as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    sys.exit(code)


def _get(server: str, path: str) -> dict:
    try:
        response = httpx.get(f"{server.rstrip('/')}{path}", timeout=10.0)
    except httpx.HTTPError as e:
        click.echo(f"✗ Cannot reach {server}: {e}", err=True)
        sys.exit(1)
    if response.status_code == 404:
        click.echo(f"✗ {response.json().get('error', 'Not found')}", err=True)
        sys.exit(1)
    response.raise_for_status()
    return response.json()


@cli.command()
@click.argument("job_id")
@click.option("--server", default=DEFAULT_SERVER, help="Base URL of a running apkforge server")
def status(job_id: str, server: str):
    """Show one job's status.

    Example:
        apkforge status job_1718000000000_3f9a1c2b7
    """
    job = _get(server, f"/generate/status/{job_id}")["job"]
    progress = job.get("progress", {})
    click.echo(f"\nJob:      {job['id']}")
    click.echo(f"User:     {job['userId']}")
    click.echo(f"Status:   {job['status']}")
    click.echo(f"Step:     {progress.get('step', '-')}")
    click.echo(f"Updated:  {job['updatedAt']}")
    if progress.get("error"):
        click.echo(f"Error:    {progress['error']}")
    for key, value in progress.get("data", {}).items():
        click.echo(f"  {key}: {value}")
    click.echo()


@cli.command()
@click.option("--server", default=DEFAULT_SERVER, help="Base URL of a running apkforge server")
@click.option("--limit", default=10, help="Maximum jobs to display")
def jobs(server: str, limit: int):
    """List jobs known to a running server.

    Example:
        apkforge jobs --limit 20
    """
    listed = _get(server, "/generate/jobs")["jobs"][-limit:]
    if not listed:
        click.echo("No jobs found")
        return

    click.echo(f"\n{'ID':<32} {'User':<12} {'Status':<12} {'Created':<25}")
    click.echo("-" * 82)
    for job in listed:
        click.echo(f"{job['id']:<32} {job['userId'][:12]:<12} {job['status']:<12} {job['createdAt'][:25]:<25}")
    click.echo()


@cli.group()
def config():
    """Inspect configuration"""
    pass


@config.command()
def show():
    """Show the effective configuration (secrets masked).

    Example:
        apkforge config show
    """
    settings = Settings()
    secret_fields = {"mistral_api_key", "github_token"}

    click.echo("\nCurrent Configuration:")
    for name, field in Settings.model_fields.items():
        value = getattr(settings, name)
        if name in secret_fields:
            value = "set" if value else "missing"
        click.echo(f"  {field.validation_alias:<24} {value}")
    click.echo()


if __name__ == "__main__":
    cli()
