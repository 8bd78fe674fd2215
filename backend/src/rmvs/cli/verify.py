"""CLI commands for suggestion verification.

Usage:
    rmvs verify phone "(503) 555-0100"
    rmvs verify url https://example.org --autofix --name "Oak PIC" --city Portland --state OR
    rmvs verify suggestion suggestion.json
    rmvs verify batch batch.json
    rmvs verify periodic --limit 25 --dry-run
    rmvs verify schedule phone address
"""

import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from ..checks import ReachabilityChecker, UrlAutoFixer, validate_phone_number
from ..errors import IntakeValidationError
from ..intake import BatchProcessor, SuggestionInput, parse_batch
from ..llm import get_llm_client
from ..logging import setup_logging
from ..verification import (
    EventEmitter,
    InMemoryEventSink,
    PeriodicVerifier,
    VerificationPipeline,
    build_pipeline,
    calculate_next_verification_date,
    get_field_cadence,
)


@click.group(name="verify")
def cli():
    """Suggestion verification commands."""
    setup_logging(sys.stderr)


def _load_json(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Could not read {path}: {e}", err=True)
        sys.exit(1)


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@cli.command(name="phone")
@click.argument("number")
def verify_phone(number: str) -> None:
    """Validate a North American phone number."""
    result = validate_phone_number(number)
    _echo_json(result.model_dump(by_alias=True, exclude_none=True))
    if not result.passed:
        sys.exit(1)


@cli.command(name="url")
@click.argument("url")
@click.option("--autofix", is_flag=True, help="Search for a replacement URL on failure")
@click.option("--name", default=None, help="Organization name (for --autofix)")
@click.option("--city", default=None)
@click.option("--state", default=None)
def verify_url(
    url: str, autofix: bool, name: str | None, city: str | None, state: str | None
) -> None:
    """Check that a website loads in a real browser."""
    result = asyncio.run(_run_url_check(url, autofix, name, city, state))
    _echo_json(result)


async def _run_url_check(url, autofix, name, city, state) -> dict:
    checker = ReachabilityChecker()
    check = await checker.check(url)
    output = {"url_reachable": check.model_dump(by_alias=True, exclude_none=True)}

    if check.passed or not autofix:
        return output

    llm = get_llm_client()
    if llm is None:
        output["autofix"] = {"fixed": False, "error": "No LLM provider configured"}
        return output

    fix = await UrlAutoFixer(llm, checker).fix(name or url, url, city, state)
    output["autofix"] = {
        "fixed": fix.fixed,
        "new_url": fix.new_url,
        "candidate_url": fix.candidate_url,
        "confidence": fix.confidence,
        "cost_usd": fix.cost_usd,
    }
    return output


@cli.command(name="suggestion")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("--events", is_flag=True, help="Print the event trace")
def verify_suggestion(path: Path, events: bool) -> None:
    """Verify one suggestion from a JSON file without storing anything."""
    try:
        entry = SuggestionInput.model_validate(_load_json(path))
    except ValidationError as e:
        click.echo(f"Invalid suggestion: {e}", err=True)
        sys.exit(1)

    sink = InMemoryEventSink()
    pipeline = VerificationPipeline(llm=get_llm_client(), emitter=EventEmitter([sink]))
    result = asyncio.run(pipeline.run(entry.to_suggestion("cli", None)))

    if events:
        for event in sink.events:
            click.echo(f"[{event.sequence}] {event.event_type.value}: {event.event_data}")

    _echo_json(result.model_dump(mode="json", by_alias=True))


@cli.command(name="batch")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def verify_batch(path: Path) -> None:
    """Submit a batch file through intake and verification."""
    try:
        batch = parse_batch(_load_json(path))
    except IntakeValidationError as e:
        click.echo(str(e), err=True)
        for err in e.errors:
            click.echo(f"  [{err['index']}] {err['field']}: {err['message']}", err=True)
        sys.exit(1)

    result = asyncio.run(_run_batch(batch))
    _echo_json(result.model_dump(mode="json"))


async def _run_batch(batch):
    from ..db import close_all_connections, get_event_redis
    from ..repository import VerificationRepository

    repository = VerificationRepository()
    try:
        pipeline = build_pipeline(repository, redis=await get_event_redis())
        return await BatchProcessor(repository, pipeline).process(batch)
    finally:
        await close_all_connections()


@cli.command(name="periodic")
@click.option("--limit", default=50, show_default=True, help="Maximum resources to verify")
@click.option("--dry-run", is_flag=True, help="Verify without updating or logging anything")
def verify_periodic(limit: int, dry_run: bool) -> None:
    """Re-verify published resources that are due."""
    summary = asyncio.run(_run_periodic(limit, dry_run))

    click.echo(f"\nDue:      {summary.due}")
    click.echo(f"Verified: {summary.verified}")
    click.echo(f"Flagged:  {summary.flagged}")
    click.echo(f"Rejected: {summary.rejected}")
    click.echo(f"Errors:   {summary.errors}")
    if summary.dry_run:
        click.echo("(dry run: no records updated)")


async def _run_periodic(limit: int, dry_run: bool):
    from ..db import close_all_connections, get_event_redis
    from ..repository import VerificationRepository

    repository = VerificationRepository()
    try:
        if dry_run:
            pipeline = VerificationPipeline(
                llm=get_llm_client(), emitter=EventEmitter([InMemoryEventSink()])
            )
        else:
            pipeline = build_pipeline(repository, redis=await get_event_redis())
        return await PeriodicVerifier(pipeline, repository).run(limit=limit, dry_run=dry_run)
    finally:
        await close_all_connections()


@cli.command(name="schedule")
@click.argument("fields", nargs=-1)
def verify_schedule(fields: tuple[str, ...]) -> None:
    """Show the next verification date for a set of changed fields."""
    for name in fields:
        click.echo(f"{name}: every {get_field_cadence(name)} days")
    next_date = calculate_next_verification_date(list(fields))
    click.echo(f"Next verification: {next_date.isoformat()}")
