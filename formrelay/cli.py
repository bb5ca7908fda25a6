"""CLI tools for formrelay administration."""

import asyncio
import uuid

import click

from formrelay.core.structured_logging import configure_logging
from formrelay.db.enums import SubmissionStatus
from formrelay.db.session import SessionLocal


@click.group()
def cli():
    """formrelay CLI tools."""
    configure_logging()


async def _reprocess(db, submissions) -> tuple[int, int]:
    from formrelay.services.submission_processor import SubmissionInProgress, process_submission

    completed = failed = 0
    for submission in submissions:
        try:
            result = await process_submission(db, submission)
        except SubmissionInProgress:
            click.echo(f"- {submission.id}: already being processed, skipped")
            continue
        if result.status == SubmissionStatus.COMPLETED.value:
            completed += 1
            click.echo(f"✓ {submission.id}")
        else:
            failed += 1
            click.echo(f"❌ {submission.id}: {result.error_message}")
    return completed, failed


@cli.command()
@click.option(
    "--status",
    "statuses",
    multiple=True,
    type=click.Choice([
        SubmissionStatus.FAILED.value,
        SubmissionStatus.PENDING.value,
        SubmissionStatus.PROCESSING.value,
    ]),
    help="Statuses to replay (default: all three; live processing claims are skipped)",
)
@click.option("--form-id", type=click.UUID, default=None, help="Only this form")
@click.option("--limit", default=100, show_default=True, help="Maximum submissions")
def reprocess_submissions(statuses: tuple[str, ...], form_id: uuid.UUID | None, limit: int):
    """
    Re-run the awork relay for failed or stuck submissions.

    Example:
        formrelay reprocess-submissions --status failed --limit 20
    """
    from formrelay.services.submission_service import list_submissions_for_reprocessing

    db = SessionLocal()
    try:
        submissions = list_submissions_for_reprocessing(
            db,
            statuses=list(statuses) or [
                SubmissionStatus.FAILED.value,
                SubmissionStatus.PENDING.value,
                SubmissionStatus.PROCESSING.value,
            ],
            form_id=form_id,
            limit=limit,
        )
        if not submissions:
            click.echo("Nothing to reprocess")
            return

        completed, failed = asyncio.run(_reprocess(db, submissions))
        click.echo(f"Reprocessed {len(submissions)}: {completed} completed, {failed} failed")
        if failed:
            raise SystemExit(1)
    except SystemExit:
        raise
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
def reset_dcr():
    """
    Forget the registered awork OAuth client; the next login registers again.

    Use after changing FRONTEND_URL (the redirect URI is part of the registration).
    """
    from formrelay.services.auth_service import reset_client_registration

    db = SessionLocal()
    try:
        if reset_client_registration(db):
            click.echo("✓ Cleared awork client registration")
        else:
            click.echo("No client registration stored")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--awork-user-id", required=True, help="awork user id to revoke sessions for")
def revoke_sessions(awork_user_id: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        formrelay revoke-sessions --awork-user-id "5f1c..."
    """
    from formrelay.db.models import User
    from formrelay.services.auth_service import revoke_sessions as bump_token_version

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.awork_user_id == awork_user_id).first()
        if not user:
            click.echo(f"❌ User not found: {awork_user_id}", err=True)
            raise SystemExit(1)

        old_version = user.token_version
        new_version = bump_token_version(db, user)
        click.echo(f"✓ Revoked all sessions for {awork_user_id}")
        click.echo(f"  Token version: {old_version} → {new_version}")
    except SystemExit:
        raise
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
def purge_oauth_states():
    """Delete login states older than OAUTH_STATE_CLEANUP_MINUTES."""
    from formrelay.services.auth_service import purge_expired_states

    db = SessionLocal()
    try:
        deleted = purge_expired_states(db)
        click.echo(f"✓ Deleted {deleted} expired OAuth states")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--upgrade", is_flag=True, help="Apply pending migrations")
def db_status(upgrade: bool):
    """Show applied and head schema revisions."""
    from formrelay.core.migrations import ensure_migrations
    from formrelay.db.session import engine

    state = ensure_migrations(engine, auto_migrate=upgrade)
    click.echo(f"Applied: {', '.join(sorted(state.applied)) or '(none)'}")
    click.echo(f"Heads:   {', '.join(sorted(state.heads))}")
    if not state.is_current:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
