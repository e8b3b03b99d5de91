"""Operational commands.

    python manage.py grant-admin someone@example.com
    python manage.py birthday-sweep            # run from cron once a day
"""
import logging
import sys
from datetime import date

import click

from database import Base, SessionLocal, engine
from dependencies import ADMIN_ROLE, get_mailer, grant_role
from errors import UpstreamFailure
from models import User
from services.birthdays import run_birthday_sweep

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Alumni association management commands."""
    Base.metadata.create_all(bind=engine)


@cli.command('grant-admin')
@click.argument('email')
def grant_admin(email):
    """Give the member with EMAIL the admin role."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if user is None:
            click.echo(f"No account with email {email}", err=True)
            sys.exit(1)
        grant_role(db, user.id, ADMIN_ROLE)
        click.echo(f"{email} is now an admin")
    finally:
        db.close()


@cli.command('birthday-sweep')
@click.option('--date', 'on_date', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
              help='Run as if today were this date (YYYY-MM-DD).')
def birthday_sweep(on_date):
    """Send today's birthday wishes; safe to re-run."""
    today = on_date.date() if on_date else date.today()
    db = SessionLocal()
    try:
        result = run_birthday_sweep(db, get_mailer(), today=today)
    except UpstreamFailure as e:
        logger.error(f"Birthday sweep could not run: {e.message}")
        sys.exit(1)
    finally:
        db.close()

    click.echo(f"{result.message}: sent={len(result.sent)} skipped={len(result.skipped)} failed={len(result.failed)}")
    for failure in result.failed:
        click.echo(f"  failed {failure.name}: {failure.error}", err=True)


if __name__ == '__main__':
    cli()
