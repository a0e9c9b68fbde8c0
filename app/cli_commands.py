"""
Flask CLI commands for provisioning and maintenance.
"""

import os

import click
from werkzeug.security import generate_password_hash

from app.extensions import db
from app.models import SuperAdmin, User, UserRole
from app.scheduled_tasks import mark_overdue_invoices_job


@click.command('seed-superadmin')
@click.option('--email', default=lambda: os.getenv('SUPERADMIN_EMAIL'), help='Super admin email (or SUPERADMIN_EMAIL)')
@click.option('--password', default=lambda: os.getenv('SUPERADMIN_PASSWORD'), help='Super admin password (or SUPERADMIN_PASSWORD)')
@click.option('--first-name', default='System', show_default=True)
@click.option('--last-name', default='Administrator', show_default=True)
def seed_superadmin_command(email, password, first_name, last_name):
    """
    Create the initial super admin account.

    Safe to run repeatedly: an existing account with the same email is
    left alone (apart from gaining its SuperAdmin record if missing).
    """
    if not email:
        email = click.prompt('Super admin email')
    if not password:
        password = click.prompt('Super admin password', hide_input=True, confirmation_prompt=True)
    email = email.strip().lower()

    user = User.query.filter_by(email=email).first()
    if user:
        if user.role != UserRole.SUPER_ADMIN:
            click.echo(f"✗ User {email} already exists with role {user.role.value}.", err=True)
            raise click.Abort()
        if user.super_admin is None:
            db.session.add(SuperAdmin(user=user))
            db.session.commit()
            click.echo(f"✓ Added missing super admin record for {email}.")
        else:
            click.echo(f"✓ Super admin {email} already exists. Nothing to do.")
        return

    if len(password) < 8:
        click.echo("✗ Password must be at least 8 characters.", err=True)
        raise click.Abort()

    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=UserRole.SUPER_ADMIN,
        is_active=True,
    )
    db.session.add(user)
    db.session.add(SuperAdmin(user=user))
    db.session.commit()
    click.echo(f"✓ Super admin {email} created.")


@click.command('mark-overdue-invoices')
def mark_overdue_invoices_command():
    """Run the overdue invoice check once, outside the scheduler."""
    marked = mark_overdue_invoices_job()
    invoice_word = "invoice" if marked == 1 else "invoices"
    click.echo(f"✓ Marked {marked} {invoice_word} overdue.")


def init_app(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(seed_superadmin_command)
    app.cli.add_command(mark_overdue_invoices_command)
