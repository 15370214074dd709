"""Management commands, available as ``flask <command>`` and through manage.py."""

import click
from flask.cli import with_appcontext

from invoicely.billing.state_machine import SubscriptionStateMachine
from invoicely.domain.plans import DEFAULT_PLANS
from invoicely.extensions import db
from invoicely.models import Plan


def seed_plans():
    """Insert the default plan catalog. Existing plans are matched by name and left alone."""
    created = []
    for definition in DEFAULT_PLANS:
        if Plan.query.filter_by(name=definition.name).first():
            continue
        plan = Plan(
            name=definition.name,
            description=definition.description,
            price=definition.price,
            currency=definition.currency,
            interval=definition.interval,
        )
        for kind, limit in definition.limits.items():
            setattr(plan, kind.limit_field, limit)
        db.session.add(plan)
        created.append(definition.name)
    db.session.commit()
    return created


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create all database tables"""
    db.create_all()
    click.echo("Database initialized.")


@click.command("seed-plans")
@with_appcontext
def seed_plans_command():
    """Seed the Free, Basic and Pro plans"""
    created = seed_plans()
    if created:
        click.echo(f"Created plans: {', '.join(created)}")
    else:
        click.echo("Plans already seeded.")


@click.command("lapse-subscriptions")
@with_appcontext
def lapse_subscriptions_command():
    """Move expired subscriptions back to the Free plan"""
    processed = SubscriptionStateMachine.lapse_expired_subscriptions()
    click.echo(f"Processed {processed} expired subscriptions.")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_plans_command)
    app.cli.add_command(lapse_subscriptions_command)
