# Overview: Flask CLI command groups for bootstrap, inspection, and the daily delivery scan.

# backend/schoolbites/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Schools:
# - python -m flask schools list
#   List all schools.
# - python -m flask schools create --name "Sint-Jozef"
#   Create a school.
#
# Accounts:
# - python -m flask users create --auth-id auth0|abc --email jan@example.com --first-name Jan --last-name Peeters [--admin]
#   Create a parent (or admin) account mapped to an identity-provider subject.
# - python -m flask children create --parent-id 1 --school-id 1 --first-name Lotte --last-name Peeters --bread-type brown
#   Create a child for a parent.
#
# Off-days:
# - python -m flask offdays add --start 2024-12-23 --end 2025-01-03 --school-id 1 --school-id 2 --reason "Winter break"
#   Mark a date range as off-days for one or more schools (existing days are skipped).
# - python -m flask offdays list --school-id 1 [--start 2024-09-01] [--end 2024-12-31]
#   List off-days.
#
# Orders:
# - python -m flask orders update-delivery-status [--today 2024-09-02]
#   Daily scan (cron, 00:00 UTC): ordered -> in-progress -> delivered.
#
# Access:
# - python -m flask access show --user-id 1
#   Show a user's access window and access-fee payments.

import click
from flask.cli import with_appcontext

from .errors import SchoolBitesError
from .extensions import db
from .models import Child, School, User
from .models.schools import BREAD_TYPES
from .services import offday_service, order_service, payment_service
from .services.access_service import has_active_access
from .services.pricing_service import format_cents
from .services.reconciliation import PAYMENT_TYPE_ACCESS_FEE
from .time_utils import parse_iso_date, to_iso_date, today_utc


def _parse_date_option(value, field):
    try:
        return parse_iso_date(value, field)
    except SchoolBitesError as e:
        raise click.BadParameter(str(e))


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing tables and data are left alone."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('schools')
def schools_group():
    """School management commands."""


@schools_group.command('list')
@with_appcontext
def list_schools():
    schools = db.session.query(School).order_by(School.name).all()
    if not schools:
        click.echo("No schools found.")
        return
    for school in schools:
        click.echo(f"{school.id:>4}  {school.name}")


@schools_group.command('create')
@click.option('--name', required=True, help='School name (unique)')
@with_appcontext
def create_school(name):
    name = name.strip()
    if db.session.query(School).filter_by(name=name).first():
        click.echo(f"FAIL School '{name}' already exists")
        raise SystemExit(1)

    school = School(name=name)
    db.session.add(school)
    db.session.commit()
    click.echo(f"PASS Created school: {school.name} (ID: {school.id})")


@click.group('users')
def users_group():
    """Account bootstrap commands."""


@users_group.command('create')
@click.option('--auth-id', required=True, help='Identity provider subject')
@click.option('--email', required=True, help='Email address')
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@click.option('--phone', default=None, help='Phone number')
@click.option('--admin', is_flag=True, help='Grant admin rights')
@with_appcontext
def create_user(auth_id, email, first_name, last_name, phone, admin):
    if db.session.query(User).filter_by(external_auth_id=auth_id).first():
        click.echo(f"FAIL User with auth id '{auth_id}' already exists")
        raise SystemExit(1)

    user = User(
        external_auth_id=auth_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        phone_number=phone,
        is_admin=admin,
    )
    db.session.add(user)
    db.session.commit()
    role = "admin" if admin else "parent"
    click.echo(f"PASS Created {role}: {user.full_name} <{user.email}> (ID: {user.id})")


@click.group('children')
def children_group():
    """Child bootstrap commands."""


@children_group.command('create')
@click.option('--parent-id', type=int, required=True)
@click.option('--school-id', type=int, required=True)
@click.option('--first-name', required=True)
@click.option('--last-name', required=True)
@click.option('--allergies', default="", help='Allergy description')
@click.option('--bread-type', type=click.Choice(list(BREAD_TYPES)), default="none")
@click.option('--crust/--no-crust', default=False)
@click.option('--butter/--no-butter', default=False)
@with_appcontext
def create_child(parent_id, school_id, first_name, last_name, allergies, bread_type, crust, butter):
    if not db.session.get(User, parent_id):
        click.echo(f"FAIL User {parent_id} not found")
        raise SystemExit(1)
    if not db.session.get(School, school_id):
        click.echo(f"FAIL School {school_id} not found")
        raise SystemExit(1)

    child = Child(
        parent_id=parent_id,
        school_id=school_id,
        first_name=first_name,
        last_name=last_name,
        allergies=allergies,
        bread_type=bread_type,
        crust=crust,
        butter=butter,
    )
    db.session.add(child)
    db.session.commit()
    click.echo(f"PASS Created child: {child.full_name} (ID: {child.id}, School: {school_id})")


@click.group('offdays')
def offdays_group():
    """School off-day commands."""


@offdays_group.command('add')
@click.option('--start', 'start_value', required=True, help='First day (YYYY-MM-DD)')
@click.option('--end', 'end_value', required=True, help='Last day (YYYY-MM-DD)')
@click.option('--school-id', 'school_ids', type=int, multiple=True, required=True, help='Repeat for several schools')
@click.option('--reason', default=None)
@with_appcontext
def add_off_days(start_value, end_value, school_ids, reason):
    start = _parse_date_option(start_value, "start")
    end = _parse_date_option(end_value, "end")
    try:
        result = offday_service.create_off_days(start, end, list(school_ids), reason)
    except SchoolBitesError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created {result['created']} off-days, skipped {result['skipped']} existing")


@offdays_group.command('list')
@click.option('--school-id', type=int, default=None)
@click.option('--start', 'start_value', default=None, help='YYYY-MM-DD')
@click.option('--end', 'end_value', default=None, help='YYYY-MM-DD')
@with_appcontext
def list_off_days(school_id, start_value, end_value):
    start = _parse_date_option(start_value, "start") if start_value else None
    end = _parse_date_option(end_value, "end") if end_value else None
    off_days = offday_service.list_off_days(school_id=school_id, start=start, end=end)
    if not off_days:
        click.echo("No off-days found.")
        return
    for off_day in off_days:
        click.echo(f"{to_iso_date(off_day.date)}  school={off_day.school_id:<4} {off_day.reason or ''}")


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('update-delivery-status')
@click.option('--today', 'today_value', default=None, help='Override the scan day (YYYY-MM-DD)')
@with_appcontext
def update_delivery_status(today_value):
    """Advance delivery status of open orders. Run daily at 00:00 UTC."""
    today = _parse_date_option(today_value, "today") if today_value else today_utc()
    updated = order_service.update_delivery_statuses(today)
    click.echo(f"PASS Updated delivery status of {updated} order(s) for {to_iso_date(today)}")


@click.group('access')
def access_group():
    """Access fee inspection commands."""


@access_group.command('show')
@click.option('--user-id', type=int, required=True)
@with_appcontext
def show_access(user_id):
    user = db.session.get(User, user_id)
    if not user:
        click.echo(f"FAIL User {user_id} not found")
        raise SystemExit(1)

    active = has_active_access(user.access_expires_at, today_utc())
    click.echo(f"{user.full_name} <{user.email}>")
    click.echo(f"  access_expires_at: {to_iso_date(user.access_expires_at) or '-'} ({'active' if active else 'inactive'})")

    payments = payment_service.list_user_payments(user.id, PAYMENT_TYPE_ACCESS_FEE)
    if not payments:
        click.echo("  no access-fee payments")
    for payment in payments:
        click.echo(
            f"  payment {payment.id}: {payment.status:<9} {format_cents(payment.amount)} "
            f"created {payment.created_at:%Y-%m-%d} webhook={'yes' if payment.webhook_processed else 'no'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(schools_group)
    app.cli.add_command(users_group)
    app.cli.add_command(children_group)
    app.cli.add_command(offdays_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(access_group)
