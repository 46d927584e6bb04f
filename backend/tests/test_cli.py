from datetime import date

from conftest import make_order, make_payment
from schoolbites.models import OffDay, School, User


def test_bootstrap_commands(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["schools", "create", "--name", "Sint-Jozef"])
    assert result.exit_code == 0, result.output
    school = db_session.query(School).filter_by(name="Sint-Jozef").one()

    result = runner.invoke(args=[
        "users", "create", "--auth-id", "auth0|cli", "--email", "cli@example.com",
        "--first-name", "An", "--last-name", "Claes",
    ])
    assert result.exit_code == 0, result.output
    user = db_session.query(User).filter_by(external_auth_id="auth0|cli").one()

    result = runner.invoke(args=[
        "children", "create", "--parent-id", str(user.id), "--school-id", str(school.id),
        "--first-name", "Mila", "--last-name", "Claes", "--bread-type", "white", "--butter",
    ])
    assert result.exit_code == 0, result.output
    assert user.children[0].butter is True


def test_offdays_add(app, db_session, school):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "offdays", "add", "--start", "2024-12-23", "--end", "2024-12-24",
        "--school-id", str(school.id), "--reason", "Winter break",
    ])
    assert result.exit_code == 0, result.output
    assert "Created 2 off-days" in result.output
    assert db_session.query(OffDay).count() == 2


def test_offdays_add_rejects_bad_date(app, db_session, school):
    result = app.test_cli_runner().invoke(args=[
        "offdays", "add", "--start", "23/12/2024", "--end", "2024-12-24", "--school-id", str(school.id),
    ])
    assert result.exit_code != 0
    assert db_session.query(OffDay).count() == 0


def test_update_delivery_status(app, db_session, parent, child):
    order = make_order(db_session, parent, child, date(2024, 7, 1), date(2024, 7, 7))

    result = app.test_cli_runner().invoke(args=["orders", "update-delivery-status", "--today", "2024-07-03"])

    assert result.exit_code == 0, result.output
    assert "Updated delivery status of 1 order(s)" in result.output
    db_session.refresh(order)
    assert order.delivery_status == "in-progress"


def test_access_show(app, db_session, parent):
    parent.access_expires_at = date(2025, 6, 30)
    db_session.commit()
    make_payment(db_session, parent, "cs_fee", status="paid")

    result = app.test_cli_runner().invoke(args=["access", "show", "--user-id", str(parent.id)])

    assert result.exit_code == 0, result.output
    assert "2025-06-30" in result.output
    assert "€10,00" in result.output
