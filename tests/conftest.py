"""
Shared pytest fixtures for the Field Service Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - permissive: transition tables disabled for the duration of one test
    - client_site / case / make_intervention / make_device: committed rows

Setup rows are committed, not just flushed: a workflow action that fails
rolls the session back, and the test still needs its starting state.
"""

import pytest

from app import create_app
from app.models import db as _db
from app.models.case import Case
from app.models.client import Client, Site
from app.models.device import Device
from app.models.intervention import Intervention


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def permissive(app):
    """Run one test with WORKFLOW_ENFORCE_TRANSITIONS switched off."""
    previous = app.config["WORKFLOW_ENFORCE_TRANSITIONS"]
    app.config["WORKFLOW_ENFORCE_TRANSITIONS"] = False
    yield
    app.config["WORKFLOW_ENFORCE_TRANSITIONS"] = previous


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def client_site():
    """A committed Client with one Site; returns the Site."""
    customer = Client(name="Résidence Les Tilleuls", contact_email="syndic@residence-tilleuls.fr")
    _db.session.add(customer)
    _db.session.flush()
    site = Site(
        client_id=customer.id,
        label="Bâtiment A",
        address_line1="12 rue des Lilas",
        postal_code="69003",
        city="Lyon",
    )
    _db.session.add(site)
    _db.session.commit()
    return site


@pytest.fixture()
def case(client_site):
    """A committed OPEN Case on ``client_site``."""
    c = Case(
        title="Portail bloqué",
        client_id=client_site.client_id,
        site_id=client_site.id,
        created_by_id="U-office",
    )
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def make_intervention(case):
    """Factory: committed Intervention at an arbitrary status (bypasses guards)."""

    def _make(status="PENDING_ASSIGNMENT", technician_id=None, title="Dépannage portail", **kwargs):
        if technician_id is None and status not in ("PENDING_ASSIGNMENT", "CANCELLED"):
            technician_id = "T1"
        intervention = Intervention(
            case_id=case.id,
            title=title,
            type=kwargs.pop("type", "STANDARD"),
            status=status,
            technician_id=technician_id,
            **kwargs,
        )
        _db.session.add(intervention)
        _db.session.commit()
        return intervention

    return _make


@pytest.fixture()
def make_device(client_site):
    """Factory: committed Device on ``client_site``."""

    def _make(status="ACTIVE", label="Motorisation portail"):
        device = Device(site_id=client_site.id, label=label, status=status)
        _db.session.add(device)
        _db.session.commit()
        return device

    return _make
