"""
Shared pytest fixtures for the PoolOps test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - company / other_company: tenants
    - pool_client, team, schedule: a 50 m³ client visited by Team A on Monday
    - ph, alkalinity: parameter definitions used across the suite

Rows are committed (not just flushed) so API requests, which run in their
own app context and session, see them.
"""

from decimal import Decimal

import pytest

from poolops import create_app
from poolops.models import db as _db
from poolops.models.company import Association, Client, Company, Team
from poolops.models.parameter import ParameterDefinition


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── ORM factories ────────────────────────────────────────────────────────


def make_company(name="Blue Lagoon Pools", slug="blue-lagoon"):
    c = Company(name=name, slug=slug)
    _db.session.add(c)
    _db.session.commit()
    return c


def make_client(company_id, name="Casa Azul", pool_volume="50"):
    c = Client(company_id=company_id, name=name, pool_volume=Decimal(pool_volume) if pool_volume else None)
    _db.session.add(c)
    _db.session.commit()
    return c


def make_team(company_id, name="Team A"):
    t = Team(company_id=company_id, name=name)
    _db.session.add(t)
    _db.session.commit()
    return t


def make_association(company_id, client_id, team_id, weekday="monday"):
    a = Association(company_id=company_id, client_id=client_id, team_id=team_id, weekday=weekday)
    _db.session.add(a)
    _db.session.commit()
    return a


def make_definition(company_id, name, **fields):
    d = ParameterDefinition(company_id=company_id, name=name, **fields)
    _db.session.add(d)
    _db.session.commit()
    return d


PH_FIELDS = {
    "unit": "pH",
    "value_min": Decimal("7.2"),
    "value_max": Decimal("7.6"),
    "value_target": Decimal("7.4"),
    "product_increase": "Acid Up",
    "dosage_increase": Decimal("1.0"),
    "increment_increase": Decimal("0.2"),
    "product_decrease": "pH Down",
    "dosage_decrease": Decimal("0.5"),
    "increment_decrease": Decimal("0.1"),
    "reference_volume": Decimal("10"),
}

# Only an increase recipe: high readings cannot be corrected on site.
ALKALINITY_FIELDS = {
    "unit": "ppm",
    "value_min": Decimal("80"),
    "value_max": Decimal("120"),
    "value_target": Decimal("100"),
    "product_increase": "Alka Plus",
    "dosage_increase": Decimal("1.5"),
    "increment_increase": Decimal("10"),
    "reference_volume": Decimal("10"),
}


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def company():
    return make_company()


@pytest.fixture()
def other_company():
    return make_company(name="Rival Pools", slug="rival-pools")


@pytest.fixture()
def pool_client(company):
    return make_client(company.id)


@pytest.fixture()
def team(company):
    return make_team(company.id)


@pytest.fixture()
def schedule(company, pool_client, team):
    """pool_client is visited by team on Monday."""
    return make_association(company.id, pool_client.id, team.id, "monday")


@pytest.fixture()
def ph(company):
    return make_definition(company.id, "pH", **PH_FIELDS)


@pytest.fixture()
def alkalinity(company):
    return make_definition(company.id, "alkalinity", **ALKALINITY_FIELDS)
