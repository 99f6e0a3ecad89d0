"""
Pytest fixtures for bizledger backend tests.

Provides an in-memory application, a clean database per test, a test client
and small factories for the records most tests need.
"""

from datetime import date

import pytest

from bizledger import create_app
from bizledger.extensions import db
from bizledger.models import Employee, RawMaterial
from bizledger.services import expense_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_ATTEMPTS': 3,
        'DEFAULT_TAX_RATE_PERCENT': 15,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def categories(db_session):
    """Seed the default expense categories."""
    expense_service.seed_default_categories()
    return expense_service.list_categories()


@pytest.fixture(scope='function')
def employee(db_session):
    emp = Employee(
        employee_code="E-001",
        name_en="Sara Ali",
        department="Production",
        position="Supervisor",
        is_active=True,
    )
    db_session.add(emp)
    db_session.commit()
    return emp


@pytest.fixture(scope='function')
def materials(db_session):
    """Two raw materials: flour at 10.00/kg and sugar at 5.00/kg."""
    flour = RawMaterial(sku="RM-FLOUR", name_en="Flour", unit="kg", cost_per_unit=10, current_stock=50, min_stock=10)
    sugar = RawMaterial(sku="RM-SUGAR", name_en="Sugar", unit="kg", cost_per_unit=5, current_stock=5, min_stock=10)
    db_session.add_all([flour, sugar])
    db_session.commit()
    return flour, sugar


@pytest.fixture
def expense_payload():
    def _make(**overrides):
        payload = {
            "expense_date": date(2024, 3, 1).isoformat(),
            "category": "Utilities",
            "description": "Electricity bill",
            "base_amount": 100,
            "tax_rate": 0,
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def invoice_payload():
    def _make(**overrides):
        payload = {
            "customer_name": "Acme Trading",
            "invoice_date": date(2024, 3, 1).isoformat(),
            "due_date": date(2024, 3, 31).isoformat(),
            "tax_rate": 15,
            "lines": [
                {"description": "Widget", "quantity": 2, "unit_price": 100,
                 "discount_type": "percentage", "discount_percent": 10},
            ],
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    Application on a file-backed SQLite database.

    The in-memory database shares one connection, so tests that need a
    second, independent writer use this fixture instead.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        'LEDGER_RETRY_ATTEMPTS': 3,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
