"""
Pytest fixtures for MAMS backend tests.

Provides the test application, per-test table wipe, seeded bases, equipment
types and users for every role, and bearer-token helpers.
"""

import pytest

from mams import create_app
from mams.extensions import db
from mams.models import Base, EquipmentType, User, UserBaseAccess
from mams.permissions import ROLE_ADMIN, ROLE_BASE_COMMANDER, ROLE_LOGISTICS_OFFICER
from mams.services import access_service, purchase_service, session_service
from mams.services.auth_service import hash_password

TEST_PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'AUDIT_SYNC': True,
    'BCRYPT_ROUNDS': 4,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test, schema kept."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def _make_base(session, code, name):
    base = Base(name=name, code=code)
    session.add(base)
    session.commit()
    return base


@pytest.fixture(scope='function')
def base_alpha(db_session):
    return _make_base(db_session, "ALPHA", "Fort Alpha")


@pytest.fixture(scope='function')
def base_bravo(db_session):
    return _make_base(db_session, "BRAVO", "Camp Bravo")


@pytest.fixture(scope='function')
def base_charlie(db_session):
    return _make_base(db_session, "CHARLIE", "Outpost Charlie")


@pytest.fixture(scope='function')
def rifle(db_session):
    equipment_type = EquipmentType(name="Rifle", category="WEAPON", is_serialized=True)
    db_session.add(equipment_type)
    db_session.commit()
    return equipment_type


@pytest.fixture(scope='function')
def ammo(db_session):
    equipment_type = EquipmentType(name="5.56mm round", category="AMMUNITION", unit="round")
    db_session.add(equipment_type)
    db_session.commit()
    return equipment_type


def _make_user(session, email, role, base_id=None):
    user = User(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        base_id=base_id,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin@mams.test", ROLE_ADMIN)


@pytest.fixture(scope='function')
def commander_alpha(db_session, base_alpha):
    return _make_user(db_session, "cmd.alpha@mams.test", ROLE_BASE_COMMANDER, base_alpha.id)


@pytest.fixture(scope='function')
def commander_bravo(db_session, base_bravo):
    return _make_user(db_session, "cmd.bravo@mams.test", ROLE_BASE_COMMANDER, base_bravo.id)


@pytest.fixture(scope='function')
def logistics_user(db_session, base_alpha, base_bravo):
    """Logistics officer with explicit grants on alpha and bravo."""
    user = _make_user(db_session, "logistics@mams.test", ROLE_LOGISTICS_OFFICER)
    db_session.add_all([
        UserBaseAccess(user_id=user.id, base_id=base_alpha.id),
        UserBaseAccess(user_id=user.id, base_id=base_bravo.id),
    ])
    db_session.commit()
    return user


def actor_of(user):
    return access_service.load_actor(user)


@pytest.fixture(scope='function')
def admin(admin_user):
    return actor_of(admin_user)


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Build an Authorization header for a user: auth_headers(user)."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture(scope='function')
def stock(admin):
    """Seed stock with a purchase: stock(base, equipment_type, quantity, purchased_at=None)."""
    def _stock(base, equipment_type, quantity, purchased_at=None):
        return purchase_service.create_purchase(
            admin,
            base_id=base.id,
            equipment_type_id=equipment_type.id,
            quantity=quantity,
            purchased_at=purchased_at,
        )
    return _stock
