from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app import create_app
from app.config import Config, engine_options_for
from db import extensions
from db.extensions import db
from models.commission import Commission
from models.order import Order
from models.status import CommissionStatus, UserRole
from models.user import User


class UnitTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = engine_options_for(SQLALCHEMY_DATABASE_URI)
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'no-reply@example.com'
    REDIS_URL = None
    PAYOUT_LOCK_ENABLED = False
    MINIMUM_PAYOUT_THRESHOLD = '50'
    DEFAULT_COMMISSION_RATE = '10'


BASE_TIME = datetime(2026, 1, 7, 9, 0, 0)


@pytest.fixture
def app():
    app = create_app(UnitTestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_agent(app):
    counter = {'n': 0}

    def _make_agent(email=None, role=UserRole.AGENT):
        counter['n'] += 1
        user = User(
            email=email or f"agent{counter['n']}@example.com",
            role=role,
            first_name='Test',
            last_name=f"Agent{counter['n']}",
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_agent


@pytest.fixture
def make_commission(app):
    """Create a commission (and its order) ``minutes`` after BASE_TIME."""
    counter = {'n': 0}

    def _make_commission(agent, amount, status=CommissionStatus.APPROVED, minutes=None):
        counter['n'] += 1
        created = BASE_TIME + timedelta(minutes=counter['n'] if minutes is None else minutes)
        order = Order(agent_id=agent.id, total_price=Decimal(amount) * 10, created_at=created)
        db.session.add(order)
        db.session.flush()
        commission = Commission(
            order_id=order.id,
            user_id=agent.id,
            amount=Decimal(amount),
            status=status,
            created_at=created,
        )
        db.session.add(commission)
        db.session.commit()
        return commission

    return _make_commission


@pytest.fixture
def agent(make_agent):
    return make_agent()


@pytest.fixture
def fifo_commissions(agent, make_commission):
    """Three APPROVED commissions of 20, 30, 40 created in that order."""
    return [make_commission(agent, amount) for amount in ('20', '30', '40')]


class FakeLock:
    def __init__(self, acquired=True, error=None):
        self.acquired = acquired
        self.error = error
        self.released = False

    def acquire(self):
        if self.error:
            raise self.error
        return self.acquired

    def release(self):
        self.released = True


class FakeRedis:
    def __init__(self, lock):
        self.held_lock = lock
        self.names = []

    def lock(self, name, timeout=None, blocking_timeout=None):
        self.names.append(name)
        return self.held_lock


@pytest.fixture
def lock_enabled(app, monkeypatch):
    """Turn the payout lock on against an in-memory redis stand-in."""
    app.config['PAYOUT_LOCK_ENABLED'] = True

    def _install(acquired=True, error=None):
        client = FakeRedis(FakeLock(acquired=acquired, error=error))
        monkeypatch.setattr(extensions, 'redis_client', client)
        return client

    return _install
