"""
Global pytest configuration and fixtures.

Provides a product-shop role configuration shared across unit, security and integration
suites, RBACManager instances in the main option combinations, a controllable clock for
cache expiry tests, and a Flask application for middleware tests.
"""

import copy
from typing import Any, Dict

import pytest
import structlog
from flask import Flask

from rolegate import CacheOptions, RBACManager, RBACOptions

# Configure pytest-asyncio for the middleware adapter
pytest_plugins = ('pytest_asyncio',)

SHOP_CONFIG: Dict[str, Any] = {
    'roles': {
        'ADMIN': {
            'description': 'Shop administrator',
            'permissions': {
                'Products': ['CREATE', 'READ', 'UPDATE', 'DELETE', 'VIEW'],
                'News': ['CREATE', 'READ', 'UPDATE', 'DELETE', 'VIEW'],
                'Bookings': ['READ', 'UPDATE', 'DELETE', 'VIEW'],
                'Locations': ['CREATE', 'READ', 'UPDATE', 'DELETE', 'VIEW'],
            },
        },
        'EDITOR': {
            'description': 'Content editor',
            'permissions': {
                'Products': ['READ', 'UPDATE', 'VIEW'],
                'AdditionalServices': ['READ', 'VIEW'],
            },
        },
        'CLIENT': {
            'description': 'Registered customer',
            'permissions': {
                'Products': ['READ', 'VIEW'],
                'Bookings': ['CREATE', 'READ', 'VIEW'],
            },
        },
    },
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def shop_config() -> Dict[str, Any]:
    """Fresh, mutable copy of the shop configuration."""
    return copy.deepcopy(SHOP_CONFIG)


@pytest.fixture
def rbac(shop_config) -> RBACManager:
    """Manager with the result cache enabled."""
    return RBACManager(shop_config, RBACOptions(cache=CacheOptions(enabled=True)))


@pytest.fixture
def uncached_rbac(shop_config) -> RBACManager:
    return RBACManager(shop_config)


@pytest.fixture
def strict_rbac(shop_config) -> RBACManager:
    return RBACManager(
        shop_config,
        RBACOptions(cache=CacheOptions(enabled=True), strict=True)
    )


@pytest.fixture
def logged_rbac(shop_config) -> RBACManager:
    """Manager writing through structlog's default pipeline so capture_logs can observe it."""
    return RBACManager(
        shop_config,
        RBACOptions(cache=CacheOptions(enabled=True), logger=structlog.get_logger("rolegate.tests"))
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app() -> Flask:
    flask_app = Flask(__name__)
    flask_app.config['TESTING'] = True
    return flask_app
