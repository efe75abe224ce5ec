from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from storefront.core.config import Settings
from storefront.db.client import DocumentStore
from storefront.main import create_app
from storefront.services.catalog import CatalogCache, ProductCatalog
from storefront.services.orders import OrderLifecycleManager
from storefront.services.sequence import SequenceGenerator

ADMIN_PASSWORD = "s3cret-pass"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FailingCollection:
    """Collection proxy whose listed operations raise a driver error."""

    def __init__(self, inner, *fail_on):
        self._inner = inner
        self._fail_on = set(fail_on)

    def __getattr__(self, name):
        if name in self._fail_on:
            def _fail(*args, **kwargs):
                raise PyMongoError(f"simulated {name} failure: connection reset by peer")
            return _fail
        return getattr(self._inner, name)


@pytest.fixture()
def settings():
    return Settings(
        MONGODB_DB="storefront_test",
        ADMIN_USERNAME="admin",
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        ENVIRONMENT="test",
    )


@pytest.fixture()
def mongo():
    return mongomock.MongoClient()


@pytest.fixture()
def store(mongo, settings):
    store = DocumentStore(mongo, settings.MONGODB_DB)
    store.ensure_indexes()
    return store


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def failing():
    return FailingCollection


@pytest.fixture()
def sequence(store):
    return SequenceGenerator(store)


@pytest.fixture()
def cache(clock):
    return CatalogCache(clock=clock)


@pytest.fixture()
def catalog(store, cache, sequence, clock):
    cache.load(store)
    return ProductCatalog(store, cache, sequence, clock=clock)


@pytest.fixture()
def orders(store, catalog, sequence, clock):
    return OrderLifecycleManager(store, catalog, sequence, clock=clock)


@pytest.fixture()
def app(settings, mongo):
    return create_app(settings, client=mongo)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def token(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    # tests pass the token explicitly; drop the cookie the login set
    client.cookies.clear()
    return resp.json()["token"]


@pytest.fixture()
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
