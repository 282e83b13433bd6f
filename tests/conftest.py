"""Shared test fixtures."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadsync.database import Base
from leadsync.errors import RemoteError
from leadsync.models.external import (
    ExternalLead, ProjectCreated, ProjectStatus, LeadCompletion,
)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across threads."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import leadsync.models.lead  # noqa: F401
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    from leadsync.services.lead_store import LeadStore
    return LeadStore(session_factory)


@pytest.fixture
def make_lead():
    """Factory fixture — a transient Lead with sensible defaults."""
    from leadsync.models.lead import Lead

    def _make(**overrides):
        defaults = dict(
            company_id=7,
            creator_id=3,
            latitude=37.7749,
            longitude=-122.4194,
            address='1 Market St, San Francisco, CA 94105',
            kwh_usage=900.0,
            system_size=5.0,
            panel_count=12,
        )
        defaults.update(overrides)
        return Lead(**defaults)
    return _make


class FakeRedis:
    """Minimal in-memory Redis fake covering the hash commands the breaker uses."""

    def __init__(self):
        self.hash_store = {}
        self.down = False

    def _check(self):
        if self.down:
            raise ConnectionError('redis down')

    def hset(self, key, field=None, value=None, mapping=None):
        self._check()
        h = self.hash_store.setdefault(key, {})
        if mapping:
            h.update({k: str(v) for k, v in mapping.items()})
        if field is not None:
            h[field] = str(value)

    def hincrby(self, key, field, amount=1):
        self._check()
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    def hgetall(self, key):
        self._check()
        return dict(self.hash_store.get(key, {}))


@pytest.fixture
def fake_redis():
    return FakeRedis()


class FakeLightFusion:
    """
    Stand-in for LightFusionClient.

    `calls` records (method, args) in order. Set `fail[method]` to an exception
    to make that method raise it. Canned responses live in plain attributes.
    """

    def __init__(self):
        self.calls = []
        self.fail = {}
        self.next_external_id = 500
        self.leads = {}
        self.list_result = []
        self.project = ProjectCreated(
            id=101, lead_id=9001, status='processing',
            annual_production=7200.0, system_size=6.4,
            estimated_cost=18000.0, annual_savings=1400.0,
        )
        self.status = ProjectStatus(panel={'id': 1}, inverters=[], adders=[])
        self.asset_payload = b'mesh-bytes'
        self.asset_fail = {}

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def count(self, name):
        return sum(1 for call, _ in self.calls if call == name)

    def create_lead(self, fields):
        self._record('create_lead', fields)
        self.next_external_id += 1
        return ExternalLead(id=self.next_external_id, **{
            k: v for k, v in fields.items()
            if k in ExternalLead.__dataclass_fields__ and v is not None
        })

    def get_lead(self, external_id):
        self._record('get_lead', external_id)
        if external_id not in self.leads:
            raise RemoteError(404, 'lead not found')
        return self.leads[external_id]

    def update_lead(self, external_id, patch):
        self._record('update_lead', external_id, patch)
        return ExternalLead(id=external_id)

    def list_leads(self, company_id, limit=20, offset=0):
        self._record('list_leads', company_id, limit, offset)
        return list(self.list_result)

    def create_project(self, request):
        self._record('create_project', request)
        return self.project

    def get_project_status(self, project_id, house_id):
        self._record('get_project_status', project_id, house_id)
        return self.status

    def asset_url(self, project_id, filename):
        return f'https://storage.example.com/leads/{project_id}/mesh/{filename}'

    def download_asset(self, url, dest_path):
        self._record('download_asset', url, dest_path)
        filename = url.rsplit('/', 1)[-1]
        if filename in self.asset_fail:
            raise self.asset_fail[filename]
        with open(dest_path, 'wb') as f:
            f.write(self.asset_payload)
        return len(self.asset_payload)


@pytest.fixture
def fake_lf():
    return FakeLightFusion()


@pytest.fixture
def completion():
    """Factory fixture — a ProjectStatus carrying a LeadCompletion."""
    def _make(lead_id, state, system_size=0.0, panel_count=0, annual_production=0.0, price=None):
        return ProjectStatus(
            panel={'id': 1},
            price_breakdown=price,
            lead_completion=LeadCompletion(
                lead_id=lead_id, state=state, system_size=system_size,
                panel_count=panel_count, annual_production=annual_production,
            ),
        )
    return _make


@pytest.fixture
def services(store, fake_lf, tmp_path):
    from leadsync.extensions import Services
    from leadsync.services.assets import AssetFetcher
    from leadsync.pipeline.reconcile import LeadReconciler
    from leadsync.pipeline.projects import ProjectOrchestrator

    media_dir = str(tmp_path / 'media')
    assets = AssetFetcher(fake_lf, media_dir)
    return Services(
        store=store,
        client=fake_lf,
        reconciler=LeadReconciler(store, fake_lf),
        projects=ProjectOrchestrator(store, fake_lf, assets),
        assets=assets,
        media_dir=media_dir,
    )


@pytest.fixture
def app(services, fake_redis):
    """Flask test app with injected services and a fake Redis."""
    from leadsync import create_app
    app = create_app(services=services, redis_client=fake_redis)
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c
