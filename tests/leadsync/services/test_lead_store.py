"""Tests for leadsync.services.lead_store — LeadStore against in-memory SQLite."""
import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from leadsync.errors import LeadNotFound
from leadsync.models.lead import Lead
from leadsync.services.lead_store import LeadStore


class TestCreateAndGet:

    def test_create_assigns_id_and_timestamps(self, store, make_lead):
        lead = store.create(make_lead())
        assert lead.id is not None
        assert lead.created_at is not None

    def test_returned_lead_is_detached_and_usable(self, store, make_lead):
        lead = store.get_by_id(store.create(make_lead()).id)
        # attribute access after the session closed must not raise
        assert lead.address.startswith('1 Market')
        assert lead.to_dict()['company_id'] == 7

    def test_missing_id_raises(self, store):
        with pytest.raises(LeadNotFound) as exc:
            store.get_by_id(404)
        assert exc.value.lead_id == 404

    def test_get_by_external_id(self, store, make_lead):
        store.create(make_lead(external_lead_id=9001))
        assert store.get_by_external_id(9001).external_lead_id == 9001
        with pytest.raises(LeadNotFound):
            store.get_by_external_id(1)


class TestUpdateAndDelete:

    def test_update_persists_changes(self, store, make_lead):
        lead = store.create(make_lead())
        lead.system_size = 9.5
        store.update(lead)
        assert store.get_by_id(lead.id).system_size == 9.5

    def test_update_of_unknown_row_raises(self, store, make_lead):
        ghost = make_lead()
        ghost.id = 999
        with pytest.raises(LeadNotFound):
            store.update(ghost)

    def test_update_state(self, store, make_lead):
        lead = store.create(make_lead())
        assert store.update_state(lead.id, 4).state == 4

    def test_delete(self, store, make_lead):
        lead = store.create(make_lead())
        store.delete(lead.id)
        with pytest.raises(LeadNotFound):
            store.get_by_id(lead.id)

    def test_delete_unknown_raises(self, store):
        with pytest.raises(LeadNotFound):
            store.delete(12345)

    def test_db_error_rolls_back_and_propagates(self, make_lead):
        session = MagicMock()
        session.commit.side_effect = OperationalError('INSERT', {}, Exception('disk full'))
        broken = LeadStore(session_factory=lambda: session)
        with pytest.raises(OperationalError):
            broken.create(make_lead())
        session.rollback.assert_called_once()
        session.close.assert_called_once()


class TestListing:

    @pytest.fixture
    def seeded(self, store, make_lead):
        store.create(make_lead(company_id=1, creator_id=10, state=0))
        store.create(make_lead(company_id=1, creator_id=11, state=2))
        bound = make_lead(company_id=1, creator_id=10, state=0)
        bound.bind_3d_project(101, 9001)
        store.create(bound)
        store.create(make_lead(company_id=2, creator_id=10, state=2))
        return store

    def test_list_pages(self, seeded):
        assert len(seeded.list(2, 0)) == 2
        assert len(seeded.list(10, 3)) == 1

    def test_list_by_company(self, seeded):
        assert {l.company_id for l in seeded.list_by_company(1, 10)} == {1}
        assert len(seeded.list_by_company(1, 10)) == 3

    def test_list_by_creator(self, seeded):
        assert len(seeded.list_by_creator(10, 10)) == 3

    def test_list_by_state(self, seeded):
        assert len(seeded.list_by_state(2, 10)) == 2

    def test_list_with_3d_models(self, seeded):
        leads = seeded.list_with_3d_models(1, 10, 0)
        assert len(leads) == 1
        assert leads[0].project_3d_id == 101
        assert seeded.list_with_3d_models(2, 10, 0) == []

    def test_newest_first(self, seeded):
        ids = [l.id for l in seeded.list(10)]
        assert ids == sorted(ids, reverse=True)
