"""Tests for leadsync.models.external — provider payload parsing and encoding."""
from datetime import datetime, timezone

import pytest

from leadsync.errors import DecodeError, ValidationError
from leadsync.models.external import (
    ExternalLead, LeadPatch, ProjectRequest, ProjectCreated, ProjectStatus,
    PriceBreakdown, LeadCompletion, lead_create_payload, parse_datetime,
)


class TestExternalLead:

    def test_parses_full_payload(self):
        lead = ExternalLead.from_dict({
            'id': 42, 'company_id': 7, 'state': 2, 'latitude': 37.1, 'longitude': -122.2,
            'address': '1 Main St', 'system_size': 8, 'panel_count': 20,
            'annual_production': 11000.5, 'installation_date': '2026-03-01T00:00:00Z',
        })
        assert lead.id == 42
        assert lead.system_size == 8.0
        assert lead.installation_date == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_absent_fields_default(self):
        lead = ExternalLead.from_dict({'id': 1})
        assert lead.address == ''
        assert lead.panel_id is None
        assert lead.installation_date is None

    def test_missing_id_is_decode_error(self):
        with pytest.raises(DecodeError):
            ExternalLead.from_dict({'address': 'x'})

    def test_non_object_is_decode_error(self):
        with pytest.raises(DecodeError):
            ExternalLead.from_dict(['not', 'a', 'lead'])


class TestLeadPatch:

    def test_payload_only_carries_set_fields(self):
        assert LeadPatch(state=3).to_payload() == {'state': 3}

    def test_from_lead_carries_full_update_set(self, make_lead):
        payload = LeadPatch.from_lead(make_lead(state=1)).to_payload()
        assert set(payload) >= {'state', 'latitude', 'longitude', 'address', 'system_size'}
        assert 'installation_date' not in payload

    def test_datetime_serialized_as_iso(self):
        when = datetime(2026, 5, 1, tzinfo=timezone.utc)
        assert LeadPatch(installation_date=when).to_payload() == {
            'installation_date': '2026-05-01T00:00:00+00:00',
        }

    def test_from_dict_ignores_unknown_keys(self):
        patch = LeadPatch.from_dict({'system_size': 6, 'company_id': 99})
        assert patch.system_size == 6.0
        assert patch.to_payload() == {'system_size': 6.0}

    def test_from_dict_rejects_wrong_types(self):
        with pytest.raises(ValidationError):
            LeadPatch.from_dict({'panel_count': 'twelve'})
        with pytest.raises(ValidationError):
            LeadPatch.from_dict({'latitude': True})

    def test_apply_to_leaves_unset_fields(self, make_lead):
        lead = make_lead(system_size=5.0, address='old')
        LeadPatch(address='new').apply_to(lead)
        assert lead.address == 'new'
        assert lead.system_size == 5.0

    def test_is_empty(self):
        assert LeadPatch().is_empty()
        assert not LeadPatch(state=0).is_empty()


class TestLeadCreatePayload:

    def test_includes_tenancy_and_is_2d(self, make_lead):
        payload = lead_create_payload(make_lead(is_2d=True))
        assert payload['company_id'] == 7
        assert payload['creator_id'] == 3
        assert payload['is_2d'] is True


class TestProjectRequest:

    def _body(self, **overrides):
        body = {
            'latitude': 37.77, 'longitude': -122.41,
            'address': {'street': '1 Market St', 'city': 'San Francisco', 'state': 'CA', 'postal_code': '94105'},
            'homeowner': {'email': 'h@example.com', 'first_name': 'Ada', 'last_name': 'L'},
            'hardware': {'panel_id': 3, 'inverter_id': 4},
            'consumption': [900] * 12,
            'lse_id': 12,
            'company_id': 7, 'creator_id': 3,
        }
        body.update(overrides)
        return body

    def test_payload_uses_provider_keys(self):
        payload = ProjectRequest.from_dict(self._body()).to_payload()
        assert payload['address']['postalCode'] == '94105'
        assert payload['homeowner']['firstname'] == 'Ada'
        assert payload['lseId'] == 12
        assert payload['targetSolarOffset'] == 100
        assert 'mode' not in payload
        assert 'storage_id' not in payload['hardware']
        assert 'company_id' not in payload

    def test_formatted_address(self):
        request = ProjectRequest.from_dict(self._body())
        assert request.address.formatted() == '1 Market St, San Francisco, CA 94105'

    def test_zero_coordinates_rejected(self):
        with pytest.raises(ValidationError):
            ProjectRequest.from_dict(self._body(latitude=0)).validate()

    def test_street_and_city_required(self):
        body = self._body(address={'street': '', 'city': 'SF'})
        with pytest.raises(ValidationError):
            ProjectRequest.from_dict(body).validate()

    def test_non_numeric_consumption_rejected(self):
        with pytest.raises(ValidationError):
            ProjectRequest.from_dict(self._body(consumption=['lots']))


class TestProjectResponses:

    def test_project_created_requires_ids(self):
        with pytest.raises(DecodeError):
            ProjectCreated.from_dict({'id': 1})
        created = ProjectCreated.from_dict({'id': 1, 'lead_id': 2, 'system_size': '6.4'})
        assert created.system_size == 6.4

    def test_price_breakdown_items(self):
        price = PriceBreakdown.from_dict({
            'items': [{'name': 'base', 'price': 100}, 'junk'],
            'total_amount': 25000,
        })
        assert [i.name for i in price.items] == ['base']
        assert price.total_amount == 25000.0

    def test_lead_completion_nested_shape(self):
        completion = LeadCompletion.from_dict({
            'lead': {'id': 9001, 'state': 1, 'house': {'system_size': 8, 'panel_count': 22},
                     'production': {'annual': 11000}},
        })
        assert completion.lead_id == 9001
        assert completion.state == 1
        assert completion.panel_count == 22
        assert completion.annual_production == 11000.0

    def test_lead_completion_without_id_is_none(self):
        assert LeadCompletion.from_dict({'lead': {'state': 1}}) is None
        assert LeadCompletion.from_dict(None) is None

    def test_project_status_accepts_inverter_key(self):
        status = ProjectStatus.from_dict({'panel': {'id': 1}, 'inverter': [{'id': 2}], 'adders': []})
        assert status.inverters == [{'id': 2}]
        assert status.price_breakdown is None
        assert status.to_dict()['lead_completion'] is None

    def test_project_status_rejects_bad_lists(self):
        with pytest.raises(DecodeError):
            ProjectStatus.from_dict({'adders': 'none'})


class TestParseDatetime:

    def test_naive_becomes_utc(self):
        assert parse_datetime('2026-01-01T10:00:00').tzinfo == timezone.utc

    def test_garbage_is_none(self):
        assert parse_datetime('yesterday') is None
