"""
Transient LightFusion payloads — decoded from (or encoded for) the provider API.

None of these are persisted. ExternalLead is folded into a local Lead by the
reconciler; ProjectStatus is folded back by the project orchestrator.
Provider response shapes are not under our control, so every parser treats
fields as optional and only rejects bodies that are not objects at all.
"""
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from leadsync.errors import DecodeError, ValidationError


# ── Coercion helpers ──────────────────────────────────────────────────────────

def _obj(data, what):
    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object for {what}, got {type(data).__name__}")
    return data


def _num(value, default=0.0):
    if value is None or value == '':
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value, default=None):
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_datetime(value):
    """ISO-8601 string → aware datetime. Unparseable values become None."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _iso(value):
    return value.isoformat() if value else None


# ── Leads ─────────────────────────────────────────────────────────────────────

@dataclass
class ExternalLead:
    """The provider's view of a lead."""
    id: int
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    state: int = 0
    source: int = 0
    promo_code: Optional[str] = None
    is_2d: bool = False
    latitude: float = 0.0
    longitude: float = 0.0
    address: str = ''
    kwh_usage: float = 0.0
    system_size: float = 0.0
    panel_count: int = 0
    panel_id: Optional[int] = None
    inverter_id: Optional[int] = None
    utility_id: Optional[int] = None
    roof_material: Optional[str] = None
    annual_production: float = 0.0
    installation_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data) -> 'ExternalLead':
        data = _obj(data, 'lead')
        lead_id = _int(data.get('id'))
        if lead_id is None:
            raise DecodeError('lead payload has no id', body=str(data)[:500])
        return cls(
            id=lead_id,
            company_id=_int(data.get('company_id')),
            creator_id=_int(data.get('creator_id')),
            state=_int(data.get('state'), 0),
            source=_int(data.get('source'), 0),
            promo_code=data.get('promo_code') or None,
            is_2d=bool(data.get('is_2d', False)),
            latitude=_num(data.get('latitude')),
            longitude=_num(data.get('longitude')),
            address=data.get('address') or '',
            kwh_usage=_num(data.get('kwh_usage')),
            system_size=_num(data.get('system_size')),
            panel_count=_int(data.get('panel_count'), 0),
            panel_id=_int(data.get('panel_id')),
            inverter_id=_int(data.get('inverter_id')),
            utility_id=_int(data.get('utility_id')),
            roof_material=data.get('roof_material') or None,
            annual_production=_num(data.get('annual_production')),
            installation_date=parse_datetime(data.get('installation_date')),
        )


def lead_create_payload(lead) -> Dict[str, Any]:
    """Fields sent to the provider when a local lead is first mirrored."""
    return {
        'company_id': lead.company_id,
        'creator_id': lead.creator_id,
        'latitude': lead.latitude,
        'longitude': lead.longitude,
        'address': lead.address,
        'source': lead.source,
        'promo_code': lead.promo_code,
        'is_2d': bool(lead.is_2d),
        'kwh_usage': lead.kwh_usage,
        'system_size': lead.system_size,
        'panel_count': lead.panel_count,
        'panel_id': lead.panel_id,
        'inverter_id': lead.inverter_id,
        'utility_id': lead.utility_id,
        'roof_material': lead.roof_material,
    }


@dataclass
class LeadPatch:
    """
    Partial lead update. Only attributes that are not None are applied/sent.

    Used both ways: pushed to LightFusion as a PATCH body, and parsed from the
    inbound PUT /api/leads/<id> body before being applied to the local row.
    """
    state: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    kwh_usage: Optional[float] = None
    system_size: Optional[float] = None
    panel_count: Optional[int] = None
    annual_production: Optional[float] = None
    installation_date: Optional[datetime] = None

    _INT_FIELDS = ('state', 'panel_count')
    _FLOAT_FIELDS = ('latitude', 'longitude', 'kwh_usage', 'system_size', 'annual_production')

    @classmethod
    def from_lead(cls, lead) -> 'LeadPatch':
        """The full set of fields the provider accepts on update."""
        return cls(**{f.name: getattr(lead, f.name) for f in fields(cls)})

    @classmethod
    def from_dict(cls, data) -> 'LeadPatch':
        if not isinstance(data, dict):
            raise ValidationError('update body must be a JSON object')
        values = {}
        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                continue
            raw = data[f.name]
            if f.name in cls._INT_FIELDS:
                if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                    raise ValidationError(f'{f.name} must be a number')
                values[f.name] = int(raw)
            elif f.name in cls._FLOAT_FIELDS:
                if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                    raise ValidationError(f'{f.name} must be a number')
                values[f.name] = float(raw)
            elif f.name == 'installation_date':
                parsed = parse_datetime(raw)
                if parsed is None:
                    raise ValidationError('installation_date must be an ISO-8601 timestamp')
                values[f.name] = parsed
            else:
                if not isinstance(raw, str):
                    raise ValidationError(f'{f.name} must be a string')
                values[f.name] = raw
        return cls(**values)

    def is_empty(self):
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_payload(self) -> Dict[str, Any]:
        payload = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            payload[f.name] = _iso(value) if isinstance(value, datetime) else value
        return payload

    def apply_to(self, lead):
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                setattr(lead, f.name, value)
        return lead


# ── 3D projects ───────────────────────────────────────────────────────────────

@dataclass
class SiteAddress:
    street: str = ''
    city: str = ''
    state: str = ''
    postal_code: str = ''
    country: str = ''

    def formatted(self):
        return f"{self.street}, {self.city}, {self.state} {self.postal_code}".strip()


@dataclass
class Homeowner:
    email: str = ''
    first_name: str = ''
    last_name: str = ''
    phone: str = ''


@dataclass
class Hardware:
    panel_id: int = 0
    inverter_id: int = 0
    storage_id: Optional[int] = None
    storage_quantity: Optional[int] = None


@dataclass
class ProjectRequest:
    """A model-generation request: site, homeowner, hardware, consumption."""
    latitude: float
    longitude: float
    address: SiteAddress = field(default_factory=SiteAddress)
    homeowner: Homeowner = field(default_factory=Homeowner)
    hardware: Hardware = field(default_factory=Hardware)
    consumption: List[int] = field(default_factory=list)
    lse_id: int = 0
    period: str = 'month'
    target_solar_offset: int = 100
    mode: Optional[str] = None
    unit: str = 'kwh'
    # Local binding, never sent to the provider
    lead_id: Optional[int] = None
    company_id: int = 0
    creator_id: int = 0

    @classmethod
    def from_dict(cls, data) -> 'ProjectRequest':
        if not isinstance(data, dict):
            raise ValidationError('request body must be a JSON object')
        address = data.get('address') or {}
        homeowner = data.get('homeowner') or {}
        hardware = data.get('hardware') or {}
        if not all(isinstance(part, dict) for part in (address, homeowner, hardware)):
            raise ValidationError('address, homeowner and hardware must be objects')
        consumption = data.get('consumption') or []
        if not isinstance(consumption, list):
            raise ValidationError('consumption must be a list')
        try:
            return cls(
                latitude=float(data.get('latitude') or 0),
                longitude=float(data.get('longitude') or 0),
                address=SiteAddress(
                    street=address.get('street', ''),
                    city=address.get('city', ''),
                    state=address.get('state', ''),
                    postal_code=address.get('postal_code') or address.get('postalCode', ''),
                    country=address.get('country', ''),
                ),
                homeowner=Homeowner(
                    email=homeowner.get('email', ''),
                    first_name=homeowner.get('first_name', ''),
                    last_name=homeowner.get('last_name', ''),
                    phone=homeowner.get('phone', ''),
                ),
                hardware=Hardware(
                    panel_id=int(hardware.get('panel_id') or 0),
                    inverter_id=int(hardware.get('inverter_id') or 0),
                    storage_id=_int(hardware.get('storage_id')),
                    storage_quantity=_int(hardware.get('storage_quantity')),
                ),
                consumption=[int(v) for v in consumption],
                lse_id=int(data.get('lse_id') or 0),
                period=data.get('period') or 'month',
                target_solar_offset=int(data.get('target_solar_offset', 100)),
                mode=data.get('mode'),
                unit=data.get('unit') or 'kwh',
                lead_id=_int(data.get('lead_id')),
                company_id=int(data.get('company_id') or 0),
                creator_id=int(data.get('creator_id') or 0),
            )
        except (TypeError, ValueError) as e:
            raise ValidationError(f'invalid project request: {e}')

    def validate(self):
        if not self.latitude or not self.longitude:
            raise ValidationError('latitude and longitude are required')
        if not -90 <= self.latitude <= 90 or not -180 <= self.longitude <= 180:
            raise ValidationError('latitude/longitude out of range')
        if not self.address.street or not self.address.city:
            raise ValidationError('address street and city are required')

    def to_payload(self) -> Dict[str, Any]:
        hardware = {
            'panel_id': self.hardware.panel_id,
            'inverter_id': self.hardware.inverter_id,
        }
        if self.hardware.storage_id is not None:
            hardware['storage_id'] = self.hardware.storage_id
        if self.hardware.storage_quantity is not None:
            hardware['storage_quantity'] = self.hardware.storage_quantity

        payload = {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'address': {
                'street': self.address.street,
                'city': self.address.city,
                'state': self.address.state,
                'postalCode': self.address.postal_code,
                'country': self.address.country,
            },
            'homeowner': {
                'email': self.homeowner.email,
                'firstname': self.homeowner.first_name,
                'lastname': self.homeowner.last_name,
                'phone': self.homeowner.phone,
            },
            'hardware': hardware,
            'consumption': list(self.consumption),
            'lseId': self.lse_id,
            'period': self.period,
            'targetSolarOffset': self.target_solar_offset,
            'unit': self.unit,
        }
        if self.mode is not None:
            payload['mode'] = self.mode
        return payload


@dataclass
class ProjectCreated:
    id: int
    lead_id: int
    status: str = ''
    annual_production: float = 0.0
    system_size: float = 0.0
    estimated_cost: float = 0.0
    annual_savings: float = 0.0

    @classmethod
    def from_dict(cls, data) -> 'ProjectCreated':
        data = _obj(data, 'project')
        project_id = _int(data.get('id'))
        lead_id = _int(data.get('lead_id'))
        if project_id is None or lead_id is None:
            raise DecodeError('project payload is missing id or lead_id', body=str(data)[:500])
        return cls(
            id=project_id,
            lead_id=lead_id,
            status=data.get('status') or '',
            annual_production=_num(data.get('annual_production')),
            system_size=_num(data.get('system_size')),
            estimated_cost=_num(data.get('estimated_cost')),
            annual_savings=_num(data.get('annual_savings')),
        )

    def to_dict(self):
        return asdict(self)


@dataclass
class PriceItem:
    name: str
    price: float


@dataclass
class PriceBreakdown:
    items: List[PriceItem] = field(default_factory=list)
    base_price_per_watt: float = 0.0
    total_price_per_watt: float = 0.0
    total_price_per_watt_financed: float = 0.0
    default_base_price: float = 0.0
    minimum_base_price: float = 0.0
    total_amount: float = 0.0
    total_amount_without_dealer_fee: float = 0.0
    total_fee: float = 0.0

    @classmethod
    def from_dict(cls, data) -> 'PriceBreakdown':
        data = _obj(data, 'price breakdown')
        items = [
            PriceItem(name=item.get('name', ''), price=_num(item.get('price')))
            for item in (data.get('items') or [])
            if isinstance(item, dict)
        ]
        return cls(
            items=items,
            **{
                f.name: _num(data.get(f.name))
                for f in fields(cls) if f.name != 'items'
            },
        )


@dataclass
class LeadCompletion:
    """Provider-side lead progress attached to a project status."""
    lead_id: int
    state: int = 0
    system_size: float = 0.0
    panel_count: int = 0
    annual_production: float = 0.0

    @classmethod
    def from_dict(cls, data) -> Optional['LeadCompletion']:
        if not isinstance(data, dict):
            return None
        lead = data.get('lead') if isinstance(data.get('lead'), dict) else data
        lead_id = _int(lead.get('id'))
        if lead_id is None:
            return None
        house = lead.get('house') or {}
        production = lead.get('production') or {}
        return cls(
            lead_id=lead_id,
            state=_int(lead.get('state'), 0),
            system_size=_num(house.get('system_size')),
            panel_count=_int(house.get('panel_count'), 0),
            annual_production=_num(production.get('annual')),
        )


@dataclass
class ProjectStatus:
    """Hardware/adders selected by the provider, plus optional pricing and progress."""
    panel: Optional[Dict[str, Any]] = None
    inverters: List[Dict[str, Any]] = field(default_factory=list)
    adders: List[Dict[str, Any]] = field(default_factory=list)
    price_breakdown: Optional[PriceBreakdown] = None
    lead_completion: Optional[LeadCompletion] = None

    @classmethod
    def from_dict(cls, data) -> 'ProjectStatus':
        data = _obj(data, 'project status')
        panel = data.get('panel')
        inverters = data.get('inverter') or data.get('inverters') or []
        adders = data.get('adders') or []
        if not isinstance(inverters, list) or not isinstance(adders, list):
            raise DecodeError('inverter/adders must be lists', body=str(data)[:500])
        return cls(
            panel=panel if isinstance(panel, dict) else None,
            inverters=[i for i in inverters if isinstance(i, dict)],
            adders=[a for a in adders if isinstance(a, dict)],
            lead_completion=LeadCompletion.from_dict(data.get('lead_completion')),
        )

    def to_dict(self):
        return {
            'panel': self.panel,
            'inverter': self.inverters,
            'adders': self.adders,
            'price_breakdown': asdict(self.price_breakdown) if self.price_breakdown else None,
            'lead_completion': asdict(self.lead_completion) if self.lead_completion else None,
        }
