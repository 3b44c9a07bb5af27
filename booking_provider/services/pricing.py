"""Deterministic per-product pricing for transport, hotel and attraction quotes."""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Mapping

from booking_provider.services.errors import (
    BookingValidationError,
    UnsupportedProductTypeError,
)
from booking_provider.services.money import (
    format_amount,
    money_sum,
    normalize_currency,
    quantize,
)

OPEN_DATE = "open"

TRANSPORT_BASE = {
    "flight": Decimal("180"),
    "train": Decimal("60"),
    "bus": Decimal("25"),
    "ferry": Decimal("45"),
}
TRANSPORT_DEFAULT_BASE = Decimal("50")
TRANSPORT_CLASS = {
    "economy": Decimal("1.0"),
    "standard": Decimal("1.0"),
    "premium_economy": Decimal("1.4"),
    "business": Decimal("2.6"),
    "first": Decimal("4.0"),
}
DISTANCE_BANDS = (Decimal("0.8"), Decimal("1.0"), Decimal("1.35"), Decimal("1.8"))
FLIGHT_BOOKING_FEE = Decimal("15")
GROUND_BOOKING_FEE = Decimal("5")

HOTEL_NIGHTLY_BASE = Decimal("100")
HOTEL_ROOM = {
    "single": Decimal("0.8"),
    "double": Decimal("1.0"),
    "twin": Decimal("1.0"),
    "family": Decimal("1.5"),
    "suite": Decimal("2.2"),
}
CITY_BANDS = (Decimal("0.9"), Decimal("1.0"), Decimal("1.15"), Decimal("1.3"))
HOTEL_CITY_TAX = Decimal("200")
HOTEL_SERVICE_RATE = Decimal("0.07")

ATTRACTION_BASE = Decimal("40")
ATTRACTION_POPULARITY = {
    "low": Decimal("0.8"),
    "standard": Decimal("1.0"),
    "high": Decimal("1.3"),
    "iconic": Decimal("1.6"),
}
ATTRACTION_TICKET_FEE = Decimal("2")

_JITTER_SCALE = Decimal("10000")


@dataclass(frozen=True, slots=True)
class QuoteItem:
    """A priced, immutable line item."""

    sku: str
    unit_price: Decimal
    quantity: int
    fees: Decimal
    total: Decimal
    currency: str
    meta: dict[str, Any] = field(default_factory=dict)
    cancellation_policy: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "fees": self.fees,
            "total": self.total,
            "currency": self.currency,
            "meta": dict(self.meta),
            "cancellation_policy": self.cancellation_policy,
        }


@dataclass(frozen=True, slots=True)
class PricingResult:
    """One or more line items produced by a calculator."""

    items: tuple[QuoteItem, ...]

    def total(self) -> Decimal:
        return money_sum((item.total for item in self.items), self.currency)

    def fees(self) -> Decimal:
        return money_sum((item.fees for item in self.items), self.currency)

    @property
    def currency(self) -> str:
        return self.primary_item().currency

    def primary_item(self) -> QuoteItem:
        if not self.items:
            raise BookingValidationError("Pricing produced no line items")
        return self.items[0]


@dataclass(frozen=True, slots=True)
class QuoteRequest:
    """Pricing input for a single product."""

    product_type: str
    currency: str
    party_size: int = 1
    params: dict[str, Any] = field(default_factory=dict)


Calculator = Callable[[str, int, Mapping[str, Any]], PricingResult]


def calculate(
    product_type: str,
    currency: str,
    party_size: int,
    params: Mapping[str, Any] | None = None,
) -> PricingResult:
    """Dispatch to the calculator registered for ``product_type``."""
    key = (product_type or "").strip().lower()
    calculator = CALCULATORS.get(key)
    if calculator is None:
        raise UnsupportedProductTypeError(
            f"Unsupported product type: {product_type!r}"
        )
    return calculator(normalize_currency(currency), _clamp(party_size), params or {})


def calculate_request(request: QuoteRequest) -> PricingResult:
    return calculate(
        request.product_type, request.currency, request.party_size, request.params
    )


def supported_product_types() -> tuple[str, ...]:
    return tuple(sorted(CALCULATORS))


# -- parameter helpers -------------------------------------------------------


def _clamp(value: Any, minimum: int = 1) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise BookingValidationError(f"Expected an integer, got {value!r}") from exc
    return max(minimum, number)


def _string_param(params: Mapping[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        value = params.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return default


def _int_param(params: Mapping[str, Any], *keys: str, default: int) -> int:
    for key in keys:
        value = params.get(key)
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            raise BookingValidationError(f"Parameter {key!r} must be an integer")
        try:
            return int(str(value).strip())
        except ValueError as exc:
            raise BookingValidationError(
                f"Parameter {key!r} must be an integer"
            ) from exc
    return default


def _key(value: str) -> str:
    if not value:
        return "GEN"
    return "_".join(value.split()).upper()


def _seeded_random(*fields: Any) -> random.Random:
    material = "|".join(str(part) for part in fields).lower()
    digest = hashlib.sha256(material.encode("utf-8")).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def _jitter(rng: random.Random, spread: int) -> Decimal:
    return Decimal(1) + Decimal(rng.randint(-spread, spread)) / _JITTER_SCALE


def _band(value: str, bands: tuple[Decimal, ...]) -> Decimal:
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    return bands[digest[0] % len(bands)]


def _reservation_required(params: Mapping[str, Any]) -> Any:
    value = params.get("reservation_required")
    return True if value is None else value


def _session_multiplier(session: str) -> tuple[Decimal, str]:
    hour_part, _, minute_part = session.partition(":")
    try:
        hour = int(hour_part)
        minute = int(minute_part or 0)
    except ValueError as exc:
        raise BookingValidationError(f"Invalid session time: {session!r}") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise BookingValidationError(f"Invalid session time: {session!r}")
    if hour < 12:
        multiplier = Decimal("1.0")
    elif hour < 17:
        multiplier = Decimal("1.1")
    else:
        multiplier = Decimal("1.2")
    return multiplier, f"{hour:02d}{minute:02d}"


# -- calculators -------------------------------------------------------------


def price_transport(
    currency: str, party_size: int, params: Mapping[str, Any]
) -> PricingResult:
    mode = _string_param(params, "mode", default="transport").lower()
    origin = _string_param(params, "from", "origin").upper()
    destination = _string_param(params, "to", "destination").upper()
    travel_date = _string_param(params, "date", default=OPEN_DATE)
    ticket_class = _string_param(
        params, "ticket_type", "class", default="economy"
    ).lower()
    travellers = _clamp(_int_param(params, "people", default=party_size))

    rng = _seeded_random(
        mode, origin, destination, travel_date, ticket_class, travellers
    )
    if not origin or not destination or origin == destination:
        distance = DISTANCE_BANDS[0]
    else:
        distance = _band(f"{origin}-{destination}", DISTANCE_BANDS)
    base = TRANSPORT_BASE.get(mode, TRANSPORT_DEFAULT_BASE)
    multiplier = TRANSPORT_CLASS.get(ticket_class, Decimal("1.0"))

    unit_price = quantize(base * multiplier * distance * _jitter(rng, 1000), currency)
    booking_fee = FLIGHT_BOOKING_FEE if mode == "flight" else GROUND_BOOKING_FEE
    fees = quantize(booking_fee * travellers, currency)
    total = quantize(unit_price * travellers + fees, currency)

    sku = "TP_{}_{}_{}_{}_{}".format(
        _key(mode),
        _key(origin),
        _key(destination),
        _key(travel_date),
        _key(ticket_class),
    )
    meta = {
        "mode": mode,
        "from": origin,
        "to": destination,
        "route": f"{origin or 'GEN'}-{destination or 'GEN'}",
        "date": travel_date,
        "time": _string_param(params, "time", "departure_time", default="00:00"),
        "provider": _string_param(params, "provider"),
        "ticket_type": ticket_class,
        "status": _string_param(params, "status", default="pending"),
        "reservation_required": _reservation_required(params),
        "people": travellers,
    }
    item = QuoteItem(
        sku=sku,
        unit_price=unit_price,
        quantity=travellers,
        fees=fees,
        total=total,
        currency=currency,
        meta=meta,
        cancellation_policy="No charge until 7 days prior; 25% after.",
    )
    return PricingResult(items=(item,))


def price_hotel(
    currency: str, party_size: int, params: Mapping[str, Any]
) -> PricingResult:
    hotel_name = _string_param(params, "hotel_name", "hotelName", default="Hotel")
    city = _string_param(params, "location", "city")
    room_type = _string_param(
        params, "room_type", "roomType", default="double"
    ).lower()
    stars = min(5, max(1, _int_param(params, "stars", default=3)))
    stay_date = _string_param(params, "check_in", "date", default=OPEN_DATE)
    nights = _clamp(_int_param(params, "nights", default=1))

    rng = _seeded_random(
        hotel_name, city, room_type, stars, stay_date, nights, party_size
    )
    city_band = _band(city.upper(), CITY_BANDS) if city else CITY_BANDS[1]
    star_factor = Decimal("0.6") + Decimal("0.2") * stars
    occupancy = Decimal(1) + Decimal("0.25") * max(0, party_size - 2)

    nightly = (
        HOTEL_NIGHTLY_BASE
        * HOTEL_ROOM.get(room_type, Decimal("1.0"))
        * star_factor
        * city_band
        * occupancy
        * _jitter(rng, 1500)
    )
    unit_price = quantize(nightly, currency)
    subtotal = quantize(unit_price * nights, currency)
    city_tax = quantize(HOTEL_CITY_TAX * nights, currency)
    service_fee = quantize(subtotal * HOTEL_SERVICE_RATE, currency)
    fees = quantize(city_tax + service_fee, currency)
    total = quantize(subtotal + fees, currency)

    sku = "HTL_{}_{}_{}_{}N".format(
        _key(hotel_name), _key(room_type), _key(stay_date), nights
    )
    meta = {
        "hotel_name": hotel_name,
        "title": _string_param(params, "title", "name", default=hotel_name),
        "city": city,
        "room_type": room_type,
        "stars": stars,
        "date": stay_date,
        "nights": nights,
        "time": _string_param(params, "time", "check_in_time"),
        "city_tax": format_amount(city_tax),
        "service_fee": format_amount(service_fee),
        "status": _string_param(params, "status", default="pending"),
        "reservation_required": _reservation_required(params),
        "people": party_size,
    }
    item = QuoteItem(
        sku=sku,
        unit_price=unit_price,
        quantity=nights,
        fees=fees,
        total=total,
        currency=currency,
        meta=meta,
        cancellation_policy="48h prior: full refund",
    )
    return PricingResult(items=(item,))


def price_attraction(
    currency: str, party_size: int, params: Mapping[str, Any]
) -> PricingResult:
    title = _string_param(params, "title", "name", default="Attraction")
    location = _string_param(params, "location", "city")
    session = _string_param(params, "time", "session", default="10:00")
    popularity = _string_param(params, "popularity", default="standard").lower()
    visit_date = _string_param(params, "date", default=OPEN_DATE)
    people = _clamp(_int_param(params, "people", default=party_size))

    session_factor, hhmm = _session_multiplier(session)
    rng = _seeded_random(title, location, hhmm, popularity, visit_date, people)
    ticket = (
        ATTRACTION_BASE
        * ATTRACTION_POPULARITY.get(popularity, Decimal("1.0"))
        * session_factor
        * _jitter(rng, 1000)
    )
    unit_price = quantize(ticket, currency)
    fees = quantize(ATTRACTION_TICKET_FEE * people, currency)
    total = quantize(unit_price * people + fees, currency)

    sku = "ATN_{}_{}_{}".format(_key(location), hhmm, _key(visit_date))
    meta = {
        "title": title,
        "location": location,
        "date": visit_date,
        "time": session,
        "popularity": popularity,
        "status": _string_param(params, "status", default="pending"),
        "reservation_required": _reservation_required(params),
        "people": people,
        "ticket_price": format_amount(unit_price),
    }
    item = QuoteItem(
        sku=sku,
        unit_price=unit_price,
        quantity=people,
        fees=fees,
        total=total,
        currency=currency,
        meta=meta,
        cancellation_policy="Cancellations up to 24h prior receive 80% refund",
    )
    return PricingResult(items=(item,))


CALCULATORS: dict[str, Calculator] = {
    "transport": price_transport,
    "hotel": price_hotel,
    "attraction": price_attraction,
}


__all__ = [
    "CALCULATORS",
    "PricingResult",
    "QuoteItem",
    "QuoteRequest",
    "calculate",
    "calculate_request",
    "supported_product_types",
]
