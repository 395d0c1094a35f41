"""Offer/discount pricing.

`evaluate` picks the single best applicable offer for a flight and returns the
per-seat price breakdown. It is a pure function: no I/O, no caching, inputs are
never mutated and it never raises. Malformed optional offer fields are treated
as if they were unset so price display keeps working with partial data.
Amounts stay exact inside the engine; what a seat is charged (`seat_price`)
and the serialised breakdown are rounded to cents.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from skybook.core.clock import parse_instant, utcnow

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class DiscountedPrice:
    original_price: Decimal
    discounted_price: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    applied_offer: Optional[Any] = None

    @property
    def seat_price(self) -> Decimal:
        """What one seat is charged: the discounted price rounded to cents."""
        return to_cents(self.discounted_price)

    def as_dict(self) -> dict:
        offer = self.applied_offer
        original = to_cents(self.original_price)
        return {
            "original_price": float(original),
            "discounted_price": float(self.seat_price),
            # derived from the rounded prices so the three figures always add up
            "discount_amount": float(original - self.seat_price),
            "discount_percentage": float(self.discount_percentage),
            "applied_offer": None if offer is None else {
                "id": _field(offer, "id"),
                "title": _field(offer, "title"),
                "discount": _as_float(_field(offer, "discount")),
            },
        }


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    return d if d.is_finite() else None


def _as_float(value: Any) -> Optional[float]:
    d = _as_decimal(value)
    return float(d) if d is not None else None


def _airport_code(value: Any) -> Optional[str]:
    # accept either a plain code or an airport object/mapping exposing .code
    if isinstance(value, str):
        return value
    code = _field(value, "code") if value is not None else None
    return code if isinstance(code, str) else None


def _scope(offer: Any, name: str) -> list:
    values = _field(offer, name)
    if not isinstance(values, (list, tuple, set, frozenset)):
        return []
    return list(values)


def is_offer_applicable(flight: Any, offer: Any) -> bool:
    """True when every populated scoping field of `offer` admits `flight`."""
    flights = _scope(offer, "applicable_flights")
    if flights and str(_field(flight, "id")) not in {str(f) for f in flights}:
        return False

    airlines = _scope(offer, "applicable_airlines")
    if airlines and str(_field(flight, "airline_id")) not in {str(a) for a in airlines}:
        return False

    routes = _scope(offer, "applicable_routes")
    if routes:
        origin = _airport_code(_field(flight, "origin"))
        destination = _airport_code(_field(flight, "destination"))
        if not any(
            _field(route, "origin") == origin and _field(route, "destination") == destination
            for route in routes
            if isinstance(route, Mapping) or hasattr(route, "origin")
        ):
            return False

    return True


def _in_window(offer: Any, now: datetime) -> bool:
    valid_from = parse_instant(_field(offer, "valid_from"))
    valid_to = parse_instant(_field(offer, "valid_to"))
    if valid_from is not None and now < valid_from:
        return False
    if valid_to is not None and now > valid_to:
        return False
    return True


def offer_discount_amount(price: Decimal, offer: Any) -> Decimal:
    """Discount `offer` would give on `price`, after the absolute cap."""
    percent = _as_decimal(_field(offer, "discount")) or ZERO
    amount = price * percent / HUNDRED
    cap = _as_decimal(_field(offer, "max_discount"))
    # a zero cap counts as "no cap"
    if cap and amount > cap:
        amount = cap
    return amount


def evaluate(flight: Any, offers: Iterable[Any], now: Optional[datetime] = None) -> DiscountedPrice:
    """Price one seat on `flight` with the best of `offers` applied."""
    now = parse_instant(now) or utcnow()
    original_price = _as_decimal(_field(flight, "price")) or ZERO
    best_offer = None
    max_discount_amount = ZERO

    for offer in offers or ():
        if not _field(offer, "is_active"):
            continue
        if not _in_window(offer, now):
            continue
        if not is_offer_applicable(flight, offer):
            continue
        min_price = _as_decimal(_field(offer, "min_price"))
        if min_price and original_price < min_price:
            continue

        amount = offer_discount_amount(original_price, offer)
        if amount > max_discount_amount:
            max_discount_amount = amount
            best_offer = offer

    if max_discount_amount > 0 and original_price > 0:
        percentage = max_discount_amount / original_price * HUNDRED
    else:
        percentage = ZERO
    return DiscountedPrice(
        original_price=original_price,
        discounted_price=original_price - max_discount_amount,
        discount_amount=max_discount_amount,
        discount_percentage=percentage,
        applied_offer=best_offer,
    )


def quote_total(flight: Any, offers: Iterable[Any], passengers: int, now: Optional[datetime] = None) -> Decimal:
    """Charged total for `passengers` seats, each priced at the rounded seat price."""
    pricing = evaluate(flight, offers, now=now)
    return pricing.seat_price * passengers
