"""Static zone/ward directory for the Madurai corporation."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Zone:
    id: str
    name: str
    wards: tuple[str, ...]


def _ward_labels(start: int, end: int) -> tuple[str, ...]:
    return tuple(f"Ward {n}" for n in range(start, end + 1))


ZONES: tuple[Zone, ...] = (
    Zone(id="zone-1", name="Zone 1 — Arasaradi Zone", wards=_ward_labels(1, 25)),
    Zone(id="zone-2", name="Zone 2 — Anna Nagar Zone", wards=_ward_labels(26, 50)),
    Zone(id="zone-3", name="Zone 3 — Thirupparankundram Zone", wards=_ward_labels(51, 75)),
    Zone(id="zone-4", name="Zone 4 — Vandiyur Zone", wards=_ward_labels(76, 100)),
)


def _index(zones: tuple[Zone, ...]) -> tuple[dict[str, Zone], dict[str, Zone]]:
    by_id: dict[str, Zone] = {}
    by_ward: dict[str, Zone] = {}
    for zone in zones:
        if not zone.wards:
            raise ValueError(f"Zone {zone.id} has no wards")
        if len(set(zone.wards)) != len(zone.wards):
            raise ValueError(f"Zone {zone.id} lists a ward twice")
        if zone.id in by_id:
            raise ValueError(f"Duplicate zone id {zone.id}")
        by_id[zone.id] = zone
        for ward in zone.wards:
            owner = by_ward.get(ward)
            if owner is not None:
                raise ValueError(f"{ward} belongs to both {owner.id} and {zone.id}")
            by_ward[ward] = zone
    return by_id, by_ward


_BY_ID, _BY_WARD = _index(ZONES)
_WARD_ORDER = {ward: i for i, ward in enumerate(_BY_WARD)}


def zone_by_id(zone_id: str | None) -> Zone | None:
    if not zone_id:
        return None
    return _BY_ID.get(zone_id)


def zone_by_ward(ward: str | None) -> Zone | None:
    if not ward:
        return None
    return _BY_WARD.get(ward)


def wards_of(zone_id: str | None) -> tuple[str, ...]:
    zone = zone_by_id(zone_id)
    return zone.wards if zone else ()


def ward_sort_key(ward: str | None) -> tuple[int, str]:
    # Directory order first; unknown labels sort after, alphabetically.
    ward = ward or ""
    return (_WARD_ORDER.get(ward, len(_WARD_ORDER)), ward)
