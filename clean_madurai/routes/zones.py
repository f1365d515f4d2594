from __future__ import annotations

from fastapi import APIRouter, HTTPException

from clean_madurai.zones import ZONES, Zone, zone_by_id, zone_by_ward

router = APIRouter(prefix="/api/zones", tags=["zones"])


def _zone_out(zone: Zone) -> dict:
    return {"id": zone.id, "name": zone.name, "wards": list(zone.wards)}


@router.get("")
def list_zones():
    return {"zones": [_zone_out(z) for z in ZONES]}


@router.get("/lookup")
def lookup_ward(ward: str):
    zone = zone_by_ward(ward)
    if zone is None:
        raise HTTPException(status_code=404, detail={"code": "not-found", "message": f"Unknown ward: {ward}"})
    return {"ward": ward, "zone": _zone_out(zone)}


@router.get("/{zone_id}")
def get_zone(zone_id: str):
    zone = zone_by_id(zone_id)
    if zone is None:
        raise HTTPException(status_code=404, detail={"code": "not-found", "message": f"Unknown zone: {zone_id}"})
    return _zone_out(zone)
