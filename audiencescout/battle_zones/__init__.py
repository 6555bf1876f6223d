from .classify import catchment, classify_battle_zones
from .schema import BattleZoneDistrict, BattleZoneReport, StoreLocation, ZoneCategory

__all__ = [
    "catchment",
    "classify_battle_zones",
    "BattleZoneDistrict",
    "BattleZoneReport",
    "StoreLocation",
    "ZoneCategory",
]
