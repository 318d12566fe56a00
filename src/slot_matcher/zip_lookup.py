"""ZIP code lookups against the ``zip_code_database`` collection."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

import structlog

from .states import canonical_abbreviation, timezone_for_state
from .store import ZIP_CODES_COLLECTION, SlotStore

LOGGER = structlog.get_logger(__name__)


def _first(data: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        if data.get(key):
            return str(data[key])
    return None


@dataclass(frozen=True)
class ZipInfo:
    zip_code: str
    city: Optional[str]
    state: Optional[str]
    state_abbreviation: Optional[str]
    timezone: str

    @classmethod
    def from_record(cls, zip_code: str, data: Mapping[str, Any]) -> "ZipInfo":
        state = _first(data, "state", "State", "state_name")
        abbreviation = _first(data, "state_abbreviation", "stateAbbr", "state_code", "StateCode")
        return cls(
            zip_code=zip_code,
            city=_first(data, "city", "placeName", "City"),
            state=state,
            state_abbreviation=abbreviation or canonical_abbreviation(state),
            timezone=_first(data, "timezone", "tz", "time_zone") or timezone_for_state(abbreviation or state),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


async def lookup_zip(store: SlotStore, zip_code: str) -> Optional[ZipInfo]:
    if not zip_code:
        return None
    record = await store.get(ZIP_CODES_COLLECTION, zip_code)
    if record is None:
        LOGGER.info("zip.not_found", zip_code=zip_code)
        return None
    info = ZipInfo.from_record(zip_code, record)
    LOGGER.info("zip.found", zip_code=zip_code, city=info.city, state=info.state_abbreviation)
    return info
