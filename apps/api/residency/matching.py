# apps/api/residency/matching.py

import re
from typing import Optional

_BLOCK_PREFIX = re.compile(r"^(BLOCK|TOWER|WING)\s+")


def normalize_block(value: Optional[str]) -> str:
    """'Block a', 'TOWER A' and 'a' all normalize to 'A'."""
    if not value:
        return ""
    return _BLOCK_PREFIX.sub("", str(value).strip().upper()).strip()


def normalize_flat(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip().upper()


def resident_matches_flat(resident, flat) -> bool:
    """
    Whether ``resident`` lives in ``flat``. Relational link first, then the
    free-text block/flat pair that PDF-imported residents carry. The text
    match needs all four parts present.
    """
    if flat is None:
        return False
    if resident.flat_id and resident.flat_id == flat.id:
        return True

    flat_block = normalize_block(flat.block.name if flat.block else None)
    flat_number = normalize_flat(flat.number)
    resident_block = normalize_block(resident.block)
    resident_flat = normalize_flat(resident.flat)
    if flat_block and flat_number and resident_block and resident_flat:
        return flat_block == resident_block and flat_number == resident_flat
    return False


def resident_matches_request(resident, request) -> bool:
    if resident is None or request is None:
        return False
    if resident.flat_id and resident.flat_id == request.flat_id:
        return True
    return resident_matches_flat(resident, request.flat)
