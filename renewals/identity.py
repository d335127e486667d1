"""Deterministic notification slot IDs.

Each document owns four slot IDs derived from its identifier so a reschedule
always targets the same slots and stale ones can be cancelled without a
lookup. IDs fit in a signed 32-bit integer, which is what notification
backends accept.

Two different documents may hash into overlapping slots. Document IDs are
high-entropy so this is rare, and it is accepted rather than resolved.
"""

from __future__ import annotations

from typing import Dict

from .models import SlotKind

MAX_NOTIFICATION_ID = 2**31 - 1
HASH_MULTIPLIER = 31

SLOT_OFFSETS = {
    SlotKind.PRIMARY: 0,
    SlotKind.FOLLOW_UP: 10000,
    SlotKind.FINAL_WARNING: 20000,
    SlotKind.URGENT_ALERT: 30000,
}

_BASE_RANGE = MAX_NOTIFICATION_ID - max(SLOT_OFFSETS.values())


def _base_id(document_id: str) -> int:
    value = 0
    for char in document_id:
        value = (value * HASH_MULTIPLIER + ord(char)) % _BASE_RANGE
    return value + 1


def slot_id(document_id: str, slot_kind: SlotKind) -> int:
    return _base_id(document_id) + SLOT_OFFSETS[SlotKind(slot_kind)]


def slot_ids(document_id: str) -> Dict[SlotKind, int]:
    base = _base_id(document_id)
    return {kind: base + offset for kind, offset in SLOT_OFFSETS.items()}
