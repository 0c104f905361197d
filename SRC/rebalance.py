"""Rebalancing utilities.

Compare key ownership between two rings (typically ``ring.clone()`` taken
before a membership change, and the ring after it).
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple
from collections import Counter
import logging

from consistent_hash_ring import ConsistentHash

log = logging.getLogger(__name__)

Plan = Dict[str, Tuple[Optional[str], Optional[str]]]


def _owner(ring: ConsistentHash, key: str) -> Optional[str]:
    label, ok = ring.get_string(key)
    return label if ok else None


class RebalancePlanner:
    def plan_moved(self, keys: Iterable[str], ring_before: ConsistentHash, ring_after: ConsistentHash) -> Plan:
        """Return dict key -> (from_owner, to_owner) for keys whose owner changed."""
        moved = {}
        for k in keys:
            b = _owner(ring_before, k)
            a = _owner(ring_after, k)
            if b != a:
                moved[k] = (b, a)
        return moved

    def stats(self, plan: Plan) -> Dict[str, object]:
        by_to = Counter([to for (_, to) in plan.values() if to is not None])
        by_from = Counter([frm for (frm, _) in plan.values() if frm is not None])
        return {
            "moved_count": len(plan),
            "by_to": dict(by_to),
            "by_from": dict(by_from),
        }

    def moved_fraction(self, keys: Iterable[str], ring_before: ConsistentHash, ring_after: ConsistentHash) -> float:
        keys = list(keys)
        if not keys:
            return 0.0
        plan = self.plan_moved(keys, ring_before, ring_after)
        frac = len(plan) / len(keys)
        log.debug("moved %d/%d keys (%.4f)", len(plan), len(keys), frac)
        return frac
