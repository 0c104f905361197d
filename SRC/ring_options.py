"""Construction options for ConsistentHash.

Options are plain callables applied in order to a RingOptions; later ones win.
Unset or too-small values are resolved to defaults by resolve_options.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

HashFunc = Callable[[bytes], int]

MIN_REPLICAS = 101


@dataclass
class RingOptions:
    """
    Effective ring settings.

    Attributes:
        replicas: Virtual nodes per physical node. Values below MIN_REPLICAS
            are raised to it.
        hash_func: Deterministic bytes -> unsigned 64-bit hash. Must be safe to
            call from several threads and must not call back into the ring.
    """

    replicas: Optional[int] = None
    hash_func: Optional[HashFunc] = None


Option = Callable[[RingOptions], None]


def with_replicas(replicas: int) -> Option:
    def apply(o: RingOptions) -> None:
        o.replicas = replicas
    return apply


def with_hash_func(hash_func: HashFunc) -> Option:
    def apply(o: RingOptions) -> None:
        o.hash_func = hash_func
    return apply


def resolve_options(*opts: Option, default_hash: HashFunc) -> RingOptions:
    ops = RingOptions()
    for opt in opts:
        opt(ops)
    if ops.replicas is None or ops.replicas < MIN_REPLICAS:
        ops.replicas = MIN_REPLICAS
    if ops.hash_func is None:
        ops.hash_func = default_hash
    return ops
