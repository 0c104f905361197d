
"""Consistent hashing ring using xxh3_64.
- Sorted circle of virtual-node hashes for O(log N) lookups via bisect
- Fixed replica count of virtual nodes per physical node (floor 101)
- One reader-writer lock guards circle, ring map and membership together
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Optional, Protocol, Tuple, TypeVar, Union
import bisect
import logging
import zlib

try:
    import xxhash
except ImportError as e:
    raise RuntimeError("xxhash is required. Install with: pip install xxhash") from e

from ring_options import MIN_REPLICAS, HashFunc, Option, RingOptions, resolve_options, with_hash_func, with_replicas
from rwlock import RWLock

log = logging.getLogger(__name__)

# prefix of every virtual node's hash input
VNODE_SALT = "16777619"

Key = Union[str, bytes]


def h64(data: bytes, seed: int = 0) -> int:
    return xxhash.xxh3_64_intdigest(data, seed=seed)


def crc32_hash(data: bytes) -> int:
    """CRC-32 (IEEE) widened to 64 bits."""
    return zlib.crc32(data) & 0xFFFFFFFF


def _key_bytes(key: Key) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    return bytes(key)


def vnode_bytes(label: str, replica_idx: int) -> bytes:
    return f"{VNODE_SALT}{label}{replica_idx}".encode("utf-8")


class Labeled(Protocol):
    """Anything whose str() is a canonical, stable identity."""

    def __str__(self) -> str: ...


T = TypeVar("T", bound=Labeled)


class ConsistentHash(Generic[T]):
    """Consistent hashing ring mapping keys to member nodes.

    Members are deduplicated by label (``str(node)``). Each member owns
    ``replicas`` virtual nodes on the circle. Lookups take a shared lock,
    membership changes an exclusive one, so a reader always sees a whole
    add/remove or none of it.
    """

    def __init__(self, *opts: Option, replicas: Optional[int] = None, hash_func: Optional[HashFunc] = None):
        extra: List[Option] = []
        if replicas is not None:
            extra.append(with_replicas(replicas))
        if hash_func is not None:
            extra.append(with_hash_func(hash_func))
        ops = resolve_options(*opts, *extra, default_hash=h64)
        self._replicas: int = ops.replicas
        self._hash_func: HashFunc = ops.hash_func
        self._lock = RWLock()
        self._circle: List[int] = []
        self._ring: Dict[int, T] = {}
        self._nodes: Dict[str, T] = {}

    @property
    def replicas(self) -> int:
        return self._replicas

    @property
    def hash_func(self) -> HashFunc:
        return self._hash_func

    def options(self) -> RingOptions:
        return RingOptions(replicas=self._replicas, hash_func=self._hash_func)

    def _vnode_hashes(self, label: str, count: int) -> List[int]:
        return [self._hash_func(vnode_bytes(label, i)) for i in range(count)]

    def add(self, *nodes: T) -> None:
        self.add_replicas(self._replicas, *nodes)

    def add_replicas(self, replicas: int, *nodes: T) -> None:
        """Add nodes with ``min(replicas, self.replicas)`` virtual nodes each.

        Labels already on the ring are skipped, whatever replica count they
        were added with.
        """
        replicas = max(0, min(replicas, self._replicas))
        added = 0
        with self._lock.write_lock():
            try:
                for node in nodes:
                    label = str(node)
                    if label in self._nodes:
                        log.debug("skip add node=%s: already present", label)
                        continue
                    hashes = self._vnode_hashes(label, replicas)
                    self._nodes[label] = node
                    for h in hashes:
                        self._circle.append(h)
                        self._ring[h] = node
                    added += 1
                    log.debug("added node=%s vnodes=%d", label, replicas)
            finally:
                if added:
                    self._circle.sort()

    def remove(self, *nodes: T) -> None:
        with self._lock.write_lock():
            for node in nodes:
                self._remove_label(str(node))

    def remove_string(self, *labels: str) -> None:
        with self._lock.write_lock():
            for label in labels:
                self._remove_label(label)

    def _remove_label(self, label: str) -> None:
        if label not in self._nodes:
            log.debug("skip remove node=%s: not present", label)
            return
        removed = 0
        for h in self._vnode_hashes(label, self._replicas):
            idx = bisect.bisect_left(self._circle, h)
            if idx < len(self._circle) and self._circle[idx] == h:
                del self._circle[idx]
                removed += 1
                # drop colliding duplicates too; their owner entry is gone
                while idx < len(self._circle) and self._circle[idx] == h:
                    del self._circle[idx]
            self._ring.pop(h, None)
        del self._nodes[label]
        log.debug("removed node=%s vnodes=%d", label, removed)

    def get(self, key: Key) -> Tuple[Optional[T], bool]:
        with self._lock.read_lock():
            return self._get(key)

    def _get(self, key: Key) -> Tuple[Optional[T], bool]:
        if not self._ring:
            return None, False
        h = self._hash_func(_key_bytes(key))
        idx = bisect.bisect_left(self._circle, h) % len(self._circle)
        return self._ring[self._circle[idx]], True

    def get_string(self, key: Key) -> Tuple[str, bool]:
        with self._lock.read_lock():
            node, ok = self._get(key)
        if ok:
            return str(node), True
        return "", False

    def get_nodes(self) -> List[T]:
        with self._lock.read_lock():
            return list(self._nodes.values())

    def get_string_nodes(self) -> List[str]:
        with self._lock.read_lock():
            return list(self._nodes.keys())

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        with self._lock.read_lock():
            return str(node) in self._nodes

    def vnode_count(self) -> int:
        with self._lock.read_lock():
            return len(self._circle)

    def dump_tokens(self) -> List[Tuple[int, str]]:
        with self._lock.read_lock():
            return [(h, str(self._ring[h])) for h in self._circle]

    def stats(self) -> Dict[str, int]:
        with self._lock.read_lock():
            return {"nodes": len(self._nodes), "vnodes": len(self._circle), "replicas": self._replicas}

    def clone(self) -> "ConsistentHash[T]":
        """Independent copy with the same settings and membership, for before/after comparison."""
        other: ConsistentHash[T] = ConsistentHash(replicas=self._replicas, hash_func=self._hash_func)
        with self._lock.read_lock():
            other._circle = list(self._circle)
            other._ring = dict(self._ring)
            other._nodes = dict(self._nodes)
        return other


def new(*opts: Option) -> ConsistentHash:
    return ConsistentHash(*opts)


def new_with_nodes(nodes: Iterable[T], *opts: Option) -> ConsistentHash[T]:
    ch: ConsistentHash[T] = ConsistentHash(*opts)
    ch.add(*nodes)
    return ch


@dataclass(frozen=True)
class Node:
    id: str
    zone: Optional[str] = None
    labels: Optional[Dict[str, str]] = None

    def __str__(self) -> str:
        return self.id
