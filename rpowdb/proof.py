"""Checking proofs that an untrusted host maintains the spent-item B-tree honestly.

The verifier keeps only the hash of the tree root and the tree depth.  For
each lookup the host returns the nodes on the path from the root to the
place where the item is or would go.  The verifier checks them against the
root hash, decides whether the item is present and, when inserting,
computes the new root hash itself.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from .constants import HASH_SIZE, NODE_KEYS

__all__ = [
    "InvalidProof",
    "ValidationResult",
    "CompressedNode",
    "key_compare",
    "node_hash",
    "validate_db_operation",
    "verify_operation",
]

_HEADER = struct.Struct(">II")
_COUNT = struct.Struct(">I")


class InvalidProof(ValueError):
    """The proof does not establish the claimed database operation."""


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validated operation: presence and the updated tree state."""

    found: bool
    tree_hash: bytes
    max_depth: int


@dataclass(frozen=True)
class CompressedNode:
    """One node on a proof path: its keys, the search position and child hashes.

    Leaf nodes have no child hashes; inner nodes have one more than keys.
    """

    keys: Tuple[bytes, ...]
    key_index: int
    child_hashes: Tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple(bytes(k) for k in self.keys))
        object.__setattr__(
            self, "child_hashes", tuple(bytes(h) for h in self.child_hashes)
        )

    def to_bytes(self) -> bytes:
        """Encode the node in the proof wire format."""
        return (
            _HEADER.pack(len(self.keys), self.key_index)
            + b"".join(self.keys)
            + b"".join(self.child_hashes)
        )


def key_compare(key1: bytes, key2: bytes) -> int:
    """Compare two keys bytewise; return -1, 0 or 1."""
    a = bytes(key1[:HASH_SIZE])
    b = bytes(key2[:HASH_SIZE])
    return (a > b) - (a < b)


def node_hash(
    keys: Sequence[bytes], child_hashes: Sequence[bytes], is_leaf: bool
) -> bytes:
    """Hash a node's key count, keys and, for inner nodes, child hashes."""
    digest = hashlib.sha1(_COUNT.pack(len(keys)))
    for key in keys:
        digest.update(key)
    if not is_leaf:
        if len(child_hashes) != len(keys) + 1:
            raise ValueError("an inner node needs one more child hash than keys")
        for child in child_hashes:
            digest.update(child)
    return digest.digest()[:HASH_SIZE]


def _parse_node(data: memoryview, offset: int, is_leaf: bool) -> Tuple[CompressedNode, int]:
    remaining = len(data) - offset
    if remaining < _HEADER.size:
        raise InvalidProof("proof truncated")
    nkeys, key_index = _HEADER.unpack_from(data, offset)
    if nkeys > NODE_KEYS:
        raise InvalidProof(f"node claims {nkeys} keys")
    nhashes = nkeys if is_leaf else 2 * nkeys + 1
    size = _HEADER.size + nhashes * HASH_SIZE
    if remaining < size or (is_leaf and remaining != size):
        raise InvalidProof("proof length does not match its nodes")
    if key_index > nkeys:
        raise InvalidProof("key index out of range")
    start = offset + _HEADER.size
    hashes = [
        bytes(data[pos : pos + HASH_SIZE])
        for pos in range(start, start + nhashes * HASH_SIZE, HASH_SIZE)
    ]
    node = CompressedNode(tuple(hashes[:nkeys]), key_index, tuple(hashes[nkeys:]))
    return node, size


def _check_position(node: CompressedNode, key: bytes) -> bool:
    """Return True if the key sits at key_index; raise if the index is wrong."""
    ki = node.key_index
    if ki < len(node.keys):
        comp = key_compare(key, node.keys[ki])
        if comp == 0:
            return True
        if comp > 0:
            raise InvalidProof("key lies above the indicated position")
    if ki > 0 and key_compare(key, node.keys[ki - 1]) <= 0:
        raise InvalidProof("key lies below the indicated position")
    return False


def _rehash(
    keys: Sequence[bytes], children: Sequence[bytes], is_leaf: bool
) -> Tuple[bytes, Optional[Tuple[bytes, bytes]]]:
    """Hash a grown node, splitting it if it holds too many keys."""
    if len(keys) > NODE_KEYS:
        half = NODE_KEYS // 2
        left = node_hash(keys[:half], children[: half + 1], is_leaf)
        right = node_hash(keys[half + 1 :], children[half + 1 :], is_leaf)
        return left, (keys[half], right)
    return node_hash(keys, children, is_leaf), None


def validate_db_operation(
    tree_hash: bytes,
    proof: bytes,
    max_depth: int,
    key: bytes,
    insert: bool = False,
) -> ValidationResult:
    """Validate a lookup (and optional insertion) proof against the tree hash.

    Returns whether the key was found, and the tree hash and depth after the
    operation.  Raises InvalidProof if the proof does not hold.
    """
    if len(key) != HASH_SIZE:
        raise ValueError(f"key must be {HASH_SIZE} bytes")
    if len(tree_hash) != HASH_SIZE:
        raise ValueError(f"tree hash must be {HASH_SIZE} bytes")
    key = bytes(key)
    tree_hash = bytes(tree_hash)
    data = memoryview(bytes(proof))

    path = []
    offset = 0
    depth = 0
    expected = tree_hash
    while True:
        is_leaf = depth + 1 == max_depth
        node, size = _parse_node(data, offset, is_leaf)
        if node_hash(node.keys, node.child_hashes, is_leaf) != expected:
            raise InvalidProof("node does not match the expected hash")
        if _check_position(node, key):
            return ValidationResult(True, tree_hash, max_depth)
        path.append(node)
        if is_leaf:
            break
        expected = node.child_hashes[node.key_index]
        offset += size
        depth += 1

    if not insert:
        return ValidationResult(False, tree_hash, max_depth)

    leaf = path[-1]
    ki = leaf.key_index
    this_hash, split = _rehash([*leaf.keys[:ki], key, *leaf.keys[ki:]], [], True)

    for node in reversed(path[:-1]):
        ki = node.key_index
        children = list(node.child_hashes)
        children[ki] = this_hash
        if split is None:
            this_hash = node_hash(node.keys, children, False)
            continue
        split_key, new_hash = split
        keys = [*node.keys[:ki], split_key, *node.keys[ki:]]
        children.insert(ki + 1, new_hash)
        this_hash, split = _rehash(keys, children, False)

    if split is None:
        return ValidationResult(False, this_hash, max_depth)

    split_key, new_hash = split
    new_root = node_hash([split_key], [this_hash, new_hash], False)
    return ValidationResult(False, new_root, max_depth + 1)


def verify_operation(
    proof: bytes,
    tree_hash: bytes,
    max_depth: int,
    key: bytes,
    should_be_found: bool,
    insert: bool = False,
) -> ValidationResult:
    """Validate a proof and require that the key's presence is as expected."""
    result = validate_db_operation(tree_hash, proof, max_depth, key, insert)
    if result.found != bool(should_be_found):
        raise InvalidProof("key presence differs from what was expected")
    return result


def _join(nodes: Iterable[CompressedNode]) -> bytes:
    return b"".join(node.to_bytes() for node in nodes)