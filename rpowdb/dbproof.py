"""A file-backed B-tree of spent items that proves each operation it performs.

Inner nodes live in one file and leaf nodes in a second file whose name is
the first with ``.vals`` appended.  Block 0 of the inner file holds the root
node number and the tree depth.  Each lookup returns a proof, which is the
chain of nodes visited, in the form that :mod:`rpowdb.proof` checks.
"""

from __future__ import annotations

import os
import struct
import sys
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import IO, Iterator, List, NamedTuple, Optional, Tuple, Union

from .constants import HASH_SIZE, MAX_DEPTH, NODE_KEYS
from .proof import CompressedNode, key_compare, node_hash

__all__ = ["ProofDB"]

_COUNT = struct.Struct(">I")
_CHILDREN = struct.Struct(f">{NODE_KEYS + 2}I")

_KEYS_OFFSET = _COUNT.size
_CHILD_HASH_OFFSET = _KEYS_OFFSET + (NODE_KEYS + 1) * HASH_SIZE
_CHILDREN_OFFSET = _CHILD_HASH_OFFSET + (NODE_KEYS + 2) * HASH_SIZE

_LEAF_SIZE = _CHILD_HASH_OFFSET
_INNER_SIZE = _CHILDREN_OFFSET + _CHILDREN.size

_LEAF_SUFFIX = ".vals"


@dataclass
class _Node:
    keys: List[bytes] = field(default_factory=list)
    child_hashes: List[bytes] = field(default_factory=list)
    children: List[int] = field(default_factory=list)

    def digest(self, is_leaf: bool) -> bytes:
        return node_hash(self.keys, [] if is_leaf else self.child_hashes, is_leaf)


class _Outcome(NamedTuple):
    found: bool
    hash: Optional[bytes] = None
    split: Optional[Tuple[bytes, int, bytes]] = None


def _encode(node: _Node, is_leaf: bool) -> bytes:
    buf = bytearray(_LEAF_SIZE if is_leaf else _INNER_SIZE)
    _COUNT.pack_into(buf, 0, len(node.keys))
    keys = b"".join(node.keys)
    buf[_KEYS_OFFSET : _KEYS_OFFSET + len(keys)] = keys
    if not is_leaf:
        hashes = b"".join(node.child_hashes)
        buf[_CHILD_HASH_OFFSET : _CHILD_HASH_OFFSET + len(hashes)] = hashes
        children = list(node.children) + [0] * (NODE_KEYS + 2 - len(node.children))
        _CHILDREN.pack_into(buf, _CHILDREN_OFFSET, *children)
    return bytes(buf)


def _decode(data: bytes, is_leaf: bool) -> _Node:
    (nkeys,) = _COUNT.unpack_from(data, 0)
    if nkeys > NODE_KEYS:
        raise ValueError(f"corrupt database node with {nkeys} keys")
    keys = [
        data[pos : pos + HASH_SIZE]
        for pos in range(_KEYS_OFFSET, _KEYS_OFFSET + nkeys * HASH_SIZE, HASH_SIZE)
    ]
    if is_leaf:
        return _Node(keys)
    hashes = [
        data[pos : pos + HASH_SIZE]
        for pos in range(
            _CHILD_HASH_OFFSET, _CHILD_HASH_OFFSET + (nkeys + 1) * HASH_SIZE, HASH_SIZE
        )
    ]
    children = list(_CHILDREN.unpack_from(data, _CHILDREN_OFFSET)[: nkeys + 1])
    return _Node(keys, hashes, children)


def _encode_header(root: int, depth: int) -> bytes:
    buf = bytearray(_INNER_SIZE)
    _CHILDREN.pack_into(buf, _CHILDREN_OFFSET, root, depth, *([0] * NODE_KEYS))
    return bytes(buf)


class ProofDB:
    """A spent-item database that proves its answers to a remote verifier."""

    def __init__(self, inner: IO[bytes], leaf: IO[bytes], created: bool) -> None:
        self._inner = inner
        self._leaf = leaf
        self.created = created
        if created:
            self._initialize()
        else:
            header = self._read_block(0, False)
            root, depth = _CHILDREN.unpack_from(header, _CHILDREN_OFFSET)[:2]
            self._root = root
            self.depth = depth

    @classmethod
    def open(cls, name: Union[str, "os.PathLike[str]"]) -> "ProofDB":
        """Open the database called ``name``, creating it if it does not exist.

        The ``created`` attribute of the result tells which happened.
        """
        inner_name = os.fspath(name)
        leaf_name = inner_name + _LEAF_SUFFIX
        if os.path.exists(inner_name) and os.path.exists(leaf_name):
            inner = open(inner_name, "r+b")
            try:
                leaf = open(leaf_name, "r+b")
            except OSError:
                inner.close()
                raise
            return cls(inner, leaf, created=False)
        inner = open(inner_name, "w+b")
        try:
            leaf = open(leaf_name, "w+b")
        except OSError:
            inner.close()
            raise
        return cls(inner, leaf, created=True)

    # Block-level storage

    def _file(self, is_leaf: bool) -> IO[bytes]:
        return self._leaf if is_leaf else self._inner

    def _read_block(self, num: int, is_leaf: bool) -> bytes:
        size = _LEAF_SIZE if is_leaf else _INNER_SIZE
        f = self._file(is_leaf)
        f.seek(num * size)
        data = f.read(size)
        if len(data) != size:
            raise ValueError(f"corrupt database: node {num} is missing")
        return data

    def _read(self, num: int, is_leaf: bool) -> _Node:
        return _decode(self._read_block(num, is_leaf), is_leaf)

    def _write(self, num: int, node: _Node, is_leaf: bool) -> None:
        size = _LEAF_SIZE if is_leaf else _INNER_SIZE
        f = self._file(is_leaf)
        f.seek(num * size)
        f.write(_encode(node, is_leaf))

    def _append(self, node: _Node, is_leaf: bool) -> int:
        size = _LEAF_SIZE if is_leaf else _INNER_SIZE
        f = self._file(is_leaf)
        f.seek(0, os.SEEK_END)
        num = f.tell() // size
        f.seek(num * size)
        f.write(_encode(node, is_leaf))
        return num

    def _write_header(self) -> None:
        self._inner.seek(0)
        self._inner.write(_encode_header(self._root, self.depth))

    def _initialize(self) -> None:
        empty_leaf = _Node()
        # Leaf block 0 is unused; leaf block 1 starts out empty.
        self._append(empty_leaf, True)
        self._append(empty_leaf, True)
        self._root = 1
        self.depth = 2
        self._write_header()
        root = _Node([], [empty_leaf.digest(True)], [1])
        self._write(1, root, False)
        self._flush()

    def _flush(self) -> None:
        self._inner.flush()
        self._leaf.flush()

    # Operations

    @property
    def root_hash(self) -> bytes:
        """The hash of the whole tree, as a verifier would hold it."""
        return self._read(self._root, False).digest(False)

    def test_and_maybe_set(self, key: bytes, insert: bool) -> Tuple[bool, bytes]:
        """Look up ``key``, adding it when absent if ``insert`` is true.

        Returns whether it was present beforehand and the proof of the operation.
        """
        if len(key) != HASH_SIZE:
            raise ValueError(f"key must be {HASH_SIZE} bytes")
        key = bytes(key)
        path: List[CompressedNode] = []
        outcome = self._visit(self._root, 0, key, insert, path)
        proof = b"".join(node.to_bytes() for node in path)
        if not insert or outcome.found or outcome.split is None:
            self._flush()
            return outcome.found, proof

        if self.depth + 1 > MAX_DEPTH:
            raise ValueError("database tree exceeds its maximum depth")
        split_key, new_num, new_hash = outcome.split
        top = _Node([split_key], [outcome.hash, new_hash], [self._root, new_num])
        self._root = self._append(top, False)
        self.depth += 1
        self._write_header()
        self._flush()
        return False, proof

    def test_and_set(self, key: bytes) -> Tuple[bool, bytes]:
        """Look up ``key`` and add it if absent."""
        return self.test_and_maybe_set(key, True)

    def test(self, key: bytes) -> Tuple[bool, bytes]:
        """Look up ``key`` without changing the database."""
        return self.test_and_maybe_set(key, False)

    def _visit(
        self, pos: int, depth: int, key: bytes, insert: bool, path: List[CompressedNode]
    ) -> _Outcome:
        is_leaf = depth + 1 == self.depth
        node = self._read(pos, is_leaf)
        index = bisect_left(node.keys, key)
        found = index < len(node.keys) and node.keys[index] == key
        path.append(
            CompressedNode(
                tuple(node.keys), index, () if is_leaf else tuple(node.child_hashes)
            )
        )
        if found:
            return _Outcome(True)

        if is_leaf:
            if not insert:
                return _Outcome(False)
            node.keys.insert(index, key)
        else:
            child = node.children[index]
            if child == 0:
                raise ValueError(f"corrupt database: node {pos} has a missing child")
            below = self._visit(child, depth + 1, key, insert, path)
            if not insert or below.found:
                return below
            node.child_hashes[index] = below.hash
            if below.split is None:
                self._write(pos, node, False)
                return _Outcome(False, node.digest(False))
            split_key, new_num, new_hash = below.split
            node.keys.insert(index, split_key)
            node.child_hashes.insert(index + 1, new_hash)
            node.children.insert(index + 1, new_num)

        if len(node.keys) > NODE_KEYS:
            half = NODE_KEYS // 2
            split_key = node.keys[half]
            if is_leaf:
                left = _Node(node.keys[:half])
                right = _Node(node.keys[half + 1 :])
            else:
                left = _Node(
                    node.keys[:half], node.child_hashes[: half + 1], node.children[: half + 1]
                )
                right = _Node(
                    node.keys[half + 1 :],
                    node.child_hashes[half + 1 :],
                    node.children[half + 1 :],
                )
            self._write(pos, left, is_leaf)
            new_num = self._append(right, is_leaf)
            return _Outcome(
                False, left.digest(is_leaf), (split_key, new_num, right.digest(is_leaf))
            )

        self._write(pos, node, is_leaf)
        return _Outcome(False, node.digest(is_leaf))

    # Inspection

    def check(self) -> bool:
        """Check that keys are ordered and every stored child hash is right."""
        try:
            return self._check_node(self._root, 0) is not None
        except ValueError:
            return False

    def _check_node(self, pos: int, depth: int) -> Optional[bytes]:
        is_leaf = depth + 1 == self.depth
        node = self._read(pos, is_leaf)
        if not is_leaf:
            for child, expected in zip(node.children, node.child_hashes):
                if child == 0:
                    return None
                if self._check_node(child, depth + 1) != expected:
                    return None
        for first, second in zip(node.keys, node.keys[1:]):
            if key_compare(first, second) >= 0:
                return None
        return node.digest(is_leaf)

    def keys(self) -> Iterator[bytes]:
        """Yield every stored key in ascending order."""
        yield from self._iter_node(self._root, 0)

    def _iter_node(self, pos: int, depth: int) -> Iterator[bytes]:
        is_leaf = depth + 1 == self.depth
        node = self._read(pos, is_leaf)
        if is_leaf:
            yield from node.keys
            return
        for child, key in zip(node.children, node.keys):
            yield from self._iter_node(child, depth + 1)
            yield key
        yield from self._iter_node(node.children[-1], depth + 1)

    def print_db(self, file: Optional[IO[str]] = None) -> None:
        """Write every key, one per line, as space-separated hex bytes."""
        out = sys.stdout if file is None else file
        for key in self.keys():
            out.write("".join(f"{b:02x} " for b in key) + "\n")

    def close(self) -> None:
        """Close both database files."""
        try:
            self._leaf.close()
        finally:
            self._inner.close()

    def __enter__(self) -> "ProofDB":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()