# rpowdb

A database of 20-byte keys, kept on disk as a hashed B-tree, that proves
each operation to a party which remembers only the tree's root hash and
depth.

Each lookup or insert returns a proof: the nodes visited on the path from
the root to a leaf. A verifier that holds only the root hash checks that
the proof matches it and that it shows whether the key is present. When a
key was inserted, the verifier works out the new root hash itself, and the
new depth if the root split.

## Installation

    pip install .

Nothing beyond the standard library is needed.

## Keeping a database

`rpowdb.dbproof.ProofDB` stores inner nodes in the named file and leaf
nodes in a second file with `.vals` appended to the name. Nodes hold at
most 100 keys (`NODE_KEYS`) and the tree may grow to depth 6 (`MAX_DEPTH`).

```python
from rpowdb.dbproof import ProofDB

with ProofDB.open("spent.db") as db:      # also uses spent.db.vals
    print(db.created)                     # True if the files were just made
    tree_hash, depth = db.root_hash, db.depth

    key = bytes(20)
    found, proof = db.test_and_set(key)   # add the key if it is absent
    found, proof = db.test(key)           # look it up without changing anything

    assert db.check()                     # key order and every child hash
    for k in db.keys():                   # ascending order
        ...
    db.print_db()                         # one key per line, in hex
```

`test_and_maybe_set(key, insert)` is the general form of `test` and
`test_and_set`. Each returns whether the key was present beforehand and
the proof as bytes. Keys that are not 20 bytes long raise `ValueError`.

## Checking a proof

`rpowdb.proof` holds the verifier's side. Starting from the root hash and
depth of the database, the verifier updates both from each result:

```python
from rpowdb.proof import validate_db_operation, verify_operation, InvalidProof

result = validate_db_operation(tree_hash, proof, depth, key, insert=True)
tree_hash, depth = result.tree_hash, result.max_depth
print(result.found)
```

A proof that does not match the tree hash, has the wrong length, or does
not place the key where it claims raises `InvalidProof` (a `ValueError`).
`verify_operation(proof, tree_hash, max_depth, key, should_be_found, insert)`
does the same and also raises `InvalidProof` if the key's presence is not
what was expected.

The building blocks are public too: `CompressedNode` (one node of a proof,
with `to_bytes()` giving its wire form), `node_hash(keys, child_hashes,
is_leaf)` and `key_compare(key1, key2)`.

## Host helpers

`rpowdb.hostutil` handles the numbered database files a host keeps:

- `db_name(n)` gives the file name of database `n`, such as `rpow000.db`.
- `db_count(directory)` counts the databases numbered from 0 in a directory.
- `create_databases(directory, count)` creates fresh databases, four by
  default, and raises `FileExistsError` if any are already there.
- `open_databases(directory, count)` opens existing ones, by default as
  many as are found, and raises `FileNotFoundError` if one was missing.
- `format_buffer(buf)` renders bytes as space-separated hex.

`rpowdb.constants` holds the protocol's `Command`, `ErrorCode`, `Status`
and `RpowType` enumerations, size constants and `up4(n)`, which rounds up
to a multiple of four.

## What this package does not do

It has no command-line program and no network server: it does not listen
for client requests, and it does not talk to a signing device or manage
keys and certificate chains. It provides the database, its proofs, the
verifier and the file helpers that such a host would build on.

## Tests

    pip install .[test]
    pytest