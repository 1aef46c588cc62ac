"""Helpers for the host side: naming, counting, creating and opening databases."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Union

from .dbproof import ProofDB

__all__ = [
    "NPOWDBS",
    "CHAIN_FILE_NAME",
    "db_name",
    "db_count",
    "format_buffer",
    "create_databases",
    "open_databases",
]

# Highest database number created at initialisation; numbers start at 0.
NPOWDBS = 3

CHAIN_FILE_NAME = "certchain.dat"

_PathLike = Union[str, "os.PathLike[str]"]


def db_name(n: int) -> str:
    """Return the file name of database number ``n``."""
    if n < 0:
        raise ValueError("database number must not be negative")
    return f"rpow{n:03d}.db"


def db_count(directory: _PathLike = ".") -> int:
    """Count the databases numbered consecutively from 0 in ``directory``."""
    base = Path(directory)
    n = 0
    while (base / db_name(n)).exists():
        n += 1
    return n


def format_buffer(buf: bytes) -> str:
    """Format bytes as space-separated hex, ending with a newline unless the
    length is a multiple of 16."""
    text = "".join(f"{b:02x} " for b in bytes(buf))
    if len(buf) % 16 != 0:
        text += "\n"
    return text


def create_databases(
    directory: _PathLike = ".", count: int = NPOWDBS + 1
) -> List[Path]:
    """Create ``count`` new, empty databases in ``directory``.

    Raises FileExistsError if any database is already present.
    Returns the paths of the databases created.
    """
    base = Path(directory)
    existing = db_count(base)
    if existing != 0:
        raise FileExistsError(
            f"{existing} old database files found; delete them first"
        )
    paths = []
    for n in range(count):
        path = base / db_name(n)
        with ProofDB.open(path) as db:
            if not db.created:
                raise FileExistsError(f"old database file {path} found")
        paths.append(path)
    return paths


def open_databases(
    directory: _PathLike = ".", count: Optional[int] = None
) -> List[ProofDB]:
    """Open the existing databases numbered 0 to ``count - 1`` in ``directory``.

    ``count`` defaults to the number of databases found there.  Raises
    FileNotFoundError if one of them did not exist.
    """
    base = Path(directory)
    if count is None:
        count = db_count(base)
    dbs: List[ProofDB] = []
    try:
        for n in range(count):
            path = base / db_name(n)
            db = ProofDB.open(path)
            dbs.append(db)
            if db.created:
                raise FileNotFoundError(
                    f"unable to find database file {path}; delete it and initialize"
                )
    except BaseException:
        for db in dbs:
            db.close()
        raise
    return dbs