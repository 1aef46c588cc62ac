import pytest

from rpowdb.dbproof import ProofDB
from rpowdb.hostutil import (
    NPOWDBS,
    create_databases,
    db_count,
    db_name,
    format_buffer,
    open_databases,
)


def test_db_name_format():
    assert db_name(0) == "rpow000.db"
    assert db_name(7) == "rpow007.db"


def test_db_name_negative():
    with pytest.raises(ValueError):
        db_name(-1)


def test_format_buffer_short():
    assert format_buffer(bytes([0, 1, 0xAB])) == "00 01 ab \n"


def test_format_buffer_full_line_has_no_newline():
    out = format_buffer(bytes(range(16)))
    assert not out.endswith("\n")
    assert out.split() == [f"{b:02x}" for b in range(16)]


def test_format_buffer_empty():
    assert format_buffer(b"") == ""


def test_db_count_empty(tmp_path):
    assert db_count(tmp_path) == 0


def test_db_count_stops_at_gap(tmp_path):
    (tmp_path / db_name(0)).write_bytes(b"")
    (tmp_path / db_name(2)).write_bytes(b"")
    assert db_count(tmp_path) == 1


def test_create_databases_default_count(tmp_path):
    paths = create_databases(tmp_path)
    assert len(paths) == NPOWDBS + 1
    assert db_count(tmp_path) == NPOWDBS + 1


def test_create_databases_refuses_existing(tmp_path):
    create_databases(tmp_path, 2)
    with pytest.raises(FileExistsError):
        create_databases(tmp_path, 2)


def test_open_databases_round_trip(tmp_path):
    create_databases(tmp_path, 3)
    with ProofDB.open(tmp_path / "fresh.db") as fresh:
        fresh_hash = fresh.root_hash
    dbs = open_databases(tmp_path)
    try:
        assert len(dbs) == 3
        assert all(not db.created for db in dbs)
        assert all(db.root_hash == fresh_hash for db in dbs)
    finally:
        for db in dbs:
            db.close()


def test_open_databases_keeps_data(tmp_path):
    create_databases(tmp_path, 1)
    key = bytes(range(20))
    (db,) = open_databases(tmp_path)
    with db:
        found, _ = db.test_and_set(key)
        assert found is False
    (db,) = open_databases(tmp_path)
    with db:
        assert list(db.keys()) == [key]


def test_open_databases_missing(tmp_path):
    create_databases(tmp_path, 1)
    with pytest.raises(FileNotFoundError):
        open_databases(tmp_path, 2)