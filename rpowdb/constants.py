"""Command numbers, error codes, status codes and sizes shared by host and card."""

from __future__ import annotations

from enum import IntEnum

__all__ = [
    "Command",
    "ErrorCode",
    "RpowType",
    "Status",
    "up4",
    "HASH_SIZE",
    "NODE_KEYS",
    "MAX_DEPTH",
    "POW_RESOURCE_TAIL",
    "RPOW_EXP",
    "KEYID_LENGTH",
    "CARDID_LENGTH",
    "RPOW_ID_LENGTH",
    "RPOW_VALUE_MIN",
    "RPOW_VALUE_MAX",
    "RPOW_VALUE_COUNT",
]


class Command(IntEnum):
    """Requests understood by the card."""

    INITKEYGEN = 1
    ROLLOVER = 2
    ADDKEY = 3
    CHANGEKEYSTATE = 4
    GETCHAIN = 5
    SIGN = 6
    DBAUTH = 7
    STAT = 8
    CLEARLOWBATT = 9


class ErrorCode(IntEnum):
    """Error codes reported by the card."""

    UNKNOWNCMD = -1
    BADINPUT = -2
    NOMEM = -3
    INVALID = -4
    DBFAILED = -5
    UNINITIALIZED = -6

    FAILEDOTHER = -20
    FAILEDPUTBUFFER = -21
    FAILEDGETBUFFER = -22
    FAILEDGENERATE = -23
    FAILEDGETCERT = -24
    FAILEDSHA1 = -25
    FAILEDRSADECRYPT = -26
    FAILEDRSAENCRYPT = -27
    FAILEDRSASIGN = -28
    FAILEDTDESDECRYPT = -29
    FAILEDTDESENCRYPT = -30
    FAILEDPPD = -31
    FAILEDOA = -32
    FAILEDBLIND = -33

    # Not an error: the card asks the host to query its database.
    DBQUERY = -100


class RpowType(IntEnum):
    """Kinds of tokens that can be exchanged."""

    RPOW = 1
    HASHCASH = 2


class Status(IntEnum):
    """Status codes returned to clients."""

    OK = 0
    REUSED = 1
    INVALID = 2
    INSUFFICIENT = 3
    BADTIME = 4
    MISMATCH = 5
    WRONGKEY = 6
    BADFORMAT = 7
    BADRESOURCE = 8
    UNKNOWNKEY = 9
    BADRPEND = 10
    BADCARDID = 11


# Hashcash resource string suffix, preceded by the card id in hex.
POW_RESOURCE_TAIL = ".rpow.net"

# Public exponent of all keys; signing keys use consecutive primes from here.
RPOW_EXP = 65537

KEYID_LENGTH = 20
CARDID_LENGTH = 14
RPOW_ID_LENGTH = 20 + CARDID_LENGTH

RPOW_VALUE_MIN = 20
RPOW_VALUE_MAX = 50
RPOW_VALUE_COUNT = RPOW_VALUE_MAX - RPOW_VALUE_MIN + 1

# Size in bytes of every item held in the spent-item database.
HASH_SIZE = 20

# Maximum number of keys in a database node; must be even.
NODE_KEYS = 100

# Maximum depth of the database tree.
MAX_DEPTH = 6


def up4(n: int) -> int:
    """Round ``n`` up to a multiple of four."""
    return (n + 3) // 4 * 4