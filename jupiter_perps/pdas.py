"""Jupiter Perps PDA helpers.

Every helper here is a pure function of its seeds: the same inputs always
give the same address. The only state is :class:`RequestCounter`, which
hands out request counters when the caller does not pin one.
"""
from __future__ import annotations

import threading
import time
from enum import IntEnum
from typing import List, Optional, Tuple, Union

from solders.pubkey import Pubkey

from jupiter_perps.constants import (
    ASSOCIATED_TOKEN_PROGRAM,
    JLP_POOL,
    MAX_U64,
    PERPS_PROGRAM_ID,
    TOKEN_PROGRAM,
)

__all__ = [
    "Side",
    "RequestChange",
    "RequestCounter",
    "find_program_address",
    "perpetuals_pda",
    "event_authority_pda",
    "position_pda",
    "position_request_pda",
    "associated_token_address",
    "as_pubkey",
]


class Side(IntEnum):
    """On-chain ``Side`` enum; the value doubles as the position seed byte."""

    NONE = 0
    LONG = 1
    SHORT = 2

    @classmethod
    def parse(cls, value: Union[str, int, "Side"]) -> "Side":
        if isinstance(value, Side):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in ("LONG", "SHORT"):
                return cls[key]
        elif isinstance(value, int) and value in (1, 2):
            return cls(value)
        raise ValueError(f"side must be 'long' or 'short', got {value!r}")


class RequestChange(IntEnum):
    """Kind of position request; the value is the request seed byte."""

    INCREASE = 1
    DECREASE = 2

    @classmethod
    def parse(cls, value: Union[str, int, "RequestChange"]) -> "RequestChange":
        if isinstance(value, RequestChange):
            return value
        if isinstance(value, str) and value.strip().upper() in ("INCREASE", "DECREASE"):
            return cls[value.strip().upper()]
        if isinstance(value, int) and value in (1, 2):
            return cls(value)
        raise ValueError(f"request change must be 'increase' or 'decrease', got {value!r}")


class RequestCounter:
    """Monotonically increasing u64 source for position-request seeds.

    Values never fall below wall-clock seconds, so counters from separate
    runs do not collide with requests still waiting for the keeper.
    ``floor`` is only a lower bound: the first value is
    ``max(floor, int(time.time()))``.
    """

    def __init__(self, floor: Optional[int] = None) -> None:
        self._last = int(floor) - 1 if floor is not None else 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = max(self._last + 1, int(time.time()))
            if value > MAX_U64:
                raise ValueError("request counter exhausted u64 range")
            self._last = value
            return value

    @property
    def last(self) -> int:
        return self._last


_COUNTER = RequestCounter()


# ---------------------------------------------------------------------------
# Core helper
# ---------------------------------------------------------------------------

def as_pubkey(value: Union[str, bytes, Pubkey]) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValueError(f"pubkey must be 32 bytes, got {len(value)}")
        return Pubkey.from_bytes(bytes(value))
    if isinstance(value, str):
        try:
            return Pubkey.from_string(value.strip())
        except Exception as exc:
            raise ValueError(f"invalid pubkey '{value}': {exc}") from exc
    raise ValueError(f"unsupported pubkey type: {type(value).__name__}")


def find_program_address(seeds: List[bytes], program_id: Pubkey = PERPS_PROGRAM_ID) -> Tuple[Pubkey, int]:
    return Pubkey.find_program_address(seeds, program_id)


# ---------------------------------------------------------------------------
# Program singletons
# ---------------------------------------------------------------------------

def perpetuals_pda() -> Pubkey:
    return find_program_address([b"perpetuals"])[0]


def event_authority_pda() -> Pubkey:
    return find_program_address([b"__event_authority"])[0]


# ---------------------------------------------------------------------------
# Positions & requests
# ---------------------------------------------------------------------------

def position_pda(
    owner: Union[str, Pubkey],
    custody: Union[str, Pubkey],
    collateral_custody: Union[str, Pubkey],
    side: Union[str, int, Side],
    pool: Union[str, Pubkey] = JLP_POOL,
) -> Tuple[Pubkey, int]:
    """Position PDA: seeds = ["position", owner, pool, custody, collateral_custody, side]."""

    s = Side.parse(side)
    return find_program_address(
        [
            b"position",
            bytes(as_pubkey(owner)),
            bytes(as_pubkey(pool)),
            bytes(as_pubkey(custody)),
            bytes(as_pubkey(collateral_custody)),
            bytes([int(s)]),
        ]
    )


def position_request_pda(
    position: Union[str, Pubkey],
    change: Union[str, int, RequestChange],
    counter: Optional[int] = None,
) -> Tuple[Pubkey, int, int]:
    """Position-request PDA: seeds = ["position_request", position, counter u64 LE, change].

    Returns ``(address, counter, bump)``. With ``counter=None`` the next value
    of the module counter is used.
    """

    kind = RequestChange.parse(change)
    if counter is None:
        counter = _COUNTER.next()
    counter = int(counter)
    if counter < 0 or counter > MAX_U64:
        raise ValueError(f"counter must fit in u64, got {counter}")
    address, bump = find_program_address(
        [
            b"position_request",
            bytes(as_pubkey(position)),
            counter.to_bytes(8, "little", signed=False),
            bytes([int(kind)]),
        ]
    )
    return address, counter, bump


def associated_token_address(
    owner: Union[str, Pubkey],
    mint: Union[str, Pubkey],
    token_program: Pubkey = TOKEN_PROGRAM,
) -> Pubkey:
    """Derive the SPL associated token account for ``owner``/``mint``; PDA owners are fine."""

    return Pubkey.find_program_address(
        [bytes(as_pubkey(owner)), bytes(token_program), bytes(as_pubkey(mint))],
        ASSOCIATED_TOKEN_PROGRAM,
    )[0]
