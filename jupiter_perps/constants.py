from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from solders.pubkey import Pubkey

PERPS_PROGRAM_ID = Pubkey.from_string("PERPHjGBqRHArX4DySjwM6UJHiR3sWAatqfdBS2qQJu")
JLP_POOL         = Pubkey.from_string("5BUwFW4nRbftYTDMbgxykoFWqWHPzahFSNAaaaJtVKsq")

TOKEN_PROGRAM            = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
SYSTEM_PROGRAM           = Pubkey.from_string("11111111111111111111111111111111")
ASSOCIATED_TOKEN_PROGRAM = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

NATIVE_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")
USDC_MINT   = Pubkey.from_string("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")

LAMPORTS_PER_SOL = 1_000_000_000
USD_DECIMALS     = 6
USD_SCALE        = 10 ** USD_DECIMALS
MAX_U64          = 2 ** 64 - 1


@dataclass(frozen=True)
class Custody:
    """A JLP pool custody and the token it holds."""

    symbol: str
    custody: Pubkey
    mint: Pubkey
    decimals: int


CUSTODIES: Dict[str, Custody] = {
    "SOL": Custody(
        "SOL",
        Pubkey.from_string("7xS2gz2bTp3fwCC7knJvUWTEU9Tycczu6VhJYKgi1wdz"),
        NATIVE_MINT,
        9,
    ),
    "ETH": Custody(
        "ETH",
        Pubkey.from_string("AQCGyheWPLeo6Qp9WpYS9m3Qj479t7R636N9ey1rEjEn"),
        Pubkey.from_string("7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs"),
        8,
    ),
    "BTC": Custody(
        "BTC",
        Pubkey.from_string("5Pv3gM9JrFFH883SWAhvJC9RPYmo8UNxuFtv5bMMALkm"),
        Pubkey.from_string("3NZ9JMVBmGAqocybic2c7LQCJScmgsAZ6vQqTDzcqmJh"),
        8,
    ),
    "USDC": Custody(
        "USDC",
        Pubkey.from_string("G18jKKXQwBbrHeiK3C9MRXhkHsLHf7XgCSisykV46EZa"),
        USDC_MINT,
        6,
    ),
    "USDT": Custody(
        "USDT",
        Pubkey.from_string("4vkNeXiYEUizLdrpdPS1eC2mccyM4NUPRtERrk6ZETkk"),
        Pubkey.from_string("Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"),
        6,
    ),
}

MARKETS = ("SOL", "ETH", "BTC")
STABLES = ("USDC", "USDT")


def custody_for(symbol: str) -> Custody:
    key = (symbol or "").strip().upper()
    if key not in CUSTODIES:
        raise ValueError(f"unknown custody '{symbol}'; expected one of {sorted(CUSTODIES)}")
    return CUSTODIES[key]


def custody_by_address(address: Pubkey) -> Custody:
    for c in CUSTODIES.values():
        if c.custody == address:
            return c
    raise ValueError(f"no known custody at {address}")
