"""Borsh layouts for the perps instructions and the Position account."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass

from anchorpy.borsh_extension import BorshPubkey
from borsh_construct import I64, U8, U64, U128, Bool, CStruct, Option
from solders.pubkey import Pubkey

from jupiter_perps.errors import AccountDecodeError
from jupiter_perps.pdas import Side


def anchor_sighash(ix_name_snake: str) -> bytes:
    return hashlib.sha256(f"global:{ix_name_snake}".encode()).digest()[:8]


def account_discriminator(name: str) -> bytes:
    # Anchor discriminator = first 8 bytes of sha256(b"account:" + name)
    return hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:8]


# Unit enum variants are a single u8 tag in Borsh, so Side rides as U8.
INCREASE_PARAMS = CStruct(
    "size_usd_delta" / U64,
    "collateral_token_delta" / U64,
    "side" / U8,
    "price_slippage" / U64,
    "jupiter_minimum_out" / Option(U64),
    "counter" / U64,
)

DECREASE_PARAMS = CStruct(
    "collateral_usd_delta" / U64,
    "size_usd_delta" / U64,
    "price_slippage" / U64,
    "jupiter_minimum_out" / Option(U64),
    "entire_position" / Option(Bool),
    "counter" / U64,
)

POSITION_LAYOUT = CStruct(
    "owner" / BorshPubkey,
    "pool" / BorshPubkey,
    "custody" / BorshPubkey,
    "collateral_custody" / BorshPubkey,
    "open_time" / I64,
    "update_time" / I64,
    "side" / U8,
    "price" / U64,
    "size_usd" / U64,
    "collateral_usd" / U64,
    "realised_pnl_usd" / I64,
    "cumulative_interest_snapshot" / U128,
    "locked_amount" / U64,
    "bump" / U8,
)

POSITION_DISCRIMINATOR = account_discriminator("Position")


@dataclass(frozen=True)
class Position:
    owner: Pubkey
    pool: Pubkey
    custody: Pubkey
    collateral_custody: Pubkey
    open_time: int
    update_time: int
    side: Side
    price: int
    size_usd: int
    collateral_usd: int
    realised_pnl_usd: int
    cumulative_interest_snapshot: int
    locked_amount: int
    bump: int

    @property
    def is_open(self) -> bool:
        return self.size_usd > 0

    @classmethod
    def decode(cls, data: bytes) -> "Position":
        raw = bytes(data)
        if len(raw) < 8 or raw[:8] != POSITION_DISCRIMINATOR:
            raise AccountDecodeError("account is not a Position (discriminator mismatch)")
        try:
            parsed = POSITION_LAYOUT.parse(raw[8:])
            side = Side(parsed.side)
        except Exception as exc:
            raise AccountDecodeError(f"Position layout decode failed: {exc}") from exc
        return cls(
            owner=parsed.owner,
            pool=parsed.pool,
            custody=parsed.custody,
            collateral_custody=parsed.collateral_custody,
            open_time=parsed.open_time,
            update_time=parsed.update_time,
            side=side,
            price=parsed.price,
            size_usd=parsed.size_usd,
            collateral_usd=parsed.collateral_usd,
            realised_pnl_usd=parsed.realised_pnl_usd,
            cumulative_interest_snapshot=parsed.cumulative_interest_snapshot,
            locked_amount=parsed.locked_amount,
            bump=parsed.bump,
        )

    def encode(self) -> bytes:
        return POSITION_DISCRIMINATOR + POSITION_LAYOUT.build(
            {
                "owner": self.owner,
                "pool": self.pool,
                "custody": self.custody,
                "collateral_custody": self.collateral_custody,
                "open_time": self.open_time,
                "update_time": self.update_time,
                "side": int(self.side),
                "price": self.price,
                "size_usd": self.size_usd,
                "collateral_usd": self.collateral_usd,
                "realised_pnl_usd": self.realised_pnl_usd,
                "cumulative_interest_snapshot": self.cumulative_interest_snapshot,
                "locked_amount": self.locked_amount,
                "bump": self.bump,
            }
        )
