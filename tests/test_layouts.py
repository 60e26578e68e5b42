import hashlib

import pytest
from solders.keypair import Keypair

from jupiter_perps.constants import CUSTODIES, JLP_POOL
from jupiter_perps.errors import AccountDecodeError
from jupiter_perps.layouts import (
    POSITION_DISCRIMINATOR,
    Position,
    account_discriminator,
    anchor_sighash,
)
from jupiter_perps.pdas import Side


def make_position(**overrides):
    fields = dict(
        owner=Keypair().pubkey(),
        pool=JLP_POOL,
        custody=CUSTODIES["SOL"].custody,
        collateral_custody=CUSTODIES["USDC"].custody,
        open_time=1_700_000_000,
        update_time=1_700_000_100,
        side=Side.SHORT,
        price=150_250_000,
        size_usd=5_000_000,
        collateral_usd=1_000_000,
        realised_pnl_usd=-12_345,
        cumulative_interest_snapshot=2 ** 70,
        locked_amount=33,
        bump=254,
    )
    fields.update(overrides)
    return Position(**fields)


def test_discriminators():
    assert anchor_sighash("initialize") == hashlib.sha256(b"global:initialize").digest()[:8]
    assert POSITION_DISCRIMINATOR == hashlib.sha256(b"account:Position").digest()[:8]
    assert account_discriminator("Position") == POSITION_DISCRIMINATOR


def test_position_decode_reads_every_field():
    pos = make_position()
    raw = pos.encode()
    assert raw[:8] == POSITION_DISCRIMINATOR
    # 4 pubkeys + i64 x2 + u8 + u64 x3 + i64 + u128 + u64 + u8
    assert len(raw) == 8 + 4 * 32 + 16 + 1 + 24 + 8 + 16 + 8 + 1
    decoded = Position.decode(raw)
    assert decoded == pos
    assert decoded.side is Side.SHORT
    assert decoded.is_open


def test_position_with_zero_size_is_not_open():
    assert not make_position(size_usd=0).is_open


def test_decode_ignores_trailing_padding():
    pos = make_position()
    assert Position.decode(pos.encode() + b"\x00" * 16) == pos


def test_decode_rejects_foreign_account():
    raw = make_position().encode()
    with pytest.raises(AccountDecodeError):
        Position.decode(b"\xff" * 8 + raw[8:])
    with pytest.raises(AccountDecodeError):
        Position.decode(b"\x01\x02")


def test_decode_rejects_truncated_account():
    raw = make_position().encode()
    with pytest.raises(AccountDecodeError):
        Position.decode(raw[:60])


def test_decode_rejects_unknown_side_byte():
    raw = bytearray(make_position().encode())
    side_offset = 8 + 4 * 32 + 16
    assert raw[side_offset] == int(Side.SHORT)
    raw[side_offset] = 7
    with pytest.raises(AccountDecodeError):
        Position.decode(bytes(raw))
