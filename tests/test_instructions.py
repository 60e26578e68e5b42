import hashlib

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from jupiter_perps.constants import (
    ASSOCIATED_TOKEN_PROGRAM,
    CUSTODIES,
    JLP_POOL,
    NATIVE_MINT,
    PERPS_PROGRAM_ID,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
)
from jupiter_perps.instructions import (
    DECREASE_ACCOUNTS,
    INCREASE_ACCOUNTS,
    DecreaseRequestParams,
    IncreaseRequestParams,
    close_token_account,
    compute_budget_ixs,
    create_ata_idempotent,
    create_decrease_position_market_request,
    create_increase_position_market_request,
    sync_native,
    transfer_lamports,
)
from jupiter_perps.pdas import Side, event_authority_pda, perpetuals_pda

COMPUTE_BUDGET = Pubkey.from_string("ComputeBudget111111111111111111111111111111")


def _u64(n):
    return n.to_bytes(8, "little")


def _keys(n):
    return [Keypair().pubkey() for _ in range(n)]


def _increase_ix(referral=None, minimum_out=None):
    owner, funding, position, request, request_ata = _keys(5)
    params = IncreaseRequestParams(
        size_usd_delta=5_000_000,
        collateral_token_delta=100_000_000,
        side=Side.LONG,
        price_slippage=151_500_000,
        counter=77,
        jupiter_minimum_out=minimum_out,
    )
    ix = create_increase_position_market_request(
        params,
        owner=owner,
        funding_account=funding,
        position=position,
        position_request=request,
        position_request_ata=request_ata,
        custody=CUSTODIES["SOL"].custody,
        collateral_custody=CUSTODIES["SOL"].custody,
        input_mint=NATIVE_MINT,
        referral=referral,
    )
    return ix, (owner, funding, position, request, request_ata)


def test_increase_payload_layout():
    ix, _ = _increase_ix()
    sighash = hashlib.sha256(b"global:create_increase_position_market_request").digest()[:8]
    expected = (
        sighash
        + _u64(5_000_000)
        + _u64(100_000_000)
        + bytes([1])
        + _u64(151_500_000)
        + b"\x00"
        + _u64(77)
    )
    assert bytes(ix.data) == expected
    assert ix.program_id == PERPS_PROGRAM_ID


def test_increase_payload_with_minimum_out():
    ix, _ = _increase_ix(minimum_out=12)
    assert bytes(ix.data)[-17:] == b"\x01" + _u64(12) + _u64(77)


def test_increase_accounts_follow_idl_order():
    ix, (owner, funding, position, request, request_ata) = _increase_ix()
    assert len(ix.accounts) == len(INCREASE_ACCOUNTS)
    by_name = {spec[0]: meta for spec, meta in zip(INCREASE_ACCOUNTS, ix.accounts)}
    assert by_name["owner"].pubkey == owner
    assert by_name["owner"].is_signer and by_name["owner"].is_writable
    assert by_name["fundingAccount"].pubkey == funding
    assert by_name["perpetuals"].pubkey == perpetuals_pda()
    assert by_name["pool"].pubkey == JLP_POOL
    assert by_name["position"].pubkey == position and by_name["position"].is_writable
    assert by_name["positionRequest"].pubkey == request
    assert by_name["positionRequestAta"].pubkey == request_ata
    assert by_name["inputMint"].pubkey == NATIVE_MINT
    assert by_name["tokenProgram"].pubkey == TOKEN_PROGRAM
    assert by_name["associatedTokenProgram"].pubkey == ASSOCIATED_TOKEN_PROGRAM
    assert by_name["systemProgram"].pubkey == SYSTEM_PROGRAM
    assert by_name["eventAuthority"].pubkey == event_authority_pda()
    assert by_name["program"].pubkey == PERPS_PROGRAM_ID
    assert sum(1 for m in ix.accounts if m.is_signer) == 1


def test_absent_referral_is_program_id_readonly():
    ix, _ = _increase_ix()
    idx = [spec[0] for spec in INCREASE_ACCOUNTS].index("referral")
    meta = ix.accounts[idx]
    assert meta.pubkey == PERPS_PROGRAM_ID
    assert not meta.is_signer and not meta.is_writable


def test_referral_is_passed_through():
    ref = Keypair().pubkey()
    ix, _ = _increase_ix(referral=ref)
    idx = [spec[0] for spec in INCREASE_ACCOUNTS].index("referral")
    assert ix.accounts[idx].pubkey == ref


def test_decrease_payload_closes_entire_position():
    owner, receiving, position, request, request_ata = _keys(5)
    params = DecreaseRequestParams(price_slippage=148_500_000, counter=9)
    ix = create_decrease_position_market_request(
        params,
        owner=owner,
        receiving_account=receiving,
        position=position,
        position_request=request,
        position_request_ata=request_ata,
        custody=CUSTODIES["SOL"].custody,
        collateral_custody=CUSTODIES["SOL"].custody,
        desired_mint=NATIVE_MINT,
    )
    sighash = hashlib.sha256(b"global:create_decrease_position_market_request").digest()[:8]
    expected = sighash + _u64(0) + _u64(0) + _u64(148_500_000) + b"\x00" + b"\x01\x01" + _u64(9)
    assert bytes(ix.data) == expected
    names = [spec[0] for spec in DECREASE_ACCOUNTS]
    assert ix.accounts[names.index("receivingAccount")].pubkey == receiving
    assert ix.accounts[names.index("desiredMint")].pubkey == NATIVE_MINT
    assert not ix.accounts[names.index("position")].is_writable


def test_params_reject_values_outside_u64():
    with pytest.raises(ValueError):
        IncreaseRequestParams(
            size_usd_delta=-1, collateral_token_delta=1, side=Side.LONG, price_slippage=1, counter=1
        ).encode()
    with pytest.raises(ValueError):
        DecreaseRequestParams(price_slippage=2 ** 64, counter=1).encode()


def test_token_helpers():
    payer, ata, mint = _keys(3)
    create = create_ata_idempotent(payer, ata, payer, mint)
    assert create.program_id == ASSOCIATED_TOKEN_PROGRAM
    assert bytes(create.data) == b"\x01"
    assert [m.pubkey for m in create.accounts] == [payer, ata, payer, mint, SYSTEM_PROGRAM, TOKEN_PROGRAM]

    sync = sync_native(ata)
    assert sync.program_id == TOKEN_PROGRAM and bytes(sync.data) == bytes([17])

    close = close_token_account(ata, payer, payer)
    assert close.program_id == TOKEN_PROGRAM and bytes(close.data) == bytes([9])
    assert close.accounts[2].is_signer

    xfer = transfer_lamports(payer, ata, 1_000)
    assert xfer.program_id == SYSTEM_PROGRAM


def test_compute_budget_ixs():
    limit, price = compute_budget_ixs(200_000, 100_000)
    assert limit.program_id == COMPUTE_BUDGET and price.program_id == COMPUTE_BUDGET
    assert bytes(limit.data) == bytes([2]) + (200_000).to_bytes(4, "little")
    assert bytes(price.data) == bytes([3]) + (100_000).to_bytes(8, "little")
