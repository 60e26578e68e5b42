from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from jupiter_perps.constants import (
    ASSOCIATED_TOKEN_PROGRAM,
    JLP_POOL,
    MAX_U64,
    PERPS_PROGRAM_ID,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
)
from jupiter_perps.layouts import DECREASE_PARAMS, INCREASE_PARAMS, anchor_sighash
from jupiter_perps.logging import log
from jupiter_perps.pdas import Side, event_authority_pda, perpetuals_pda

# (name, is_signer, is_writable, is_optional) in program IDL order
AccountSpec = Tuple[str, bool, bool, bool]

INCREASE_ACCOUNTS: List[AccountSpec] = [
    ("owner", True, True, False),
    ("fundingAccount", False, True, False),
    ("perpetuals", False, False, False),
    ("pool", False, False, False),
    ("position", False, True, False),
    ("positionRequest", False, True, False),
    ("positionRequestAta", False, True, False),
    ("custody", False, False, False),
    ("collateralCustody", False, False, False),
    ("inputMint", False, False, False),
    ("referral", False, False, True),
    ("tokenProgram", False, False, False),
    ("associatedTokenProgram", False, False, False),
    ("systemProgram", False, False, False),
    ("eventAuthority", False, False, False),
    ("program", False, False, False),
]

DECREASE_ACCOUNTS: List[AccountSpec] = [
    ("owner", True, True, False),
    ("receivingAccount", False, True, False),
    ("perpetuals", False, False, False),
    ("pool", False, False, False),
    ("position", False, False, False),
    ("positionRequest", False, True, False),
    ("positionRequestAta", False, True, False),
    ("custody", False, False, False),
    ("collateralCustody", False, False, False),
    ("desiredMint", False, False, False),
    ("referral", False, False, True),
    ("tokenProgram", False, False, False),
    ("associatedTokenProgram", False, False, False),
    ("systemProgram", False, False, False),
    ("eventAuthority", False, False, False),
    ("program", False, False, False),
]

INCREASE_IX_NAME = "create_increase_position_market_request"
DECREASE_IX_NAME = "create_decrease_position_market_request"

# SPL token / associated-token instruction tags
_ATA_CREATE_IDEMPOTENT = 1
_TOKEN_CLOSE_ACCOUNT = 9
_TOKEN_SYNC_NATIVE = 17


@dataclass(frozen=True)
class IncreaseRequestParams:
    size_usd_delta: int
    collateral_token_delta: int
    side: Side
    price_slippage: int
    counter: int
    jupiter_minimum_out: Optional[int] = None

    def encode(self) -> bytes:
        _check_u64(
            size_usd_delta=self.size_usd_delta,
            collateral_token_delta=self.collateral_token_delta,
            price_slippage=self.price_slippage,
            counter=self.counter,
        )
        return INCREASE_PARAMS.build(
            {
                "size_usd_delta": int(self.size_usd_delta),
                "collateral_token_delta": int(self.collateral_token_delta),
                "side": int(Side.parse(self.side)),
                "price_slippage": int(self.price_slippage),
                "jupiter_minimum_out": self.jupiter_minimum_out,
                "counter": int(self.counter),
            }
        )


@dataclass(frozen=True)
class DecreaseRequestParams:
    price_slippage: int
    counter: int
    collateral_usd_delta: int = 0
    size_usd_delta: int = 0
    entire_position: Optional[bool] = True
    jupiter_minimum_out: Optional[int] = None

    def encode(self) -> bytes:
        _check_u64(
            collateral_usd_delta=self.collateral_usd_delta,
            size_usd_delta=self.size_usd_delta,
            price_slippage=self.price_slippage,
            counter=self.counter,
        )
        return DECREASE_PARAMS.build(
            {
                "collateral_usd_delta": int(self.collateral_usd_delta),
                "size_usd_delta": int(self.size_usd_delta),
                "price_slippage": int(self.price_slippage),
                "jupiter_minimum_out": self.jupiter_minimum_out,
                "entire_position": self.entire_position,
                "counter": int(self.counter),
            }
        )


def _check_u64(**values: int) -> None:
    for name, value in values.items():
        if value is None or int(value) < 0 or int(value) > MAX_U64:
            raise ValueError(f"{name} must fit in u64, got {value}")


def _program_accounts() -> Dict[str, Pubkey]:
    return {
        "perpetuals": perpetuals_pda(),
        "pool": JLP_POOL,
        "tokenProgram": TOKEN_PROGRAM,
        "associatedTokenProgram": ASSOCIATED_TOKEN_PROGRAM,
        "systemProgram": SYSTEM_PROGRAM,
        "eventAuthority": event_authority_pda(),
        "program": PERPS_PROGRAM_ID,
    }


def build_metas(specs: List[AccountSpec], mapping: Dict[str, Optional[Pubkey]]) -> List[AccountMeta]:
    """Build metas strictly in IDL order.

    A missing optional account is passed as the program id, read-only, which
    is how Anchor marks an absent ``Option<Account>``.
    """

    metas: List[AccountMeta] = []
    for name, is_signer, is_writable, is_optional in specs:
        pk = mapping.get(name)
        if pk is None:
            if not is_optional:
                raise KeyError(f"missing account '{name}'")
            metas.append(AccountMeta(PERPS_PROGRAM_ID, False, False))
            continue
        metas.append(AccountMeta(pk, is_signer, is_writable))
    return metas


def create_increase_position_market_request(
    params: IncreaseRequestParams,
    *,
    owner: Pubkey,
    funding_account: Pubkey,
    position: Pubkey,
    position_request: Pubkey,
    position_request_ata: Pubkey,
    custody: Pubkey,
    collateral_custody: Pubkey,
    input_mint: Pubkey,
    referral: Optional[Pubkey] = None,
) -> Instruction:
    mapping: Dict[str, Optional[Pubkey]] = dict(_program_accounts())
    mapping.update(
        owner=owner,
        fundingAccount=funding_account,
        position=position,
        positionRequest=position_request,
        positionRequestAta=position_request_ata,
        custody=custody,
        collateralCustody=collateral_custody,
        inputMint=input_mint,
        referral=referral,
    )
    data = anchor_sighash(INCREASE_IX_NAME) + params.encode()
    log.debug(f"increase ix data=0x{data.hex()}", source="instructions")
    return Instruction(PERPS_PROGRAM_ID, data, build_metas(INCREASE_ACCOUNTS, mapping))


def create_decrease_position_market_request(
    params: DecreaseRequestParams,
    *,
    owner: Pubkey,
    receiving_account: Pubkey,
    position: Pubkey,
    position_request: Pubkey,
    position_request_ata: Pubkey,
    custody: Pubkey,
    collateral_custody: Pubkey,
    desired_mint: Pubkey,
    referral: Optional[Pubkey] = None,
) -> Instruction:
    mapping: Dict[str, Optional[Pubkey]] = dict(_program_accounts())
    mapping.update(
        owner=owner,
        receivingAccount=receiving_account,
        position=position,
        positionRequest=position_request,
        positionRequestAta=position_request_ata,
        custody=custody,
        collateralCustody=collateral_custody,
        desiredMint=desired_mint,
        referral=referral,
    )
    data = anchor_sighash(DECREASE_IX_NAME) + params.encode()
    log.debug(f"decrease ix data=0x{data.hex()}", source="instructions")
    return Instruction(PERPS_PROGRAM_ID, data, build_metas(DECREASE_ACCOUNTS, mapping))


# ---------------------------------------------------------------------------
# SPL token / system helpers
# ---------------------------------------------------------------------------

def create_ata_idempotent(payer: Pubkey, ata: Pubkey, owner: Pubkey, mint: Pubkey) -> Instruction:
    metas = [
        AccountMeta(payer, True, True),
        AccountMeta(ata, False, True),
        AccountMeta(owner, False, False),
        AccountMeta(mint, False, False),
        AccountMeta(SYSTEM_PROGRAM, False, False),
        AccountMeta(TOKEN_PROGRAM, False, False),
    ]
    return Instruction(ASSOCIATED_TOKEN_PROGRAM, bytes([_ATA_CREATE_IDEMPOTENT]), metas)


def transfer_lamports(source: Pubkey, dest: Pubkey, lamports: int) -> Instruction:
    return transfer(TransferParams(from_pubkey=source, to_pubkey=dest, lamports=int(lamports)))


def sync_native(account: Pubkey) -> Instruction:
    return Instruction(TOKEN_PROGRAM, bytes([_TOKEN_SYNC_NATIVE]), [AccountMeta(account, False, True)])


def close_token_account(account: Pubkey, dest: Pubkey, owner: Pubkey) -> Instruction:
    metas = [
        AccountMeta(account, False, True),
        AccountMeta(dest, False, True),
        AccountMeta(owner, True, False),
    ]
    return Instruction(TOKEN_PROGRAM, bytes([_TOKEN_CLOSE_ACCOUNT]), metas)


def compute_budget_ixs(units: int, micro_lamports: int) -> List[Instruction]:
    return [set_compute_unit_limit(int(units)), set_compute_unit_price(int(micro_lamports))]
