"""Open / close flows for Jupiter Perps market requests.

Each flow runs the same linear pipeline: derive addresses, build the
instruction list, simulate once to size the compute budget, then sign and
send. Nothing waits for confirmation or for the keeper to execute the
request, and nothing is retried.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Union

from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from jupiter_perps.compute import estimate_compute_units, with_compute_budget
from jupiter_perps.config import PerpsConfig, get_config
from jupiter_perps.constants import MARKETS, NATIVE_MINT, STABLES, Custody, custody_by_address, custody_for
from jupiter_perps.errors import EmptyPositionError, PositionNotFoundError
from jupiter_perps.instructions import (
    DecreaseRequestParams,
    IncreaseRequestParams,
    close_token_account,
    create_ata_idempotent,
    create_decrease_position_market_request,
    create_increase_position_market_request,
    sync_native,
    transfer_lamports,
)
from jupiter_perps.layouts import Position
from jupiter_perps.logging import log
from jupiter_perps.pdas import (
    RequestChange,
    Side,
    associated_token_address,
    as_pubkey,
    position_pda,
    position_request_pda,
)
from jupiter_perps.pricing import fetch_price_usd, price_slippage, usd_to_atoms
from jupiter_perps.signer_loader import load_signer
from jupiter_perps.tx import compile_message, latest_blockhash, sign_and_send

Number = Union[int, float, str, Decimal]


@dataclass(frozen=True)
class PreparedRequest:
    """An instruction list ready for budgeting, plus the addresses it touches."""

    action: str
    instructions: List[Instruction]
    position: Pubkey
    position_request: Pubkey
    counter: int
    price_slippage: int
    accounts: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RequestReceipt:
    action: str
    signature: str
    position: Pubkey
    position_request: Pubkey
    counter: int
    compute_units: int


def market_custody(market: str) -> Custody:
    """Custody of a tradable market; stablecoins back shorts but are not markets."""

    key = (market or "").strip().upper()
    if key not in MARKETS:
        raise ValueError(f"unknown market '{market}'; expected one of {MARKETS}")
    return custody_for(key)


def resolve_collateral_custody(market: str, side: Union[str, Side], collateral: str) -> Custody:
    """Longs are backed by the market's own custody, shorts by a stablecoin custody."""

    custody = market_custody(market)
    if Side.parse(side) == Side.LONG:
        return custody
    stable = (collateral or "").upper()
    if stable not in STABLES:
        raise ValueError(f"short collateral must be one of {STABLES}, got {collateral!r}")
    return custody_for(stable)


class PerpsClient:
    """Builds and submits position requests for a single signing wallet."""

    def __init__(self, client: Client, signer: Keypair, cfg: Optional[PerpsConfig] = None) -> None:
        self.client = client
        self.signer = signer
        self.cfg = cfg or get_config()

    @classmethod
    def from_config(cls, cfg: Optional[PerpsConfig] = None) -> "PerpsClient":
        cfg = cfg or get_config()
        signer = load_signer(cfg.keypair_path)
        return cls(Client(cfg.rpc_url, commitment=Confirmed), signer, cfg)

    @property
    def owner(self) -> Pubkey:
        return self.signer.pubkey()

    # ------------------------------------------------------------------
    # Address helpers
    # ------------------------------------------------------------------
    def collateral_custody_for(self, market: str, side: Union[str, Side], collateral: Optional[str] = None) -> Custody:
        return resolve_collateral_custody(market, side, collateral or self.cfg.collateral)

    def position_address(self, market: str, side: Union[str, Side], collateral: Optional[str] = None) -> Pubkey:
        custody = market_custody(market)
        collateral_custody = self.collateral_custody_for(market, side, collateral)
        return position_pda(self.owner, custody.custody, collateral_custody.custody, side)[0]

    def reference_price(self, custody: Custody, price_usd: Optional[Number] = None) -> Number:
        if price_usd is not None:
            return price_usd
        price = fetch_price_usd(str(custody.mint), self.cfg.price_url)
        log.info(f"{custody.symbol} reference price ${price}", source="flows")
        return price

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------
    def build_open(
        self,
        market: str,
        side: Union[str, Side],
        size_usd: Number,
        collateral_amount: int,
        *,
        collateral: Optional[str] = None,
        input_token: Optional[str] = None,
        price_usd: Optional[Number] = None,
        slippage_pct: Optional[Number] = None,
        counter: Optional[int] = None,
        jupiter_minimum_out: Optional[int] = None,
        referral: Optional[Pubkey] = None,
    ) -> PreparedRequest:
        """Instruction list for an increase request.

        ``collateral_amount`` is in atoms of the input token (lamports for SOL).
        """

        s = Side.parse(side)
        if int(collateral_amount) <= 0:
            raise ValueError(f"collateral_amount must be positive, got {collateral_amount}")
        owner = self.owner
        custody = market_custody(market)
        collateral_custody = self.collateral_custody_for(market, s, collateral)
        input_mint = custody_for(input_token).mint if input_token else collateral_custody.mint

        position, _ = position_pda(owner, custody.custody, collateral_custody.custody, s)
        request, counter, _ = position_request_pda(position, RequestChange.INCREASE, counter)
        request_ata = associated_token_address(request, input_mint)
        funding_account = associated_token_address(owner, input_mint)

        pct = self.cfg.slippage_pct if slippage_pct is None else slippage_pct
        slippage = price_slippage(self.reference_price(custody, price_usd), s, RequestChange.INCREASE, pct)

        params = IncreaseRequestParams(
            size_usd_delta=usd_to_atoms(size_usd),
            collateral_token_delta=int(collateral_amount),
            side=s,
            price_slippage=slippage,
            counter=counter,
            jupiter_minimum_out=jupiter_minimum_out,
        )

        native = input_mint == NATIVE_MINT
        ixs: List[Instruction] = [create_ata_idempotent(owner, funding_account, owner, input_mint)]
        if native:
            ixs.append(transfer_lamports(owner, funding_account, int(collateral_amount)))
            ixs.append(sync_native(funding_account))
        ixs.append(
            create_increase_position_market_request(
                params,
                owner=owner,
                funding_account=funding_account,
                position=position,
                position_request=request,
                position_request_ata=request_ata,
                custody=custody.custody,
                collateral_custody=collateral_custody.custody,
                input_mint=input_mint,
                referral=referral,
            )
        )
        if native:
            # hand back the wSOL rent once the request has pulled the collateral
            ixs.append(close_token_account(funding_account, owner, owner))

        return PreparedRequest(
            action="open",
            instructions=ixs,
            position=position,
            position_request=request,
            counter=counter,
            price_slippage=slippage,
            accounts={
                "fundingAccount": funding_account,
                "positionRequestAta": request_ata,
                "custody": custody.custody,
                "collateralCustody": collateral_custody.custody,
                "inputMint": input_mint,
            },
        )

    def open_position(self, market: str, side: Union[str, Side], size_usd: Number, collateral_amount: int, **kwargs) -> RequestReceipt:
        log.banner(f"open {Side.parse(side).name.lower()} {market} ${size_usd}", source="flows")
        prepared = self.build_open(market, side, size_usd, collateral_amount, **kwargs)
        receipt = self._submit(prepared, self.cfg.cu_limit_open)
        log.success(f"open request sent: {receipt.signature}", source="flows")
        return receipt

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------
    def fetch_position(self, address: Union[str, Pubkey]) -> Optional[Position]:
        resp = self.client.get_account_info(as_pubkey(address))
        account = resp.value
        if account is None:
            return None
        return Position.decode(bytes(account.data))

    def require_position(self, address: Union[str, Pubkey]) -> Position:
        position = self.fetch_position(address)
        if position is None:
            raise PositionNotFoundError(str(address))
        if not position.is_open:
            raise EmptyPositionError(str(address))
        return position

    def build_close(
        self,
        position_address: Union[str, Pubkey],
        position: Position,
        *,
        desired_token: Optional[str] = None,
        price_usd: Optional[Number] = None,
        slippage_pct: Optional[Number] = None,
        counter: Optional[int] = None,
        referral: Optional[Pubkey] = None,
    ) -> PreparedRequest:
        """Instruction list for a full-close decrease request."""

        owner = self.owner
        address = as_pubkey(position_address)
        custody = custody_by_address(position.custody)
        desired_mint = (
            custody_for(desired_token).mint
            if desired_token
            else custody_by_address(position.collateral_custody).mint
        )

        request, counter, _ = position_request_pda(address, RequestChange.DECREASE, counter)
        request_ata = associated_token_address(request, desired_mint)
        receiving_account = associated_token_address(owner, desired_mint)

        pct = self.cfg.slippage_pct if slippage_pct is None else slippage_pct
        slippage = price_slippage(self.reference_price(custody, price_usd), position.side, RequestChange.DECREASE, pct)

        params = DecreaseRequestParams(
            price_slippage=slippage,
            counter=counter,
            collateral_usd_delta=0,
            size_usd_delta=0,
            entire_position=True,
        )
        ixs: List[Instruction] = [
            create_ata_idempotent(owner, receiving_account, owner, desired_mint),
            create_decrease_position_market_request(
                params,
                owner=owner,
                receiving_account=receiving_account,
                position=address,
                position_request=request,
                position_request_ata=request_ata,
                custody=position.custody,
                collateral_custody=position.collateral_custody,
                desired_mint=desired_mint,
                referral=referral,
            ),
        ]
        return PreparedRequest(
            action="close",
            instructions=ixs,
            position=address,
            position_request=request,
            counter=counter,
            price_slippage=slippage,
            accounts={
                "receivingAccount": receiving_account,
                "positionRequestAta": request_ata,
                "desiredMint": desired_mint,
            },
        )

    def close_position(self, position_address: Union[str, Pubkey], **kwargs) -> Optional[RequestReceipt]:
        """Request a full close. Missing or empty positions are logged and nothing is sent."""

        log.banner(f"close {position_address}", source="flows")
        try:
            position = self.require_position(position_address)
        except (PositionNotFoundError, EmptyPositionError) as exc:
            log.error(f"❌ {exc}", source="flows")
            return None
        prepared = self.build_close(position_address, position, **kwargs)
        receipt = self._submit(prepared, self.cfg.cu_limit_close)
        log.success(f"close request sent: {receipt.signature}", source="flows")
        return receipt

    # ------------------------------------------------------------------
    # Budget + submit
    # ------------------------------------------------------------------
    def _submit(self, prepared: PreparedRequest, ceiling: int) -> RequestReceipt:
        timer = f"{prepared.action}_submit"
        log.start_timer(timer)
        blockhash = latest_blockhash(self.client)
        units = estimate_compute_units(self.client, self.owner, prepared.instructions, blockhash, ceiling)
        log.info(f"compute unit limit {units} @ {self.cfg.cu_price} µlamports", source="flows")
        final = with_compute_budget(prepared.instructions, units, self.cfg.cu_price)
        message = compile_message(self.owner, final, blockhash)
        signature = sign_and_send(self.client, message, self.signer)
        log.end_timer(timer, source="flows")
        return RequestReceipt(
            action=prepared.action,
            signature=signature,
            position=prepared.position,
            position_request=prepared.position_request,
            counter=prepared.counter,
            compute_units=units,
        )
