from __future__ import annotations

import argparse
import dataclasses
import sys
import time
from typing import List, Optional

from solders.pubkey import Pubkey

from jupiter_perps.config import PerpsConfig, get_config
from jupiter_perps.constants import CUSTODIES, MARKETS, USD_SCALE, custody_by_address, custody_for
from jupiter_perps.flows import PerpsClient, RequestReceipt, market_custody, resolve_collateral_custody
from jupiter_perps.logging import configure_console_log, log
from jupiter_perps.oracle_idl import idl_summary, load_doves_idl
from jupiter_perps.pdas import (
    RequestChange,
    as_pubkey,
    event_authority_pda,
    perpetuals_pda,
    position_pda,
    position_request_pda,
)
from jupiter_perps.pricing import token_to_atoms
from jupiter_perps.signer_loader import load_signer, signer_info
from jupiter_perps.tx import explorer_url
from jupiter_perps.views import kv_table, panel, rows_table


def _receipt_rows(r: RequestReceipt) -> dict:
    return {
        "signature": r.signature,
        "explorer": explorer_url(r.signature),
        "position": str(r.position),
        "positionRequest": str(r.position_request),
        "counter": r.counter,
        "computeUnits": r.compute_units,
    }


def _config(args: argparse.Namespace) -> PerpsConfig:
    cfg = get_config(args.env_file)
    overrides = {}
    if args.rpc_url:
        overrides["rpc_url"] = args.rpc_url
    if args.keypair:
        overrides["keypair_path"] = args.keypair
    return dataclasses.replace(cfg, **overrides) if overrides else cfg


def _owner(args: argparse.Namespace, cfg: PerpsConfig) -> Pubkey:
    if getattr(args, "owner", None):
        return as_pubkey(args.owner)
    return load_signer(cfg.keypair_path).pubkey()


def _open(client: PerpsClient, args: argparse.Namespace) -> RequestReceipt:
    side = args.side
    collateral_custody = client.collateral_custody_for(args.market, side, args.collateral_token)
    input_token = args.input_token or collateral_custody.symbol
    amount = token_to_atoms(args.collateral, custody_for(input_token).decimals)
    return client.open_position(
        args.market,
        side,
        args.size,
        amount,
        collateral=args.collateral_token,
        input_token=input_token,
        price_usd=args.price,
        slippage_pct=args.slippage,
        counter=args.counter,
    )


def cmd_open(args: argparse.Namespace, cfg: PerpsConfig) -> int:
    client = PerpsClient.from_config(cfg)
    kv_table("📤 open request sent", _receipt_rows(_open(client, args)))
    return 0


def cmd_close(args: argparse.Namespace, cfg: PerpsConfig) -> int:
    client = PerpsClient.from_config(cfg)
    if args.position:
        address = as_pubkey(args.position)
    else:
        address = client.position_address(args.market, args.side, args.collateral_token)
    receipt = client.close_position(
        address,
        desired_token=args.desired_token,
        price_usd=args.price,
        slippage_pct=args.slippage,
    )
    if receipt is None:
        panel("Nothing to close", f"position {address} is missing or empty")
        return 1
    kv_table("📤 close request sent", _receipt_rows(receipt))
    return 0


def cmd_demo(args: argparse.Namespace, cfg: PerpsConfig) -> int:
    client = PerpsClient.from_config(cfg)
    log.info(f"using wallet: {client.owner}", source="demo", payload=signer_info())
    opened = _open(client, args)
    kv_table("📤 open request sent", _receipt_rows(opened))
    if args.wait:
        log.info(f"waiting {args.wait}s for the keeper", source="demo")
        time.sleep(args.wait)
    closed = client.close_position(opened.position, price_usd=args.price, slippage_pct=args.slippage)
    if closed is None:
        panel("Close skipped", f"position {opened.position} not open yet; rerun `close` once the keeper fills it")
        return 1
    kv_table("📤 close request sent", _receipt_rows(closed))
    return 0


def cmd_pdas(args: argparse.Namespace, cfg: PerpsConfig) -> int:
    owner = _owner(args, cfg)
    custody = market_custody(args.market)
    collateral_custody = resolve_collateral_custody(args.market, args.side, args.collateral_token or cfg.collateral)
    position, bump = position_pda(owner, custody.custody, collateral_custody.custody, args.side)
    rows = {
        "owner": str(owner),
        "perpetuals": str(perpetuals_pda()),
        "eventAuthority": str(event_authority_pda()),
        "custody": f"{custody.symbol} {custody.custody}",
        "collateralCustody": f"{collateral_custody.symbol} {collateral_custody.custody}",
        "position": f"{position} (bump {bump})",
    }
    if args.counter is not None:
        for change in RequestChange:
            req, counter, rbump = position_request_pda(position, change, args.counter)
            rows[f"{change.name.lower()}Request[{counter}]"] = f"{req} (bump {rbump})"
    kv_table("PDAs", rows)
    return 0


def cmd_position(args: argparse.Namespace, cfg: PerpsConfig) -> int:
    client = PerpsClient.from_config(cfg)
    address = as_pubkey(args.position) if args.position else client.position_address(
        args.market, args.side, args.collateral_token
    )
    pos = client.fetch_position(address)
    if pos is None:
        panel("Position", f"{address} does not exist")
        return 1
    kv_table(
        f"Position {address}",
        {
            "owner": str(pos.owner),
            "side": pos.side.name.lower(),
            "custody": custody_by_address(pos.custody).symbol,
            "collateralCustody": custody_by_address(pos.collateral_custody).symbol,
            "sizeUsd": pos.size_usd / USD_SCALE,
            "collateralUsd": pos.collateral_usd / USD_SCALE,
            "entryPrice": pos.price / USD_SCALE,
            "realisedPnlUsd": pos.realised_pnl_usd / USD_SCALE,
            "open": pos.is_open,
        },
    )
    return 0


def cmd_idl(args: argparse.Namespace, cfg: PerpsConfig) -> int:
    s = idl_summary()
    kv_table(
        f"IDL {s['name']} v{s['version']}",
        {
            "programId": s["programId"],
            "instructions": ", ".join(s["instructions"]),
            "accounts": ", ".join(s["accounts"]),
            "types": ", ".join(s["types"]),
        },
    )
    rows_table("Errors", ["code", "name"], sorted(s["errors"].items()))
    if args.anchor:
        idl = load_doves_idl()
        log.success(f"anchorpy parsed {len(idl.instructions)} instructions", source="idl")
    return 0


def _add_market_args(p: argparse.ArgumentParser, side_required: bool = True) -> None:
    p.add_argument("--market", choices=list(MARKETS), default=None, help="Market custody (default: PERPS_MARKET)")
    p.add_argument("--side", choices=["long", "short"], required=side_required)
    p.add_argument(
        "--collateral-token",
        choices=["USDC", "USDT"],
        default=None,
        help="Stablecoin custody backing a short (default: PERPS_COLLATERAL)",
    )


def _add_trade_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--size", type=float, required=True, help="Notional in USD, e.g. 5 for $5")
    p.add_argument("--collateral", type=float, required=True, help="Collateral in input-token units, e.g. 0.1 SOL")
    p.add_argument("--input-token", choices=sorted(CUSTODIES), default=None)
    p.add_argument("--counter", type=int, default=None, help="Pin the request counter")


def _add_price_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--price", type=float, default=None, help="Reference price in USD (default: Jupiter price API)")
    p.add_argument("--slippage", type=float, default=None, help="Slippage percent (default: PERPS_SLIPPAGE_PCT)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jupiter-perps", description="Jupiter Perps open/close requests")
    parser.add_argument("--rpc-url", default=None, help="Override RPC_URL")
    parser.add_argument("--keypair", default=None, help="Override KEYPAIR (signer file)")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--debug", action="store_true")
    sub = parser.add_subparsers(dest="cmd")

    demo = sub.add_parser("demo", help="Open a position, then request its full close")
    _add_market_args(demo, side_required=False)
    demo.set_defaults(side="long")
    _add_trade_args(demo)
    _add_price_args(demo)
    demo.add_argument("--wait", type=float, default=0.0, help="Seconds to wait between open and close")

    op = sub.add_parser("open", help="Send a createIncreasePositionMarketRequest")
    _add_market_args(op)
    _add_trade_args(op)
    _add_price_args(op)

    cl = sub.add_parser("close", help="Send a createDecreasePositionMarketRequest for the whole position")
    cl.add_argument("--position", default=None, help="Position address (else derived from market/side)")
    _add_market_args(cl, side_required=False)
    cl.set_defaults(side="long")
    cl.add_argument("--desired-token", choices=sorted(CUSTODIES), default=None)
    _add_price_args(cl)

    pd = sub.add_parser("pdas", help="Print derived addresses (no RPC)")
    pd.add_argument("--owner", default=None, help="Owner pubkey (else the signer's)")
    _add_market_args(pd, side_required=False)
    pd.set_defaults(side="long")
    pd.add_argument("--counter", type=int, default=None, help="Also derive request PDAs for this counter")

    ps = sub.add_parser("position", help="Fetch and decode a Position account")
    ps.add_argument("--position", default=None)
    _add_market_args(ps, side_required=False)
    ps.set_defaults(side="long")

    idl = sub.add_parser("idl", help="Summarise the bundled Doves oracle IDL")
    idl.add_argument("--anchor", action="store_true", help="Also parse it with anchorpy")
    return parser


COMMANDS = {
    "demo": cmd_demo,
    "open": cmd_open,
    "close": cmd_close,
    "pdas": cmd_pdas,
    "position": cmd_position,
    "idl": cmd_idl,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help(sys.stderr)
        return 2
    configure_console_log(args.debug)
    cfg = _config(args)
    if hasattr(args, "market") and args.market is None:
        args.market = cfg.market
    try:
        return COMMANDS[args.cmd](args, cfg)
    except Exception as exc:
        panel("💥 Exception", f"{type(exc).__name__}: {exc}")
        if args.debug:
            raise
        return 1


if __name__ == "__main__":
    sys.exit(main())
