from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

import requests

from jupiter_perps.constants import MAX_U64, USD_SCALE
from jupiter_perps.errors import PriceUnavailableError
from jupiter_perps.pdas import RequestChange, Side


def usd_to_atoms(usd: Union[int, float, str, Decimal]) -> int:
    """Whole USD -> 6-decimal USD atoms (``5`` -> ``5_000_000``)."""

    atoms = (Decimal(str(usd)) * USD_SCALE).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    if atoms < 0 or atoms > MAX_U64:
        raise ValueError(f"USD amount out of range: {usd}")
    return int(atoms)


def price_slippage(
    price_usd: Union[int, float, str, Decimal],
    side: Union[str, Side],
    change: Union[str, RequestChange],
    pct: Union[int, float, str, Decimal] = 1,
) -> int:
    """Worst acceptable execution price in USD atoms.

    Increase: long pays up to ``price*(1+pct)``, short accepts down to
    ``price*(1-pct)``. Decrease flips the direction.
    """

    s = Side.parse(side)
    c = RequestChange.parse(change)
    p = Decimal(str(price_usd))
    frac = Decimal(str(pct)) / 100
    if p <= 0:
        raise ValueError(f"price must be positive, got {price_usd}")
    if frac < 0 or frac >= 1:
        raise ValueError(f"slippage pct must be in [0, 100), got {pct}")
    up = (s == Side.LONG) == (c == RequestChange.INCREASE)
    bound = p * (1 + frac) if up else p * (1 - frac)
    return usd_to_atoms(bound)


def _num(x: Any) -> Optional[float]:
    try:
        if x is None:
            return None
        return float(x)
    except (TypeError, ValueError):
        return None


def fetch_price_usd(mint: str, base_url: str, timeout: float = 8.0) -> float:
    """Look up a USD price on the Jupiter price API.

    Handles the v3 shape ``{mint: {"usdPrice": ..}}`` and the older
    ``{"data": {mint: {"price": ..}}}``.
    """

    try:
        r = requests.get(base_url, params={"ids": mint}, timeout=timeout)
        r.raise_for_status()
        body = r.json() or {}
    except requests.RequestException as exc:
        raise PriceUnavailableError(mint, str(exc)) from exc
    except ValueError as exc:
        raise PriceUnavailableError(mint, f"non-JSON response: {exc}") from exc

    entry = body.get(mint)
    if entry is None and isinstance(body.get("data"), dict):
        entry = body["data"].get(mint)
    if not isinstance(entry, dict):
        raise PriceUnavailableError(mint, "mint missing from response")
    price = _num(entry.get("usdPrice"))
    if price is None:
        price = _num(entry.get("price"))
    if price is None or price <= 0:
        raise PriceUnavailableError(mint, f"unusable price entry {entry}")
    return price


def token_to_atoms(amount: Union[int, float, str, Decimal], decimals: int) -> int:
    """UI token amount -> base units (``0.1`` SOL -> ``100_000_000`` lamports)."""

    atoms = (Decimal(str(amount)) * (10 ** int(decimals))).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    if atoms <= 0 or atoms > MAX_U64:
        raise ValueError(f"token amount out of range: {amount}")
    return int(atoms)
