from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _as_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value.strip().replace("_", ""))


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    return float(value.strip())


def _env(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class PerpsConfig:
    """Configuration container for the perps client, read from env on creation."""

    # Ledger endpoint + signer
    rpc_url: str = field(default_factory=lambda: _env("RPC_URL", "https://api.mainnet-beta.solana.com"))
    keypair_path: str = field(
        default_factory=lambda: _env("KEYPAIR", os.path.join("~", ".config", "solana", "id.json"))
    )

    # Compute budget (micro-lamports per CU, and fallback ceilings per flow)
    cu_price: int = field(default_factory=lambda: _as_int(os.getenv("PERPS_CU_PRICE"), 100_000))
    cu_limit_open: int = field(default_factory=lambda: _as_int(os.getenv("PERPS_CU_LIMIT_OPEN"), 1_400_000))
    cu_limit_close: int = field(default_factory=lambda: _as_int(os.getenv("PERPS_CU_LIMIT_CLOSE"), 1_200_000))

    # Trade defaults
    market: str = field(default_factory=lambda: _env("PERPS_MARKET", "SOL").upper())
    collateral: str = field(default_factory=lambda: _env("PERPS_COLLATERAL", "USDC").upper())
    slippage_pct: float = field(default_factory=lambda: _as_float(os.getenv("PERPS_SLIPPAGE_PCT"), 1.0))

    # Reference price source, only hit when no price is supplied
    price_url: str = field(default_factory=lambda: _env("JUP_PRICE_URL", "https://lite-api.jup.ag/price/v3"))


def get_config(env_file: Optional[str] = None) -> PerpsConfig:
    """Return a ``PerpsConfig`` with ``.env`` and environment defaults applied.

    Variables already set in the process environment win over the file.
    """

    load_dotenv(dotenv_path=env_file, override=False)
    return PerpsConfig()
