"""Compute budget sizing from a single dry run."""
from __future__ import annotations

from typing import List

from solana.rpc.api import Client
from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from jupiter_perps.instructions import compute_budget_ixs
from jupiter_perps.logging import log
from jupiter_perps.tx import compile_message, simulate

MAX_COMPUTE_UNITS = 1_400_000


def estimate_compute_units(
    client: Client,
    payer: Pubkey,
    instructions: List[Instruction],
    blockhash: Hash,
    ceiling: int,
) -> int:
    """Simulate once and return the consumed units, or ``ceiling`` when the node gives none.

    RPC failures propagate. A simulation that runs but reports an error also
    falls back to the ceiling.
    """

    value = simulate(client, compile_message(payer, instructions, blockhash))
    units = getattr(value, "units_consumed", None)
    err = getattr(value, "err", None)
    if err is not None:
        logs = list(getattr(value, "logs", None) or [])
        log.warning(f"simulation error {err}; using ceiling {ceiling}", source="compute")
        for line in logs[-20:]:
            log.debug(line, source="compute")
        return int(ceiling)
    if not units:
        log.warning(f"simulation reported no unitsConsumed; using ceiling {ceiling}", source="compute")
        return int(ceiling)
    return min(int(units), MAX_COMPUTE_UNITS)


def with_compute_budget(instructions: List[Instruction], units: int, micro_lamports: int) -> List[Instruction]:
    return compute_budget_ixs(units, micro_lamports) + list(instructions)
