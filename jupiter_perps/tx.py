"""Blockhash, message compilation, signing and broadcast."""
from __future__ import annotations

from typing import Any, List

from solana.rpc.api import Client
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from jupiter_perps.logging import log


def latest_blockhash(client: Client) -> Hash:
    return client.get_latest_blockhash().value.blockhash


def compile_message(payer: Pubkey, instructions: List[Instruction], blockhash: Hash) -> MessageV0:
    return MessageV0.try_compile(
        payer=payer,
        instructions=instructions,
        address_lookup_table_accounts=[],
        recent_blockhash=blockhash,
    )


def unsigned_transaction(message: MessageV0) -> VersionedTransaction:
    """Placeholder-signed transaction, good only for ``sigVerify=false`` simulation."""

    n = message.header.num_required_signatures
    return VersionedTransaction.populate(message, [Signature.default()] * n)


def simulate(client: Client, message: MessageV0) -> Any:
    resp = client.simulate_transaction(unsigned_transaction(message), sig_verify=False)
    return resp.value


def sign_and_send(client: Client, message: MessageV0, signer: Keypair) -> str:
    """Sign with ``signer`` and send with preflight skipped; does not wait for confirmation."""

    tx = VersionedTransaction(message, [signer])
    resp = client.send_transaction(tx, opts=TxOpts(skip_preflight=True))
    sig = str(resp.value)
    log.info(f"sent {sig}", source="tx")
    return sig


def explorer_url(signature: str) -> str:
    return f"https://solscan.io/tx/{signature}"
