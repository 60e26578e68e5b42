import os
import sys
from types import SimpleNamespace

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.signature import Signature

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from jupiter_perps.config import PerpsConfig


class FakeClient:
    """Records RPC calls and answers with canned solana-py shaped responses."""

    def __init__(self, units=123_456, sim_err=None, account_data=None, fail_on=None):
        self.units = units
        self.sim_err = sim_err
        self.account_data = account_data
        self.fail_on = fail_on
        self.blockhash = Hash.new_unique()
        self.calls = []
        self.simulated = []
        self.sent = []

    def _record(self, method):
        self.calls.append(method)
        if self.fail_on == method:
            raise RuntimeError(f"{method} failed")

    def get_latest_blockhash(self, commitment=None):
        self._record("getLatestBlockhash")
        return SimpleNamespace(value=SimpleNamespace(blockhash=self.blockhash, last_valid_block_height=1))

    def simulate_transaction(self, txn, sig_verify=False, commitment=None):
        self._record("simulateTransaction")
        self.simulated.append((txn, sig_verify))
        return SimpleNamespace(
            value=SimpleNamespace(units_consumed=self.units, err=self.sim_err, logs=["Program log: sim"])
        )

    def send_transaction(self, txn, opts=None):
        self._record("sendTransaction")
        self.sent.append((txn, opts))
        return SimpleNamespace(value=Signature.default())

    def get_account_info(self, pubkey, commitment=None, encoding="base64", data_slice=None):
        self._record("getAccountInfo")
        if self.account_data is None:
            return SimpleNamespace(value=None)
        return SimpleNamespace(value=SimpleNamespace(data=self.account_data))


@pytest.fixture
def signer():
    return Keypair()


@pytest.fixture
def cfg():
    return PerpsConfig(
        rpc_url="http://localhost:8899",
        keypair_path="unused.json",
        cu_price=100_000,
        cu_limit_open=1_400_000,
        cu_limit_close=1_200_000,
        market="SOL",
        collateral="USDC",
        slippage_pct=1.0,
        price_url="http://localhost/price",
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # Keep config deterministic regardless of the developer's shell
    for k in (
        "RPC_URL", "KEYPAIR", "PERPS_CU_PRICE", "PERPS_CU_LIMIT_OPEN", "PERPS_CU_LIMIT_CLOSE",
        "PERPS_MARKET", "PERPS_COLLATERAL", "PERPS_SLIPPAGE_PCT", "JUP_PRICE_URL",
    ):
        monkeypatch.delenv(k, raising=False)
    yield


@pytest.fixture
def make_client():
    return FakeClient
