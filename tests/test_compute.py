import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from jupiter_perps.compute import MAX_COMPUTE_UNITS, estimate_compute_units, with_compute_budget
from jupiter_perps.instructions import sync_native


COMPUTE_BUDGET = Pubkey.from_string("ComputeBudget111111111111111111111111111111")


def _ixs():
    return [sync_native(Keypair().pubkey())]


def _estimate(client, ceiling=1_400_000):
    payer = Keypair().pubkey()
    return estimate_compute_units(client, payer, _ixs(), client.blockhash, ceiling)


def test_uses_simulated_units(make_client):
    client = make_client(units=210_000)
    assert _estimate(client) == 210_000
    assert client.calls == ["simulateTransaction"]
    _, sig_verify = client.simulated[0]
    assert sig_verify is False


def test_missing_units_fall_back_to_ceiling(make_client):
    assert _estimate(make_client(units=None), ceiling=1_200_000) == 1_200_000
    assert _estimate(make_client(units=0), ceiling=1_200_000) == 1_200_000


def test_simulation_error_falls_back_to_ceiling(make_client):
    client = make_client(units=5_000, sim_err={"InstructionError": [0, "Custom"]})
    assert _estimate(client, ceiling=1_400_000) == 1_400_000


def test_units_are_capped(make_client):
    assert _estimate(make_client(units=9_000_000)) == MAX_COMPUTE_UNITS


def test_rpc_failure_propagates(make_client):
    with pytest.raises(RuntimeError):
        _estimate(make_client(fail_on="simulateTransaction"))


def test_budget_instructions_lead():
    ixs = _ixs()
    out = with_compute_budget(ixs, 300_000, 100_000)
    assert [ix.program_id for ix in out[:2]] == [COMPUTE_BUDGET, COMPUTE_BUDGET]
    assert out[2:] == ixs
    assert bytes(out[0].data) == bytes([2]) + (300_000).to_bytes(4, "little")
