from jupiter_perps.config import PerpsConfig, get_config

KEYS = ("RPC_URL", "PERPS_CU_PRICE", "PERPS_MARKET", "PERPS_SLIPPAGE_PCT", "KEYPAIR")


def _track(monkeypatch):
    # register the keys so anything load_dotenv writes is undone at teardown
    for k in KEYS:
        monkeypatch.setenv(k, "x")
        monkeypatch.delenv(k)


def test_defaults():
    cfg = PerpsConfig()
    assert cfg.rpc_url == "https://api.mainnet-beta.solana.com"
    assert cfg.cu_price == 100_000
    assert cfg.cu_limit_open == 1_400_000
    assert cfg.cu_limit_close == 1_200_000
    assert cfg.market == "SOL"
    assert cfg.collateral == "USDC"
    assert cfg.slippage_pct == 1.0
    assert cfg.keypair_path.endswith("id.json")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("RPC_URL", " https://rpc.example.org ")
    monkeypatch.setenv("PERPS_CU_PRICE", "250_000")
    monkeypatch.setenv("PERPS_MARKET", "eth")
    monkeypatch.setenv("PERPS_SLIPPAGE_PCT", "0.5")
    cfg = PerpsConfig()
    assert cfg.rpc_url == "https://rpc.example.org"
    assert cfg.cu_price == 250_000
    assert cfg.market == "ETH"
    assert cfg.slippage_pct == 0.5


def test_env_file_fills_unset_values(tmp_path, monkeypatch):
    _track(monkeypatch)
    env = tmp_path / ".env"
    env.write_text("RPC_URL=https://from-file.example\nPERPS_CU_PRICE=7\nKEYPAIR=/tmp/k.json\n", encoding="utf-8")
    monkeypatch.setenv("PERPS_CU_PRICE", "9")

    cfg = get_config(str(env))
    assert cfg.rpc_url == "https://from-file.example"
    assert cfg.keypair_path == "/tmp/k.json"
    # process environment wins over the file
    assert cfg.cu_price == 9
