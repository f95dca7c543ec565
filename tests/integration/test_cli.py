"""Integration tests for the snackshack-deploy command."""

import logging
from pathlib import Path

import pytest

from snackshack_deployments import ConfigurationError, NetworkNotFoundError, RunLedger
from snackshack_deployments import cli
from snackshack_deployments.cli import get_rpc_url, main, parse_attach

ADDRESS = "0x09972358feEb111C0E1388161C3FA5e0Cd220A6B"


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path):
    """Run from an empty directory with no RPC or key variables set."""
    for name in (
        "MAINNET_RPC_URL",
        "RINKEBY_RPC_URL",
        "API_KEY_ALCHEMY",
        "PRIVATE_KEY_MAINNET",
        "PRIVATE_KEY_RINKEBY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestParseAttach:
    def test_parses_pairs(self):
        assert parse_attach(["XminuNft=" + ADDRESS, " SqrtMath = 0x01 "]) == {
            "XminuNft": ADDRESS,
            "SqrtMath": "0x01",
        }

    @pytest.mark.parametrize("value", ["XminuNft", "=0x01", "XminuNft="])
    def test_rejects_malformed(self, value):
        with pytest.raises(ConfigurationError):
            parse_attach([value])

    def test_rejects_repeated_name(self):
        with pytest.raises(ConfigurationError):
            parse_attach(["XminuNft=" + ADDRESS, "XminuNft=" + ADDRESS])


class TestGetRpcUrl:
    def test_explicit_url_wins(self, clean_env):
        clean_env.setenv("RINKEBY_RPC_URL", "http://env:8545")

        assert get_rpc_url("rinkeby", "http://arg:8545") == "http://arg:8545"

    def test_network_variable(self, clean_env):
        clean_env.setenv("RINKEBY_RPC_URL", "http://env:8545")
        clean_env.setenv("API_KEY_ALCHEMY", "secret")

        assert get_rpc_url("rinkeby") == "http://env:8545"

    def test_alchemy_fallback(self, clean_env):
        clean_env.setenv("API_KEY_ALCHEMY", "secret")

        assert get_rpc_url("mainnet") == "https://eth-mainnet.alchemyapi.io/v2/secret"

    def test_no_endpoint(self, clean_env):
        with pytest.raises(ConfigurationError) as exc_info:
            get_rpc_url("rinkeby")

        assert "RINKEBY_RPC_URL" in str(exc_info.value)

    def test_unknown_network(self, clean_env):
        with pytest.raises(NetworkNotFoundError):
            get_rpc_url("goerli")


class TestMain:
    def test_dry_run_prints_plan(self, clean_env, capsys):
        assert main(["--network", "rinkeby", "--dry-run"]) == 0

        out = capsys.readouterr().out
        assert "  1. deploy FakeSnackXmonLp" in out
        assert "Transferred SNACK ownership to Snack Shack Farm" in out
        assert "PID 4: weight 100 SCALED <HighFeeTradeLp>" in out

    def test_dry_run_uses_ledger(self, clean_env, temp_ledger: Path, capsys):
        assert main(["--network", "rinkeby", "--dry-run", "--ledger", str(temp_ledger)]) == 0

        out = capsys.readouterr().out
        assert "attach FakeXmon" in out
        assert "deploy XminuNft" in out

    def test_dry_run_with_attach(self, clean_env, capsys):
        assert main(["--network", "rinkeby", "--dry-run", "--attach", f"XminuNft={ADDRESS}"]) == 0

        assert "attach XminuNft" in capsys.readouterr().out

    def test_missing_private_key(self, clean_env, caplog):
        caplog.set_level(logging.ERROR)

        assert main(["--network", "rinkeby"]) == 1

        assert any("PRIVATE_KEY_RINKEBY" in r.getMessage() for r in caplog.records)

    def test_bad_attach_value(self, clean_env):
        assert main(["--network", "mainnet", "--dry-run", "--attach", "SnackShack"]) == 1

    def test_network_required(self, clean_env):
        with pytest.raises(SystemExit):
            main([])


class TestMainRun:
    """Test full runs through the command line entry point."""

    @pytest.fixture
    def patched_run(self, clean_env, monkeypatch, six_step_topology):
        """Route main() to the six-step topology on a fake chain."""
        clean_env.setenv("PRIVATE_KEY_RINKEBY", "0x" + "11" * 32)
        clean_env.setenv("RINKEBY_RPC_URL", "http://localhost:8545")
        monkeypatch.setattr(cli, "get_topology", lambda network: six_step_topology)
        monkeypatch.setattr(cli, "make_timestamp_lookup", lambda network, rpc_url: None)

        def use_client(client):
            monkeypatch.setattr(cli.Web3NetworkClient, "from_rpc", lambda *args, **kwargs: client)
            return client

        return use_client

    def argv(self, artifacts_dir: Path, ledger_path: Path):
        return [
            "--network",
            "rinkeby",
            "--artifacts",
            str(artifacts_dir),
            "--ledger",
            str(ledger_path),
            "--interval",
            "0",
        ]

    def test_timeout_exits_nonzero(self, patched_run, make_client, artifacts_dir, ledger_path, caplog):
        """Test that a timeout on step 3 of 6 fails the process after steps 1-2."""
        caplog.set_level(logging.INFO)
        client = patched_run(make_client(timeout_on=3))

        assert main(self.argv(artifacts_dir, ledger_path)) == 1

        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("One: ") for m in messages)
        assert any(m.startswith("Two: ") for m in messages)
        assert not any(m.startswith(("Three: ", "Four: ")) for m in messages)
        assert any(m.startswith("Deployment failed: ") for m in messages)
        assert client.deployed_artifacts() == ["MockERC20"] * 3
        assert list(RunLedger(ledger_path).addresses("rinkeby")) == ["One", "Two"]

    def test_successful_run_exits_zero(self, patched_run, make_client, artifacts_dir, ledger_path):
        client = patched_run(make_client())

        assert main(self.argv(artifacts_dir, ledger_path)) == 0

        assert len(client.deployed_artifacts()) == 6
        assert RunLedger(ledger_path).metadata()["state"] == "COMPLETE"
