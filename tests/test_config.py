import pytest

from duco_miner.cli import config_from_args, main, parse_args
from duco_miner.config import MinerConfig, env_defaults, parse_server
from duco_miner.job import Algorithm
from duco_miner.mining.errors import ConfigError, UnsupportedAlgorithm

ENV_VARS = ("DUCOSERVER", "MINERNAME", "HOSTNAME", "DIFF", "ALGO", "DUCO_THREADS", "DUCO_SKIP")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = MinerConfig.build(miner_name="alice")
    assert cfg.server == "149.91.88.18:6000"
    assert cfg.rig_id == "SETID"
    assert cfg.difficulty == "MEDIUM"
    assert cfg.algorithm is Algorithm.DUCOS1A
    assert cfg.threads == 1
    assert cfg.skip_lower_range is False


def test_missing_name_is_fatal():
    with pytest.raises(ConfigError):
        MinerConfig.build(miner_name=None)
    with pytest.raises(ConfigError):
        MinerConfig.build(miner_name="   ")


@pytest.mark.parametrize("threads", [0, -4])
def test_non_positive_threads_become_one(threads):
    assert MinerConfig.build(miner_name="a", threads=threads).threads == 1


def test_env_supplies_every_default(monkeypatch):
    monkeypatch.setenv("MINERNAME", "bob")
    monkeypatch.setenv("DUCOSERVER", "pool.example:2811")
    monkeypatch.setenv("HOSTNAME", "box")
    monkeypatch.setenv("DIFF", "LOW")
    monkeypatch.setenv("ALGO", "xxhash")
    monkeypatch.setenv("DUCO_THREADS", "4")
    monkeypatch.setenv("DUCO_SKIP", "yes")
    cfg = config_from_args(parse_args([]))
    assert (cfg.miner_name, cfg.server_host, cfg.server_port) == ("bob", "pool.example", 2811)
    assert cfg.rig_id == "box" and cfg.difficulty == "LOW"
    assert cfg.algorithm is Algorithm.XXHASH
    assert cfg.threads == 4 and cfg.skip_lower_range


def test_env_defaults_when_unset(monkeypatch):
    monkeypatch.setenv("DUCO_THREADS", "many")
    env = env_defaults()
    assert env["name"] is None and env["server"] is None
    assert env["threads"] == 1
    assert env["skip"] is False


def test_config_is_immutable():
    cfg = MinerConfig.build(miner_name="alice")
    with pytest.raises(Exception):
        cfg.threads = 8  # type: ignore[misc]


def test_separator_in_identity_rejected():
    with pytest.raises(ConfigError):
        MinerConfig.build(miner_name="a,b")


@pytest.mark.parametrize(
    "address, expected",
    [("1.2.3.4:6000", ("1.2.3.4", 6000)), ("[::1]:2811", ("::1", 2811))],
)
def test_parse_server(address, expected):
    assert parse_server(address) == expected


@pytest.mark.parametrize("address", ["nohost", ":6000", "h:0", "h:70000", "h:port"])
def test_parse_server_rejects(address):
    with pytest.raises(ConfigError):
        parse_server(address)


def test_unsupported_algorithm():
    with pytest.raises(UnsupportedAlgorithm):
        MinerConfig.build(miner_name="a", algorithm="ethash")


def test_flags_override_env(monkeypatch):
    monkeypatch.setenv("MINERNAME", "env-name")
    monkeypatch.setenv("ALGO", "xxhash")
    args = parse_args(["--name", "flag-name", "--threads", "3", "--skip", "--diff", "NET"])
    cfg = config_from_args(args)
    assert cfg.miner_name == "flag-name"
    assert cfg.algorithm is Algorithm.XXHASH
    assert cfg.threads == 3 and cfg.skip_lower_range and cfg.difficulty == "NET"


def test_main_exits_without_name(capsys):
    with pytest.raises(SystemExit) as ei:
        main([])
    assert ei.value.code == 1
    assert "miner name is required" in capsys.readouterr().err
