import builtins
import json
from pathlib import Path

import pytest

from mixnet_parts.config.ndf import ConfigurationError
from mixnet_parts.config.serverspec import (
    DEFAULT_ADDR,
    DEFAULT_NDF_PATH,
    ServerSpec,
    load_serverspec,
    parse_addr,
    save_serverspec,
)


def _install_yaml_import_error(monkeypatch: pytest.MonkeyPatch) -> None:
    real_import = builtins.__import__

    def fake_import(name, globals=None, locals=None, fromlist=(), level=0):  # type: ignore[no-untyped-def]
        if name == "yaml":
            raise ImportError("yaml disabled for test")
        return real_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", fake_import)


def test_defaults() -> None:
    spec = ServerSpec()
    spec.validate()
    assert spec.addr == DEFAULT_ADDR == ":8080"
    assert spec.ndf_path == DEFAULT_NDF_PATH == "ndf.json"
    assert spec.log_dir is None


@pytest.mark.parametrize(
    "addr,expected",
    [(":8080", ("", 8080)), ("127.0.0.1:0", ("127.0.0.1", 0)), ("[::1]:9000", ("::1", 9000))],
)
def test_parse_addr(addr: str, expected: tuple) -> None:
    assert parse_addr(addr) == expected


@pytest.mark.parametrize("addr", ["8080", "host:port", ":70000"])
def test_parse_addr_rejects(addr: str) -> None:
    with pytest.raises(ValueError):
        parse_addr(addr)


@pytest.mark.parametrize(
    "mutator,match",
    [
        (lambda d: d.update(addr="nope"), "address"),
        (lambda d: d.update(ndf_path=""), "ndf_path must be non-empty"),
        (lambda d: d.update(run_id=""), "run_id must be non-empty"),
        (lambda d: d.update(partition_ttl_ms=0), "partition_ttl_ms"),
        (lambda d: d.update(max_body_bytes=0), "max_body_bytes"),
    ],
)
def test_validate_errors(mutator, match: str) -> None:  # type: ignore[no-untyped-def]
    data = ServerSpec().as_dict()
    mutator(data)
    with pytest.raises(ValueError, match=match):
        ServerSpec.from_dict(data).validate()


def test_overrides_skip_none() -> None:
    spec = ServerSpec(addr=":9000").with_overrides(addr=None, ndf_path="other.json", log_dir=" ")
    assert spec.addr == ":9000"
    assert spec.ndf_path == "other.json"
    assert spec.log_dir is None


@pytest.mark.parametrize("suffix", [".json", ".yaml"])
def test_save_and_load_roundtrip(tmp_path: Path, suffix: str) -> None:
    spec = ServerSpec(addr="127.0.0.1:8081", log_dir=str(tmp_path), partition_ttl_ms=5000)
    path = tmp_path / f"server{suffix}"
    save_serverspec(path, spec)
    assert load_serverspec(path) == spec


def test_load_missing_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_serverspec(tmp_path / "missing.json")


def test_load_non_mapping_is_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "server.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_serverspec(path)


def test_yaml_requires_pyyaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "server.yaml"
    path.write_text("addr: ':8080'\n", encoding="utf-8")
    _install_yaml_import_error(monkeypatch)
    with pytest.raises(ConfigurationError, match="PyYAML is required to load"):
        load_serverspec(path)
    with pytest.raises(RuntimeError, match="PyYAML is required to write"):
        save_serverspec(tmp_path / "out.yml", ServerSpec())


@pytest.mark.parametrize(
    "name,content,match",
    [
        ("server.yaml", b"addr: [unclosed\n", "invalid server config YAML"),
        ("server.json", b"{not json", "invalid server config JSON"),
        ("server.json", b"\xff\xfe", "invalid server config JSON"),
    ],
)
def test_unparseable_config_is_configuration_error(
    tmp_path: Path, name: str, content: bytes, match: str
) -> None:
    path = tmp_path / name
    path.write_bytes(content)
    with pytest.raises(ConfigurationError, match=match):
        load_serverspec(path)


def test_unreadable_config_is_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "server.json"
    path.mkdir()
    with pytest.raises(ConfigurationError, match="cannot read server config"):
        load_serverspec(path)
