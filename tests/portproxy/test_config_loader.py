import argparse

import pytest

from portproxy.config_loader import (
    BUILTIN_DEFAULTS,
    cli_overrides,
    environment_defaults,
    load_proxy_config,
    load_yaml_overrides,
    normalise_mode,
    resolve_config,
)
from portproxy.config_models import Mode, Protocol, RedirectConfig, RelayConfig
from portproxy.exceptions import InvalidConfiguration


def _namespace(**kwargs):
    values = {
        "mode": None,
        "protos": None,
        "src_ip": None,
        "src_port": None,
        "dst_host": None,
        "dst_port": None,
        "name": None,
    }
    values.update(kwargs)
    return argparse.Namespace(**values)


def test_resolve_defaults_gives_relay_udp():
    config = resolve_config(BUILTIN_DEFAULTS)

    assert isinstance(config, RelayConfig)
    assert config.mode == "relay"
    assert config.protocols == (Protocol.UDP,)
    assert config.source_address == "0.0.0.0"
    assert config.source_port == 514
    assert config.destination_host == "127.0.0.1"
    assert config.destination_port == 1514
    assert config.instance_name == "syslog514to1514"


def test_resolve_is_deterministic():
    overrides = {"mode": "redirect", "protocols": "tcp,udp", "source_port": 6514}

    first = resolve_config(BUILTIN_DEFAULTS, overrides)
    second = resolve_config(BUILTIN_DEFAULTS, dict(overrides))

    assert first == second
    assert isinstance(first, RedirectConfig)


def test_resolve_does_not_mutate_inputs():
    defaults = dict(BUILTIN_DEFAULTS)
    overrides = {"source_port": 6514}

    resolve_config(defaults, overrides)

    assert defaults == BUILTIN_DEFAULTS
    assert overrides == {"source_port": 6514}


def test_none_overrides_are_ignored():
    config = resolve_config(BUILTIN_DEFAULTS, {"source_port": None, "mode": None})

    assert config.source_port == 514
    assert config.mode == "relay"


def test_bogus_mode_is_rejected():
    with pytest.raises(InvalidConfiguration, match="Invalid mode"):
        resolve_config(BUILTIN_DEFAULTS, {"mode": "bogus"})


@pytest.mark.parametrize(
    "alias, expected",
    [("socat", "relay"), ("nft", "redirect"), ("NFTables", "redirect"), ("Relay", "relay")],
)
def test_mode_aliases(alias, expected):
    assert resolve_config(BUILTIN_DEFAULTS, {"mode": alias}).mode == expected


def test_normalise_mode_passes_enum_through():
    assert normalise_mode(Mode.REDIRECT) is Mode.REDIRECT


@pytest.mark.parametrize("protocols", ["", " , ", []])
def test_empty_protocols_rejected(protocols):
    with pytest.raises(InvalidConfiguration, match="protocol"):
        resolve_config(BUILTIN_DEFAULTS, {"protocols": protocols})


def test_unknown_protocol_rejected():
    with pytest.raises(InvalidConfiguration, match="unknown protocol 'sctp'"):
        resolve_config(BUILTIN_DEFAULTS, {"protocols": "udp,sctp"})


def test_protocols_deduplicated_and_ordered():
    config = resolve_config(BUILTIN_DEFAULTS, {"protocols": "TCP, udp,tcp"})

    assert config.protocols == (Protocol.UDP, Protocol.TCP)


@pytest.mark.parametrize("port", [0, 65536, -1])
def test_out_of_range_ports_rejected(port):
    with pytest.raises(InvalidConfiguration, match="source_port"):
        resolve_config(BUILTIN_DEFAULTS, {"source_port": port})


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"source_port": True}, "source_port"),
        ({"destination_port": False}, "destination_port"),
    ],
)
def test_boolean_ports_rejected(overrides, field):
    with pytest.raises(InvalidConfiguration, match=field):
        resolve_config(BUILTIN_DEFAULTS, overrides)


def test_yaml_boolean_port_rejected(tmp_path):
    config_file = tmp_path / "portproxy.yaml"
    config_file.write_text("src_port: yes\n")

    with pytest.raises(InvalidConfiguration, match="source_port"):
        load_proxy_config(config_file_path=config_file)


def test_numeric_instance_name_coerced_to_string():
    config = resolve_config(BUILTIN_DEFAULTS, {"instance_name": 2024})

    assert config.instance_name == "2024"


def test_yaml_numeric_instance_name(tmp_path):
    config_file = tmp_path / "portproxy.yaml"
    config_file.write_text("name: 2024\n")

    config = load_proxy_config(config_file_path=config_file)

    assert config.instance_name == "2024"


def test_unknown_key_rejected():
    with pytest.raises(InvalidConfiguration, match="Unknown configuration keys: colour"):
        resolve_config(BUILTIN_DEFAULTS, {"colour": "blue"})


def test_environment_defaults_layer_over_builtins():
    table = environment_defaults(
        {"MODE": "nft", "PROTOS": "udp,tcp", "SRC_PORT": "5514", "DST_PORT": " ", "HOME": "/root"}
    )

    assert table["mode"] == "nft"
    assert table["protocols"] == "udp,tcp"
    assert table["source_port"] == "5514"
    assert table["destination_port"] == BUILTIN_DEFAULTS["destination_port"]
    assert "HOME" not in table


def test_cli_overrides_skip_unset_flags():
    assert cli_overrides(_namespace(protos="tcp", dst_port=2514)) == {
        "protocols": "tcp",
        "destination_port": 2514,
    }
    assert cli_overrides(None) == {}


def test_yaml_overrides_accept_field_and_short_names(tmp_path):
    config_file = tmp_path / "portproxy.yaml"
    config_file.write_text("mode: redirect\nsrc_port: 10514\nprotocols: [udp, tcp]\n")

    assert load_yaml_overrides(config_file) == {
        "mode": "redirect",
        "source_port": 10514,
        "protocols": ["udp", "tcp"],
    }


def test_yaml_missing_file(tmp_path):
    with pytest.raises(InvalidConfiguration, match="not found"):
        load_yaml_overrides(tmp_path / "absent.yaml")


def test_yaml_not_a_mapping(tmp_path):
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- udp\n- tcp\n")

    with pytest.raises(InvalidConfiguration, match="valid YAML dictionary"):
        load_yaml_overrides(config_file)


def test_yaml_unknown_keys(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text("source_port: 514\nfoo: bar\n")

    with pytest.raises(InvalidConfiguration, match="foo"):
        load_yaml_overrides(config_file)


def test_yaml_empty_file(tmp_path, mock_logger):
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")

    assert load_yaml_overrides(config_file, current_logger=mock_logger) == {}


def test_precedence_env_then_yaml_then_cli(tmp_path):
    config_file = tmp_path / "portproxy.yaml"
    config_file.write_text("source_port: 2000\ndestination_port: 3000\n")
    environ = {"SRC_PORT": "1000", "DST_PORT": "1001", "DST_HOST": "10.0.0.5", "NAME": "envname"}

    config = load_proxy_config(
        cli_args=_namespace(dst_port=4000),
        environ=environ,
        config_file_path=config_file,
    )

    assert config.destination_host == "10.0.0.5"
    assert config.instance_name == "envname"
    assert config.source_port == 2000
    assert config.destination_port == 4000


def test_load_without_environment_uses_builtins(monkeypatch):
    monkeypatch.setenv("SRC_PORT", "9999")

    config = load_proxy_config()

    assert config.source_port == 514
