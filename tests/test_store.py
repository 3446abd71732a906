import ipaddress

import pytest

from imagehound.errors import ConfigError
from imagehound.models import CacheConfig, GlobalPingConfig, HoundConfig, ProvidersConfig
from imagehound.store import default_config_path, load_config, save_config, unique_ips


def test_missing_file_reads_as_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config == HoundConfig()


def test_empty_file_reads_as_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    assert load_config(path) == HoundConfig()


def test_save_then_load(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    config = HoundConfig(
        providers=ProvidersConfig(globalping=GlobalPingConfig(token="secret")),
        cache=CacheConfig(
            locations={"globalping": ["Eastern Asia", "Western Europe"]},
            resolves=[ipaddress.ip_address("203.0.113.7"), ipaddress.ip_address("2001:db8::1")],
        ),
    )

    written = save_config(config, path)

    assert written == path
    assert load_config(path) == config
    assert "203.0.113.7" in path.read_text()
    assert [p.name for p in path.parent.iterdir()] == ["config.yaml"]


def test_bad_and_duplicate_resolves_are_dropped(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "cache:\n"
        "  resolves:\n"
        "    - 203.0.113.7\n"
        "    - not-an-ip\n"
        "    - 203.0.113.7\n"
        "    - 2001:db8::1\n"
    )

    config = load_config(path)

    assert [str(ip) for ip in config.cache.resolves] == ["203.0.113.7", "2001:db8::1"]
    assert config.providers.globalping.token is None


@pytest.mark.parametrize("text", [
    "- just\n- a list\n",
    "cache: [1, 2]\n",
    "cache:\n  locations: [a]\n",
    "providers: {unclosed\n",
])
def test_malformed_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    with pytest.raises(ConfigError):
        load_config(path)


def test_default_path_honours_env(tmp_path, monkeypatch):
    monkeypatch.setenv("IMAGEHOUND_CONFIG", str(tmp_path / "hound.yaml"))
    assert default_config_path() == tmp_path / "hound.yaml"

    monkeypatch.delenv("IMAGEHOUND_CONFIG")
    assert default_config_path().name == ".imagehound.yaml"


def test_unique_ips_keeps_order():
    a, b = ipaddress.ip_address("192.0.2.2"), ipaddress.ip_address("192.0.2.1")
    assert unique_ips([a, b, a, b]) == [a, b]
