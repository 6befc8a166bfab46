from __future__ import annotations

from vpncheck.settings import DEFAULTS, load_runtime_settings, merge_overrides


def test_defaults_when_environment_is_empty():
    settings = load_runtime_settings({})
    assert settings == DEFAULTS
    assert settings["proxy_dns"] is not DEFAULTS["proxy_dns"]


def test_environment_values_are_parsed():
    settings = load_runtime_settings(
        {
            "VPNCHECK_TIMEOUT": "2.5",
            "VPNCHECK_PROBE_TIMEOUT": "1",
            "VPNCHECK_PROXY_DNS": " 1.1.1.1 , 9.9.9.9 ,",
            "VPNCHECK_PROXY_PORT": "8080",
            "VPNCHECK_GEO_URL": "https://geo.internal/{ip}",
        }
    )
    assert settings["timeout"] == 2.5
    assert settings["probe_timeout"] == 1.0
    assert settings["proxy_dns"] == ["1.1.1.1", "9.9.9.9"]
    assert settings["proxy_port"] == 8080
    assert settings["geo_url"] == "https://geo.internal/{ip}"
    assert settings["direct_port"] == 443


def test_unparsable_or_non_positive_values_fall_back():
    settings = load_runtime_settings(
        {
            "VPNCHECK_TIMEOUT": "fast",
            "VPNCHECK_PROBE_TIMEOUT": "-3",
            "VPNCHECK_PROXY_PORT": "eighty",
            "VPNCHECK_PROXY_DNS": " , ",
            "VPNCHECK_HOSTING_URL": "   ",
        }
    )
    assert settings["timeout"] == DEFAULTS["timeout"]
    assert settings["probe_timeout"] == DEFAULTS["probe_timeout"]
    assert settings["proxy_port"] == DEFAULTS["proxy_port"]
    assert settings["proxy_dns"] == DEFAULTS["proxy_dns"]
    assert settings["hosting_url"] == DEFAULTS["hosting_url"]


def test_merge_overrides_ignores_none():
    base = load_runtime_settings({"VPNCHECK_TIMEOUT": "7"})
    merged = merge_overrides(base, timeout=None, probe_timeout=2.0)
    assert merged["timeout"] == 7.0
    assert merged["probe_timeout"] == 2.0
    assert base["probe_timeout"] == DEFAULTS["probe_timeout"]
