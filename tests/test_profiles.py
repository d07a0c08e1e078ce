from __future__ import annotations

from typing import Any

import pytest

from omega_engine.errors import InvalidOptionsError, ProfileNotExistError
from omega_engine.profiles import (
    ProfileType,
    default_options,
    get_profile,
    is_profile_key,
    is_setting_key,
    profile_key,
    profile_names,
    validate_document,
    validate_profile,
)


def _fixed(name: str, **overrides: Any) -> dict[str, Any]:
    profile: dict[str, Any] = {
        "name": name,
        "profileType": "FixedProfile",
        "fallbackProxy": {"scheme": "socks5", "host": "10.0.0.1", "port": 1080},
    }
    profile.update(overrides)
    return profile


def test_key_conventions() -> None:
    assert profile_key("auto switch") == "+auto switch"
    assert is_profile_key("+a")
    assert not is_profile_key("+")
    assert is_setting_key("-schemaVersion")
    assert not is_setting_key("schemaVersion")


def test_get_profile_resolves_persisted_and_builtin() -> None:
    options = {"-schemaVersion": 2, "+a": _fixed("a")}

    assert get_profile(options, "a")["profileType"] == "FixedProfile"
    assert get_profile(options, "direct")["profileType"] == ProfileType.DIRECT.value

    with pytest.raises(ProfileNotExistError) as excinfo:
        get_profile(options, "missing")
    assert excinfo.value.profile_name == "missing"


def test_profile_names_includes_builtins_by_default() -> None:
    options = {"-schemaVersion": 2, "+b": _fixed("b"), "+a": _fixed("a")}

    assert profile_names(options) == ["a", "b", "direct", "system"]
    assert profile_names(options, include_builtins=False) == ["a", "b"]


def test_validate_profile_accepts_each_custom_type() -> None:
    validate_profile(_fixed("f"))
    validate_profile({"name": "p", "profileType": "PacProfile", "pacUrl": "http://wpad/wpad.dat"})
    validate_profile({"name": "v", "profileType": "VirtualProfile", "defaultProfileName": "f"})
    validate_profile(
        {
            "name": "s",
            "profileType": "SwitchProfile",
            "defaultProfileName": "direct",
            "rules": [{"condition": {"conditionType": "FalseCondition"}, "profileName": "f"}],
        }
    )
    validate_profile(
        {
            "name": "r",
            "profileType": "RuleListProfile",
            "matchProfileName": "f",
            "defaultProfileName": "direct",
        }
    )


@pytest.mark.parametrize(
    "profile",
    [
        "not a mapping",
        {"profileType": "FixedProfile"},
        _fixed("f", profileType="NopeProfile"),
        {"name": "f", "profileType": "FixedProfile"},
        _fixed("f", fallbackProxy={"scheme": "http", "host": "h", "port": 0}),
        _fixed("f", auth="user:pass"),
        {"name": "p", "profileType": "PacProfile"},
        {"name": "s", "profileType": "SwitchProfile", "defaultProfileName": "direct"},
        {
            "name": "s",
            "profileType": "SwitchProfile",
            "defaultProfileName": "direct",
            "rules": [{"profileName": "x"}],
        },
        {"name": "v", "profileType": "VirtualProfile"},
        {"name": "d", "profileType": "DirectProfile"},
        _fixed("system"),
    ],
)
def test_validate_profile_rejects_partial_or_invalid(profile: object) -> None:
    with pytest.raises(InvalidOptionsError):
        validate_profile(profile)


def test_validate_document_requires_schema_version() -> None:
    with pytest.raises(InvalidOptionsError):
        validate_document({"+a": _fixed("a")})


def test_validate_document_rejects_unknown_key_shape() -> None:
    with pytest.raises(InvalidOptionsError):
        validate_document({"-schemaVersion": 2, "stray": 1})


def test_validate_document_rejects_name_key_mismatch() -> None:
    with pytest.raises(InvalidOptionsError, match="named"):
        validate_document({"-schemaVersion": 2, "+a": _fixed("b")})


def test_validate_document_rejects_values_json_cannot_encode() -> None:
    profile = _fixed("a")
    profile["color"] = {1, 2}
    with pytest.raises(InvalidOptionsError, match="JSON"):
        validate_document({"-schemaVersion": 2, "+a": profile})
    with pytest.raises(InvalidOptionsError, match="JSON"):
        validate_document({"-schemaVersion": 2, "-note": "\udfff"})


def test_default_options_are_valid_and_fresh() -> None:
    first = default_options()
    validate_document(first)

    first["-quickSwitchProfiles"].append("proxy")
    assert default_options()["-quickSwitchProfiles"] == []
