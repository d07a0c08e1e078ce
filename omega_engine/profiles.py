"""
Profile model and options document conventions.

The options document is a flat JSON mapping. Two key shapes are persisted:

- ``+<name>``: a profile definition (the value is the profile object)
- ``-<setting>``: a scalar global setting (e.g. ``-schemaVersion``)

Profiles reference each other only by name. Resolution happens lazily through
`get_profile`, which also knows the two builtin profiles (``direct`` and
``system``) that are never persisted.

Notes
-----
Validation here is strict and is meant for the write path. The dependency
analyzer does not use it: it must tolerate malformed documents.
"""

from __future__ import annotations

import copy
import json
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Final, Iterator, Mapping

from .errors import InvalidOptionsError, ProfileNotExistError

PROFILE_KEY_PREFIX: Final[str] = "+"
SETTING_KEY_PREFIX: Final[str] = "-"
SCHEMA_VERSION_KEY: Final[str] = "-schemaVersion"
SCHEMA_VERSION: Final[int] = 2

STARTUP_PROFILE_KEY: Final[str] = "-startupProfileName"
QUICK_SWITCH_PROFILES_KEY: Final[str] = "-quickSwitchProfiles"


class ProfileType(str, Enum):
    """Tag values stored in a profile's ``profileType`` field."""

    DIRECT = "DirectProfile"
    SYSTEM = "SystemProfile"
    FIXED = "FixedProfile"
    PAC = "PacProfile"
    RULE_LIST = "RuleListProfile"
    AUTO_PROXY_RULE_LIST = "AutoProxyRuleListProfile"
    SWITCH = "SwitchProfile"
    VIRTUAL = "VirtualProfile"


BUILTIN_TYPES: Final[frozenset[ProfileType]] = frozenset({ProfileType.DIRECT, ProfileType.SYSTEM})
RULE_LIST_TYPES: Final[frozenset[ProfileType]] = frozenset(
    {ProfileType.RULE_LIST, ProfileType.AUTO_PROXY_RULE_LIST}
)

BUILTIN_PROFILES: Final[Mapping[str, Mapping[str, Any]]] = MappingProxyType(
    {
        "direct": MappingProxyType(
            {"name": "direct", "profileType": ProfileType.DIRECT.value, "color": "#aaaaaa"}
        ),
        "system": MappingProxyType(
            {"name": "system", "profileType": ProfileType.SYSTEM.value, "color": "#000000"}
        ),
    }
)

Options = Mapping[str, Any]


def profile_key(name: str) -> str:
    """Return the document key under which profile `name` is stored."""
    return PROFILE_KEY_PREFIX + name


def setting_key(name: str) -> str:
    """Return the document key for global setting `name`."""
    return SETTING_KEY_PREFIX + name


def is_profile_key(key: object) -> bool:
    return isinstance(key, str) and len(key) > 1 and key.startswith(PROFILE_KEY_PREFIX)


def is_setting_key(key: object) -> bool:
    return isinstance(key, str) and len(key) > 1 and key.startswith(SETTING_KEY_PREFIX)


def profile_type_of(profile: object) -> ProfileType | None:
    """
    Return the ProfileType of a profile object, or None if it is not recognised.

    Never raises; malformed values simply have no type.
    """
    if not isinstance(profile, Mapping):
        return None
    raw = profile.get("profileType")
    try:
        return ProfileType(raw)
    except ValueError:
        return None


def iter_profiles(options: Options) -> Iterator[tuple[str, Mapping[str, Any]]]:
    """
    Yield ``(key, profile)`` for every profile entry in a document.

    Entries whose value is not a mapping are skipped.
    """
    for key, value in options.items():
        if is_profile_key(key) and isinstance(value, Mapping):
            yield key, value


def get_profile(options: Options, name: str) -> Mapping[str, Any]:
    """
    Resolve a profile by name.

    Parameters
    ----------
    options:
        Options document.
    name:
        Profile name (not the key).

    Returns
    -------
    Mapping[str, Any]
        The persisted profile, or the builtin profile of that name.

    Raises
    ------
    ProfileNotExistError
        If the name resolves to neither.
    """
    value = options.get(profile_key(name))
    if isinstance(value, Mapping):
        return value
    builtin = BUILTIN_PROFILES.get(name)
    if builtin is not None:
        return builtin
    raise ProfileNotExistError(name)


def profile_exists(options: Options, name: str) -> bool:
    try:
        get_profile(options, name)
    except ProfileNotExistError:
        return False
    return True


def profile_names(options: Options, *, include_builtins: bool = True) -> list[str]:
    """Return persisted profile names (and optionally builtins), sorted."""
    names = {key[len(PROFILE_KEY_PREFIX):] for key, _ in iter_profiles(options)}
    if include_builtins:
        names.update(BUILTIN_PROFILES)
    return sorted(names)


def _require_str(profile: Mapping[str, Any], field: str) -> str:
    value = profile.get(field)
    if not isinstance(value, str) or not value:
        raise InvalidOptionsError(
            f"Profile {profile.get('name')!r} requires a non-empty string field {field!r}."
        )
    return value


def _validate_proxy(owner: str, field: str, proxy: object) -> None:
    if not isinstance(proxy, Mapping):
        raise InvalidOptionsError(f"Profile {owner!r}: {field} must be an object.")
    scheme = proxy.get("scheme")
    host = proxy.get("host")
    port = proxy.get("port")
    if not isinstance(scheme, str) or not scheme:
        raise InvalidOptionsError(f"Profile {owner!r}: {field}.scheme is required.")
    if not isinstance(host, str) or not host:
        raise InvalidOptionsError(f"Profile {owner!r}: {field}.host is required.")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise InvalidOptionsError(f"Profile {owner!r}: {field}.port must be in 1..65535.")


def _validate_rules(owner: str, rules: object) -> None:
    if not isinstance(rules, list):
        raise InvalidOptionsError(f"Profile {owner!r}: rules must be a list.")
    for index, rule in enumerate(rules):
        if not isinstance(rule, Mapping):
            raise InvalidOptionsError(f"Profile {owner!r}: rule #{index} must be an object.")
        if not isinstance(rule.get("condition"), Mapping):
            raise InvalidOptionsError(f"Profile {owner!r}: rule #{index} has no condition.")
        target = rule.get("profileName")
        if not isinstance(target, str) or not target:
            raise InvalidOptionsError(f"Profile {owner!r}: rule #{index} has no profileName.")


def _validate_fixed(profile: Mapping[str, Any]) -> None:
    name = profile["name"]
    fields = ("fallbackProxy", "proxyForHttp", "proxyForHttps", "proxyForFtp")
    present = [f for f in fields if profile.get(f) is not None]
    if not present:
        raise InvalidOptionsError(f"Profile {name!r} defines no proxy server.")
    for field in present:
        _validate_proxy(name, field, profile[field])
    auth = profile.get("auth")
    if auth is not None and not isinstance(auth, Mapping):
        raise InvalidOptionsError(f"Profile {name!r}: auth must be an object.")


def _validate_pac(profile: Mapping[str, Any]) -> None:
    if not isinstance(profile.get("pacUrl"), str) and not isinstance(profile.get("pacScript"), str):
        raise InvalidOptionsError(f"Profile {profile['name']!r} needs pacUrl or pacScript.")


def _validate_switch(profile: Mapping[str, Any]) -> None:
    _validate_rules(profile["name"], profile.get("rules"))
    _require_str(profile, "defaultProfileName")


def _validate_rule_list(profile: Mapping[str, Any]) -> None:
    _require_str(profile, "matchProfileName")
    _require_str(profile, "defaultProfileName")
    if profile.get("rules") is not None:
        _validate_rules(profile["name"], profile["rules"])


def _validate_virtual(profile: Mapping[str, Any]) -> None:
    _require_str(profile, "defaultProfileName")


_VALIDATORS: Final[dict[ProfileType, Callable[[Mapping[str, Any]], None]]] = {
    ProfileType.FIXED: _validate_fixed,
    ProfileType.PAC: _validate_pac,
    ProfileType.SWITCH: _validate_switch,
    ProfileType.RULE_LIST: _validate_rule_list,
    ProfileType.AUTO_PROXY_RULE_LIST: _validate_rule_list,
    ProfileType.VIRTUAL: _validate_virtual,
}


def validate_profile(profile: object) -> None:
    """
    Validate that a custom profile carries every field its type requires.

    Parameters
    ----------
    profile:
        Candidate profile object.

    Raises
    ------
    InvalidOptionsError
        If the profile is malformed, has an unknown type, is a builtin type, or
        uses a builtin name.
    """
    if not isinstance(profile, Mapping):
        raise InvalidOptionsError("Profile must be an object.")
    name = _require_str(profile, "name")
    if name in BUILTIN_PROFILES:
        raise InvalidOptionsError(f"Profile name {name!r} is reserved for a builtin profile.")
    profile_type = profile_type_of(profile)
    if profile_type is None:
        raise InvalidOptionsError(
            f"Profile {name!r} has unknown profileType {profile.get('profileType')!r}."
        )
    if profile_type in BUILTIN_TYPES:
        raise InvalidOptionsError(f"Profile {name!r}: builtin profile types are not persisted.")
    _VALIDATORS[profile_type](profile)


def validate_document(options: object) -> None:
    """
    Validate a whole options document before it is persisted.

    Invariants
    ----------
    - Every key is ``+<name>`` or ``-<setting>``.
    - ``-schemaVersion`` is present and is an integer.
    - Every profile is valid and its ``name`` matches its key.
    - The whole document encodes as UTF-8 JSON.

    Raises
    ------
    InvalidOptionsError
        On the first violation found.
    """
    if not isinstance(options, Mapping):
        raise InvalidOptionsError("Options document must be a mapping.")
    version = options.get(SCHEMA_VERSION_KEY)
    if isinstance(version, bool) or not isinstance(version, int):
        raise InvalidOptionsError(f"{SCHEMA_VERSION_KEY} must be an integer.")
    for key, value in options.items():
        if is_setting_key(key):
            continue
        if not is_profile_key(key):
            raise InvalidOptionsError(f"Unsupported options key: {key!r}")
        validate_profile(value)
        expected = key[len(PROFILE_KEY_PREFIX):]
        if value["name"] != expected:
            raise InvalidOptionsError(
                f"Profile stored under {key!r} is named {value['name']!r}."
            )
    try:
        json.dumps(dict(options), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError, UnicodeError) as exc:
        raise InvalidOptionsError(f"Options document is not JSON serializable: {exc}") from exc


_DEFAULT_OPTIONS: Final[Mapping[str, Any]] = MappingProxyType(
    {
        SCHEMA_VERSION_KEY: SCHEMA_VERSION,
        "-confirmDeletion": True,
        "-refreshOnProfileChange": True,
        STARTUP_PROFILE_KEY: "",
        "-enableQuickSwitch": False,
        QUICK_SWITCH_PROFILES_KEY: [],
        "-revertProxyChanges": True,
        "-downloadInterval": 1440,
        "-showInspectMenu": True,
        "-addConditionsToBottom": False,
        "-showExternalProfile": True,
        "+proxy": {
            "name": "proxy",
            "profileType": ProfileType.FIXED.value,
            "color": "#99ccee",
            "fallbackProxy": {"scheme": "http", "host": "127.0.0.1", "port": 8080},
            "bypassList": [
                {"conditionType": "BypassCondition", "pattern": "127.0.0.1"},
                {"conditionType": "BypassCondition", "pattern": "[::1]"},
                {"conditionType": "BypassCondition", "pattern": "localhost"},
            ],
        },
        "+auto switch": {
            "name": "auto switch",
            "profileType": ProfileType.SWITCH.value,
            "color": "#99dd99",
            "defaultProfileName": "direct",
            "rules": [
                {
                    "condition": {
                        "conditionType": "HostWildcardCondition",
                        "pattern": "internal.example.com",
                    },
                    "profileName": "direct",
                },
                {
                    "condition": {
                        "conditionType": "HostWildcardCondition",
                        "pattern": "*.example.com",
                    },
                    "profileName": "proxy",
                },
            ],
        },
    }
)


def default_options() -> dict[str, Any]:
    """Return a fresh copy of the document written on first run."""
    return copy.deepcopy(dict(_DEFAULT_OPTIONS))
