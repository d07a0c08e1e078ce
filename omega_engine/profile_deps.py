"""
Profile dependency analysis.

This module answers one question: if profile T changes (or disappears), which
other profiles are affected? A profile depends on T when it names T as a rule
target, match target or default target, directly or through other profiles.

All functions are pure. They accept any options mapping, never mutate it, and
never raise on malformed profiles: a reference field that is missing or has the
wrong shape simply contributes no edge.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .profiles import (
    BUILTIN_TYPES,
    RULE_LIST_TYPES,
    Options,
    ProfileType,
    iter_profiles,
    profile_names,
    profile_type_of,
)


def get_profiles_from_options(options: Options) -> list[Mapping[str, Any]]:
    """
    Return all custom profiles of a document as a flat list.

    Builtin profile types (direct, system) are excluded: they are sinks and can
    neither depend on nor be edited relative to anything.
    """
    result: list[Mapping[str, Any]] = []
    for _key, profile in iter_profiles(options):
        if profile_type_of(profile) in BUILTIN_TYPES:
            continue
        result.append(profile)
    return result


def _rule_targets(profile: Mapping[str, Any]) -> Iterable[object]:
    rules = profile.get("rules")
    if not isinstance(rules, list):
        return ()
    return (rule.get("profileName") for rule in rules if isinstance(rule, Mapping))


def profile_references(profile: Mapping[str, Any]) -> set[str]:
    """
    Return every profile name `profile` directly references.

    Parameters
    ----------
    profile:
        A profile object, possibly malformed.

    Returns
    -------
    set[str]
        Outgoing edge targets. Empty for Fixed/PAC/builtin/unknown profiles.
    """
    profile_type = profile_type_of(profile)
    candidates: list[object] = []
    if profile_type is ProfileType.SWITCH:
        candidates.extend(_rule_targets(profile))
        candidates.append(profile.get("defaultProfileName"))
    elif profile_type in RULE_LIST_TYPES:
        candidates.extend(_rule_targets(profile))
        candidates.append(profile.get("matchProfileName"))
        candidates.append(profile.get("defaultProfileName"))
    elif profile_type is ProfileType.VIRTUAL:
        candidates.append(profile.get("defaultProfileName"))
    return {c for c in candidates if isinstance(c, str) and c}


def profile_uses(profile: Mapping[str, Any], target_name: str) -> bool:
    """Return True if `profile` directly references `target_name`."""
    return target_name in profile_references(profile)


def compute_dependents(target_name: str, options: Options) -> set[str]:
    """
    Return the names of all profiles that depend on `target_name`.

    The closure is computed by repeated scans: every profile that uses any name
    in the frontier joins the result and the frontier, until a full scan adds
    nothing. A single pass is not enough for chains of three or more profiles
    listed in unfavourable order.

    Parameters
    ----------
    target_name:
        Profile being edited or deleted. It need not exist in the document.
    options:
        Options document. Not mutated.

    Returns
    -------
    set[str]
        Direct and transitive dependents. Never contains `target_name` itself,
        even when a profile references its own name.

    Notes
    -----
    Worst case is O(P * E * I) for P profiles with E edges each over I scans
    (I <= P). That is fine for documents with hundreds of profiles.
    """
    profiles = get_profiles_from_options(options)
    dependents: set[str] = set()
    frontier: set[str] = {target_name}

    changed = True
    while changed:
        changed = False
        for profile in profiles:
            name = profile.get("name")
            if not isinstance(name, str) or name in dependents or name == target_name:
                continue
            if profile_references(profile) & frontier:
                dependents.add(name)
                frontier.add(name)
                changed = True
    return dependents


def selectable_profile_names(editing_name: str, options: Options) -> list[str]:
    """
    Return the names that profile `editing_name` may reference without a cycle.

    Builtins are always selectable. The editing profile itself and every one of
    its dependents are excluded.
    """
    blocked = compute_dependents(editing_name, options)
    blocked.add(editing_name)
    return [name for name in profile_names(options) if name not in blocked]
