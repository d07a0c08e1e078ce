"""
Profile editing on top of the options store.

The editor owns the consistency policy for edits. An edit that would make a
profile reference itself or one of its dependents is blocked with
CircularReferenceError; it is never saved with a warning. Deleting a profile
that others still reference is blocked with ProfileInUseError.

Every operation reads the current document, derives a new one, and commits it
with a single `OptionsStore.replace`.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping

from .errors import (
    CircularReferenceError,
    InvalidOptionsError,
    ProfileInUseError,
    ProfileNotExistError,
)
from .options_store import OptionsStore
from .profile_deps import compute_dependents, profile_references
from .profiles import (
    BUILTIN_PROFILES,
    QUICK_SWITCH_PROFILES_KEY,
    STARTUP_PROFILE_KEY,
    Options,
    iter_profiles,
    profile_exists,
    profile_key,
    validate_document,
    validate_profile,
)

logger = logging.getLogger(__name__)

_REFERENCE_FIELDS = ("defaultProfileName", "matchProfileName")


def check_profile_edit(options: Options, profile: Mapping[str, Any]) -> None:
    """
    Check that saving `profile` into `options` keeps the document consistent.

    Parameters
    ----------
    options:
        Current options document.
    profile:
        New or updated profile.

    Raises
    ------
    InvalidOptionsError
        If the profile itself is malformed.
    CircularReferenceError
        If the profile references itself or one of its dependents.
    ProfileNotExistError
        If the profile references a name that does not resolve.
    """
    validate_profile(profile)
    name = profile["name"]
    dependents = compute_dependents(name, options)
    for ref in sorted(profile_references(profile)):
        if ref == name or ref in dependents:
            raise CircularReferenceError(name, ref)
        if not profile_exists(options, ref):
            raise ProfileNotExistError(ref)


def check_document(options: Options) -> None:
    """
    Check a whole document against the edit policy.

    Every profile is checked as if it were being saved into `options`, so an
    imported document cannot carry a cycle or a reference to a missing profile.

    Raises
    ------
    InvalidOptionsError, CircularReferenceError, ProfileNotExistError
        See `validate_document` and `check_profile_edit`.
    """
    validate_document(options)
    for _key, profile in iter_profiles(options):
        check_profile_edit(options, profile)


def with_profile(options: Options, profile: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of `options` with `profile` inserted or replaced."""
    document = copy.deepcopy(dict(options))
    document[profile_key(profile["name"])] = copy.deepcopy(dict(profile))
    return document


def without_profile(options: Options, name: str) -> dict[str, Any]:
    """Return a copy of `options` without profile `name` or settings naming it."""
    document = copy.deepcopy(dict(options))
    document.pop(profile_key(name), None)
    if document.get(STARTUP_PROFILE_KEY) == name:
        document[STARTUP_PROFILE_KEY] = ""
    quick = document.get(QUICK_SWITCH_PROFILES_KEY)
    if isinstance(quick, list):
        document[QUICK_SWITCH_PROFILES_KEY] = [n for n in quick if n != name]
    return document


def _replace_references(profile: dict[str, Any], old: str, new: str) -> None:
    for field in _REFERENCE_FIELDS:
        if profile.get(field) == old:
            profile[field] = new
    rules = profile.get("rules")
    if isinstance(rules, list):
        for rule in rules:
            if isinstance(rule, dict) and rule.get("profileName") == old:
                rule["profileName"] = new


def renamed(options: Options, old: str, new: str) -> dict[str, Any]:
    """
    Return a copy of `options` with profile `old` renamed to `new`.

    Every reference to `old`, in other profiles and in global settings, is
    rewritten. The caller is responsible for checking that `old` exists.
    """
    document = copy.deepcopy(dict(options))
    profile = document.pop(profile_key(old))
    profile["name"] = new
    document[profile_key(new)] = profile

    for _key, candidate in iter_profiles(document):
        if isinstance(candidate, dict):
            _replace_references(candidate, old, new)

    if document.get(STARTUP_PROFILE_KEY) == old:
        document[STARTUP_PROFILE_KEY] = new
    quick = document.get(QUICK_SWITCH_PROFILES_KEY)
    if isinstance(quick, list):
        document[QUICK_SWITCH_PROFILES_KEY] = [new if n == old else n for n in quick]
    return document


class OptionsEditor:
    """
    Controller applying profile edits through an OptionsStore.

    Parameters
    ----------
    store:
        Store holding the document.

    Notes
    -----
    Methods return the committed document so callers can keep using it locally
    without waiting for the watch notification.
    """

    def __init__(self, store: OptionsStore) -> None:
        self._store = store

    async def dependents(self, name: str) -> set[str]:
        """Return the dependents of `name` in the persisted document."""
        return compute_dependents(name, await self._store.read())

    async def save_profile(self, profile: Mapping[str, Any]) -> dict[str, Any]:
        """
        Create or update a profile.

        Raises
        ------
        InvalidOptionsError, CircularReferenceError, ProfileNotExistError
            See `check_profile_edit`. Nothing is written in these cases.
        """
        options = await self._store.read()
        check_profile_edit(options, profile)
        document = with_profile(options, profile)
        await self._store.replace(document)
        logger.info("Saved profile %r", profile["name"])
        return document

    async def delete_profile(self, name: str) -> dict[str, Any]:
        """
        Delete a profile that nothing depends on.

        Raises
        ------
        ProfileNotExistError
            If `name` is not a persisted profile (builtins included).
        ProfileInUseError
            If other profiles reference `name`, directly or transitively.
        """
        options = await self._store.read()
        if profile_key(name) not in options:
            raise ProfileNotExistError(name)
        dependents = compute_dependents(name, options)
        if dependents:
            raise ProfileInUseError(name, dependents)
        document = without_profile(options, name)
        await self._store.replace(document)
        logger.info("Deleted profile %r", name)
        return document

    async def rename_profile(self, old: str, new: str) -> dict[str, Any]:
        """
        Rename a profile and every reference to it.

        Raises
        ------
        ProfileNotExistError
            If `old` is not a persisted profile.
        InvalidOptionsError
            If `new` is empty, a builtin name, or already taken.
        """
        options = await self._store.read()
        if profile_key(old) not in options:
            raise ProfileNotExistError(old)
        if new == old:
            return options
        if not new or new in BUILTIN_PROFILES or profile_key(new) in options:
            raise InvalidOptionsError(f"Cannot rename {old!r} to {new!r}: name is unavailable.")
        document = renamed(options, old, new)
        await self._store.replace(document)
        logger.info("Renamed profile %r to %r", old, new)
        return document

    async def import_document(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """
        Replace the persisted document with a consistent `document`.

        Raises
        ------
        InvalidOptionsError, CircularReferenceError, ProfileNotExistError
            See `check_document`. Nothing is cleared in these cases.
        """
        check_document(document)
        committed = copy.deepcopy(dict(document))
        await self._store.replace(committed)
        logger.info("Imported options document (%d keys)", len(committed))
        return committed
