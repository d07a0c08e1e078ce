from __future__ import annotations

from typing import Any

import pytest

from omega_engine.errors import (
    CircularReferenceError,
    InvalidOptionsError,
    ProfileInUseError,
    ProfileNotExistError,
)
from omega_engine.options_editor import (
    OptionsEditor,
    check_document,
    check_profile_edit,
    renamed,
)
from omega_engine.options_store import OptionsStore
from omega_engine.storage.memory_area import MemoryStorageArea


def _switch(name: str, *targets: str, default: str = "direct") -> dict[str, Any]:
    return {
        "name": name,
        "profileType": "SwitchProfile",
        "defaultProfileName": default,
        "rules": [
            {"condition": {"conditionType": "HostCondition", "pattern": t}, "profileName": t}
            for t in targets
        ],
    }


def _fixed(name: str) -> dict[str, Any]:
    return {
        "name": name,
        "profileType": "FixedProfile",
        "fallbackProxy": {"scheme": "http", "host": "proxy.local", "port": 3128},
    }


def _doc(*profiles: dict[str, Any], **settings: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {"-schemaVersion": 2}
    for key, value in settings.items():
        doc["-" + key] = value
    for p in profiles:
        doc["+" + p["name"]] = p
    return doc


def _editor(document: dict[str, Any]) -> tuple[OptionsEditor, MemoryStorageArea]:
    area = MemoryStorageArea(document)
    return OptionsEditor(OptionsStore(area)), area


def test_edit_referencing_a_dependent_is_blocked() -> None:
    options = _doc(_switch("a", "b"), _switch("b"), _fixed("c"))

    with pytest.raises(CircularReferenceError) as excinfo:
        check_profile_edit(options, _switch("b", "a"))

    assert excinfo.value.target_name == "a"


def test_edit_referencing_itself_is_blocked() -> None:
    options = _doc(_switch("a"))

    with pytest.raises(CircularReferenceError):
        check_profile_edit(options, _switch("a", "a"))


def test_edit_referencing_missing_profile_is_rejected() -> None:
    with pytest.raises(ProfileNotExistError):
        check_profile_edit(_doc(_switch("a")), _switch("a", "ghost"))


def test_edit_referencing_builtins_is_allowed() -> None:
    check_profile_edit(_doc(), _switch("a", "direct", default="system"))


@pytest.mark.asyncio
async def test_save_profile_commits_new_document() -> None:
    editor, area = _editor(_doc(_fixed("c")))

    document = await editor.save_profile(_switch("a", "c"))

    assert (await area.get(None)) == document
    assert document["+a"]["rules"][0]["profileName"] == "c"


@pytest.mark.asyncio
async def test_blocked_save_writes_nothing() -> None:
    original = _doc(_switch("a", "b"), _switch("b"))
    editor, area = _editor(original)

    with pytest.raises(CircularReferenceError):
        await editor.save_profile(_switch("b", "a"))

    assert await area.get(None) == original


def test_check_document_rejects_cycles_and_dangling_references() -> None:
    with pytest.raises(CircularReferenceError):
        check_document(_doc(_switch("a", default="b"), _switch("b", default="a")))
    with pytest.raises(ProfileNotExistError) as excinfo:
        check_document(_doc(_switch("c", default="ghost")))
    assert excinfo.value.profile_name == "ghost"

    check_document(_doc(_switch("a", "b"), _fixed("b")))


@pytest.mark.asyncio
async def test_import_document_blocks_cycles_without_clearing() -> None:
    original = _doc(_fixed("a"))
    editor, area = _editor(original)

    with pytest.raises(CircularReferenceError):
        await editor.import_document(_doc(_switch("x", "y"), _switch("y", "x")))
    assert await area.get(None) == original

    replacement = _doc(_switch("x", "y"), _fixed("y"))
    assert await editor.import_document(replacement) == replacement
    assert await area.get(None) == replacement


@pytest.mark.asyncio
async def test_delete_profile_with_dependents_is_blocked() -> None:
    editor, _area = _editor(_doc(_switch("c", "b"), _switch("b", "a"), _fixed("a")))

    with pytest.raises(ProfileInUseError) as excinfo:
        await editor.delete_profile("a")

    assert excinfo.value.dependents == ("b", "c")


@pytest.mark.asyncio
async def test_delete_profile_removes_key_and_settings_references() -> None:
    editor, area = _editor(
        _doc(_fixed("a"), _fixed("b"), startupProfileName="a", quickSwitchProfiles=["a", "b"])
    )

    await editor.delete_profile("a")

    stored = await area.get(None)
    assert "+a" not in stored
    assert stored["-startupProfileName"] == ""
    assert stored["-quickSwitchProfiles"] == ["b"]


@pytest.mark.asyncio
async def test_delete_unknown_or_builtin_profile() -> None:
    editor, _area = _editor(_doc(_fixed("a")))

    with pytest.raises(ProfileNotExistError):
        await editor.delete_profile("ghost")
    with pytest.raises(ProfileNotExistError):
        await editor.delete_profile("direct")


def test_renamed_rewrites_every_reference() -> None:
    options = _doc(
        _fixed("old"),
        _switch("s", "old", default="old"),
        {
            "name": "r",
            "profileType": "RuleListProfile",
            "matchProfileName": "old",
            "defaultProfileName": "direct",
        },
        {"name": "v", "profileType": "VirtualProfile", "defaultProfileName": "old"},
        startupProfileName="old",
        quickSwitchProfiles=["old", "s"],
    )

    result = renamed(options, "old", "new")

    assert "+old" not in result
    assert result["+new"]["name"] == "new"
    assert result["+s"]["rules"][0]["profileName"] == "new"
    assert result["+s"]["defaultProfileName"] == "new"
    assert result["+r"]["matchProfileName"] == "new"
    assert result["+v"]["defaultProfileName"] == "new"
    assert result["-startupProfileName"] == "new"
    assert result["-quickSwitchProfiles"] == ["new", "s"]
    assert options["+s"]["defaultProfileName"] == "old"


@pytest.mark.asyncio
async def test_rename_profile_rejects_taken_or_builtin_names() -> None:
    editor, _area = _editor(_doc(_fixed("a"), _fixed("b")))

    with pytest.raises(InvalidOptionsError):
        await editor.rename_profile("a", "b")
    with pytest.raises(InvalidOptionsError):
        await editor.rename_profile("a", "direct")
    with pytest.raises(ProfileNotExistError):
        await editor.rename_profile("ghost", "c")


@pytest.mark.asyncio
async def test_rename_profile_persists() -> None:
    editor, area = _editor(_doc(_fixed("a"), _switch("s", "a")))

    await editor.rename_profile("a", "z")

    stored = await area.get(None)
    assert set(stored) == {"-schemaVersion", "+z", "+s"}
    assert stored["+s"]["rules"][0]["profileName"] == "z"


@pytest.mark.asyncio
async def test_dependents_reads_persisted_document() -> None:
    editor, _area = _editor(_doc(_switch("a", "b"), _fixed("b")))

    assert await editor.dependents("b") == {"a"}
