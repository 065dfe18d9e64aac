from pathlib import Path

import pytest

from pysettle.errors import ReadError, UnknownStoreError, WriteError
from pysettle.scope import SYSTEM, Scope
from pysettle.stores import (
    IniFileStore,
    JsonFileStore,
    MemoryStore,
    YamlFileStore,
    create_store,
    file_store as file_store_mod,
    store_kinds,
)
from pysettle.values import NOT_SET


def test_store_kinds():
    assert {"defaults", "file", "memory"} <= set(store_kinds())
    with pytest.raises(UnknownStoreError):
        create_store("registry")


def test_memory_store_roundtrip(alice):
    store = MemoryStore()
    user = Scope.for_identity(alice)
    assert store.read(user, "d", "k") is NOT_SET
    store.write(user, "d", "k", False)
    assert store.read(user, "d", "k") is False
    assert store.read(SYSTEM, "d", "k") is NOT_SET
    store.write(user, "d", "k", NOT_SET)
    store.write(user, "d", "k", NOT_SET)
    assert store.snapshot() == {}


@pytest.mark.parametrize("suffix, cls", [(".ini", IniFileStore), (".yaml", YamlFileStore), (".json", JsonFileStore)])
def test_create_file_store_by_suffix(tmp_path: Path, suffix, cls):
    store = create_store("file", system_path=tmp_path / f"system{suffix}")
    assert type(store) is cls
    assert store.identity_path == Path(".config") / "pysettle" / f"preferences{suffix}"


def test_create_file_store_unknown_suffix(tmp_path: Path):
    with pytest.raises(UnknownStoreError):
        create_store("file", system_path=tmp_path / "system.plist")


@pytest.mark.parametrize("cls", [IniFileStore, YamlFileStore, JsonFileStore])
def test_file_store_values_and_removal(tmp_path: Path, cls, alice):
    store = cls(tmp_path / f"system{cls.suffixes[0]}", hand_over=False)
    domain = "/Library/Preferences/com.apple.SoftwareUpdate"
    assert store.read(SYSTEM, domain, "AutomaticCheckEnabled") is NOT_SET
    store.write(SYSTEM, domain, "AutomaticCheckEnabled", True)
    store.write(SYSTEM, domain, "Mode", "none")
    assert store.read(SYSTEM, domain, "AutomaticCheckEnabled") is True
    assert store.read(SYSTEM, domain, "Mode") == "none"

    store.write(SYSTEM, domain, "AutomaticCheckEnabled", NOT_SET)
    assert store.read(SYSTEM, domain, "AutomaticCheckEnabled") is NOT_SET
    store.write(SYSTEM, domain, "AutomaticCheckEnabled", NOT_SET)
    assert store.read(SYSTEM, domain, "Mode") == "none"


@pytest.mark.parametrize("cls", [IniFileStore, YamlFileStore, JsonFileStore])
def test_file_store_scope_isolation(tmp_path: Path, cls, alice, bob):
    store = cls(tmp_path / f"system{cls.suffixes[0]}", hand_over=False)
    store.write(Scope.for_identity(alice), "com.apple.Siri", "StatusMenuVisible", False)
    assert store.read(Scope.for_identity(alice), "com.apple.Siri", "StatusMenuVisible") is False
    assert store.read(SYSTEM, "com.apple.Siri", "StatusMenuVisible") is NOT_SET
    assert store.read(Scope.for_identity(bob), "com.apple.Siri", "StatusMenuVisible") is NOT_SET
    assert store.path_for(Scope.for_identity(alice)).is_relative_to(alice.home)
    assert not store.path_for(Scope.for_identity(bob)).exists()


def test_ini_store_preserves_key_case_and_spaces(tmp_path: Path, alice):
    store = IniFileStore(tmp_path / "system.ini", hand_over=False)
    user = Scope.for_identity(alice)
    store.write(user, "com.apple.assistant.support", "Assistant Enabled", False)
    text = store.path_for(user).read_text(encoding="utf-8")
    assert "[com.apple.assistant.support]" in text
    assert "Assistant Enabled = false" in text


def test_unchanged_write_leaves_file_alone(tmp_path: Path):
    store = JsonFileStore(tmp_path / "system.json", hand_over=False)
    store.write(SYSTEM, "d", "k", True)
    before = store.system_path.stat().st_mtime_ns
    store.write(SYSTEM, "d", "k", True)
    assert store.system_path.stat().st_mtime_ns == before
    assert not (tmp_path / "system.json.tmp").exists()


def test_identity_files_handed_over(tmp_path: Path, monkeypatch, alice):
    calls = []
    written = []
    monkeypatch.setattr(file_store_mod.os, "chown", lambda p, uid, gid: calls.append((Path(p), uid, gid)))
    monkeypatch.setattr(file_store_mod.os, "fchown", lambda fd, uid, gid: written.append((uid, gid)))
    store = YamlFileStore(tmp_path / "system.yaml", hand_over=True)
    store.write(Scope.for_identity(alice), "d", "k", True)
    owned = {p for p, _, _ in calls}
    assert alice.home / ".config" in owned
    assert alice.home / ".config" / "pysettle" in owned
    assert all(uid == 501 and gid == 20 for _, uid, gid in calls)
    assert written == [(501, 20)]
    # the home directory itself is never touched
    assert alice.home not in owned

    calls.clear()
    written.clear()
    store.write(SYSTEM, "d", "k", True)
    assert calls == [] and written == []


def test_malformed_file_errors(tmp_path: Path):
    path = tmp_path / "system.yaml"
    path.write_text("[invalid", encoding="utf-8")
    store = YamlFileStore(path, hand_over=False)
    with pytest.raises(ReadError):
        store.read(SYSTEM, "d", "k")
    with pytest.raises(WriteError):
        store.write(SYSTEM, "d", "k", True)

    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ReadError):
        JsonFileStore(listing, hand_over=False).read(SYSTEM, "d", "k")


def test_foreign_values_are_read_as_text(tmp_path: Path):
    path = tmp_path / "system.yaml"
    path.write_text("d:\n  count: 3\n  flag: true\n", encoding="utf-8")
    store = YamlFileStore(path, hand_over=False)
    assert store.read(SYSTEM, "d", "count") == "3"
    assert store.read(SYSTEM, "d", "flag") is True


def test_identity_path_must_be_relative(tmp_path: Path):
    with pytest.raises(ValueError):
        IniFileStore(tmp_path / "system.ini", identity_path=tmp_path / "abs.ini")


def test_planted_temp_symlink_is_not_written_through(tmp_path: Path, alice):
    outside = tmp_path / "sudoers"
    outside.write_text("root ALL=(ALL) ALL\n", encoding="utf-8")
    store = IniFileStore(tmp_path / "system.ini", hand_over=False)
    user = Scope.for_identity(alice)
    target = store.path_for(user)
    target.parent.mkdir(parents=True)
    target.with_suffix(".ini.tmp").symlink_to(outside)

    store.write(user, "d", "k", True)
    assert outside.read_text(encoding="utf-8") == "root ALL=(ALL) ALL\n"
    assert store.read(user, "d", "k") is True
    assert not target.with_suffix(".ini.tmp").exists()


@pytest.mark.parametrize("link", [".config", ".config/pysettle/preferences.ini"])
def test_symlinks_below_home_are_refused(tmp_path: Path, alice, link):
    elsewhere = tmp_path / "system_etc"
    elsewhere.mkdir()
    store = IniFileStore(tmp_path / "system.ini", hand_over=False)
    user = Scope.for_identity(alice)
    planted = alice.home / link
    planted.parent.mkdir(parents=True, exist_ok=True)
    planted.symlink_to(elsewhere / planted.name)

    with pytest.raises(WriteError, match="symlink"):
        store.write(user, "d", "k", True)
    with pytest.raises(ReadError, match="symlink"):
        store.read(user, "d", "k")
    assert list(elsewhere.iterdir()) == []


def test_identity_path_cannot_climb_out_of_home(tmp_path: Path):
    with pytest.raises(ValueError):
        IniFileStore(tmp_path / "system.ini", identity_path=Path("..") / "other.ini")


@pytest.mark.parametrize("key", ["#k", ";k", "[k]", "a=b", "a:b", " padded", "two\nlines", ""])
def test_ini_store_rejects_keys_it_cannot_hold(tmp_path: Path, key):
    store = IniFileStore(tmp_path / "system.ini", hand_over=False)
    with pytest.raises(WriteError):
        store.write(SYSTEM, "d", key, True)
    with pytest.raises(ReadError):
        store.read(SYSTEM, "d", key)
    assert not store.system_path.exists()


def test_ini_store_rejects_unusable_sections(tmp_path: Path):
    store = IniFileStore(tmp_path / "system.ini", hand_over=False)
    with pytest.raises(WriteError):
        store.write(SYSTEM, "a]b", "k", True)
    # other formats have no such limits
    json_store = JsonFileStore(tmp_path / "system.json", hand_over=False)
    json_store.write(SYSTEM, "a]b", "a=b", True)
    assert json_store.read(SYSTEM, "a]b", "a=b") is True


def test_failed_save_removes_temp_file(tmp_path: Path, monkeypatch):
    def boom(self, target):
        raise OSError("read-only file system")

    store = JsonFileStore(tmp_path / "system.json", hand_over=False)
    monkeypatch.setattr(Path, "replace", boom)
    with pytest.raises(WriteError, match="read-only"):
        store.write(SYSTEM, "d", "k", True)
    assert list(tmp_path.iterdir()) == []
