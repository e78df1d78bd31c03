"""
Tests for the local host — filesystem, archives, transfers, processes,
installed-state persistence and the login surface.
"""

import io
import json
import time
import zipfile
from pathlib import Path

import pytest

from catalog_installer.adapters.base import ProcessResult, TransferProgress
from catalog_installer.adapters.local import archive, filesystem, process
from catalog_installer.adapters.local.host import CORE_PACKAGE_ID, LocalHost
from catalog_installer.adapters.local.login import BrowserLoginSurface
from catalog_installer.adapters.local.transfer import (
    HttpTransfer,
    filename_from_content_disposition,
    filename_from_url,
    sanitize_filename,
)
from catalog_installer.core.models import Settings
from catalog_installer.core.persistence.installed_map import (
    add_installed,
    installed_map_path,
    load_installed_map,
    remove_installed,
)
from catalog_installer.core.services.installer.domain.cancellation import CancelToken
from catalog_installer.core.services.installer.domain.errors import (
    ArchiveError,
    AuthRequiredError,
    CancelledError,
    StepExecutionError,
    TransferError,
)


# ── Filesystem ──────────────────────────────────────────────────


class TestCopyByPattern:
    def test_glob_copies_files(self, tmp_path: Path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "a.auo").write_text("a")
        (src / "b.auo").write_text("b")
        (src / "readme.txt").write_text("r")
        dest = tmp_path / "Plugin"

        count = filesystem.copy_by_pattern(str(src / "*.auo"), str(dest))
        assert count == 2
        assert sorted(p.name for p in dest.iterdir()) == ["a.auo", "b.auo"]

    def test_directory_contents_are_merged(self, tmp_path: Path):
        src = tmp_path / "pkg"
        (src / "sub").mkdir(parents=True)
        (src / "top.lua").write_text("1")
        (src / "sub" / "deep.lua").write_text("2")
        dest = tmp_path / "Script"
        (dest).mkdir()
        (dest / "top.lua").write_text("old")

        assert filesystem.copy_by_pattern(str(src), str(dest)) == 2
        assert (dest / "top.lua").read_text() == "1"
        assert (dest / "sub" / "deep.lua").read_text() == "2"

    def test_literal_file(self, tmp_path: Path):
        (tmp_path / "one.dll").write_text("x")
        assert filesystem.copy_by_pattern(str(tmp_path / "one.dll"), str(tmp_path / "out")) == 1
        assert (tmp_path / "out" / "one.dll").is_file()

    def test_no_match(self, tmp_path: Path):
        assert filesystem.copy_by_pattern(str(tmp_path / "*.none"), str(tmp_path / "out")) == 0
        assert filesystem.copy_by_pattern(str(tmp_path / "missing"), str(tmp_path / "out")) == 0


class TestDeletePath:
    def test_file(self, tmp_path: Path):
        target = tmp_path / "a.auo"
        target.write_text("x")
        assert filesystem.delete_path(str(target)) is True
        assert not target.exists()

    def test_tree(self, tmp_path: Path):
        target = tmp_path / "dir"
        (target / "nested").mkdir(parents=True)
        (target / "nested" / "f").write_text("x")
        assert filesystem.delete_path(str(target)) is True
        assert not target.exists()

    def test_missing(self, tmp_path: Path):
        assert filesystem.delete_path(str(tmp_path / "ghost")) is False


# ── Archives ────────────────────────────────────────────────────


def _make_zip(path: Path, members: dict) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return path


class TestExtractZip:
    def test_extracts_members(self, tmp_path: Path):
        zpath = _make_zip(tmp_path / "p.zip", {"plugin/a.auo": "a", "README.md": "r"})
        dest = tmp_path / "out"
        assert archive.extract_zip(zpath, dest) == 2
        assert (dest / "plugin" / "a.auo").read_text() == "a"

    def test_rejects_traversal(self, tmp_path: Path):
        zpath = _make_zip(tmp_path / "evil.zip", {"../escape.txt": "x"})
        with pytest.raises(ArchiveError, match="unsafe"):
            archive.extract_zip(zpath, tmp_path / "out")
        assert not (tmp_path / "escape.txt").exists()

    def test_rejects_absolute(self, tmp_path: Path):
        zpath = _make_zip(tmp_path / "abs.zip", {"/etc/passwd": "x"})
        with pytest.raises(ArchiveError):
            archive.extract_zip(zpath, tmp_path / "out")

    def test_bad_zip(self, tmp_path: Path):
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"not a zip")
        with pytest.raises(ArchiveError, match="failed to extract"):
            archive.extract_zip(bad, tmp_path / "out")

    def test_sfx_without_tool(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(archive, "find_seven_zip", lambda: None)
        with pytest.raises(ArchiveError, match="7z command-line tool not found"):
            archive.extract_sfx(tmp_path / "x.exe", tmp_path / "out")


# ── Transfers ───────────────────────────────────────────────────


class TestFilenames:
    def test_from_url(self):
        assert filename_from_url("https://example.com/files/My%20Plugin.zip?x=1") == "My Plugin.zip"

    def test_from_url_without_path(self):
        assert filename_from_url("https://example.com/") == "download.bin"

    def test_reserved_characters(self):
        assert sanitize_filename('a<b>:c"d|e?.zip') == "a_b__c_d_e_.zip"
        assert sanitize_filename("   ") == "download.bin"

    def test_content_disposition(self):
        assert filename_from_content_disposition('attachment; filename="pkg.zip"') == "pkg.zip"
        assert filename_from_content_disposition(
            "attachment; filename*=UTF-8''%E3%83%86%E3%82%B9%E3%83%88.zip"
        ) == "テスト.zip"
        assert filename_from_content_disposition("inline") is None
        assert filename_from_content_disposition(None) is None


class FakeResponse(io.BytesIO):
    def __init__(self, body: bytes, *, headers=None, url: str = ""):
        super().__init__(body)
        self.headers = headers or {"Content-Length": str(len(body))}
        self._url = url

    def geturl(self):
        return self._url


class FakeOpener:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        return self.responses.pop(0)


class TestHttpTransfer:
    def test_https_only(self, tmp_path: Path):
        transfer = HttpTransfer(urlopen=FakeOpener([]))
        with pytest.raises(TransferError, match="Only https://"):
            transfer.fetch("http://example.com/a.zip", tmp_path, task_id="t")

    def test_fetch_streams_with_progress(self, tmp_path: Path):
        body = b"x" * 150_000
        opener = FakeOpener([FakeResponse(body)])
        signals = []
        path = HttpTransfer(urlopen=opener).fetch(
            "https://example.com/dl/plugin.zip", tmp_path, task_id="run:0", on_progress=signals.append,
        )
        assert path == tmp_path / "plugin.zip"
        assert path.read_bytes() == body
        assert signals[-1] == TransferProgress(task_id="run:0", read=150_000, total=150_000)
        assert len(signals) == 3

    def test_cancel_removes_partial_file(self, tmp_path: Path):
        cancel = CancelToken()
        cancel.cancel("stop")
        opener = FakeOpener([FakeResponse(b"data")])
        with pytest.raises(CancelledError):
            HttpTransfer(urlopen=opener).fetch(
                "https://example.com/a.zip", tmp_path, task_id="t", cancel=cancel,
            )
        assert not (tmp_path / "a.zip").exists()

    def test_drive_requires_api_key(self, tmp_path: Path):
        with pytest.raises(TransferError, match="drive_api_key"):
            HttpTransfer(urlopen=FakeOpener([])).fetch_drive("FILE", tmp_path)

    def test_drive_metadata_then_media(self, tmp_path: Path):
        opener = FakeOpener([
            FakeResponse(json.dumps({"name": "pack.zip"}).encode()),
            FakeResponse(b"zipdata"),
        ])
        signals = []
        path = HttpTransfer(drive_api_key="KEY", urlopen=opener).fetch_drive(
            "FILE", tmp_path, on_progress=signals.append,
        )
        assert path == tmp_path / "pack.zip"
        assert opener.requests[0].full_url.endswith("/FILE?fields=name")
        assert opener.requests[1].full_url.endswith("/FILE?alt=media")
        assert opener.requests[1].get_header("X-goog-api-key") == "KEY"
        assert signals[-1].task_id == "FILE"

    def test_booth_without_cookies(self, tmp_path: Path):
        transfer = HttpTransfer(cookie_file=tmp_path / "cookies.txt")
        with pytest.raises(AuthRequiredError) as exc_info:
            transfer.fetch_booth("https://booth.pm/downloadables/1", tmp_path, task_id="t")
        assert exc_info.value.reason == "AUTH_WINDOW_MISSING"


# ── Processes ───────────────────────────────────────────────────


class TestBuildCommand:
    def test_posix_plain(self):
        cmd = process.build_command(Path("/opt/tool"), ["-a", 1], elevate=False, windows=False)
        assert cmd == ["/opt/tool", "-a", "1"]

    def test_posix_elevated_non_root(self, monkeypatch):
        monkeypatch.setattr(process.os, "geteuid", lambda: 1000, raising=False)
        cmd = process.build_command(Path("/opt/tool"), [], elevate=True, windows=False)
        assert cmd[:2] == ["sudo", "-n"]

    def test_windows_hidden_and_elevated(self):
        cmd = process.build_command(Path("C:/x/setup.exe"), ["/S", "it's"], elevate=True, windows=True)
        assert cmd[0] == "powershell"
        script = cmd[-1]
        assert "-WindowStyle Hidden -Wait -PassThru" in script
        assert "-Verb RunAs" in script
        assert "'it''s'" in script
        assert "exit ($p.ExitCode)" in script

    def test_windows_without_args(self):
        script = process.build_command(Path("C:/x/a.exe"), [], elevate=False, windows=True)[-1]
        assert "-ArgumentList" not in script
        assert "RunAs" not in script


class TestProcessCheck:
    def test_running(self, monkeypatch):
        class Proc:
            def __init__(self, name):
                self.info = {"name": name}

        monkeypatch.setattr(process.psutil, "process_iter", lambda attrs: [Proc("explorer.exe"), Proc("AviUtl2.exe")])
        assert process.is_process_running("aviutl2.exe") is True
        assert process.is_process_running("other.exe") is False


# ── Installed state ─────────────────────────────────────────────


class TestInstalledMap:
    def test_add_and_remove(self, tmp_path: Path):
        path = installed_map_path(tmp_path)
        add_installed(path, "b", "2.0")
        add_installed(path, "a", "1.0")
        assert load_installed_map(path) == {"a": "1.0", "b": "2.0"}
        remove_installed(path, "b")
        assert load_installed_map(path) == {"a": "1.0"}
        assert not list(tmp_path.glob(".installed_*"))

    def test_missing_file(self, tmp_path: Path):
        assert load_installed_map(tmp_path / "installed.json") == {}

    def test_corrupt_file(self, tmp_path: Path):
        path = tmp_path / "installed.json"
        path.write_text("{not json")
        assert load_installed_map(path) == {}

    def test_non_string_versions_dropped(self, tmp_path: Path):
        path = tmp_path / "installed.json"
        path.write_text(json.dumps({"a": "1", "b": 2, "c": None}))
        assert load_installed_map(path) == {"a": "1"}


# ── LocalHost ───────────────────────────────────────────────────


class TestLocalHost:
    def test_app_directories_portable(self, tmp_path: Path):
        settings = Settings(app_root=str(tmp_path / "aviutl2"), portable_mode=True)
        dirs = LocalHost(settings, tmp_path).app_directories()
        assert dirs.app_dir == tmp_path / "aviutl2"
        assert dirs.data_dir == tmp_path / "aviutl2" / "data"
        assert dirs.plugins_dir == tmp_path / "aviutl2" / "data" / "Plugin"
        assert dirs.scripts_dir == tmp_path / "aviutl2" / "data" / "Script"

    def test_explicit_directories_win(self, tmp_path: Path):
        settings = Settings(plugin_dir=str(tmp_path / "P"), script_dir=str(tmp_path / "S"),
                            data_dir=str(tmp_path / "D"))
        dirs = LocalHost(settings, tmp_path).app_directories()
        assert dirs.plugins_dir == tmp_path / "P"
        assert dirs.scripts_dir == tmp_path / "S"
        assert dirs.data_dir == tmp_path / "D"

    def test_state_roundtrip(self, tmp_path: Path):
        host = LocalHost(Settings(), tmp_path)
        host.record_installed("pkg", "1.2")
        assert host.query_installed_versions(["pkg", "other"]) == {"pkg": "1.2", "other": ""}
        host.record_removed("pkg")
        assert host.installed_map() == {}

    def test_copy_and_delete(self, tmp_path: Path):
        host = LocalHost(Settings(), tmp_path)
        (tmp_path / "a.auo").write_text("x")
        assert host.copy_by_pattern(str(tmp_path / "*.auo"), str(tmp_path / "Plugin")) == 1
        assert host.delete(str(tmp_path / "Plugin" / "a.auo")) is True
        assert host.delete(str(tmp_path / "Plugin" / "a.auo")) is False

    def test_cookie_file_default(self, tmp_path: Path):
        assert LocalHost(Settings(), tmp_path).cookie_file == tmp_path / "booth-cookies.txt"


class TestSpecialSetup:
    @pytest.fixture
    def calls(self, monkeypatch):
        calls = []

        def fake_run_hidden(exe, args=(), **kwargs):
            calls.append((exe, list(args), kwargs))
            return ProcessResult(exit_code=0)

        monkeypatch.setattr(process, "run_hidden", fake_run_hidden)
        return calls

    def test_standard_mode_uses_default_dir(self, tmp_path: Path, calls):
        host = LocalHost(Settings(), tmp_path)
        assert host.run_special_setup(tmp_path / "auo_setup.exe") == 0
        [(exe, args, kwargs)] = calls
        assert exe == tmp_path / "auo_setup.exe"
        assert args == ["-aviutldir-default"]
        assert kwargs["cwd"] == tmp_path

    def test_portable_mode_points_at_app_root(self, tmp_path: Path, calls):
        root = tmp_path / "aviutl2"
        host = LocalHost(Settings(app_root=str(root), portable_mode=True), tmp_path)
        host.record_installed(CORE_PACKAGE_ID, "2.0")
        host.run_special_setup(tmp_path / "auo_setup.exe")
        [(_, args, _)] = calls
        assert args == ["-aviutldir", str(root)]

    def test_portable_mode_requires_core_package(self, tmp_path: Path, calls):
        host = LocalHost(Settings(app_root=str(tmp_path), portable_mode=True), tmp_path)
        with pytest.raises(StepExecutionError, match=f"{CORE_PACKAGE_ID} is not installed"):
            host.run_special_setup(tmp_path / "auo_setup.exe")
        assert calls == []

    def test_portable_mode_blank_core_version(self, tmp_path: Path, calls):
        host = LocalHost(Settings(app_root=str(tmp_path), portable_mode=True), tmp_path)
        host.record_installed(CORE_PACKAGE_ID, "  ")
        with pytest.raises(StepExecutionError, match="is not installed"):
            host.run_special_setup(tmp_path / "auo_setup.exe")

    def test_portable_mode_requires_app_root(self, tmp_path: Path, calls):
        host = LocalHost(Settings(portable_mode=True), tmp_path)
        host.record_installed(CORE_PACKAGE_ID, "2.0")
        with pytest.raises(StepExecutionError, match="app_root is not set"):
            host.run_special_setup(tmp_path / "auo_setup.exe")
        assert calls == []


class TestBrowserLoginSurface:
    def test_signals_when_cookie_file_appears(self, tmp_path: Path):
        cookie = tmp_path / "cookies.txt"
        opened = []
        surface = BrowserLoginSurface(
            "https://accounts.booth.pm/users/sign_in", cookie,
            launcher=opened.append, watch_interval=0.05,
        )
        done = []
        unsubscribe = surface.subscribe_login_complete(lambda: done.append(True))
        try:
            surface.open()
            cookie.write_text("# Netscape HTTP Cookie File\n")
            deadline = time.monotonic() + 5
            while not done and time.monotonic() < deadline:
                time.sleep(0.05)
        finally:
            unsubscribe()
            surface.close()

        assert opened == ["https://accounts.booth.pm/users/sign_in"]
        assert done == [True]
        assert surface.surface_id == "booth-auth"
