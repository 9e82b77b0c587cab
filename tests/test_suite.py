"""
Test suite for the modpack installation pipeline.
Covers archive extraction, manifest parsing, download filtering and the
two-pass concurrent mod downloader.
"""

import io
import json
import sys
import threading
import time
import zipfile
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.errors import PackExtractionError, ManifestError
from core.pack_extractor import PackExtractor
from core.manifest_parser import ManifestParser
from core.download_filter import filter_downloads
from core.mod_downloader import ModDownloader, ignore_patterns_from_files
from model_types import ModDescriptor, DownloadStatus
from utils.path_matcher import compile_path_matchers


class Logger:
    def __init__(self):
        self.messages = []
    def __call__(self, msg, **kwargs):
        self.messages.append((msg, kwargs))
    def errors(self):
        return [m for m, kw in self.messages if kw.get('error')]


def make_in_memory_zip(files):
    bio = io.BytesIO()
    with zipfile.ZipFile(bio, mode="w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    bio.seek(0)
    return bio


def cdn_url(project, version, name):
    return f"https://cdn.modrinth.com/data/{project}/versions/{version}/{name}"


# ============================================================================
# Archive Extraction Tests
# ============================================================================

class TestPackExtractor:
    """Test applying a pack archive to a server folder."""

    def test_overrides_and_manifest_copied_verbatim(self, tmp_path):
        manifest = b'{"formatVersion": 1}'
        payload = bytes(range(256)) * 4
        archive = make_in_memory_zip({
            "modrinth.index.json": manifest,
            "overrides/config/mod.toml": "enabled = true\n",
            "overrides/mods/bundled.jar": payload,
            "overrides/": "",
            "readme.txt": "not part of the server",
        })

        stats = PackExtractor(Logger()).extract(archive, tmp_path)

        assert (tmp_path / "modrinth.index.json").read_bytes() == manifest
        assert (tmp_path / "config" / "mod.toml").read_text() == "enabled = true\n"
        assert (tmp_path / "mods" / "bundled.jar").read_bytes() == payload
        assert not (tmp_path / "readme.txt").exists()
        assert stats.files_written == 3

    def test_existing_file_is_overwritten(self, tmp_path):
        (tmp_path / "server.properties").write_text("motd=old")
        archive = make_in_memory_zip({"overrides/server.properties": "motd=new"})

        PackExtractor(Logger()).extract(archive, tmp_path)

        assert (tmp_path / "server.properties").read_text() == "motd=new"

    def test_ignored_paths_are_not_written_or_moved(self, tmp_path):
        secret = tmp_path / "config" / "secret"
        secret.mkdir(parents=True)
        (secret / "token.txt").write_text("keep me")
        archive = make_in_memory_zip({
            "overrides/config/secret/": "",
            "overrides/config/secret/token.txt": "from pack",
            "overrides/config/other.toml": "x",
        })
        matchers = compile_path_matchers(["config/secret", "config/secret/**"])

        stats = PackExtractor(Logger()).extract(archive, tmp_path, matchers)

        assert (secret / "token.txt").read_text() == "keep me"
        assert not (tmp_path / "OLD_TO_DELETE" / "config").exists()
        assert (tmp_path / "config" / "other.toml").exists()
        assert stats.skipped == 2
        assert stats.quarantined == 0

    def test_existing_mods_folder_moved_to_quarantine(self, tmp_path):
        old_mods = tmp_path / "mods"
        old_mods.mkdir()
        (old_mods / "old-mod.jar").write_bytes(b"old jar bytes")
        (old_mods / "nested").mkdir()
        (old_mods / "nested" / "data.bin").write_bytes(b"\x00\x01")
        archive = make_in_memory_zip({"overrides/mods/new-mod.jar": b"new"})

        PackExtractor(Logger()).extract(archive, tmp_path)

        quarantine = tmp_path / "OLD_TO_DELETE" / "mods"
        assert (quarantine / "old-mod.jar").read_bytes() == b"old jar bytes"
        assert (quarantine / "nested" / "data.bin").read_bytes() == b"\x00\x01"
        assert sorted(p.name for p in (tmp_path / "mods").iterdir()) == ["new-mod.jar"]

    def test_previous_quarantine_is_cleared(self, tmp_path):
        stale = tmp_path / "OLD_TO_DELETE" / "stale.txt"
        stale.parent.mkdir()
        stale.write_text("from last run")

        PackExtractor(Logger()).extract(make_in_memory_zip({"overrides/a.txt": "a"}), tmp_path)

        assert not stale.exists()

    def test_existing_directory_replaced_by_archive_directory(self, tmp_path):
        config = tmp_path / "config"
        config.mkdir()
        (config / "user.toml").write_text("user edits")
        archive = make_in_memory_zip({
            "overrides/config/": "",
            "overrides/config/pack.toml": "pack defaults",
        })

        stats = PackExtractor(Logger()).extract(archive, tmp_path)

        assert (tmp_path / "OLD_TO_DELETE" / "config" / "user.toml").read_text() == "user edits"
        assert not (config / "user.toml").exists()
        assert (config / "pack.toml").read_text() == "pack defaults"
        assert stats.quarantined == 1

    def test_mods_directory_entry_after_its_files_keeps_old_mods(self, tmp_path):
        old_mods = tmp_path / "mods"
        old_mods.mkdir()
        (old_mods / "old.jar").write_bytes(b"old jar bytes")
        bio = io.BytesIO()
        with zipfile.ZipFile(bio, mode="w") as zf:
            zf.writestr("overrides/mods/new.jar", b"new jar bytes")
            zf.writestr("overrides/mods/", "")
        bio.seek(0)

        PackExtractor(Logger()).extract(bio, tmp_path)

        quarantine = tmp_path / "OLD_TO_DELETE" / "mods"
        assert (quarantine / "old.jar").read_bytes() == b"old jar bytes"
        assert not (quarantine / "new.jar").exists()
        assert sorted(p.name for p in (tmp_path / "mods").iterdir()) == ["new.jar"]
        assert (tmp_path / "mods" / "new.jar").read_bytes() == b"new jar bytes"

    def test_child_directory_entry_before_parent_keeps_quarantined_child(self, tmp_path):
        sub = tmp_path / "config" / "sub"
        sub.mkdir(parents=True)
        (sub / "user.cfg").write_text("user sub settings")
        (tmp_path / "config" / "top.cfg").write_text("user top settings")
        bio = io.BytesIO()
        with zipfile.ZipFile(bio, mode="w") as zf:
            zf.writestr("overrides/config/sub/", "")
            zf.writestr("overrides/config/", "")
            zf.writestr("overrides/config/pack.cfg", "pack settings")
        bio.seek(0)

        stats = PackExtractor(Logger()).extract(bio, tmp_path)

        quarantine = tmp_path / "OLD_TO_DELETE" / "config"
        assert (quarantine / "sub" / "user.cfg").read_text() == "user sub settings"
        assert (quarantine / "top.cfg").read_text() == "user top settings"
        assert sorted(p.name for p in (tmp_path / "config").iterdir()) == ["pack.cfg"]
        assert stats.quarantined == 2

    def test_directory_entry_after_files_moves_only_previous_content(self, tmp_path):
        config = tmp_path / "config"
        config.mkdir()
        (config / "user.toml").write_text("user edits")
        bio = io.BytesIO()
        with zipfile.ZipFile(bio, mode="w") as zf:
            zf.writestr("overrides/config/pack.toml", "pack defaults")
            zf.writestr("overrides/config/", "")
        bio.seek(0)

        PackExtractor(Logger()).extract(bio, tmp_path)

        assert (tmp_path / "OLD_TO_DELETE" / "config" / "user.toml").read_text() == "user edits"
        assert sorted(p.name for p in config.iterdir()) == ["pack.toml"]

    def test_archive_path_accepted(self, tmp_path):
        pack = tmp_path / "pack.mrpack"
        pack.write_bytes(make_in_memory_zip({"overrides/eula.txt": "eula=true"}).getvalue())
        server = tmp_path / "server"

        PackExtractor(Logger()).extract(pack, server)

        assert (server / "eula.txt").read_text() == "eula=true"

    def test_unreadable_archive_raises(self, tmp_path):
        logs = Logger()
        with pytest.raises(PackExtractionError) as exc_info:
            PackExtractor(logs).extract(io.BytesIO(b"this is not a zip"), tmp_path)

        assert isinstance(exc_info.value, OSError)
        assert logs.errors()

    def test_zip_slip_blocked(self, tmp_path):
        server = tmp_path / "server"
        archive = make_in_memory_zip({"overrides/../../evil.txt": "boom"})
        logs = Logger()

        with pytest.raises(PackExtractionError):
            PackExtractor(logs).extract(archive, server)

        assert not (tmp_path / "evil.txt").exists()
        assert any("Security" in m for m in logs.errors())


# ============================================================================
# Manifest Parsing Tests
# ============================================================================

def write_manifest(path, dependencies=None, files=None):
    data = {
        "formatVersion": 1,
        "game": "minecraft",
        "dependencies": dependencies if dependencies is not None else {"minecraft": "1.20.1", "fabric-loader": "0.15.7"},
        "files": files if files is not None else [],
    }
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


def mod_entry(path, url, server=None):
    entry = {"path": path, "downloads": [url], "hashes": {"sha1": "0" * 40}, "fileSize": 1}
    if server:
        entry["env"] = {"client": "required", "server": server}
    return entry


class TestManifestParser:
    """Test reading modrinth.index.json."""

    def test_versions_and_descriptors(self, tmp_path):
        url = cdn_url("AANobbMI", "mc1eE2Qd", "sodium-fabric-0.5.8.jar")
        manifest = write_manifest(tmp_path / "modrinth.index.json", files=[mod_entry("mods/sodium.jar", url)])

        result = ManifestParser(Logger()).parse(manifest)

        assert result.mc_version == "1.20.1"
        assert result.loader_version == "0.15.7"
        assert result.skip_reason is None
        assert result.mods == [ModDescriptor("AANobbMI", "mc1eE2Qd", url)]

    def test_pinned_versions_win(self, tmp_path):
        manifest = write_manifest(tmp_path / "modrinth.index.json")

        result = ManifestParser(Logger()).parse(manifest, mc_version="1.19.2", loader_version="0.14.0")

        assert result.mc_version == "1.19.2"
        assert result.loader_version == "0.14.0"

    def test_loader_preference_order(self, tmp_path):
        manifest = write_manifest(tmp_path / "modrinth.index.json",
                                  dependencies={"minecraft": "1.20.1", "quilt-loader": "0.23",
                                                "neoforge": "20.4.1", "forge": "47.2.0"})

        result = ManifestParser(Logger()).parse(manifest)

        assert result.loader_version == "47.2.0"

    def test_no_loader_skips_downloads(self, tmp_path):
        manifest = write_manifest(tmp_path / "modrinth.index.json",
                                  dependencies={"minecraft": "1.20.1"},
                                  files=[mod_entry("mods/a.jar", "https://example.com/a.jar")])
        logs = Logger()

        result = ManifestParser(logs).parse(manifest)

        assert result.skip_reason
        assert result.mods == []
        assert logs.errors()

    def test_missing_manifest_is_not_an_error(self, tmp_path):
        result = ManifestParser(Logger()).parse(tmp_path / "modrinth.index.json")

        assert result.skip_reason
        assert result.mods == []

    def test_server_unsupported_and_non_mod_entries_excluded(self, tmp_path):
        keep = cdn_url("P7dR8mSH", "abc123", "fabric-api.jar")
        files = [
            mod_entry("mods/client-only.jar", cdn_url("YL57xq9U", "def456", "iris.jar"), server="unsupported"),
            mod_entry("mods/fabric-api.jar", keep, server="required"),
            mod_entry("resourcepacks/pack.zip", "https://example.com/pack.zip"),
            mod_entry("config/thing.json", "https://example.com/thing.json"),
        ]
        manifest = write_manifest(tmp_path / "modrinth.index.json", files=files)

        result = ManifestParser(Logger()).parse(manifest)

        assert [m.download_url for m in result.mods] == [keep]

    def test_non_modrinth_url_keeps_raw_url(self, tmp_path):
        url = "https://github.com/owner/repo/releases/download/v1/mod.jar"
        manifest = write_manifest(tmp_path / "modrinth.index.json", files=[mod_entry("mods/mod.jar", url)])

        result = ManifestParser(Logger()).parse(manifest)

        assert result.mods == [ModDescriptor("", "", url)]

    def test_first_download_url_used(self, tmp_path):
        entry = {"path": "mods/a.jar", "downloads": ["https://one.example/a.jar", "https://two.example/a.jar"]}
        manifest = write_manifest(tmp_path / "modrinth.index.json", files=[entry])

        result = ManifestParser(Logger()).parse(manifest)

        assert result.mods[0].download_url == "https://one.example/a.jar"

    def test_malformed_json_raises(self, tmp_path):
        manifest = tmp_path / "modrinth.index.json"
        manifest.write_text("{not json", encoding='utf-8')

        with pytest.raises(ManifestError):
            ManifestParser(Logger()).parse(manifest)

    @pytest.mark.parametrize("data", [
        {"files": []},
        {"dependencies": {"minecraft": "1.20.1", "forge": "47"}},
        {"dependencies": {"forge": "47"}, "files": []},
        {"dependencies": {"minecraft": "1.20.1", "forge": "47"}, "files": [{"downloads": ["https://x/a.jar"]}]},
        {"dependencies": {"minecraft": "1.20.1", "forge": "47"}, "files": [{"path": "mods/a.jar"}]},
    ])
    def test_missing_required_fields_raise(self, tmp_path, data):
        manifest = tmp_path / "modrinth.index.json"
        manifest.write_text(json.dumps(data), encoding='utf-8')

        with pytest.raises(ManifestError):
            ManifestParser(Logger()).parse(manifest)

    def test_pinned_minecraft_version_makes_dependency_optional(self, tmp_path):
        manifest = write_manifest(tmp_path / "modrinth.index.json", dependencies={"forge": "47.2.0"})

        result = ManifestParser(Logger()).parse(manifest, mc_version="1.20.1")

        assert result.mc_version == "1.20.1"
        assert result.loader_version == "47.2.0"


# ============================================================================
# Download Filter Tests
# ============================================================================

class TestDownloadFilter:

    def test_ignored_project_dropped(self):
        mods = [
            ModDescriptor("AAA", "1", cdn_url("AAA", "1", "a.jar")),
            ModDescriptor("BBB", "2", cdn_url("BBB", "2", "b.jar")),
            ModDescriptor("", "", "https://example.com/c.jar"),
        ]

        urls = filter_downloads(mods, {"BBB"})

        assert urls == [cdn_url("AAA", "1", "a.jar"), "https://example.com/c.jar"]

    def test_empty_project_id_never_matches_ignore_set(self):
        urls = filter_downloads([ModDescriptor("", "", "https://example.com/c.jar")], {""})

        assert urls == ["https://example.com/c.jar"]

    def test_descriptor_without_url_logged_and_dropped(self):
        logs = Logger()

        urls = filter_downloads([ModDescriptor("AAA", "1", "")], set(), logs)

        assert urls == []
        assert any("No download url" in m for m in logs.errors())


# ============================================================================
# Concurrent Download Tests
# ============================================================================

class FakeFetch:
    """Writes the URL as file content; fails the first N calls per URL."""

    def __init__(self, fail_times=None, delay=0):
        self.fail_times = dict(fail_times or {})
        self.delay = delay
        self.calls = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, url, destination):
        with self._lock:
            self.calls.append(url)
            self.active += 1
            self.peak = max(self.peak, self.active)
            remaining = self.fail_times.get(url, 0)
            if remaining:
                self.fail_times[url] = remaining - 1
        try:
            if self.delay:
                time.sleep(self.delay)
            if remaining:
                raise requests.exceptions.ConnectionError(f"connection reset for {url}")
            Path(destination).write_bytes(url.encode())
        finally:
            with self._lock:
                self.active -= 1


def mod_urls(count):
    return [cdn_url(f"proj{i}", f"file{i}", f"mod-{i}.jar") for i in range(count)]


class TestModDownloader:
    """Test the two-pass concurrent download protocol."""

    def test_all_downloads_succeed(self, tmp_path):
        urls = mod_urls(5)
        fetch = FakeFetch()
        mods_dir = tmp_path / "mods"

        failed = ModDownloader(Logger(), fetch=fetch).download_all(urls, [], mods_dir)

        assert failed == []
        assert sorted(fetch.calls) == sorted(urls)
        for i in range(5):
            assert (mods_dir / f"mod-{i}.jar").read_bytes() == urls[i].encode()

    def test_failures_recovered_by_retry_pass(self, tmp_path):
        urls = mod_urls(6)
        flaky = urls[1:4]
        fetch = FakeFetch(fail_times={u: 1 for u in flaky})
        mods_dir = tmp_path / "mods"
        downloader = ModDownloader(Logger(), fetch=fetch)

        failed = downloader.download_all(urls, [], mods_dir)

        assert failed == []
        assert len(fetch.calls) == len(urls) + len(flaky)
        assert len(list(mods_dir.iterdir())) == len(urls)
        assert len(downloader.report.downloaded) == len(urls)

    def test_persistent_failures_reported(self, tmp_path):
        urls = mod_urls(6)
        broken = {urls[0], urls[5]}
        fetch = FakeFetch(fail_times={u: 2 for u in broken})
        mods_dir = tmp_path / "mods"

        failed = ModDownloader(Logger(), fetch=fetch).download_all(urls, [], mods_dir)

        assert set(failed) == broken
        assert len(failed) == 2
        for i in range(1, 5):
            assert (mods_dir / f"mod-{i}.jar").exists()
        assert not (mods_dir / "mod-0.jar").exists()

    def test_ignore_pattern_prevents_fetch(self, tmp_path):
        urls = [cdn_url("a1", "b1", "OptiFine_1.20.jar"), cdn_url("a2", "b2", "lithium.jar")]
        fetch = FakeFetch()
        downloader = ModDownloader(Logger(), fetch=fetch)

        failed = downloader.download_all(urls, ignore_patterns_from_files(["mods/OptiFine.*\\.jar"]),
                                         tmp_path / "mods")

        assert failed == []
        assert fetch.calls == [urls[1]]
        assert [o.status for o in downloader.report.skipped] == [DownloadStatus.SKIPPED]

    def test_malformed_url_lands_in_failure_list(self, tmp_path):
        good = cdn_url("a", "b", "good.jar")
        fetch = FakeFetch()

        failed = ModDownloader(Logger(), fetch=fetch).download_all(
            ["not a url", "https://example.com/dir/", good], [], tmp_path / "mods")

        assert sorted(failed) == sorted(["not a url", "https://example.com/dir/"])
        assert fetch.calls == [good]

    def test_worker_pool_is_bounded(self, tmp_path):
        fetch = FakeFetch(delay=0.02)

        ModDownloader(Logger(), fetch=fetch, max_workers=2).download_all(mod_urls(8), [], tmp_path / "mods")

        assert len(fetch.calls) == 8
        assert fetch.peak <= 2

    def test_progress_counter_counts_every_attempt(self, tmp_path):
        urls = mod_urls(4)
        fetch = FakeFetch(fail_times={urls[0]: 1})
        downloader = ModDownloader(Logger(), fetch=fetch)

        downloader.download_all(urls, [], tmp_path / "mods")

        assert downloader.report.attempts == 5

    def test_empty_url_list(self, tmp_path):
        fetch = Mock()

        failed = ModDownloader(Logger(), fetch=fetch).download_all([], [], tmp_path / "mods")

        assert failed == []
        fetch.assert_not_called()

    def test_ignore_patterns_from_files(self):
        patterns = ignore_patterns_from_files(["mods/optifine.*\\.jar", "config/secret/**", "mods/"])

        assert len(patterns) == 1
        assert patterns[0].fullmatch("optifine-1.20.jar")
        assert not patterns[0].fullmatch("sodium.jar")

    def test_glob_style_ignore_entry_accepted(self, tmp_path):
        patterns = ignore_patterns_from_files(["mods/*-client.jar"])

        assert len(patterns) == 1
        assert patterns[0].fullmatch("zoomify-client.jar")
        assert not patterns[0].fullmatch("lithium.jar")

        urls = [cdn_url("a1", "b1", "zoomify-client.jar"), cdn_url("a2", "b2", "lithium.jar")]
        fetch = FakeFetch()
        failed = ModDownloader(Logger(), fetch=fetch).download_all(urls, patterns, tmp_path / "mods")

        assert failed == []
        assert fetch.calls == [urls[1]]

    def test_unusable_ignore_entry_logged_and_dropped(self):
        logs = Logger()

        patterns = ignore_patterns_from_files(["mods/*{client", "mods/sodium\\.jar"], logs)

        assert [p.pattern for p in patterns] == ["sodium\\.jar"]
        assert any("mods/*{client" in m for m in logs.errors())

    def test_summary_lists_failed_attempts(self, tmp_path):
        urls = mod_urls(3)
        fetch = FakeFetch(fail_times={urls[2]: 1})
        downloader = ModDownloader(Logger(), fetch=fetch)

        downloader.download_all(urls, [], tmp_path / "mods")
        summary = downloader.report.generate_summary([])

        assert downloader.report.has_errors()
        assert "1 failed attempt(s)" in summary
        assert "mod-2.jar: connection reset" in summary
        assert "0 failed" in summary
