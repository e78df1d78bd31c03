"""
Tests for package descriptor models and the catalog loader.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from catalog_installer.core.config.catalog_loader import (
    find_package,
    load_catalog,
    load_descriptor,
)
from catalog_installer.core.models import (
    CopyStep,
    DownloadStep,
    PackageDescriptor,
    RunStep,
    SourceSpec,
)
from catalog_installer.core.services.installer.domain.errors import (
    DescriptorError,
    UnsupportedActionError,
)


def _entry(**installer) -> dict:
    return {"id": "sample", "latest-version": "v2", "installer": installer}


class TestSourceSpec:
    def test_direct(self):
        spec = SourceSpec.model_validate({"direct": "https://example.com/a.zip"})
        assert spec.kind == "direct"

    def test_github(self):
        spec = SourceSpec.model_validate({"github": {"owner": "o", "repo": "r", "pattern": r"\.zip$"}})
        assert spec.kind == "github"
        assert spec.github.pattern == r"\.zip$"
        assert spec.github.tag == ""

    def test_google_drive_wire_key(self):
        spec = SourceSpec.model_validate({"GoogleDrive": {"id": "abc"}})
        assert spec.kind == "google_drive"
        assert spec.google_drive.id == "abc"

    def test_booth(self):
        assert SourceSpec.model_validate({"booth": "https://booth.pm/x"}).kind == "booth"

    def test_no_variant_rejected(self):
        with pytest.raises(ValidationError):
            SourceSpec.model_validate({})

    def test_two_variants_rejected(self):
        with pytest.raises(ValidationError):
            SourceSpec.model_validate({"direct": "https://a", "booth": "https://b"})


class TestPackageDescriptor:
    def test_wire_keys(self):
        pkg = PackageDescriptor.model_validate(_entry(
            source={"direct": "https://example.com/a.zip"},
            install=[{"action": "download"}, {"action": "copy", "from": "{tmp}/a", "to": "{pluginsDir}"}],
            uninstall=[{"action": "delete", "path": "{pluginsDir}/a"}],
        ))
        assert pkg.latest_version == "v2"
        assert isinstance(pkg.installer.install[0], DownloadStep)
        copy = pkg.installer.install[1]
        assert isinstance(copy, CopyStep)
        assert copy.from_ == "{tmp}/a"
        assert pkg.installer.uninstall[0].path == "{pluginsDir}/a"

    def test_run_args_coerced_to_strings(self):
        pkg = PackageDescriptor.model_validate(_entry(
            install=[{"action": "run", "path": "setup.exe", "args": ["/S", 1, True]}],
        ))
        step = pkg.installer.install[0]
        assert isinstance(step, RunStep)
        assert step.args == ("/S", "1", "True")
        assert step.elevate is False

    def test_frozen(self):
        pkg = PackageDescriptor(id="x")
        with pytest.raises(ValidationError):
            pkg.id = "y"

    def test_display_name(self):
        assert PackageDescriptor(id="x").display_name == "x"
        assert PackageDescriptor(id="x", name="Nice").display_name == "Nice"

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            PackageDescriptor(id="")


class TestLoadDescriptor:
    def test_unknown_install_action(self):
        with pytest.raises(UnsupportedActionError, match="unsupported action: unzip"):
            load_descriptor(_entry(install=[{"action": "download"}, {"action": "unzip"}]))

    def test_install_only_action_in_uninstall(self):
        with pytest.raises(UnsupportedActionError, match="unsupported action: copy"):
            load_descriptor(_entry(uninstall=[{"action": "copy"}]))

    def test_schema_error_becomes_descriptor_error(self):
        with pytest.raises(DescriptorError, match="invalid package sample"):
            load_descriptor(_entry(source={"direct": "https://a", "booth": "https://b"}))

    def test_non_mapping_entry(self):
        with pytest.raises(DescriptorError):
            load_descriptor(["not", "a", "mapping"])

    def test_steps_must_be_list(self):
        with pytest.raises(DescriptorError, match="must be a list"):
            load_descriptor(_entry(install={"action": "download"}))


class TestLoadCatalog:
    def test_json_list(self, tmp_path: Path):
        path = tmp_path / "index.json"
        path.write_text(json.dumps([
            {"id": "a", "installer": {"install": []}},
            {"id": "b", "latest-version": "1.2"},
        ]))
        entries = load_catalog(path)
        assert [e["id"] for e in entries] == ["a", "b"]
        assert find_package(entries, "b").latest_version == "1.2"

    def test_tab_indented_json(self, tmp_path: Path):
        path = tmp_path / "index.json"
        path.write_text(json.dumps([{"id": "a", "latest-version": "3"}], indent="\t"))
        assert find_package(load_catalog(path), "a").latest_version == "3"

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "index.json"
        path.write_text('[{"id": "a",')
        with pytest.raises(DescriptorError, match="Invalid catalog"):
            load_catalog(path)

    def test_yaml_packages_mapping(self, tmp_path: Path):
        path = tmp_path / "catalog.yml"
        path.write_text(
            "packages:\n"
            "  - id: plugin\n"
            "    installer:\n"
            "      source:\n"
            "        github: {owner: o, repo: r}\n"
            "      install:\n"
            "        - action: download\n"
        )
        pkg = find_package(load_catalog(path), "plugin")
        assert pkg.installer.source.kind == "github"

    def test_single_entry_mapping(self, tmp_path: Path):
        path = tmp_path / "one.json"
        path.write_text(json.dumps({"id": "solo"}))
        assert [e["id"] for e in load_catalog(path)] == ["solo"]

    def test_non_mapping_entries_skipped(self, tmp_path: Path):
        path = tmp_path / "index.json"
        path.write_text(json.dumps(["junk", {"id": "a"}, 3]))
        assert [e["id"] for e in load_catalog(path)] == ["a"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DescriptorError, match="Cannot read catalog"):
            load_catalog(tmp_path / "nope.json")

    def test_not_a_list(self, tmp_path: Path):
        path = tmp_path / "bad.json"
        path.write_text('"just a string"')
        with pytest.raises(DescriptorError, match="Expected a list"):
            load_catalog(path)

    def test_find_missing_package(self):
        with pytest.raises(DescriptorError, match="'ghost' not found"):
            find_package([{"id": "a"}], "ghost")


class TestBrokenSiblingEntries:
    GOOD = {"id": "good", "latest-version": "1.0",
            "installer": {"install": [{"action": "download"}]}}

    def _catalog(self, tmp_path: Path, *entries) -> Path:
        path = tmp_path / "index.json"
        path.write_text(json.dumps([*entries]))
        return path

    def test_unknown_action_in_sibling(self, tmp_path: Path):
        bad = {"id": "bad", "installer": {"install": [{"action": "future_action"}]}}
        entries = load_catalog(self._catalog(tmp_path, self.GOOD, bad))
        assert find_package(entries, "good").id == "good"

    def test_bad_source_in_sibling(self, tmp_path: Path):
        bad = {"id": "bad", "installer": {"source": {"direct": "https://a", "booth": "https://b"}}}
        entries = load_catalog(self._catalog(tmp_path, bad, self.GOOD))
        assert find_package(entries, "good").latest_version == "1.0"

    def test_selected_entry_still_validated(self, tmp_path: Path):
        bad = {"id": "bad", "installer": {"install": [{"action": "future_action"}]}}
        entries = load_catalog(self._catalog(tmp_path, self.GOOD, bad))
        with pytest.raises(UnsupportedActionError, match="unsupported action: future_action"):
            find_package(entries, "bad")
