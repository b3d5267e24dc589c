"""Tests for the run manifest."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bim2se.manifest import (
    MANIFEST_VERSION,
    Artifact,
    PipelineReport,
    _artifact_sort_key,
    dump_manifest,
    load_manifest,
    to_json_dict,
    to_json_string,
)


@pytest.fixture
def sample_report() -> PipelineReport:
    report = PipelineReport(run_id="run-1", created_at="2024-01-01T00:00:00+00:00", occt_binding="mock")
    report.add_artifact(Artifact("slice10", "slice", ["out/slice10.stp"], volume=1.0))
    report.add_artifact(Artifact("slice2", "slice", ["out/slice2.stp"], volume=2.0))
    report.add_artifact(Artifact("soilSurface", "surface", ["out/soilSurface.stp"]))
    report.add_artifact(Artifact("combined", "combined", ["out/combined.stp"], attrs={"z": 1, "a": 2}))
    report.volumes = {"volume": 3.0, "box": 4.0}
    report.add_warning("something odd")
    return report


class TestReport:

    def test_lookup(self, sample_report: PipelineReport):
        assert sample_report.artifact("soilSurface").kind == "surface"
        assert sample_report.artifact("missing") is None

    def test_slices(self, sample_report: PipelineReport):
        assert [a.name for a in sample_report.slices] == ["slice10", "slice2"]

    def test_defaults_are_unique(self):
        assert PipelineReport().run_id != PipelineReport().run_id


class TestSerialization:

    def test_artifact_order(self, sample_report: PipelineReport):
        data = to_json_dict(sample_report)

        names = [a["name"] for a in data["artifacts"]]
        assert names == ["combined", "soilSurface", "slice2", "slice10"]

    def test_insertion_order_kept_when_not_deterministic(self, sample_report: PipelineReport):
        data = to_json_dict(sample_report, deterministic=False)
        assert data["artifacts"][0]["name"] == "slice10"

    def test_sorted_keys(self, sample_report: PipelineReport):
        data = to_json_dict(sample_report)

        assert list(data["volumes"]) == ["box", "volume"]
        assert list(data["artifacts"][0]["attrs"]) == ["a", "z"]

    def test_header(self, sample_report: PipelineReport):
        data = to_json_dict(sample_report)

        assert data["manifest_version"] == MANIFEST_VERSION
        assert data["run_id"] == "run-1"
        assert data["occt_binding"] == "mock"
        assert data["warnings"] == ["something odd"]

    def test_to_json_string(self, sample_report: PipelineReport):
        compact = json.loads(to_json_string(sample_report))
        pretty = json.loads(to_json_string(sample_report, pretty=True))

        assert compact == pretty

    def test_sort_key_numeric_suffix(self):
        assert _artifact_sort_key(Artifact("slice9", "slice")) < _artifact_sort_key(Artifact("slice10", "slice"))


class TestFiles:

    def test_dump_and_load(self, sample_report: PipelineReport, temp_dir: Path):
        path = dump_manifest(sample_report, temp_dir / "nested" / "manifest.json")
        loaded = load_manifest(path)

        assert loaded.run_id == sample_report.run_id
        assert loaded.volumes == sample_report.volumes
        assert loaded.artifact("slice2").volume == 2.0
        assert loaded.artifact("combined").attrs == {"a": 2, "z": 1}

    def test_load_missing(self, temp_dir: Path):
        with pytest.raises(FileNotFoundError):
            load_manifest(temp_dir / "missing.json")

    def test_load_not_a_manifest(self, temp_dir: Path):
        path = temp_dir / "other.json"
        path.write_text('{"hello": 1}')

        with pytest.raises(ValueError, match="Not a pipeline manifest"):
            load_manifest(path)
