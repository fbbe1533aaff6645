"""
Unit Tests — Artifact identity + ArtifactStore
═══════════════════════════════════════════════

Coverage targets:
  ✅ child_id: upload → marker → embedding, extension stripped once
  ✅ child_id refuses to derive an upload
  ✅ make_upload_id sanitises the stem, keeps the extension, never contains a separator
  ✅ ArtifactKind.parse accepts aliases, rejects anything else with ValidationError
  ✅ Namespace.of rejects traversal and empty segments
  ✅ require_artifact_id rejects path-like ids
  ✅ create_upload never overwrites: same timestamp twice → two distinct ids
  ✅ create_upload keeps derived ids unique: report.csv + report.xlsx in one ms
  ✅ Marker / embedding listings are namespace-scoped and suffix-filtered
  ✅ Reading an absent marker raises NotFoundError
"""

from __future__ import annotations

import pytest

from markerflow.core.errors import NotFoundError, ValidationError
from markerflow.core.namespace import Namespace, is_safe_segment
from markerflow.storage.artifacts import (
    ArtifactKind,
    child_id,
    cache_id,
    make_upload_id,
    require_artifact_id,
    upload_extension,
)


@pytest.mark.unit
class TestIdentity:

    def test_child_ids(self):
        upload_id = "1700_alice_alpha_report.final.PDF"
        marker_id = child_id(upload_id, ArtifactKind.MARKER)
        embedding_id = child_id(marker_id, ArtifactKind.EMBEDDING)

        assert marker_id == "1700_alice_alpha_report.final_markers.json"
        assert embedding_id == "1700_alice_alpha_report.final_embedding.json"
        assert cache_id(upload_id) == "1700_alice_alpha_report.final.PDF.md"
        assert upload_extension(upload_id) == ".pdf"

    def test_child_id_for_upload_is_rejected(self):
        with pytest.raises(ValueError):
            child_id("anything.csv", ArtifactKind.UPLOAD)

    def test_make_upload_id_sanitises(self, namespace):
        upload_id = make_upload_id(namespace, "../../etc/My Report (v2).csv", 1700)

        assert upload_id == "1700_alice_alpha_My_Report__v2_.csv"
        assert is_safe_segment(upload_id)

    def test_make_upload_id_without_stem_or_extension(self, namespace):
        assert make_upload_id(namespace, "", 5) == "5_alice_alpha_file"
        assert make_upload_id(namespace, "README", 5) == "5_alice_alpha_README"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("upload", ArtifactKind.UPLOAD),
            ("uploads", ArtifactKind.UPLOAD),
            ("Marker", ArtifactKind.MARKER),
            ("markers", ArtifactKind.MARKER),
            ("embed", ArtifactKind.EMBEDDING),
            ("embedding", ArtifactKind.EMBEDDING),
            ("embeds", ArtifactKind.EMBEDDING),
        ],
    )
    def test_kind_aliases(self, raw, expected):
        assert ArtifactKind.parse(raw) is expected

    def test_kind_invalid(self):
        with pytest.raises(ValidationError):
            ArtifactKind.parse("cache")

    @pytest.mark.parametrize("bad", ["", "   ", "..", "a/b", "a\\b", "x\x00y", "../alice"])
    def test_namespace_rejects_unsafe_segments(self, bad):
        with pytest.raises(ValidationError):
            Namespace.of(bad, "alpha")
        with pytest.raises(ValidationError):
            Namespace.of("alice", bad)

    def test_namespace_trims(self):
        ns = Namespace.of("  alice ", " alpha")
        assert ns == Namespace("alice", "alpha")
        assert str(ns) == "alice/alpha"

    @pytest.mark.parametrize("bad", ["", "../db.json", "sub/file.csv", "..\\x"])
    def test_require_artifact_id(self, bad):
        with pytest.raises(ValidationError):
            require_artifact_id(bad)


@pytest.mark.unit
class TestArtifactStore:

    def test_create_upload_never_overwrites(self, services, namespace):
        first  = services.store.create_upload(namespace, "a.csv", b"one", created_ms=42)
        second = services.store.create_upload(namespace, "a.csv", b"two", created_ms=42)

        assert first != second
        assert services.store.read_upload(first) == b"one"
        assert services.store.read_upload(second) == b"two"

    def test_same_base_different_extension_gets_own_derived_ids(self, services, namespace):
        csv_id  = services.store.create_upload(namespace, "report.csv", b"a,b", created_ms=1000)
        xlsx_id = services.store.create_upload(namespace, "report.xlsx", b"PK", created_ms=1000)

        assert csv_id == "1000_alice_alpha_report.csv"
        assert xlsx_id == "1001_alice_alpha_report.xlsx"
        assert child_id(csv_id, ArtifactKind.MARKER) != child_id(xlsx_id, ArtifactKind.MARKER)

    def test_extensionless_upload_blocks_same_base(self, services, namespace):
        first  = services.store.create_upload(namespace, "README", b"x", created_ms=7)
        second = services.store.create_upload(namespace, "README.csv", b"y", created_ms=7)

        assert first == "7_alice_alpha_README"
        assert second == "8_alice_alpha_README.csv"

    def test_read_missing_upload(self, services):
        with pytest.raises(NotFoundError):
            services.store.read_upload("nope.csv")

    def test_listings_are_scoped_and_filtered(self, services, namespace, other_namespace):
        store = services.store
        store.write_markers(namespace, "x_markers.json", [])
        store.write_markers(other_namespace, "y_markers.json", [])
        store.write_embeddings(namespace, "x_embedding.json", [])
        (store.marker_dir(namespace) / "stray.txt").write_text("ignored")

        assert store.list_markers(namespace) == ["x_markers.json"]
        assert store.list_markers(other_namespace) == ["y_markers.json"]
        assert store.list_embeddings(namespace) == ["x_embedding.json"]
        assert store.list_embeddings(other_namespace) == []

    def test_read_missing_marker(self, services, namespace):
        with pytest.raises(NotFoundError):
            services.store.read_markers(namespace, "absent_markers.json")

    def test_remove_reports_absence(self, services, tmp_path):
        target = tmp_path / "gone.json"
        target.write_text("{}")
        assert services.store.remove(target) is True
        assert services.store.remove(target) is False
