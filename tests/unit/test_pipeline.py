"""
Unit Tests — PipelineService
═════════════════════════════
Real store, index, registry and extraction cache under tmp_path; the
embedding provider is deterministic-only (see conftest.py).

Coverage targets:
  ✅ Upload: stored bytes, index entry, namespace registered first
  ✅ Upload: empty data / missing name / oversized → ValidationError
  ✅ Markers: no uploads → NotFoundError("No uploaded files found.")
  ✅ Markers: tiny CSV → marker artifact with 0 fields (still persisted)
  ✅ Markers: XLSX / PDF uploads produce fields from real parsers
  ✅ Markers: one corrupt file → status failed, batch continues, success False
  ✅ Markers: unsupported upload → skipped, no marker artifact
  ✅ Embeddings: no markers → NotFoundError("No marker JSONs found.")
  ✅ Embeddings: values shorter than 5 chars after trim are skipped (4 vs 5)
  ✅ Embeddings: every vector has the provider dimension
  ✅ Embeddings: deterministic vectors → identical files on re-run
  ✅ Views: upload ownership enforced, marker/embedding views return stored JSON
"""

from __future__ import annotations

import json

import pytest

from markerflow.core.errors import NotFoundError, ValidationError
from markerflow.embeddings import deterministic_embedding
from markerflow.schemas.pipeline import ItemStatus
from markerflow.storage.artifacts import ArtifactKind, child_id


# ─────────────────────────────────────────────────────────────────────────────
# Upload
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestUpload:

    async def test_upload_persists_and_registers(self, services, namespace, sample_csv_bytes):
        response = await services.pipeline.upload(namespace, "customers.csv", sample_csv_bytes)

        assert response.filename.endswith("_alice_alpha_customers.csv")
        assert response.size_bytes == len(sample_csv_bytes)
        assert services.store.read_upload(response.filename) == sample_csv_bytes
        assert services.index.owns(namespace, response.filename)
        assert await services.registry.namespace_exists(namespace)

    async def test_same_name_twice_gives_two_uploads(self, services, namespace, tiny_csv_bytes):
        first  = await services.pipeline.upload(namespace, "a.csv", tiny_csv_bytes)
        second = await services.pipeline.upload(namespace, "a.csv", tiny_csv_bytes)

        assert first.filename != second.filename
        assert len(services.index.list_uploads(namespace)) == 2

    @pytest.mark.parametrize("name,data", [("a.csv", b""), ("", b"a,b\n"), ("   ", b"a,b\n")])
    async def test_rejects_empty(self, services, namespace, name, data):
        with pytest.raises(ValidationError):
            await services.pipeline.upload(namespace, name, data)
        assert services.index.list_uploads(namespace) == []

    async def test_rejects_oversized(self, services, namespace):
        services.settings.max_upload_bytes = 8
        with pytest.raises(ValidationError):
            await services.pipeline.upload(namespace, "big.csv", b"x" * 9)


# ─────────────────────────────────────────────────────────────────────────────
# Markers
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestDeriveMarkers:

    async def test_no_uploads(self, services, namespace):
        with pytest.raises(NotFoundError, match="No uploaded files found."):
            await services.pipeline.derive_markers(namespace)

    async def test_tiny_csv_yields_empty_marker_file(self, services, namespace, tiny_csv_bytes):
        upload = await services.pipeline.upload(namespace, "tiny.csv", tiny_csv_bytes)

        result = await services.pipeline.derive_markers(namespace)

        assert result.success is True
        assert result.summary[0].fields == 0
        marker_id = child_id(upload.filename, ArtifactKind.MARKER)
        assert services.store.read_markers(namespace, marker_id) == []

    async def test_spreadsheet_and_pdf(self, services, namespace, sample_xlsx_bytes, sample_pdf_bytes):
        await services.pipeline.upload(namespace, "orders.xlsx", sample_xlsx_bytes)
        await services.pipeline.upload(namespace, "invoice.pdf", sample_pdf_bytes)

        result = await services.pipeline.derive_markers(namespace)

        assert result.produced == 2
        by_ext = {s.file.rsplit(".", 1)[-1]: s for s in result.summary}
        xlsx_records = services.store.read_markers(namespace, by_ext["xlsx"].marker_file)
        pdf_records  = services.store.read_markers(namespace, by_ext["pdf"].marker_file)

        assert {"field": "Field_1", "value": "| product | quantity | price |"} in xlsx_records
        assert pdf_records[0] == {"field": "Field_1", "value": "Invoice number INV-2024-0001 issued to ACME Corp"}

    async def test_corrupt_file_does_not_stop_batch(self, services, namespace, sample_csv_bytes):
        bad  = await services.pipeline.upload(namespace, "broken.xlsx", b"not a workbook")
        good = await services.pipeline.upload(namespace, "customers.csv", sample_csv_bytes)

        result = await services.pipeline.derive_markers(namespace)

        assert result.success is False
        assert (result.produced, result.failed) == (1, 1)
        statuses = {s.file: s.status for s in result.summary}
        assert statuses[bad.filename] is ItemStatus.FAILED
        assert statuses[good.filename] is ItemStatus.OK
        assert not services.store.cache_path(bad.filename).exists()

    async def test_unsupported_is_skipped(self, services, namespace):
        upload = await services.pipeline.upload(namespace, "notes.docx", b"PK\x03\x04")

        result = await services.pipeline.derive_markers(namespace)

        assert result.success is True
        assert result.skipped == 1
        assert services.store.list_markers(namespace) == []
        assert result.summary[0].file == upload.filename


# ─────────────────────────────────────────────────────────────────────────────
# Embeddings
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestDeriveEmbeddings:

    async def test_no_markers(self, services, namespace):
        with pytest.raises(NotFoundError, match="No marker JSONs found."):
            await services.pipeline.derive_embeddings(namespace)

    async def test_min_length_rule(self, services, namespace):
        services.store.write_markers(namespace, "1_alice_alpha_x_markers.json", [
            {"field": "Field_1", "value": "  abcd  "},
            {"field": "Field_2", "value": "abcde"},
            {"field": "Field_3", "value": ""},
        ])

        result = await services.pipeline.derive_embeddings(namespace)

        summary = result.summary[0]
        assert (summary.embedded_count, summary.skipped) == (1, 2)
        records = services.store.read_embeddings(namespace, summary.embedding_file)
        assert records == [{
            "field": "Field_2",
            "text": "abcde",
            "embedding": deterministic_embedding("abcde", 384),
        }]

    async def test_end_to_end_csv(self, services, namespace, sample_csv_bytes):
        await services.pipeline.upload(namespace, "customers.csv", sample_csv_bytes)
        await services.pipeline.derive_markers(namespace)

        result = await services.pipeline.derive_embeddings(namespace)

        assert result.success is True
        assert result.dimensions == 384
        records = services.store.read_embeddings(namespace, result.summary[0].embedding_file)
        assert len(records) == 3
        assert all(len(r["embedding"]) == 384 for r in records)
        assert result.summary[0].strategies == {"deterministic": 3}

    async def test_rerun_is_byte_identical(self, services, namespace, sample_csv_bytes):
        await services.pipeline.upload(namespace, "customers.csv", sample_csv_bytes)
        await services.pipeline.derive_markers(namespace)
        first = await services.pipeline.derive_embeddings(namespace)
        path = services.store.embedding_path(namespace, first.summary[0].embedding_file)
        before = path.read_bytes()

        await services.pipeline.derive_embeddings(namespace)

        assert path.read_bytes() == before

    async def test_unreadable_marker_file_is_reported(self, services, namespace):
        path = services.store.marker_path(namespace, "1_alice_alpha_bad_markers.json")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{broken", encoding="utf-8")

        result = await services.pipeline.derive_embeddings(namespace)

        assert result.success is False
        assert result.summary[0].status is ItemStatus.FAILED


# ─────────────────────────────────────────────────────────────────────────────
# Views + listings
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestViews:

    async def test_listing_and_views(self, services, namespace, sample_csv_bytes):
        upload = await services.pipeline.upload(namespace, "customers.csv", sample_csv_bytes)
        await services.pipeline.derive_markers(namespace)
        await services.pipeline.derive_embeddings(namespace)

        listing = services.pipeline.list_artifacts(namespace)
        assert listing.uploaded_files == [upload.filename]
        assert len(listing.marked_files) == 1 and len(listing.embedded_files) == 1

        view = await services.pipeline.view_upload(namespace, upload.filename)
        assert view.content.startswith("| customer | city | amount |")

        marker_view = services.pipeline.view_marker(namespace, listing.marked_files[0])
        assert marker_view.records[0].field == "Field_1"

        embedding_view = services.pipeline.view_embedding(namespace, listing.embedded_files[0])
        assert len(embedding_view.records[0].embedding) == 384

    async def test_view_upload_requires_ownership(self, services, namespace, other_namespace, sample_csv_bytes):
        upload = await services.pipeline.upload(namespace, "customers.csv", sample_csv_bytes)

        with pytest.raises(NotFoundError):
            await services.pipeline.view_upload(other_namespace, upload.filename)

    async def test_marker_json_round_trips_through_view(self, services, namespace, tiny_csv_bytes):
        await services.pipeline.upload(namespace, "tiny.csv", tiny_csv_bytes)
        await services.pipeline.derive_markers(namespace)
        marker_id = services.store.list_markers(namespace)[0]

        on_disk = json.loads(services.store.marker_path(namespace, marker_id).read_text(encoding="utf-8"))

        assert services.pipeline.view_marker(namespace, marker_id).records == on_disk == []
