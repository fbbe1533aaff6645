"""
Root conftest.py — Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy:
  function-scoped : settings, provider, services, namespace, sample file bytes,
                    app_with_services, async_client

Environment strategy:
  - Every test gets its own data_root under pytest's tmp_path; nothing is
    written outside it.
  - The embedding chain is deterministic-only: no sentence-transformers
    download, no OpenAI calls. Optional strategies are tested with doubles.
  - Sample PDF / XLSX files are generated with PyMuPDF / openpyxl.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only (fast, filesystem only)
  pytest -m integration           # ASGI-level tests through httpx
"""

from __future__ import annotations

import io
import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Keep ambient credentials out of the settings under test
# ─────────────────────────────────────────────────────────────────────────────

os.environ["OPENAI_API_KEY"] = ""
os.environ.setdefault("APP_ENV", "development")


# ─────────────────────────────────────────────────────────────────────────────
# Settings + service graph
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    """Settings bound to a private data_root; optional strategies disabled."""
    from markerflow.core.config import Settings

    return Settings(
        _env_file=None,
        data_root=tmp_path / "data",
        db_json_path=None,
        uploads_json_path=None,
        local_embeddings_enabled=False,
        openai_api_key="",
        embedding_dimensions=384,
    )


@pytest.fixture
def provider():
    """Deterministic-only embedding chain."""
    from markerflow.embeddings import DeterministicStrategy, EmbeddingProvider

    return EmbeddingProvider([DeterministicStrategy(384)], dimensions=384)


@pytest.fixture
def services(settings, provider):
    from markerflow.services.container import build_services

    svc = build_services(settings, provider=provider)
    svc.store.ensure_dirs()
    return svc


@pytest.fixture
def namespace():
    from markerflow.core.namespace import Namespace

    return Namespace(user="alice", project="alpha")


@pytest.fixture
def other_namespace():
    from markerflow.core.namespace import Namespace

    return Namespace(user="bob", project="beta")


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

LONG_LINES = [
    "Invoice number INV-2024-0001 issued to ACME Corp",
    "Payment terms: net thirty days from the invoice date",
    "Delivery address: 42 Harbour Street, Port Town",
]


@pytest.fixture
def tiny_csv_bytes() -> bytes:
    """Header a,b and one row — every canonical line is ≤ 20 chars."""
    return b"a,b\n1,2\n"


@pytest.fixture
def sample_csv_bytes() -> bytes:
    """CSV whose markdown rows are longer than 20 characters."""
    return (
        b"customer,city,amount\n"
        b"Northwind Traders,Seattle,1200\n"
        b"Contoso Pharmaceuticals,Berlin,880\n"
    )


@pytest.fixture
def sample_xlsx_bytes() -> bytes:
    """Two-sheet workbook; only the first sheet should be extracted."""
    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws.title = "Orders"
    ws.append(["product", "quantity", "price"])
    ws.append(["Industrial widget assembly", 3, 19.5])
    ws.append(["Replacement gasket kit", 10, 4.0])
    other = wb.create_sheet("Ignored")
    other.append(["should", "not", "appear"])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """One-page PDF with three long lines of real text."""
    import fitz

    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "\n".join(LONG_LINES), fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def fifty_line_text() -> str:
    """50 lines: 30 longer than 20 chars interleaved with 20 short ones."""
    lines = []
    long_no = 0
    for i in range(50):
        if i % 5 in (1, 3):
            lines.append(f"short {i}")
        else:
            long_no += 1
            lines.append(f"   qualifying line number {long_no:02d}   ")
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI test client
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_with_services(settings, services):
    """App wired to the per-test service graph."""
    from markerflow.main import create_app

    return create_app(settings=settings, services=services)


@pytest_asyncio.fixture
async def async_client(app_with_services) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client using ASGITransport (httpx >= 0.28)."""
    from httpx import ASGITransport

    transport = ASGITransport(app=app_with_services)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
