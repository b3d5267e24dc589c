"""Pytest configuration and shared fixtures.

Provides common test fixtures and configuration for the BIM2SE test suite.
"""

from __future__ import annotations

import struct
import tempfile
from pathlib import Path
from typing import Generator

import pytest
import structlog

from kernel.binding import get_occt_info, resolve_binding


# Configure test logging
structlog.configure(
    processors=[
        structlog.testing.LogCapture(),
    ],
    logger_factory=structlog.testing.CapturingLoggerFactory(),
    cache_logger_on_first_use=False,
)

# Unit tetrahedron, one corner at the origin
TETRAHEDRON = [
    ((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (1.0, 0.0, 0.0)),
    ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)),
    ((0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (0.0, 1.0, 0.0)),
    ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)),
]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_stl_content() -> str:
    """Provide an ASCII STL of a unit tetrahedron."""
    lines = ["solid tetra"]
    for tri in TETRAHEDRON:
        lines.append("  facet normal 0 0 0")
        lines.append("    outer loop")
        for x, y, z in tri:
            lines.append(f"      vertex {x} {y} {z}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append("endsolid tetra")
    return "\n".join(lines) + "\n"


@pytest.fixture
def sample_stl_file(temp_dir: Path, sample_stl_content: str) -> Path:
    """Create a sample ASCII STL file for testing."""
    stl_file = temp_dir / "tetra.stl"
    stl_file.write_text(sample_stl_content, encoding="utf-8")
    return stl_file


@pytest.fixture
def binary_stl_file(temp_dir: Path) -> Path:
    """Create a binary STL file with the same tetrahedron."""
    data = b"binary tetrahedron".ljust(80, b" ")
    data += struct.pack("<I", len(TETRAHEDRON))
    for tri in TETRAHEDRON:
        flat = [c for vertex in tri for c in vertex]
        data += struct.pack("<12fH", 0.0, 0.0, 0.0, *flat, 0)

    stl_file = temp_dir / "tetra_binary.stl"
    stl_file.write_bytes(data)
    return stl_file


@pytest.fixture
def skip_if_no_occt():
    """Skip test if no OCCT binding is available."""
    occt_info = get_occt_info()
    if not occt_info["OCP_available"] and not occt_info["pythonOCC_available"]:
        pytest.skip("No OCCT binding available (OCP or pythonocc-core required)")


@pytest.fixture
def clear_binding_cache() -> Generator[None, None, None]:
    """Forget the resolved binding before and after a test."""
    resolve_binding.cache_clear()
    yield
    resolve_binding.cache_clear()


class MockShape:
    """Mock OCCT shape for testing."""

    def __init__(self, name: str = "shape", is_null: bool = False):
        self.name = name
        self._is_null = is_null

    def IsNull(self) -> bool:
        return self._is_null

    def __repr__(self) -> str:
        return f"MockShape({self.name!r})"


@pytest.fixture
def mock_occt_shape() -> MockShape:
    """Provide a mock OCCT shape for testing."""
    return MockShape("mock")


@pytest.fixture
def mock_null_shape() -> MockShape:
    """Provide a mock null OCCT shape for testing."""
    return MockShape("null", is_null=True)


@pytest.fixture(autouse=True)
def restore_structlog_config() -> Generator[None, None, None]:
    """Undo any structlog reconfiguration done by the code under test."""
    saved = structlog.get_config()
    yield
    structlog.configure(**saved)
