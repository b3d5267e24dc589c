"""Tests for OCCT binding detection and resolution."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from kernel.binding import (
    Binding,
    OCCTNotAvailableError,
    get_occt_info,
    resolve_binding,
    static,
)


class TestOCCTInfo:
    """Test cases for OCCT binding detection."""

    def test_get_occt_info_structure(self):
        """Test that get_occt_info returns expected structure."""
        info = get_occt_info()

        required_keys = {
            "OCP_available",
            "pythonOCC_available",
            "recommended_binding",
            "occt_version",
        }

        assert isinstance(info, dict)
        assert required_keys.issubset(info.keys())
        assert isinstance(info["OCP_available"], bool)
        assert isinstance(info["pythonOCC_available"], bool)

    @patch('kernel.binding.logger')
    def test_occt_info_logging(self, mock_logger):
        """Test that OCCT detection logs appropriately."""
        get_occt_info()
        assert mock_logger.info.called or mock_logger.debug.called


class TestResolveBinding:
    """Test cases for binding selection."""

    @patch('kernel.binding.get_occt_info')
    def test_no_bindings(self, mock_get_info, clear_binding_cache):
        mock_get_info.return_value = {
            "OCP_available": False,
            "pythonOCC_available": False,
            "recommended_binding": None,
            "occt_version": None,
        }

        with pytest.raises(OCCTNotAvailableError, match="No OCCT Python binding available"):
            resolve_binding()

    @patch('kernel.binding.get_occt_info')
    def test_prefers_ocp(self, mock_get_info, clear_binding_cache):
        mock_get_info.return_value = {
            "OCP_available": True,
            "pythonOCC_available": True,
            "recommended_binding": "OCP",
            "occt_version": "7.7.2",
        }

        binding = resolve_binding()
        assert binding == Binding("OCP", "OCP", "7.7.2")

    @patch('kernel.binding.get_occt_info')
    def test_falls_back_to_pythonocc(self, mock_get_info, clear_binding_cache):
        mock_get_info.return_value = {
            "OCP_available": False,
            "pythonOCC_available": True,
            "recommended_binding": "pythonOCC",
            "occt_version": None,
        }

        binding = resolve_binding()
        assert binding.name == "pythonOCC"
        assert binding.root == "OCC.Core"
        assert binding.version == "unknown"

    @patch('kernel.binding.get_occt_info')
    def test_result_is_cached(self, mock_get_info, clear_binding_cache):
        mock_get_info.return_value = {
            "OCP_available": True,
            "pythonOCC_available": False,
            "recommended_binding": "OCP",
            "occt_version": None,
        }

        resolve_binding()
        resolve_binding()
        assert mock_get_info.call_count == 1


class TestStatic:
    """Static method lookup across naming conventions."""

    @patch('kernel.binding.occ')
    def test_ocp_suffix(self, mock_occ):
        def volume_s(*args):
            return "ocp"

        mock_occ.return_value = SimpleNamespace(
            __name__="OCP.BRepGProp",
            BRepGProp=SimpleNamespace(VolumeProperties_s=volume_s),
        )
        assert static("BRepGProp", "BRepGProp", "VolumeProperties")() == "ocp"

    @patch('kernel.binding.occ')
    def test_pythonocc_lowercase_holder(self, mock_occ):
        mock_occ.return_value = SimpleNamespace(
            __name__="OCC.Core.BRepGProp",
            BRepGProp=SimpleNamespace(),
            brepgprop=SimpleNamespace(VolumeProperties=lambda: "holder"),
        )
        assert static("BRepGProp", "BRepGProp", "VolumeProperties")() == "holder"

    @patch('kernel.binding.occ')
    def test_pythonocc_legacy_function(self, mock_occ):
        mock_occ.return_value = SimpleNamespace(
            __name__="OCC.Core.BRepBndLib",
            brepbndlib_Add=lambda: "legacy",
        )
        assert static("BRepBndLib", "BRepBndLib", "Add")() == "legacy"

    @patch('kernel.binding.occ')
    def test_missing_method(self, mock_occ):
        mock_occ.return_value = SimpleNamespace(__name__="OCP.Bnd")

        with pytest.raises(OCCTNotAvailableError, match="BRepBndLib.Add not found"):
            static("Bnd", "BRepBndLib", "Add")
