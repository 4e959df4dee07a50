"""
Tests for landmark presets and their auto-detection.
"""

from __future__ import annotations

import pytest

from montage_spline.geometry.fiducial import FiducialLandmarks
from montage_spline.presets import (
    AUTO_DETECTED,
    PRESETS,
    detect_landmarks,
    get_landmarks,
    get_preset,
    get_preset_names_and_descriptions,
    list_presets,
)


class TestPresetRegistry:
    """Tests for preset lookup."""

    def test_every_preset_is_complete(self) -> None:
        """Test that every preset names all five landmarks."""
        for key in list_presets():
            assert get_landmarks(key).is_complete(), key

    def test_lookup_is_normalized(self) -> None:
        """Test that case, spaces and dashes do not matter in preset names."""
        assert get_preset("Biosemi 128")["front"] == "C17"
        assert get_preset("10-10 T7 T8")["rear"] == "O1 O2"

    def test_unknown_preset(self) -> None:
        """Test that an unknown preset lists the available ones."""
        with pytest.raises(KeyError, match="Available presets"):
            get_preset("geodesic_512")

    def test_returned_preset_is_a_copy(self) -> None:
        """Test that editing a returned preset leaves the registry intact."""
        preset = get_preset("neuroscan")
        preset["front"] = "1"
        assert PRESETS["neuroscan"]["front"] == "104"

    def test_names_and_descriptions(self) -> None:
        entries = get_preset_names_and_descriptions()
        assert len(entries) == len(PRESETS)
        assert ("egi_v2", "EGI Version 2", PRESETS["egi_v2"]["description"]) in entries


class TestDetectLandmarks:
    """Tests for guessing landmarks from electrode names."""

    def test_ten_ten_with_midline(self) -> None:
        """Test detection of a 10-10 cap with midline electrodes."""
        key, lm = detect_landmarks(["Fpz", "T7", "Cz", "T8", "Oz", "Pz"])
        assert key == AUTO_DETECTED
        assert lm == FiducialLandmarks("Fpz", "T7", "Cz", "T8", "Oz")

    def test_ten_ten_combines_pairs(self) -> None:
        """Test that Fp1 Fp2 and O1 O2 stand in for missing Fpz and Oz."""
        key, lm = detect_landmarks(["Fp1", "Fp2", "T7", "Cz", "T8", "O1", "O2"])
        assert lm.front == "Fp1 Fp2"
        assert lm.rear == "O1 O2"

    def test_t3_t4_take_precedence(self) -> None:
        """Test that the older T3 and T4 labels win over T7 and T8."""
        _, lm = detect_landmarks(["Fpz", "T3", "T7", "Cz", "T4", "T8", "Oz"])
        assert (lm.left, lm.right) == ("T3", "T4")

    def test_keeps_file_casing(self) -> None:
        """Test that detected landmarks keep the names as written in the file."""
        _, lm = detect_landmarks(["FPZ", "t7", "CZ", "t8", "OZ"])
        assert lm == FiducialLandmarks("FPZ", "t7", "CZ", "t8", "OZ")

    def test_missing_vertex_is_not_ten_ten(self) -> None:
        assert detect_landmarks(["Fpz", "T7", "T8", "Oz"]) is None

    def test_egi_versions(self) -> None:
        """Test that VREF and REF tell EGI versions 2 and 3 apart."""
        names = [str(i) for i in range(1, 129)]
        assert detect_landmarks(names + ["VREF"])[0] == "egi_v2"
        assert detect_landmarks(names + ["REF"])[0] == "egi_v3"

    def test_numbered_without_egi_order_is_neuroscan(self) -> None:
        """Test that numbered caps out of EGI order are taken as Neuroscan."""
        names = [str(i) for i in range(128, 0, -1)] + ["REF"]
        key, lm = detect_landmarks(names)
        assert key == "neuroscan"
        assert lm.front == "104"

    def test_hydrocel(self) -> None:
        """Test the two Hydrocel 129 references."""
        names = [f"E{i}" for i in range(1, 129)]
        assert detect_landmarks(names + ["Cz"])[0] == "egi_hydrocel_129_cz"
        assert detect_landmarks(names + ["REF"])[0] == "egi_hydrocel_129_ref"

    def test_biosemi(self) -> None:
        """Test Biosemi caps by their number of lettered banks."""
        banks_128 = [f"{bank}{i}" for bank in "ABCD" for i in range(1, 33)]
        banks_192 = [f"{bank}{i}" for bank in "ABCDEF" for i in range(1, 33)]

        assert detect_landmarks(banks_128)[0] == "biosemi_128"
        assert detect_landmarks(banks_192)[0] == "biosemi_192"

    def test_biosemi_256_numbered(self) -> None:
        names = [str(i) for i in range(0, 257)]
        assert detect_landmarks(names)[0] == "biosemi_256"

    def test_unknown_montage(self) -> None:
        """Test that unrecognized names give None."""
        assert detect_landmarks(["X1", "X2", "X3"]) is None
