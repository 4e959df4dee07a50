"""
Landmark Presets for Common Electrode Montages

Pre-defined front/left/top/right/rear landmarks for the usual EEG caps,
and auto-detection of the landmarks from the electrode names of a montage.

Usage:
    from montage_spline.presets import get_landmarks, detect_landmarks

    # Load by name
    landmarks = get_landmarks("biosemi_128")

    # Or guess from a montage
    detected = detect_landmarks(points.names)
    if detected is not None:
        key, landmarks = detected
"""

from __future__ import annotations

from typing import Any, Sequence

from montage_spline.geometry.fiducial import FiducialLandmarks

# =============================================================================
# Preset Definitions
# =============================================================================


TEN_TEN_T3_T4: dict[str, Any] = {
    "name": "10-10 System (T3/T4)",
    "description": "10-10 caps using the older T3/T4 temporal names.",
    "front": "Fpz",
    "left": "T3",
    "top": "Cz",
    "right": "T4",
    "rear": "Oz",
}


TEN_TEN_T7_T8: dict[str, Any] = {
    "name": "10-10 System (T7/T8)",
    "description": "10-10 caps with T7/T8, rear taken between O1 and O2.",
    "front": "Fpz",
    "left": "T7",
    "top": "Cz",
    "right": "T8",
    "rear": "O1 O2",
}


EGI_V2: dict[str, Any] = {
    "name": "EGI Version 2",
    "description": "EGI 129 Geodesic Sensor Net, reference named VREF.",
    "front": "15 18",
    "left": "46",
    "top": "VREF",
    "right": "109",
    "rear": "76",
}


EGI_V3: dict[str, Any] = {
    "name": "EGI Version 3",
    "description": "EGI 129 Geodesic Sensor Net, reference named REF.",
    "front": "15 18",
    "left": "46",
    "top": "REF",
    "right": "109",
    "rear": "76",
}


EGI_HYDROCEL_129_REF: dict[str, Any] = {
    "name": "EGI HydroCel 129",
    "description": "HydroCel 129 (not 256) with the vertex reference named REF.",
    "front": "E14 E15 E21",
    "left": "E39",
    "top": "REF",
    "right": "E115",
    "rear": "E75",
}


EGI_HYDROCEL_129_CZ: dict[str, Any] = {
    "name": "EGI HydroCel 129",
    "description": "HydroCel 129 (not 256) with the vertex reference named Cz.",
    "front": "E14 E15 E21",
    "left": "E39",
    "top": "Cz",
    "right": "E115",
    "rear": "E75",
}


NEUROSCAN: dict[str, Any] = {
    "name": "Neuroscan",
    "description": "Numbered Neuroscan montage.",
    "front": "104",
    "left": "38",
    "top": "96",
    "right": "70",
    "rear": "7",
}


BIOSEMI_128: dict[str, Any] = {
    "name": "Biosemi 128",
    "description": "Biosemi 128 channels, A1..D32 names.",
    "front": "C17",
    "left": "D23",
    "top": "A1",
    "right": "B26",
    "rear": "A23",
}


BIOSEMI_192: dict[str, Any] = {
    "name": "Biosemi 192",
    "description": "Biosemi 192 channels, A1..F32 names.",
    "front": "D8",
    "left": "E9",
    "top": "A1",
    "right": "B32",
    "rear": "A23",
}


BIOSEMI_256: dict[str, Any] = {
    "name": "Biosemi 256",
    "description": "Biosemi 256 channels, numbered names.",
    "front": "140",
    "left": "82",
    "top": "1",
    "right": "203",
    "rear": "19",
}


# =============================================================================
# Preset Registry
# =============================================================================


PRESETS: dict[str, dict[str, Any]] = {
    "10_10_t3_t4": TEN_TEN_T3_T4,
    "10_10_t7_t8": TEN_TEN_T7_T8,
    "egi_v2": EGI_V2,
    "egi_v3": EGI_V3,
    "egi_hydrocel_129_ref": EGI_HYDROCEL_129_REF,
    "egi_hydrocel_129_cz": EGI_HYDROCEL_129_CZ,
    "neuroscan": NEUROSCAN,
    "biosemi_128": BIOSEMI_128,
    "biosemi_192": BIOSEMI_192,
    "biosemi_256": BIOSEMI_256,
}

AUTO_DETECTED = "auto_detected"


def list_presets() -> list[str]:
    """
    List all available preset names.

    Examples
    --------
    >>> list_presets()[:2]
    ['10_10_t3_t4', '10_10_t7_t8']
    """
    return list(PRESETS.keys())


def get_preset(name: str) -> dict[str, Any]:
    """
    Get a preset by name.

    Parameters
    ----------
    name : str
        Preset name (case-insensitive, spaces and dashes optional).

    Returns
    -------
    dict
        Preset dictionary with name, description and the 5 landmarks.

    Raises
    ------
    KeyError
        If preset name not found.

    Examples
    --------
    >>> get_preset("Biosemi 128")["front"]
    'C17'
    >>> get_preset("10-10 t7 t8")["rear"]
    'O1 O2'
    """
    # Normalize name: lowercase, replace spaces with underscores
    normalized = name.lower().replace(" ", "_").replace("-", "_")

    if normalized not in PRESETS:
        available = ", ".join(list_presets())
        raise KeyError(
            f"Preset '{name}' not found. Available presets: {available}"
        )

    # Return a copy to prevent modification of original
    return dict(PRESETS[normalized])


def get_landmarks(name: str) -> FiducialLandmarks:
    """Landmarks of a preset, ready for ``MontageSpec``."""
    preset = get_preset(name)
    return FiducialLandmarks(
        front=preset["front"],
        left=preset["left"],
        top=preset["top"],
        right=preset["right"],
        rear=preset["rear"],
    )


def get_preset_names_and_descriptions() -> list[tuple[str, str, str]]:
    """
    Get all preset names with their display names and descriptions.

    Returns
    -------
    list[tuple[str, str, str]]
        List of (key, display_name, description) tuples.
    """
    result = []
    for key, preset in PRESETS.items():
        result.append((key, preset["name"], preset["description"]))
    return result


# =============================================================================
# Auto-Detection
# =============================================================================


def _has_all(lookup: dict[str, str], *names: str) -> bool:
    return all(n.lower() in lookup for n in names)


def _detect_ten_ten(lookup: dict[str, str]) -> FiducialLandmarks | None:
    has_left = _has_all(lookup, "T3") or _has_all(lookup, "T7")
    has_right = _has_all(lookup, "T4") or _has_all(lookup, "T8")
    has_front = _has_all(lookup, "Fpz") or _has_all(lookup, "Fp1", "Fp2")
    has_rear = _has_all(lookup, "Oz") or _has_all(lookup, "O1", "O2")

    if not (has_left and has_right and has_front and has_rear and _has_all(lookup, "Cz")):
        return None

    # T3/T4 take precedence when both namings are present
    left = lookup["t3"] if "t3" in lookup else lookup["t7"]
    right = lookup["t4"] if "t4" in lookup else lookup["t8"]
    front = lookup["fpz"] if "fpz" in lookup else f"{lookup['fp1']} {lookup['fp2']}"
    rear = lookup["oz"] if "oz" in lookup else f"{lookup['o1']} {lookup['o2']}"

    return FiducialLandmarks(front=front, left=left, top=lookup["cz"], right=right, rear=rear)


def detect_landmarks(names: Sequence[str]) -> tuple[str, FiducialLandmarks] | None:
    """
    Guess the landmarks of a montage from its electrode names.

    Parameters
    ----------
    names : sequence of str
        Electrode names, in file order.

    Returns
    -------
    tuple[str, FiducialLandmarks] or None
        (preset key, landmarks), with key ``"auto_detected"`` for 10-10
        montages built from the names found; None if nothing matched.

    Examples
    --------
    >>> key, lm = detect_landmarks(["Fp1", "Fp2", "T7", "Cz", "T8", "O1", "O2"])
    >>> key, lm.front, lm.rear
    ('auto_detected', 'Fp1 Fp2', 'O1 O2')
    """
    lookup = {}
    for name in names:
        lookup.setdefault(name.lower(), name)

    ten_ten = _detect_ten_ten(lookup)
    if ten_ten is not None:
        return AUTO_DETECTED, ten_ten

    if _has_all(lookup, "46", "109", "15", "18", "76") and (
        _has_all(lookup, "VREF") or _has_all(lookup, "REF")
    ):
        # EGI nets start their numbering at 1, Neuroscan does not
        if list(names[:3]) == ["1", "2", "3"]:
            key = "egi_v2" if _has_all(lookup, "VREF") else "egi_v3"
        else:
            key = "neuroscan"
        return key, get_landmarks(key)

    if _has_all(lookup, "E39", "E115", "E14", "E15", "E21", "E75"):
        key = "egi_hydrocel_129_cz" if _has_all(lookup, "Cz") else "egi_hydrocel_129_ref"
        return key, get_landmarks(key)

    # Biosemi 192 tested before Biosemi 128, whose names it also holds
    for key in ("biosemi_256", "biosemi_192", "biosemi_128"):
        preset = PRESETS[key]
        wanted = [preset[label] for label in ("front", "left", "top", "right", "rear")]
        if _has_all(lookup, *wanted):
            return key, get_landmarks(key)

    return None
