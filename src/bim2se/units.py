"""Unit normalization and conversion for model placement.

Terrain surveys usually come in metres while building models are often
exported in millimetres; both are scaled into the pipeline's target length
unit before they share a coordinate system.
"""

from __future__ import annotations

# Factors to the SI base unit
LENGTH_UNITS = {
    "m": 1.0,
    "mm": 0.001,
    "cm": 0.01,
    "dm": 0.1,
    "km": 1000.0,

    "in": 0.0254,
    "ft": 0.3048,
    "yd": 0.9144,
    "us_survey_ft": 1200.0 / 3937.0,
}

VOLUME_UNITS = {
    "m³": 1.0,
    "mm³": 1e-9,
    "cm³": 1e-6,
    "dm³": 1e-3,
    "in³": 1.6387064e-5,
    "ft³": 0.028316846592,
    "yd³": 0.764554857984,
    "l": 0.001,
}


class UnitConversionError(Exception):
    """Raised when unit conversion fails."""
    pass


def normalize_unit_name(unit: str) -> str:
    """Normalize unit name to standard form.

    Examples:
        >>> normalize_unit_name("MILLIMETRE")
        'mm'
        >>> normalize_unit_name("m3")
        'm³'
    """
    unit = unit.strip().lower()

    mappings = {
        "millimetre": "mm",
        "millimeter": "mm",
        "centimetre": "cm",
        "centimeter": "cm",
        "decimetre": "dm",
        "decimeter": "dm",
        "metre": "m",
        "meter": "m",
        "kilometre": "km",
        "kilometer": "km",

        "inch": "in",
        "inches": "in",
        "foot": "ft",
        "feet": "ft",
        "yard": "yd",
        "yards": "yd",

        "m3": "m³",
        "mm3": "mm³",
        "cm3": "cm³",
        "dm3": "dm³",
        "in3": "in³",
        "ft3": "ft³",
        "yd3": "yd³",
        "liter": "l",
        "litre": "l",
    }

    return mappings.get(unit, unit)


def get_conversion_factor(from_unit: str, to_unit: str, unit_type: str) -> float:
    """Get conversion factor between two units.

    Args:
        from_unit: Source unit
        to_unit: Target unit
        unit_type: "length" or "volume"

    Returns:
        Multiplication factor to convert from source to target

    Raises:
        UnitConversionError: If units are incompatible or unknown
    """
    unit_tables = {
        "length": LENGTH_UNITS,
        "volume": VOLUME_UNITS,
    }

    if unit_type not in unit_tables:
        raise UnitConversionError(f"Unknown unit type: {unit_type}")

    table = unit_tables[unit_type]

    from_normalized = normalize_unit_name(from_unit)
    to_normalized = normalize_unit_name(to_unit)

    if from_normalized not in table:
        raise UnitConversionError(f"Unknown {unit_type} unit: {from_unit}")
    if to_normalized not in table:
        raise UnitConversionError(f"Unknown {unit_type} unit: {to_unit}")

    return table[from_normalized] / table[to_normalized]


def convert_value(value: float, from_unit: str, to_unit: str, unit_type: str) -> float:
    """Convert a value between units.

    Examples:
        >>> convert_value(1000, "mm", "m", "length")
        1.0
    """
    return value * get_conversion_factor(from_unit, to_unit, unit_type)


def length_scale(from_units: str, to_units: str) -> float:
    """Scale factor that brings coordinates in ``from_units`` to ``to_units``."""
    return get_conversion_factor(from_units, to_units, "length")


def volume_unit_for(length_unit: str) -> str:
    """Cubic unit matching a length unit, e.g. ``"mm"`` -> ``"mm³"``."""
    return f"{normalize_unit_name(length_unit)}³"
