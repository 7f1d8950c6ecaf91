"""Location completeness rules shared by client and server."""
from typing import Any, Dict, List, Mapping, Optional

LOCATION_FIELDS = ("reg_name", "prov_name", "city_name", "brgy_name")

# Local draft saves only need province and city; submitting needs the barangay too.
LENIENT_REQUIRED = ("prov_name", "city_name")
STRICT_REQUIRED = ("prov_name", "city_name", "brgy_name")


def clean_location_value(value: Any) -> Optional[str]:
    """Trim a location value; blank or non-string values become None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def pick_location(source: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    """Cleaned location values for the keys present in ``source``."""
    return {key: clean_location_value(source.get(key)) for key in LOCATION_FIELDS if key in source}


def _read(location: Any, key: str) -> Any:
    if location is None:
        return None
    if isinstance(location, Mapping):
        return location.get(key)
    return getattr(location, key, None)


def missing_location_fields(location: Any, strict: bool = True) -> List[str]:
    """
    Names of the required location fields that are blank.

    ``location`` may be a mapping or any object with the location attributes.
    """
    required = STRICT_REQUIRED if strict else LENIENT_REQUIRED
    return [key for key in required if clean_location_value(_read(location, key)) is None]
