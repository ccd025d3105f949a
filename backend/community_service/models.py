"""
Community profile helpers: allowed values, payload validation, completion
scoring, and row serialization.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from backend.errors import ValidationError
from backend.validation import EMAIL_RE, PHONE_RE

COMMUNITY_TYPES = [
    "Indigenous Community",
    "Fishing Community",
    "Coastal Village",
    "Agricultural Community",
    "Conservation Group",
    "Local NGO",
    "Cooperative Society",
    "Self Help Group",
    "Other",
]

DRAFT = "Draft"
SUBMITTED = "Submitted"
UNDER_REVIEW = "Under Review"
VERIFIED = "Verified"
REJECTED = "Rejected"

SUBMIT_THRESHOLD = 70

REQUIRED_FIELDS = [
    "communityName",
    "communityType",
    "description",
    "location.address",
    "location.district",
    "location.state",
    "demographics.totalPopulation",
    "demographics.totalHouseholds",
    "contactInfo.primaryContact.name",
    "contactInfo.primaryContact.phone",
]

OPTIONAL_FIELDS = [
    "location.pincode",
    "location.coordinates.latitude",
    "location.village",
    "demographics.primaryLivelihood",
    "demographics.languages",
    "contactInfo.primaryContact.email",
]

# camelCase body key -> column
COLUMN_MAP = {
    "communityName": "community_name",
    "communityType": "community_type",
    "description": "description",
    "location": "location",
    "demographics": "demographics",
    "contactInfo": "contact_info",
    "isPublic": "is_public",
}
JSON_COLUMNS = {"location", "demographics", "contact_info"}


def _lookup(doc: Mapping[str, Any], dotted: str) -> Any:
    value: Any = doc
    for part in dotted.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def completion_percentage(profile: Mapping[str, Any]) -> int:
    """
    Required fields carry 70% of the score, optional fields 30%.

    Args:
        profile (Mapping): Serialized (camelCase) profile.
    """
    required = sum(1 for f in REQUIRED_FIELDS if _lookup(profile, f))
    optional = sum(1 for f in OPTIONAL_FIELDS if _lookup(profile, f))
    score = required / len(REQUIRED_FIELDS) * 70 + optional / len(OPTIONAL_FIELDS) * 30
    return int(round(score))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize(row: Mapping[str, Any]) -> Dict[str, Any]:
    profile = {
        "_id": row.get("profile_id"),
        "userId": row.get("user_id"),
        "communityName": row.get("community_name"),
        "communityType": row.get("community_type"),
        "description": row.get("description"),
        "location": row.get("location") or {},
        "demographics": row.get("demographics") or {},
        "contactInfo": row.get("contact_info") or {},
        "profileStatus": row.get("profile_status"),
        "submittedAt": _iso(row.get("submitted_at")),
        "isPublic": bool(row.get("is_public", True)),
        "createdAt": _iso(row.get("created_at")),
        "updatedAt": _iso(row.get("updated_at")),
    }
    profile["completionPercentage"] = completion_percentage(profile)
    return profile


def public_view(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Serialized profile without contact details."""
    profile = serialize(row)
    profile.pop("contactInfo", None)
    return profile


def _check_location(location: Any, errors: List[Dict[str, str]], partial: bool) -> None:
    if not isinstance(location, dict):
        errors.append({"field": "location", "message": "Location must be an object"})
        return
    for key in ("address", "district", "state"):
        if not partial and not location.get(key):
            errors.append({"field": f"location.{key}", "message": f"Location {key} is required"})
    pincode = location.get("pincode")
    if pincode and not (isinstance(pincode, str) and pincode.isdigit() and len(pincode) == 6):
        errors.append({"field": "location.pincode", "message": "Please enter a valid 6-digit pincode"})
    coords = location.get("coordinates") or {}
    lat, lng = coords.get("latitude"), coords.get("longitude")
    if lat is not None and not (isinstance(lat, (int, float)) and -90 <= lat <= 90):
        errors.append({"field": "location.coordinates.latitude", "message": "Latitude must be between -90 and 90"})
    if lng is not None and not (isinstance(lng, (int, float)) and -180 <= lng <= 180):
        errors.append({"field": "location.coordinates.longitude", "message": "Longitude must be between -180 and 180"})


def _check_demographics(demographics: Any, errors: List[Dict[str, str]], partial: bool) -> None:
    if not isinstance(demographics, dict):
        errors.append({"field": "demographics", "message": "Demographics must be an object"})
        return
    for key, label in (("totalPopulation", "Population"), ("totalHouseholds", "Number of households")):
        value = demographics.get(key)
        if value is None:
            if not partial:
                errors.append({"field": f"demographics.{key}", "message": f"{label} is required"})
        elif isinstance(value, bool) or not isinstance(value, int) or value < 1:
            errors.append({"field": f"demographics.{key}", "message": f"{label} must be at least 1"})


def _check_contact(contact: Any, errors: List[Dict[str, str]], partial: bool) -> None:
    if not isinstance(contact, dict):
        errors.append({"field": "contactInfo", "message": "Contact info must be an object"})
        return
    primary = contact.get("primaryContact") or {}
    if not partial and not primary.get("name"):
        errors.append({"field": "contactInfo.primaryContact.name", "message": "Contact name is required"})
    phone = primary.get("phone")
    if phone is None:
        if not partial:
            errors.append({"field": "contactInfo.primaryContact.phone", "message": "Contact phone is required"})
    elif not (isinstance(phone, str) and PHONE_RE.match(phone)):
        errors.append({"field": "contactInfo.primaryContact.phone", "message": "Please enter a valid phone number"})
    email = primary.get("email")
    if email and not (isinstance(email, str) and EMAIL_RE.match(email)):
        errors.append({"field": "contactInfo.primaryContact.email", "message": "Please enter a valid email"})


def validate_profile(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate a create (partial=False) or update (partial=True) body.

    Returns:
        dict: column -> value for the recognised keys present in ``data``.

    Raises:
        ValidationError: With one entry per offending field.
    """
    errors: List[Dict[str, str]] = []

    name = data.get("communityName")
    if name is None:
        if not partial:
            errors.append({"field": "communityName", "message": "Community name is required"})
    elif not isinstance(name, str) or not name.strip() or len(name.strip()) > 100:
        errors.append({"field": "communityName", "message": "Community name must be 1-100 characters"})

    ctype = data.get("communityType")
    if ctype is None:
        if not partial:
            errors.append({"field": "communityType", "message": "Community type is required"})
    elif ctype not in COMMUNITY_TYPES:
        errors.append({"field": "communityType", "message": "Invalid community type"})

    description = data.get("description")
    if description is None:
        if not partial:
            errors.append({"field": "description", "message": "Description is required"})
    elif not isinstance(description, str) or not description.strip() or len(description.strip()) > 1000:
        errors.append({"field": "description", "message": "Description must be 1-1000 characters"})

    if "location" in data or not partial:
        _check_location(data.get("location"), errors, partial)
    if "demographics" in data or not partial:
        _check_demographics(data.get("demographics"), errors, partial)
    if "contactInfo" in data or not partial:
        _check_contact(data.get("contactInfo"), errors, partial)

    if "isPublic" in data and not isinstance(data.get("isPublic"), bool):
        errors.append({"field": "isPublic", "message": "isPublic must be true or false"})

    if errors:
        raise ValidationError("Validation error", errors=errors)

    fields: Dict[str, Any] = {}
    for key, column in COLUMN_MAP.items():
        if key in data:
            value = data[key]
            fields[column] = value.strip() if isinstance(value, str) else value
    return fields


def merge_json(stored: Optional[Mapping[str, Any]], update: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge an update into a stored JSON object. Nested objects are merged
    key by key; any other value replaces what was stored.
    """
    merged: Dict[str, Any] = dict(stored or {})
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_json(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_update(row: Mapping[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fold validated update columns into a stored row and re-check the result
    as a complete profile.

    Returns:
        dict: ``fields`` with JSON columns replaced by their merged values.

    Raises:
        ValidationError: The merged profile is no longer valid.
    """
    merged = dict(fields)
    for column in JSON_COLUMNS & fields.keys():
        merged[column] = merge_json(row.get(column), fields[column])
    validate_profile(serialize({**row, **merged}))
    return merged
