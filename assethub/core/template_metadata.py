"""Helpers for the operation template snapshot stored in metadata.

Operations and approval requests carry the submitted form as
``metadata["operationTemplate"]`` (or, for older rows, the snapshot itself
with a top-level ``values`` mapping). Only a handful of known keys are read.
"""

from typing import Any, Dict, Mapping, Optional

OWNER_CANDIDATE_KEYS = ("receiver", "borrower", "returner")


def extract_template_metadata(metadata: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not isinstance(metadata, Mapping):
        return None
    template = metadata.get("operationTemplate")
    if isinstance(template, Mapping):
        return dict(template)
    if isinstance(metadata.get("values"), Mapping):
        return dict(metadata)
    return None


def template_values(metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    template = extract_template_metadata(metadata)
    values = template.get("values") if template else None
    return dict(values) if isinstance(values, Mapping) else {}


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_owner(metadata: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Owner named in the template values, falling back to top-level keys."""
    values = template_values(metadata)
    for key in OWNER_CANDIDATE_KEYS:
        owner = _clean(values.get(key))
        if owner:
            return owner
    if isinstance(metadata, Mapping):
        for key in OWNER_CANDIDATE_KEYS:
            owner = _clean(metadata.get(key))
            if owner:
                return owner
    return None


def extract_planned_return_date(metadata: Optional[Mapping[str, Any]]) -> Optional[str]:
    return _clean(template_values(metadata).get("returnPlan"))


def first_metadata_value(extract, *sources: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Apply ``extract`` to each source in turn, returning the first hit."""
    for source in sources:
        value = extract(source)
        if value:
            return value
    return None
