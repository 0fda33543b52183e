"""
Data models for HubSpot API responses.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any


@dataclass
class HubSpotContact:
    """A contact record from the HubSpot CRM v3 API."""

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HubSpotContact":
        properties = data.get("properties") or {}
        return cls(
            id=str(data.get("id", "")),
            email=properties.get("email"),
            first_name=properties.get("firstname"),
            last_name=properties.get("lastname"),
            properties=properties,
        )


def build_contact_properties(
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    extra: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """
    Build standard contact properties.

    Empty names are omitted so HubSpot keeps whatever value it already has.
    """
    properties: Dict[str, str] = {"email": email}
    if first_name:
        properties["firstname"] = first_name
    if last_name:
        properties["lastname"] = last_name
    if extra:
        properties.update(extra)
    return properties
