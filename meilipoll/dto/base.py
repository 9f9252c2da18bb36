from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


def _snake_to_camel(name: str) -> str:
    components = name.rstrip("_").split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class BaseInfo(BaseModel):
    """Read-only server object; snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        alias_generator=_snake_to_camel,
        serialize_by_alias=True,
        extra="ignore",
    )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def drop_none(params: Dict[str, Any]) -> Dict[str, Optional[Any]]:
    """Remove unset query parameters."""
    return {key: value for key, value in params.items() if value is not None}
