"""Settings helpers for list-valued environment variables."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

# Settings fields that accept either a JSON array or a comma-separated string.
LIST_ENV_FIELDS = frozenset({"cors_origins"})


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _load_json_list(raw: str) -> list[str]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}") from e
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ValueError("JSON value must be an array of strings")
    return parsed


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Normalize a list setting given as a list, a JSON array string, or CSV.

    A blank string is always rejected. An empty resulting list is rejected
    unless ``allow_empty`` is set.
    """
    if isinstance(value, list):
        items = value
    else:
        raw = value.strip()
        if not raw:
            raise ValueError("String list value must not be empty")
        items = _load_json_list(raw) if raw.startswith("[") else _split_csv(raw)

    if not items and not allow_empty:
        raise ValueError("String list value must not be empty")
    return items


class StringListEnvSettingsSource(EnvSettingsSource):
    """Hand list-valued env vars to field validators as raw strings.

    pydantic-settings JSON-decodes complex fields before validators run, which
    would reject the CSV form. Fields in LIST_ENV_FIELDS skip that step.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in LIST_ENV_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
