"""Placeholder substitution for rule titles, messages and action URLs."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def interpolate_template(template: str | None, record: Mapping[str, Any]) -> str:
    """Replace every ``{name}`` token of ``template`` with ``record[name]``.

    Tokens without a value in ``record`` are kept verbatim.
    """

    if not template:
        return ""

    def _replace(match: re.Match[str]) -> str:
        value = record.get(match.group(1))
        if value is None:
            return match.group(0)
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    return _PLACEHOLDER_PATTERN.sub(_replace, template)


__all__ = ["interpolate_template"]
