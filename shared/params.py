"""Declarative parameter schema for the convolver.

A parameter contract is defined as a list of ParamDef objects.
ParamSchema wraps the list and derives default_params and the
validation used when loading preset JSON files or CLI overrides.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ParamType(Enum):
    FLOAT = "float"
    INT = "int"
    CHOICE = "choice"
    BOOL = "bool"


@dataclass
class ParamDef:
    key: str
    type: ParamType
    default: Any
    section: str
    label: str = ""
    range: tuple | None = None  # (min, max) for continuous params
    choices: list[str] | None = None  # allowed values for CHOICE type


class ParamSchema:
    """Derives defaults and validation from a declarative param list."""

    def __init__(self, params: list[ParamDef]):
        self._params = params
        self._by_key: dict[str, ParamDef] = {p.key: p for p in params}

    def default_params(self) -> dict:
        return {p.key: p.default for p in self._params}

    def param_sections(self) -> dict[str, list[str]]:
        """Section name -> list of param keys."""
        sections: dict[str, list[str]] = {}
        for p in self._params:
            sections.setdefault(p.section, []).append(p.key)
        return sections

    def validate_and_clamp(self, raw: dict) -> dict:
        """Validate and clamp a raw params dict (e.g. from a preset file).

        Unknown keys are dropped. Values are type-cast and clamped to range.
        Values that cannot be cast, and choices outside the allowed set,
        are dropped so the caller's defaults stay in effect.
        """
        result = {}
        for key, value in raw.items():
            if key not in self._by_key:
                continue
            p = self._by_key[key]

            if p.type == ParamType.BOOL:
                if isinstance(value, str):
                    value = value.strip().lower() in ("1", "true", "yes", "on")
                result[key] = bool(value)

            elif p.type == ParamType.CHOICE:
                value = str(value)
                if p.choices and value not in p.choices:
                    continue
                result[key] = value

            elif p.type == ParamType.INT:
                try:
                    v = int(round(value))
                except (TypeError, ValueError):
                    continue
                if p.range:
                    lo, hi = p.range
                    v = max(lo, min(hi, v))
                result[key] = v

            elif p.type == ParamType.FLOAT:
                try:
                    v = float(value)
                except (TypeError, ValueError):
                    continue
                if p.range:
                    lo, hi = p.range
                    v = max(lo, min(hi, v))
                result[key] = v

        return result

    def get(self, key: str) -> ParamDef | None:
        return self._by_key.get(key)
