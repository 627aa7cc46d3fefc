"""Name helpers shared by fields, forms and templates."""

from __future__ import annotations

import re


def camel_to_kebab(name: str) -> str:
    """Convert CamelCase to kebab-case. ContactUs -> contact-us"""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", name).lower()


def to_camel_case(value: str, separator: str = "_", lower_first: bool = False) -> str:
    """Convert a separated name to CamelCase.

    to_camel_case("first_name") -> "FirstName"
    to_camel_case("first_name", lower_first=True) -> "firstName"

    A trailing "[]" (multi-value field names) is dropped.
    """
    value = value.replace("[]", "")
    parts = [part for part in value.split(separator) if part]
    camel = "".join(part[:1].upper() + part[1:] for part in parts)
    if lower_first:
        return camel[:1].lower() + camel[1:]
    return camel
