"""Placeholder substitution for JSON request templates.

Templates are opaque text rendered with jinja2, placeholders are `{{name}}`. Most placeholders
are required and are replaced by the string value given for them. An OptionalField placeholder
stands for a whole JSON field instead: with a value it renders to the field followed by the
field separator, without a value it disappears so the field is absent from the payload.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

import jinja2
from jinja2 import meta

# keep_trailing_newline so a template without placeholders renders byte for byte.
TEMPLATE_ENV = jinja2.Environment(undefined=jinja2.StrictUndefined, keep_trailing_newline=True)


class UnresolvedPlaceholderError(KeyError):
    def __init__(self, placeholder: str):
        super().__init__(placeholder)
        self.placeholder = placeholder

    def __str__(self):
        return f"no value given for template placeholder {{{{{self.placeholder}}}}}"


class OptionalField:
    def __init__(self, name: str, fragment: str):
        self.name = name
        self.fragment = fragment

    @property
    def tag(self) -> str:
        return "{{" + self.name + "}}"

    def render(self, value: Optional[Any]) -> str:
        if value is None:
            return ""
        return self.fragment.format(name=self.name, value=value)


BATCH_SIZE = OptionalField("batch_size", '\n"{name}": {value:d},\n')

DEFAULT_OPTIONAL_FIELDS = (BATCH_SIZE,)


def placeholders(template: str) -> set:
    return meta.find_undeclared_variables(TEMPLATE_ENV.parse(template))


def build_payload(
    template: str,
    substitutions: Optional[Mapping[str, Any]] = None,
    optional_fields: Iterable[OptionalField] = DEFAULT_OPTIONAL_FIELDS,
) -> str:
    substitutions = substitutions or {}
    optional = {field.name: field for field in optional_fields}

    context = {}
    for name in sorted(placeholders(template)):
        if name in optional:
            context[name] = optional[name].render(substitutions.get(name))
            continue
        value = substitutions.get(name)
        if value is None:
            raise UnresolvedPlaceholderError(name)
        context[name] = value

    return TEMPLATE_ENV.from_string(template).render(**context)
