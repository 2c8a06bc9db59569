"""
Symbolic references between resources.

A string attribute may embed ``${name}`` (the provider id of resource
``name``) or ``${name.attr}`` (one of its attributes). ``${var.x}`` refers
to a document variable and is substituted when the document is loaded.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

NAME_PATTERN = r"[A-Za-z_][A-Za-z0-9_\-]*"
REFERENCE_PATTERN = re.compile(
    r"\$\{\s*(" + NAME_PATTERN + r")(?:\.(" + NAME_PATTERN + r"))?\s*\}"
)
VALID_NAME = re.compile(r"^" + NAME_PATTERN + r"$")

VAR_NAMESPACE = "var"


class _Unknown:
    """Placeholder for a value that is only known once a dependency is applied"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "(known after apply)"

    def __deepcopy__(self, memo):
        return self


UNKNOWN = _Unknown()


@dataclass(frozen=True)
class Reference:
    target: str
    attribute: Optional[str] = None

    def __str__(self):
        if self.attribute:
            return f"${{{self.target}.{self.attribute}}}"
        return f"${{{self.target}}}"


def iter_references(value: Any, path: str = "") -> Iterator[Tuple[str, Reference]]:
    """Yield (attribute path, reference) for every reference inside a nested value"""
    if isinstance(value, dict):
        for key in sorted(value, key=str):
            child = f"{path}.{key}" if path else str(key)
            yield from iter_references(value[key], child)
    elif isinstance(value, list):
        for index, item in enumerate(value):
            yield from iter_references(item, f"{path}[{index}]")
    elif isinstance(value, str):
        for match in REFERENCE_PATTERN.finditer(value):
            yield path, Reference(match.group(1), match.group(2))


def resolve(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Replace references in a nested value using ``lookup``.

    A string consisting of exactly one reference takes the referenced value
    as-is; references embedded in a longer string are rendered as text. If
    any referenced value is UNKNOWN the containing string becomes UNKNOWN.
    """
    if isinstance(value, dict):
        return {key: resolve(item, lookup) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve(item, lookup) for item in value]
    if not isinstance(value, str) or "${" not in value:
        return value

    whole = REFERENCE_PATTERN.fullmatch(value.strip())
    if whole:
        return lookup(Reference(whole.group(1), whole.group(2)))

    unknown = False

    def _render(match):
        nonlocal unknown
        resolved = lookup(Reference(match.group(1), match.group(2)))
        if resolved is UNKNOWN:
            unknown = True
            return ""
        return str(resolved)

    rendered = REFERENCE_PATTERN.sub(_render, value)
    return UNKNOWN if unknown else rendered


def substitute_variables(value: Any, variables: Dict[str, Any], on_missing: Callable[[str], Exception]) -> Any:
    """Replace ``${var.x}`` references, leaving resource references untouched"""

    def lookup(ref: Reference) -> Any:
        if ref.target != VAR_NAMESPACE:
            return str(ref)
        if ref.attribute is None or ref.attribute not in variables:
            raise on_missing(ref.attribute or "")
        return variables[ref.attribute]

    return resolve(value, lookup)


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(item) for item in value.values())
    if isinstance(value, list):
        return any(contains_unknown(item) for item in value)
    return False
