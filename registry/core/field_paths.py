"""Resolve raw validation locations into client-facing field paths.

Validation reports locations in internal attribute names (``address.street``)
while clients only know the external JSON names (``postalAddress.streetName``).
An ``ObjectShape`` describes, per model, how attribute names map to external
names and which nested shape each attribute leads into.
"""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import MutableMapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
import types
from typing import Annotated
from typing import Any
from typing import Union
from typing import get_args
from typing import get_origin

from pydantic import BaseModel

from registry.schemas.error import FieldError

LOCATION_PREFIXES = frozenset({"body", "query", "path", "header", "cookie"})

_CONTAINER_ORIGINS = (list, tuple, set, frozenset, Sequence, Union, types.UnionType)


@dataclass(frozen=True)
class FieldShape:
    """How one attribute is named on the wire and what it contains."""

    external_name: str | None = None
    nested: ObjectShape | None = None


@dataclass(frozen=True)
class ObjectShape:
    """Attribute-name keyed descriptor of a validated object."""

    fields: Mapping[str, FieldShape] = field(default_factory=dict)
    name: str = ""

    def lookup(self, segment: str) -> FieldShape | None:
        """Find a field by attribute name, falling back to its external name."""
        found = self.fields.get(segment)
        if found is not None:
            return found
        for candidate in self.fields.values():
            if candidate.external_name == segment:
                return candidate
        return None


@dataclass(frozen=True)
class RawFieldViolation:
    """One failed constraint as reported by the validation subsystem."""

    path: str
    message: str


_SHAPES: dict[type[BaseModel], ObjectShape] = {}


def shape_of(model: type[BaseModel]) -> ObjectShape:
    """Return the cached shape descriptor for a pydantic model class."""
    cached = _SHAPES.get(model)
    if cached is not None:
        return cached

    built: dict[type[BaseModel], ObjectShape] = {}
    shape = _build_shape(model, built)
    # Publish only complete shapes so concurrent readers never see a partial one.
    _SHAPES.update(built)
    return shape


def _build_shape(model: type[BaseModel], built: dict[type[BaseModel], ObjectShape]) -> ObjectShape:
    existing = built.get(model) or _SHAPES.get(model)
    if existing is not None:
        return existing

    fields: MutableMapping[str, FieldShape] = {}
    shape = ObjectShape(fields=fields, name=model.__name__)
    built[model] = shape

    for attribute, info in model.model_fields.items():
        external = info.serialization_alias or info.alias
        nested_model = model_in_annotation(info.annotation)
        fields[attribute] = FieldShape(
            external_name=external if external and external != attribute else None,
            nested=_build_shape(nested_model, built) if nested_model is not None else None,
        )
    return shape


def model_in_annotation(annotation: Any) -> type[BaseModel] | None:
    """Find the pydantic model an annotation resolves to, through containers and Optional."""
    origin = get_origin(annotation)
    if origin is None:
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            return annotation
        return None

    if origin is Annotated:
        return model_in_annotation(get_args(annotation)[0])

    if origin in _CONTAINER_ORIGINS or (isinstance(origin, type) and issubclass(origin, Sequence)):
        for argument in get_args(annotation):
            if argument is Ellipsis:
                continue
            model = model_in_annotation(argument)
            if model is not None:
                return model
    return None


def body_shape_for(route: Any) -> ObjectShape | None:
    """Shape of a FastAPI route's request body model, if it has one."""
    body_field = getattr(route, "body_field", None)
    if body_field is None:
        return None
    field_info = getattr(body_field, "field_info", None)
    model = model_in_annotation(getattr(field_info, "annotation", None))
    if model is None:
        return None
    return shape_of(model)


def raw_path_from_location(location: Any) -> str:
    """Join a validation ``loc`` into a dotted raw path, dropping the request part prefix."""
    if not isinstance(location, (tuple, list)):
        return str(location)

    parts = list(location)
    if parts and parts[0] in LOCATION_PREFIXES:
        prefix = parts.pop(0)
        if not parts:
            return str(prefix)
    if not parts:
        return "request"
    return ".".join(str(part) for part in parts)


def resolve_path(shape: ObjectShape | None, raw_path: str | None) -> str | None:
    """Translate a dotted attribute path into its external form.

    Unknown segments are kept verbatim and end the translation; everything
    after them is copied unchanged. List indices pass through without leaving
    the element shape.
    """
    if shape is None or raw_path is None:
        return raw_path

    resolved: list[str] = []
    current: ObjectShape | None = shape
    for segment in raw_path.split("."):
        if current is None or segment.isdigit():
            resolved.append(segment)
            continue

        field_shape = current.lookup(segment)
        if field_shape is None:
            resolved.append(segment)
            current = None
            continue

        resolved.append(field_shape.external_name or segment)
        current = field_shape.nested

    return ".".join(resolved)


def leaf_name(path: str) -> str:
    """Last segment of a dotted path."""
    return path.rsplit(".", 1)[-1]


def resolve_field_errors(
    shape: ObjectShape | None,
    violations: Iterable[RawFieldViolation],
) -> list[FieldError]:
    """Build one ``FieldError`` per violation, in input order."""
    errors: list[FieldError] = []
    for violation in violations:
        path = resolve_path(shape, violation.path) or violation.path
        errors.append(FieldError(field=leaf_name(path), message=violation.message, path=path))
    return errors
