"""Analysis of a class body into field descriptions and bitfield configuration."""

from __future__ import annotations

import typing
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .config import BitfieldDefinitionError, Config, FieldConfig, ReprKind, SkipWhich

_REPR_NAMES = {f"u{kind.value}": kind for kind in ReprKind}


@dataclass(frozen=True)
class FieldSpec:
    """Per-field options attached through ``Annotated`` metadata or a default value."""

    bits: int | None = None
    skip: SkipWhich | None = None


@dataclass(frozen=True)
class FieldInfo:
    """A field of a bitfield class in declaration order."""

    index: int
    name: str
    annotation: Any
    config: FieldConfig


def _parse_skip(skip: Any) -> SkipWhich | None:
    if skip is None or skip is False:
        return None
    if skip is True:
        return SkipWhich.ALL
    if isinstance(skip, SkipWhich):
        return skip
    items = (skip,) if isinstance(skip, str) else tuple(skip)
    getters = setters = False
    for item in items:
        if item == "getters":
            if getters:
                raise BitfieldDefinitionError("encountered duplicate skip(getters) specifier")
            getters = True
        elif item == "setters":
            if setters:
                raise BitfieldDefinitionError("encountered duplicate skip(setters) specifier")
            setters = True
        else:
            raise BitfieldDefinitionError(
                f"encountered unknown or unsupported skip specifier: {item!r}"
            )
    if getters == setters:
        return SkipWhich.ALL
    return SkipWhich.GETTERS if getters else SkipWhich.SETTERS


def field(bits: int | None = None, skip: Any = None) -> FieldSpec:
    """Describe per-field options.

    ``skip`` accepts ``True`` (all accessors), ``"getters"``, ``"setters"``,
    a collection of those, or a :class:`SkipWhich`.
    """
    if bits is not None and (isinstance(bits, bool) or not isinstance(bits, int)):
        raise BitfieldDefinitionError(f"encountered invalid value type for bits = N: {bits!r}")
    return FieldSpec(bits=bits, skip=_parse_skip(skip))


def _apply_spec(spec: FieldSpec, config: FieldConfig, origin: Any) -> None:
    if spec.bits is not None:
        config.declare_bits(spec.bits, origin)
    if spec.skip is not None:
        config.declare_skip(spec.skip, origin)


def parse_repr(value: Any, config: Config) -> None:
    """Record ``uN`` representations in ``config``; keep any other names as retained."""
    if value is None:
        return
    if isinstance(value, str):
        items: list[Any] = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, ReprKind):
        items = [value]
    else:
        items = list(value)
    retained = []
    for item in items:
        if isinstance(item, ReprKind):
            config.declare_repr(item, "repr")
        elif isinstance(item, str) and item in _REPR_NAMES:
            config.declare_repr(_REPR_NAMES[item], "repr")
        elif isinstance(item, str):
            retained.append(item)
        else:
            raise BitfieldDefinitionError(f"encountered unsupported repr value: {item!r}")
    if retained:
        config.retained_attributes.append(("repr", tuple(retained)))


def parse_derive(derives: Any, config: Config) -> None:
    """Record the ``Debug`` and ``Specifier`` derives; keep any others as retained."""
    if derives is None:
        return
    items: Iterable[Any] = (derives,) if isinstance(derives, str) else derives
    retained = []
    for item in items:
        if not isinstance(item, str):
            raise BitfieldDefinitionError(f"encountered unsupported derive value: {item!r}")
        normalized = item.lower()
        if normalized == "debug":
            config.declare_derive_debug("derive")
        elif normalized == "specifier":
            config.declare_derive_specifier("derive")
        else:
            retained.append(item)
    if retained:
        config.retained_attributes.append(("derive", tuple(retained)))


def extract_field_config(annotation: Any) -> tuple[Any, FieldConfig]:
    """Split an annotation into its underlying type and the field configuration it carries."""
    config = FieldConfig()
    if typing.get_origin(annotation) is not typing.Annotated:
        return annotation, config
    base, *metadata = typing.get_args(annotation)
    for item in metadata:
        if isinstance(item, FieldSpec):
            _apply_spec(item, config, "annotation")
        else:
            config.retained_attrs.append(item)
    return base, config


def _own_annotations(cls: type) -> dict[str, Any]:
    raw = dict(cls.__dict__.get("__annotations__", {}))
    for name, value in raw.items():
        if isinstance(value, str):
            raise BitfieldDefinitionError(
                f"cannot resolve field annotation for {name!r}: "
                "string annotations are not supported"
            )
    return raw


def _is_class_var(annotation: Any) -> bool:
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def analyse(cls: type, config: Config) -> list[FieldInfo]:
    """Collect the fields of ``cls`` into ``config`` and check the result for conflicts.

    Class-level parameters (repr, derives, bits, bytes, filled) are expected to be
    in ``config`` already.
    """
    annotations = {
        name: annotation
        for name, annotation in _own_annotations(cls).items()
        if not _is_class_var(annotation)
    }
    if not annotations:
        raise BitfieldDefinitionError("encountered invalid bitfield struct without fields")
    if getattr(cls, "__parameters__", ()):
        raise BitfieldDefinitionError("bitfield classes cannot have type parameters")
    infos = []
    for index, (name, annotation) in enumerate(annotations.items()):
        base, field_config = extract_field_config(annotation)
        default = cls.__dict__.get(name)
        if isinstance(default, FieldSpec):
            _apply_spec(default, field_config, name)
        config.add_field_config(index, name, field_config)
        infos.append(FieldInfo(index, name, base, field_config))
    config.ensure_no_conflicts()
    return infos