"""The ``bitfield`` class decorator and the base class of the classes it builds."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, ClassVar

from .analyse import FieldInfo, analyse, parse_derive, parse_repr
from .config import BitfieldDefinitionError, Config
from .specifiers import (
    MAX_SPECIFIER_BITS,
    SPECIFIER_ATTRIBUTE,
    InvalidBitPattern,
    OutOfBounds,
    Specifier,
    read_bits,
    resolve_specifier,
    write_bits,
)


def _byte_len(bits: int) -> int:
    return (max(bits - 1, 0) // 8) + 1


@dataclass(frozen=True)
class _Slot:
    """Where a field lives inside the storage and how its bits are interpreted."""

    name: str
    offset: int
    specifier: Specifier
    gettable: bool
    settable: bool

    def load(self, data: bytes) -> Any:
        raw = read_bits(data, self.offset, self.specifier.bits)
        return self.specifier.decode(raw)

    def store(self, data: bytes, value: Any) -> bytes:
        raw = self.specifier.encode(value)
        if raw < 0 or raw > self.specifier.max_value:
            raise OutOfBounds()
        return write_bits(data, self.offset, self.specifier.bits, raw)


def _render_value(value: Any, spec: str) -> str:
    if isinstance(value, bool):
        return f"{value!r}"
    if isinstance(value, enum.Enum):
        return f"{type(value).__name__}.{value.name}"
    if isinstance(value, int):
        if spec in ("x", "X"):
            return "0x" + format(value, spec)
        return f"{value!r}"
    if isinstance(value, Bitfield):
        return value._render(spec)
    if isinstance(value, InvalidBitPattern):
        return f"InvalidBitPattern(invalid_bytes={_render_value(value.invalid_bytes, spec)})"
    return f"{value!r}"


class Bitfield:
    """Base class of bitfield classes: a fixed number of bytes holding packed fields.

    Fields are read and written as attributes; writing a value that does not fit
    raises :class:`OutOfBounds`, reading bits that do not form a valid value raises
    :class:`InvalidBitPattern`.
    """

    __slots__ = ("_data",)

    BITS: ClassVar[int] = 0
    NBYTES: ClassVar[int] = 0
    FILLED: ClassVar[bool] = True
    REPR_BITS: ClassVar[int | None] = None
    _fields_by_name: ClassVar[dict[str, _Slot]] = {}
    _debug: ClassVar[bool] = False
    _generated: ClassVar[bool] = False

    _data: bytes

    def __init__(self, **values: Any) -> None:
        cls = type(self)
        cls._require_generated()
        self._data = bytes(cls.NBYTES)
        self._assign(values)

    @classmethod
    def _require_generated(cls) -> None:
        if not cls._generated:
            raise TypeError(f"{cls.__name__} is not a bitfield class; decorate it with @bitfield")

    @classmethod
    def _wrap(cls, data: bytes) -> Bitfield:
        obj = object.__new__(cls)
        obj._data = data
        return obj

    def _assign(self, values: dict[str, Any]) -> None:
        cls = type(self)
        for name, value in values.items():
            slot = cls._fields_by_name.get(name)
            if slot is None:
                raise TypeError(f"{cls.__name__} has no field {name!r}")
            if not slot.settable:
                raise TypeError(f"field {name!r} of {cls.__name__} cannot be set")
            self._data = slot.store(self._data, value)

    @classmethod
    def from_bytes(cls, data: Any) -> Bitfield:
        """Build an instance from its little-endian storage bytes."""
        cls._require_generated()
        if isinstance(data, (int, str)):
            raise TypeError(f"expected bytes, found {type(data).__name__}")
        raw = bytes(data)
        if len(raw) != cls.NBYTES:
            raise ValueError(f"{cls.__name__} takes {cls.NBYTES} bytes, found {len(raw)}")
        if not cls.FILLED:
            spare = cls.NBYTES * 8 - cls.BITS
            if raw[-1] >= 1 << (8 - spare):
                raise OutOfBounds()
        return cls._wrap(raw)

    def into_bytes(self) -> bytes:
        """The underlying storage bytes, least significant first."""
        return self._data

    def __bytes__(self) -> bytes:
        return self._data

    @classmethod
    def from_int(cls, value: int) -> Bitfield:
        """Build an instance from the integer of its ``repr`` width."""
        cls._require_generated()
        if cls.REPR_BITS is None:
            raise TypeError(f"{cls.__name__} has no integer representation")
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected an integer, found {value!r}")
        if not 0 <= value < 1 << cls.REPR_BITS:
            raise OutOfBounds()
        return cls._wrap(value.to_bytes(cls.NBYTES, "little"))

    def __int__(self) -> int:
        if type(self).REPR_BITS is None:
            raise TypeError(f"{type(self).__name__} has no integer representation")
        return int.from_bytes(self._data, "little")

    def replace(self, **kwargs: Any) -> Bitfield:
        """Return a copy with the given fields set; the original is left untouched."""
        copy = type(self)._wrap(self._data)
        copy._assign(kwargs)
        return copy

    @classmethod
    def encode(cls, value: Any) -> int:
        """The raw bits of ``value`` when it is used as a field of another bitfield."""
        cls._require_generated()
        if not isinstance(value, cls):
            raise TypeError(f"expected a {cls.__name__}, found {value!r}")
        return int.from_bytes(value._data, "little")

    @classmethod
    def decode(cls, raw: int) -> Bitfield:
        """Build an instance from raw bits; raise if they exceed the class's width."""
        cls._require_generated()
        if raw < 0 or raw > (1 << cls.BITS) - 1:
            raise InvalidBitPattern(raw)
        return cls._wrap(raw.to_bytes(cls.NBYTES, "little"))

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._data == other._data  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    def _render(self, spec: str) -> str:
        cls = type(self)
        if not cls._debug:
            return f"{cls.__name__}.from_bytes({self._data!r})"
        parts = []
        for slot in cls._fields_by_name.values():
            if not slot.gettable:
                continue
            try:
                value = slot.load(self._data)
            except InvalidBitPattern as err:
                value = err
            parts.append(f"{slot.name}={_render_value(value, spec)}")
        return f"{cls.__name__}({', '.join(parts)})"

    def __repr__(self) -> str:
        return self._render("")

    def __format__(self, spec: str) -> str:
        if spec in ("x", "X"):
            return self._render(spec)
        return super().__format__(spec)


class _BitfieldSpecifier(Specifier):
    """Lets a bitfield class serve as the type of a field in another bitfield."""

    def __init__(self, owner: type[Bitfield]) -> None:
        self.owner = owner
        self.bits = owner.BITS

    def encode(self, value: Any) -> int:
        return self.owner.encode(value)

    def decode(self, raw: int) -> Any:
        return self.owner.decode(raw)

    def __repr__(self) -> str:
        return f"_BitfieldSpecifier({self.owner.__name__}, bits={self.bits})"


def _make_property(slot: _Slot) -> property:
    def fget(self: Bitfield) -> Any:
        return slot.load(self._data)

    def fset(self: Bitfield, value: Any) -> None:
        self._data = slot.store(self._data, value)

    return property(
        fget if slot.gettable else None,
        fset if slot.settable else None,
        doc=f"The value of `{slot.name}`.",
    )


def _check_filled(name: str, config: Config, actual: int) -> None:
    filled = config.filled_enabled()
    if config.bits is not None:
        required = config.bits.value
        if filled and required != actual:
            raise BitfieldDefinitionError(
                f"bitfield {name} must fill exactly {required} bits but its fields take {actual}"
            )
        if not filled and not required > actual:
            raise BitfieldDefinitionError(
                f"bitfield {name} with filled=False must take fewer than {required} bits "
                f"but its fields take {actual}"
            )
        return
    if filled and actual % 8:
        raise BitfieldDefinitionError(
            f"total size of bitfield {name} ({actual} bits) is not a multiple of 8"
        )
    if not filled and actual % 8 == 0:
        raise BitfieldDefinitionError(
            f"total size of bitfield {name} ({actual} bits) is a multiple of 8 "
            f"but filled=False was given"
        )


def _layout(name: str, infos: list[FieldInfo]) -> tuple[list[_Slot], int]:
    slots = []
    offset = 0
    for info in infos:
        if hasattr(Bitfield, info.name):
            raise BitfieldDefinitionError(
                f"field name {info.name!r} of {name} clashes with a bitfield attribute"
            )
        spec = resolve_specifier(info.annotation)
        expected = info.config.bits
        if expected is not None and expected.value != spec.bits:
            raise BitfieldDefinitionError(
                f"field {info.name!r} of {name} declares bits = {expected.value} "
                f"but its specifier has {spec.bits} bits"
            )
        slots.append(
            _Slot(
                info.name,
                offset,
                spec,
                not info.config.skip_getters(),
                not info.config.skip_setters(),
            )
        )
        offset += spec.bits
    return slots, offset


def _build(
    cls: type,
    bits: int | None,
    nbytes: int | None,
    filled: bool | None,
    repr_value: Any,
    derive: Any,
) -> type[Bitfield]:
    config = Config()
    if bits is not None:
        config.declare_bits(bits, "bits")
    if nbytes is not None:
        config.declare_bytes(nbytes, "nbytes")
    if filled is not None:
        config.declare_filled(filled, "filled")
    parse_repr(repr_value, config)
    parse_derive(derive, config)
    infos = analyse(cls, config)

    name = cls.__name__
    slots, actual = _layout(name, infos)
    size = config.bits.value if config.bits is not None else actual
    _check_filled(name, config, actual)
    total_bytes = _byte_len(size)
    if config.bytes is not None and config.bytes.value != total_bytes:
        raise BitfieldDefinitionError(
            f"bitfield {name} takes {total_bytes} bytes but bytes = {config.bytes.value} was given"
        )
    if config.repr is not None and config.repr.value.bits() != size:
        raise BitfieldDefinitionError(
            f"bitfield {name} has {size} bits which does not match {config.repr.value}"
        )
    if config.derive_specifier is not None and size > MAX_SPECIFIER_BITS:
        raise BitfieldDefinitionError(
            f"bitfield {name} has {size} bits but a specifier takes at most "
            f"{MAX_SPECIFIER_BITS} bits"
        )

    field_names = {info.name for info in infos}
    namespace = {
        key: value
        for key, value in cls.__dict__.items()
        if key not in ("__dict__", "__weakref__") and key not in field_names
    }
    namespace.update(
        __slots__=(),
        __qualname__=cls.__qualname__,
        __bitfield_config__=config,
        BITS=size,
        NBYTES=total_bytes,
        FILLED=config.filled_enabled(),
        REPR_BITS=config.repr.value.bits() if config.repr is not None else None,
        _fields_by_name={slot.name: slot for slot in slots},
        _debug=config.derive_debug is not None,
        _generated=True,
    )
    for slot in slots:
        if slot.gettable or slot.settable:
            namespace[slot.name] = _make_property(slot)

    if cls.__bases__ == (object,):
        bases: tuple[type, ...] = (Bitfield,)
    elif issubclass(cls, Bitfield):
        bases = cls.__bases__
    else:
        bases = cls.__bases__ + (Bitfield,)
    new_cls = type(name, bases, namespace)
    if config.derive_specifier is not None:
        setattr(new_cls, SPECIFIER_ATTRIBUTE, _BitfieldSpecifier(new_cls))
    return new_cls


def bitfield(
    cls: type | None = None,
    *,
    bits: int | None = None,
    nbytes: int | None = None,
    filled: bool | None = None,
    repr: Any = None,
    derive: Any = None,
) -> Any:
    """Turn an annotated class into a packed bitfield class.

    Usable as ``@bitfield`` or with parameters, e.g. ``@bitfield(bits=32, repr="u32")``.
    ``derive`` may name ``"Debug"`` (field-wise ``repr``) and ``"Specifier"``
    (use the class as a field of other bitfields); other names are kept as-is.
    """

    def build(target: type) -> type[Bitfield]:
        return _build(target, bits, nbytes, filled, repr, derive)

    if cls is None:
        return build
    return build(cls)


_Builder = Callable[[type], type[Bitfield]]