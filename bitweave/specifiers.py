"""Field specifiers: how a field's value maps to and from its raw bits."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Any, Callable

from .config import BitfieldDefinitionError

MAX_SPECIFIER_BITS = 128


class OutOfBounds(ValueError):
    """Raised when a value does not fit into the bits reserved for it."""

    def __init__(self, message: str = "encountered an out of bounds value") -> None:
        super().__init__(message)

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self)

    def __hash__(self) -> int:
        return hash(type(self))


class InvalidBitPattern(ValueError):
    """Raised when raw bits do not decode to a valid value."""

    def __init__(self, invalid_bytes: int) -> None:
        super().__init__(f"encountered an invalid bit pattern: {invalid_bytes:#x}")
        self.invalid_bytes = invalid_bytes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InvalidBitPattern):
            return NotImplemented
        return self.invalid_bytes == other.invalid_bytes

    def __hash__(self) -> int:
        return hash((InvalidBitPattern, self.invalid_bytes))

    def __repr__(self) -> str:
        return f"InvalidBitPattern(invalid_bytes={self.invalid_bytes})"


def _check_width(bits: Any) -> int:
    if isinstance(bits, bool) or not isinstance(bits, int):
        raise BitfieldDefinitionError(f"specifier width must be an integer, found {bits!r}")
    if not 1 <= bits <= MAX_SPECIFIER_BITS:
        raise BitfieldDefinitionError(
            f"specifier width must be between 1 and {MAX_SPECIFIER_BITS} bits, found {bits}"
        )
    return bits


class Specifier(abc.ABC):
    """A fixed number of bits together with an encoding for the field's values."""

    bits: int

    @property
    def max_value(self) -> int:
        """The largest raw value that fits into the specifier's bits."""
        return (1 << self.bits) - 1

    @abc.abstractmethod
    def encode(self, value: Any) -> int:
        """Turn ``value`` into its raw bits; raise :class:`OutOfBounds` if it does not fit."""

    @abc.abstractmethod
    def decode(self, raw: int) -> Any:
        """Turn raw bits into a value; raise :class:`InvalidBitPattern` if they mean nothing."""


@dataclass(frozen=True)
class UIntSpecifier(Specifier):
    """An unsigned integer of ``bits`` bits."""

    bits: int

    def __post_init__(self) -> None:
        _check_width(self.bits)

    def encode(self, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected an integer, found {value!r}")
        if not 0 <= value <= self.max_value:
            raise OutOfBounds()
        return value

    def decode(self, raw: int) -> int:
        if not 0 <= raw <= self.max_value:
            raise InvalidBitPattern(raw)
        return raw


class B:
    """Unsigned integer specifiers by width: ``B[7]`` (or ``B(7)``) is seven bits wide."""

    def __new__(cls, bits: int) -> UIntSpecifier:  # type: ignore[misc]
        return UIntSpecifier(bits)

    def __class_getitem__(cls, bits: int) -> UIntSpecifier:
        return UIntSpecifier(bits)


U8 = UIntSpecifier(8)
U16 = UIntSpecifier(16)
U32 = UIntSpecifier(32)
U64 = UIntSpecifier(64)
U128 = UIntSpecifier(128)


@dataclass(frozen=True)
class BoolSpecifier(Specifier):
    """A single bit holding a boolean."""

    bits: int = field(default=1, init=False)

    def encode(self, value: Any) -> int:
        if not isinstance(value, bool):
            raise TypeError(f"expected a bool, found {value!r}")
        return int(value)

    def decode(self, raw: int) -> bool:
        if raw == 0:
            return False
        if raw == 1:
            return True
        raise InvalidBitPattern(raw)


BOOL = BoolSpecifier()


def _discriminants(enum_cls: type[enum.Enum]) -> dict[enum.Enum, int]:
    members = list(enum_cls)
    values = [member.value for member in members]
    if all(isinstance(value, int) and not isinstance(value, bool) for value in values):
        return dict(zip(members, values))
    return {member: position for position, member in enumerate(members)}


class EnumSpecifier(Specifier):
    """An enumeration stored by its discriminant.

    Integer member values are the discriminants; otherwise members are numbered
    in declaration order starting at zero. Without an explicit width the number
    of members must be a power of two, which then fixes the width.
    """

    def __init__(self, enum_cls: type[enum.Enum], bits: int | None = None) -> None:
        if not (isinstance(enum_cls, type) and issubclass(enum_cls, enum.Enum)):
            raise BitfieldDefinitionError(f"expected an Enum class, found {enum_cls!r}")
        raw_of = _discriminants(enum_cls)
        if not raw_of:
            raise BitfieldDefinitionError(f"enum {enum_cls.__name__} has no variants")
        if bits is None:
            count = len(raw_of)
            if count < 2 or count & (count - 1):
                raise BitfieldDefinitionError(
                    f"enum {enum_cls.__name__} needs a power-of-two number of variants "
                    f"or an explicit bit width, found {count} variants"
                )
            bits = count.bit_length() - 1
        self.bits = _check_width(bits)
        for member, raw in raw_of.items():
            if not 0 <= raw <= self.max_value:
                raise BitfieldDefinitionError(
                    f"discriminant of {enum_cls.__name__}.{member.name} ({raw}) "
                    f"does not fit into {self.bits} bits"
                )
        self.enum_cls = enum_cls
        self._raw_of = raw_of
        self._member_of = {raw: member for member, raw in raw_of.items()}

    def encode(self, value: Any) -> int:
        if not isinstance(value, self.enum_cls):
            raise TypeError(f"expected a {self.enum_cls.__name__} member, found {value!r}")
        return self._raw_of[value]

    def decode(self, raw: int) -> enum.Enum:
        try:
            return self._member_of[raw]
        except KeyError:
            raise InvalidBitPattern(raw) from None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EnumSpecifier):
            return NotImplemented
        return self.enum_cls is other.enum_cls and self.bits == other.bits

    def __hash__(self) -> int:
        return hash((EnumSpecifier, self.enum_cls, self.bits))

    def __repr__(self) -> str:
        return f"EnumSpecifier({self.enum_cls.__name__}, bits={self.bits})"


SPECIFIER_ATTRIBUTE = "__bitfield_specifier__"


def specifier(enum_cls: type[enum.Enum] | None = None, bits: int | None = None) -> Any:
    """Attach an :class:`EnumSpecifier` to an Enum class and return the class.

    Usable directly (``specifier(Mode, bits=4)``) or as a decorator, with or
    without arguments (``@specifier`` or ``@specifier(bits=4)``).
    """
    if enum_cls is None:
        def decorate(cls: type[enum.Enum]) -> type[enum.Enum]:
            return specifier(cls, bits)

        return decorate
    setattr(enum_cls, SPECIFIER_ATTRIBUTE, EnumSpecifier(enum_cls, bits))
    return enum_cls


def resolve_specifier(annotation: Any) -> Specifier:
    """Find the specifier a field annotation stands for."""
    if isinstance(annotation, Specifier):
        return annotation
    if annotation is bool:
        return BOOL
    attached = getattr(annotation, SPECIFIER_ATTRIBUTE, None)
    if isinstance(attached, Specifier):
        return attached
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return EnumSpecifier(annotation)
    raise BitfieldDefinitionError(f"cannot use {annotation!r} as a bitfield specifier")


def _span_check(data: bytes, offset: int, width: int) -> None:
    if offset < 0 or width < 0 or offset + width > len(data) * 8:
        raise ValueError(
            f"bit range {offset}..{offset + width} exceeds {len(data) * 8} available bits"
        )


def read_bits(data: bytes | bytearray | Any, offset: int, width: int) -> int:
    """Read ``width`` bits starting at bit ``offset`` (least significant bit of byte 0 first)."""
    buf = bytes(data)
    _span_check(buf, offset, width)
    return (int.from_bytes(buf, "little") >> offset) & ((1 << width) - 1)


def write_bits(data: bytes | bytearray | Any, offset: int, width: int, value: int) -> bytes:
    """Return a copy of ``data`` with ``width`` bits at ``offset`` replaced by ``value``."""
    buf = bytes(data)
    _span_check(buf, offset, width)
    if value < 0 or value >> width:
        raise OutOfBounds()
    mask = ((1 << width) - 1) << offset
    whole = (int.from_bytes(buf, "little") & ~mask) | (value << offset)
    return whole.to_bytes(len(buf), "little")


_Decorator = Callable[[type[enum.Enum]], type[enum.Enum]]