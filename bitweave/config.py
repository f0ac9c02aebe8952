"""Configuration collected while a bitfield class is being analysed."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class BitfieldDefinitionError(ValueError):
    """Raised when a bitfield definition is malformed or contradictory."""

    def __init__(self, message: str, notes: tuple[str, ...] | list[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.notes = tuple(notes)


class ReprKind(enum.Enum):
    """Unsigned integer representations a bitfield may be tied to."""

    U8 = 8
    U16 = 16
    U32 = 32
    U64 = 64
    U128 = 128

    def bits(self) -> int:
        """Number of bits the bitfield must have to satisfy this representation."""
        return self.value

    def __str__(self) -> str:
        return f"repr(u{self.value})"


@dataclass(frozen=True)
class ConfigValue(Generic[T]):
    """A configuration value together with a description of where it came from."""

    value: T
    origin: Any = None


class SkipWhich(enum.Enum):
    """Which accessors of a field are suppressed."""

    ALL = "all"
    GETTERS = "getters"
    SETTERS = "setters"


def _duplicate_error(name: str, previous: ConfigValue, show_value: bool = True) -> BitfieldDefinitionError:
    if show_value:
        message = f"encountered duplicate `{name}` parameter: duplicate set to {previous.value}"
    else:
        message = f"encountered duplicate `{name}` parameter"
    return BitfieldDefinitionError(message, [f"previous `{name}` parameter here"])


def _require_count(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise BitfieldDefinitionError(
            f"expected a non-negative integer for `{name}`, found {value!r}"
        )
    return value


@dataclass
class FieldConfig:
    """Per-field settings: an expected bit width, skipped accessors and extra metadata."""

    bits: ConfigValue[int] | None = None
    skip: ConfigValue[SkipWhich] | None = None
    retained_attrs: list[Any] = field(default_factory=list)

    def declare_bits(self, value: int, origin: Any = None) -> None:
        """Record the expected bit width of the field."""
        value = _require_count("bits", value)
        if self.bits is not None:
            raise _duplicate_error("bits", self.bits)
        self.bits = ConfigValue(value, origin)

    def declare_skip(self, which: SkipWhich, origin: Any = None) -> None:
        """Suppress getters, setters or both; getters and setters combine into all."""
        which = SkipWhich(which)
        previous = self.skip
        if previous is None:
            self.skip = ConfigValue(which, origin)
            return
        if SkipWhich.ALL in (previous.value, which) or previous.value is which:
            raise BitfieldDefinitionError(
                f"encountered duplicate skip({which.value}) specifier",
                ["previous skip specifier here"],
            )
        self.skip = ConfigValue(SkipWhich.ALL, previous.origin)

    def skip_getters(self) -> bool:
        """Whether getters of the field are suppressed."""
        return self.skip is not None and self.skip.value in (SkipWhich.ALL, SkipWhich.GETTERS)

    def skip_setters(self) -> bool:
        """Whether setters of the field are suppressed."""
        return self.skip is not None and self.skip.value in (SkipWhich.ALL, SkipWhich.SETTERS)


def _next_multiple_of_8(value: int) -> int:
    return ((max(value - 1, 0) // 8) + 1) * 8


@dataclass
class Config:
    """Settings of a whole bitfield class."""

    bytes: ConfigValue[int] | None = None
    bits: ConfigValue[int] | None = None
    filled: ConfigValue[bool] | None = None
    repr: ConfigValue[ReprKind] | None = None
    derive_debug: ConfigValue[None] | None = None
    derive_specifier: ConfigValue[None] | None = None
    retained_attributes: list[Any] = field(default_factory=list)
    field_configs: dict[int, ConfigValue[FieldConfig]] = field(default_factory=dict)

    def filled_enabled(self) -> bool:
        """The `filled` setting, which defaults to true."""
        return self.filled is None or self.filled.value

    def declare_bytes(self, value: int, origin: Any = None) -> None:
        value = _require_count("bytes", value)
        if self.bytes is not None:
            raise _duplicate_error("bytes", self.bytes)
        self.bytes = ConfigValue(value, origin)

    def declare_bits(self, value: int, origin: Any = None) -> None:
        value = _require_count("bits", value)
        if self.bits is not None:
            raise _duplicate_error("bits", self.bits)
        self.bits = ConfigValue(value, origin)

    def declare_filled(self, value: bool, origin: Any = None) -> None:
        if not isinstance(value, bool):
            raise BitfieldDefinitionError(f"expected a boolean for `filled`, found {value!r}")
        if self.filled is not None:
            raise _duplicate_error("filled", self.filled)
        self.filled = ConfigValue(value, origin)

    def declare_repr(self, value: ReprKind, origin: Any = None) -> None:
        value = ReprKind(value)
        if self.repr is not None:
            raise _duplicate_error("repr(uN)", self.repr)
        self.repr = ConfigValue(value, origin)

    def declare_derive_debug(self, origin: Any = None) -> None:
        if self.derive_debug is not None:
            raise _duplicate_error("derive(Debug)", self.derive_debug, show_value=False)
        self.derive_debug = ConfigValue(None, origin)

    def declare_derive_specifier(self, origin: Any = None) -> None:
        if self.derive_specifier is not None:
            raise _duplicate_error("derive(Specifier)", self.derive_specifier, show_value=False)
        self.derive_specifier = ConfigValue(None, origin)

    def add_field_config(self, index: int, origin: Any, config: FieldConfig) -> None:
        """Register the configuration of the field at ``index``."""
        if index in self.field_configs:
            raise BitfieldDefinitionError(
                "encountered duplicate config for field", ["previous config here"]
            )
        self.field_configs[index] = ConfigValue(config, origin)

    def _check_bits_and_repr(self) -> None:
        bits, repr_kind = self.bits, self.repr
        if bits is None or repr_kind is None or bits.value == repr_kind.value.bits():
            return
        raise BitfieldDefinitionError(
            f"encountered conflicting `bits = {bits.value}` and {repr_kind.value} parameters",
            [
                f"conflicting `bits = {bits.value}` here",
                f"conflicting {repr_kind.value} here",
            ],
        )

    def _check_bits_and_bytes(self) -> None:
        bits, nbytes = self.bits, self.bytes
        if bits is None or nbytes is None:
            return
        if _next_multiple_of_8(bits.value) // 8 == nbytes.value:
            return
        raise BitfieldDefinitionError(
            f"encountered conflicting `bits = {bits.value}` and `bytes = {nbytes.value}` parameters",
            [
                f"conflicting `bits = {bits.value}` here",
                f"conflicting `bytes = {nbytes.value}` here",
            ],
        )

    def _check_repr_and_filled(self) -> None:
        repr_kind, filled = self.repr, self.filled
        if repr_kind is None or filled is None or filled.value:
            return
        raise BitfieldDefinitionError(
            f"encountered conflicting `{repr_kind.value}` and `filled = {filled.value}` parameters",
            [
                f"conflicting `{repr_kind.value}` here",
                f"conflicting `filled = {filled.value}` here",
            ],
        )

    def ensure_no_conflicts(self) -> None:
        """Raise if the collected parameters contradict each other."""
        self._check_bits_and_repr()
        self._check_bits_and_bytes()
        self._check_repr_and_filled()