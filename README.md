# bitweave

bitweave builds bitfield classes. Each field of such a class is packed into a
little-endian byte string and takes exactly the number of bits its specifier
gives it.

The package is a library. Import what you need from its modules:

- `bitweave.bitfield`: the `bitfield` decorator and the `Bitfield` base class
- `bitweave.specifiers`: `B`, `specifier`, `OutOfBounds`, `InvalidBitPattern`,
  `read_bits`, `write_bits`
- `bitweave.analyse`: `field`, for settings that apply to one field
- `bitweave.config`: `BitfieldDefinitionError`, `ReprKind`

## Declaring a bitfield

```python
from enum import Enum

from bitweave.bitfield import bitfield
from bitweave.specifiers import B, specifier


@specifier(bits=2)
class Status(Enum):
    GREEN = 0
    YELLOW = 1
    RED = 2


@bitfield(derive="Debug")
class Package:
    status: Status
    contents: B[4]
    is_alive: bool
    is_received: bool


p = Package(status=Status.RED, contents=9, is_alive=True)
p.contents = 6
p.into_bytes()          # b'Z'  (0b0101_1010)
```

Each field annotation must be one of these:

- `B[n]` (or `B(n)`): an unsigned integer that is `n` bits wide, with `n` from 1 to 128.
- `bool`: a single bit.
- An `Enum` class. Integer member values are used as the stored values.
  Otherwise the members are numbered in the order they are declared, starting
  at 0. Use `specifier(EnumClass, bits=n)`, or `@specifier` / `@specifier(bits=n)`,
  to set the width. Without an explicit width, the enum must have a power-of-two
  number of members, and that number sets the width.
- Another bitfield class that was declared with `derive="Specifier"`.

Annotations must be real objects, not strings. Do not use
`from __future__ import annotations` in a module that declares bitfields.

Fields are laid out in the order they are declared, starting at the least
significant bit of the first byte. The instance occupies the total width rounded
up to whole bytes. A new instance starts with every bit at zero. Keyword
arguments to the constructor set fields.

## Options of `bitfield`

These options are checked when the class is created:

- `bits`: the total width. With `filled` left as true, the fields must take
  exactly this many bits. With `filled=False`, they must take fewer.
- `nbytes`: the number of bytes the bitfield must occupy.
- `filled`: defaults to true. Without `bits`, the width of a filled bitfield
  must be a multiple of 8, and the width of an unfilled one must not be.
- `repr`: one of `"u8"`, `"u16"`, `"u32"`, `"u64"`, `"u128"`, or a `ReprKind`.
  The width must match it. This setting enables `from_int(value)` and
  `int(instance)`. Other names given here are accepted and ignored.
- `derive`: `"Debug"` makes `repr()` show each field, for example
  `Package(status=InvalidBitPattern(invalid_bytes=3), contents=6, is_alive=True, is_received=False)`.
  With this setting, `format(instance, "x")` or `"X"` shows integers in hex.
  `"Specifier"` lets the class serve as a field of other bitfields, up to 128 bits.
  Other names are accepted and ignored.

Options that contradict each other raise `BitfieldDefinitionError`. Examples are
`bits` disagreeing with `repr` or with `nbytes`, `repr` combined with
`filled=False`, and field widths that do not add up.

## Per-field settings

```python
from typing import Annotated
from bitweave.analyse import field


@bitfield(bits=8)
class Flags:
    a: bool
    reserved: bool = field(skip=True)
    b: bool
    spare: Annotated[B[5], field(skip=True)]


Flags(a=True, b=True).into_bytes()   # b'\x05'
```

`field(bits=n)` asserts the width of the field's specifier.

`field(skip=...)` controls access to the field:

- `True` hides the field completely.
- `"getters"` makes the field write-only.
- `"setters"` makes the field read-only.

A skipped field still occupies its bits.

## Reading and writing

- `into_bytes()` and `bytes(instance)` return the packed bytes.
- `from_bytes(data)` builds an instance. It needs exactly the right number of
  bytes. For an unfilled bitfield, it raises `OutOfBounds` if any bit beyond the
  declared width is set.
- `replace(**kwargs)` returns a changed copy and leaves the original as it was.
- Instances of the same class compare equal when their bytes are equal.
- Storing a value too large for its field raises `OutOfBounds`, and the
  instance is left unchanged.
- Reading bits that do not form a valid value raises `InvalidBitPattern`. An
  example is an enum value with no member. The exception's `invalid_bytes`
  holds the raw value.
- `Bitfield.encode` and `Bitfield.decode` move between an instance and its raw
  integer. They are used when a bitfield is nested inside another one.

`read_bits(data, offset, width)` and `write_bits(data, offset, width, value)`
work on plain byte strings with the same bit order.

## Scope

bitweave is a library only. It provides no command-line tool.