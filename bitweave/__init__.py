"""Packed bitfield classes built from integer, boolean, enum and nested bitfield specifiers."""

__version__ = "0.14.0"