import pytest

from bitweave.config import (
    BitfieldDefinitionError,
    Config,
    FieldConfig,
    ReprKind,
    SkipWhich,
)


@pytest.mark.parametrize(
    "kind, bits",
    [
        (ReprKind.U8, 8),
        (ReprKind.U16, 16),
        (ReprKind.U32, 32),
        (ReprKind.U64, 64),
        (ReprKind.U128, 128),
    ],
)
def test_repr_kind_bits(kind, bits):
    assert kind.bits() == bits


def test_repr_kind_str():
    config = Config()
    config.declare_repr(ReprKind.U32)
    assert str(config.repr.value) == "repr(u32)"


def test_filled_defaults_to_true():
    config = Config()
    assert config.filled_enabled() is True
    config.declare_filled(False)
    assert config.filled_enabled() is False


def test_filled_must_be_bool():
    with pytest.raises(BitfieldDefinitionError):
        Config().declare_filled(1)


def test_duplicate_bytes():
    config = Config()
    config.declare_bytes(4, "first")
    with pytest.raises(BitfieldDefinitionError, match="duplicate `bytes` parameter") as info:
        config.declare_bytes(2, "second")
    assert "duplicate set to 4" in info.value.message
    assert "previous `bytes` parameter here" in info.value.notes
    assert config.bytes.value == 4
    assert config.bytes.origin == "first"


def test_duplicate_bits_and_repr():
    config = Config()
    config.declare_bits(32)
    config.declare_repr(ReprKind.U32)
    with pytest.raises(BitfieldDefinitionError, match="duplicate `bits`"):
        config.declare_bits(32)
    with pytest.raises(BitfieldDefinitionError, match="duplicate `repr"):
        config.declare_repr(ReprKind.U8)


def test_duplicate_derive_has_no_value():
    config = Config()
    config.declare_derive_debug()
    with pytest.raises(BitfieldDefinitionError) as info:
        config.declare_derive_debug()
    assert "duplicate set to" not in info.value.message
    config.declare_derive_specifier()
    with pytest.raises(BitfieldDefinitionError, match="derive\\(Specifier\\)"):
        config.declare_derive_specifier()


def test_negative_bits_rejected():
    with pytest.raises(BitfieldDefinitionError):
        Config().declare_bits(-1)


@pytest.mark.parametrize(
    "bits, nbytes",
    [(32, 4), (16, 2), (9, 2), (8, 1)],
)
def test_bits_and_bytes_agree(bits, nbytes):
    config = Config()
    config.declare_bits(bits)
    config.declare_bytes(nbytes)
    config.ensure_no_conflicts()
    assert (config.bits.value, config.bytes.value) == (bits, nbytes)


@pytest.mark.parametrize("bits, nbytes", [(9, 1), (32, 5), (16, 1)])
def test_bits_and_bytes_conflict(bits, nbytes):
    config = Config()
    config.declare_bits(bits)
    config.declare_bytes(nbytes)
    with pytest.raises(BitfieldDefinitionError, match="conflicting") as info:
        config.ensure_no_conflicts()
    assert len(info.value.notes) == 2


def test_bits_and_repr_agree():
    config = Config()
    config.declare_bits(32)
    config.declare_repr(ReprKind.U32)
    config.ensure_no_conflicts()
    assert config.repr.value.bits() == config.bits.value


def test_bits_and_repr_conflict():
    config = Config()
    config.declare_bits(16)
    config.declare_repr(ReprKind.U32)
    with pytest.raises(BitfieldDefinitionError, match="conflicting `bits = 16`"):
        config.ensure_no_conflicts()


def test_repr_and_unfilled_conflict():
    config = Config()
    config.declare_repr(ReprKind.U8)
    config.declare_filled(False)
    with pytest.raises(BitfieldDefinitionError, match="filled = False"):
        config.ensure_no_conflicts()


def test_repr_and_filled_true_agree():
    config = Config()
    config.declare_repr(ReprKind.U8)
    config.declare_filled(True)
    config.ensure_no_conflicts()
    assert config.filled_enabled() is True


def test_duplicate_field_config():
    config = Config()
    config.add_field_config(0, "a", FieldConfig())
    with pytest.raises(BitfieldDefinitionError, match="duplicate config for field"):
        config.add_field_config(0, "b", FieldConfig())
    assert config.field_configs[0].origin == "a"


def test_field_config_defaults():
    fc = FieldConfig()
    assert fc.skip_getters() is False
    assert fc.skip_setters() is False


def test_field_skip_getters_then_setters_is_all():
    fc = FieldConfig()
    fc.declare_skip(SkipWhich.GETTERS)
    assert fc.skip_getters() and not fc.skip_setters()
    fc.declare_skip(SkipWhich.SETTERS)
    assert fc.skip.value is SkipWhich.ALL
    assert fc.skip_getters() and fc.skip_setters()


def test_field_skip_setters_only():
    fc = FieldConfig()
    fc.declare_skip(SkipWhich.SETTERS)
    assert fc.skip_setters() and not fc.skip_getters()


@pytest.mark.parametrize(
    "first, second",
    [
        (SkipWhich.GETTERS, SkipWhich.GETTERS),
        (SkipWhich.ALL, SkipWhich.SETTERS),
        (SkipWhich.SETTERS, SkipWhich.ALL),
    ],
)
def test_field_skip_duplicates(first, second):
    fc = FieldConfig()
    fc.declare_skip(first)
    with pytest.raises(BitfieldDefinitionError):
        fc.declare_skip(second)
    assert fc.skip.value is first


def test_field_bits_duplicate():
    fc = FieldConfig()
    fc.declare_bits(2)
    with pytest.raises(BitfieldDefinitionError, match="duplicate `bits`"):
        fc.declare_bits(2)
    assert fc.bits.value == 2