import pytest

from antisnipe.core.position_key import normalize_salt, position_key

OWNER = "0x" + "ab" * 20


def test_same_inputs_same_key():
    assert position_key(OWNER, -60, 60, 7) == position_key(OWNER, -60, 60, 7)


def test_key_format():
    key = position_key(OWNER, -60, 60)
    assert key.startswith("0x")
    assert len(key) == 66


def test_every_component_changes_the_key():
    base = position_key(OWNER, -60, 60, 1)
    assert position_key("0x" + "cd" * 20, -60, 60, 1) != base
    assert position_key(OWNER, -120, 60, 1) != base
    assert position_key(OWNER, -60, 120, 1) != base
    assert position_key(OWNER, -60, 60, 2) != base


def test_owner_case_does_not_matter():
    assert position_key(OWNER.upper().replace("0X", "0x"), 0, 60) == position_key(OWNER, 0, 60)


def test_int_and_bytes_salts_agree():
    assert position_key(OWNER, 0, 60, 5) == position_key(OWNER, 0, 60, b"\x05")
    assert position_key(OWNER, 0, 60, None) == position_key(OWNER, 0, 60, 0)


def test_normalize_salt_pads_to_32_bytes():
    assert normalize_salt(b"\x01") == bytes(31) + b"\x01"
    assert len(normalize_salt(None)) == 32


@pytest.mark.parametrize(
    "owner,tick_lower,tick_upper,salt",
    [
        ("0x1234", 0, 60, None),  # short address
        ("0x" + "zz" * 20, 0, 60, None),  # not hex
        (OWNER, -(2**23) - 1, 60, None),  # tick below int24
        (OWNER, 0, 2**23, None),  # tick above int24
        (OWNER, 0, 60, -1),  # negative salt
        (OWNER, 0, 60, bytes(33)),  # salt too long
    ],
)
def test_invalid_inputs_rejected(owner, tick_lower, tick_upper, salt):
    with pytest.raises(ValueError):
        position_key(owner, tick_lower, tick_upper, salt)
