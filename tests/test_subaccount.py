"""
Tests for subaccount derivation.
"""
import pytest
from hypothesis import given, settings, strategies as st

from signvault_sdk.exceptions import InvalidNonceError, UnknownEnvironmentError, VaultInvariantError
from signvault_sdk.identity.subaccount import (
    MAX_NONCE, Subaccount, derivation_path, derive, environment_of, key_config, nonce_of,
)
from signvault_sdk.identity.types import Environment


def test_default_subaccount_is_all_zero():
    sub = Subaccount.default()
    assert bytes(sub) == bytes(32)
    assert sub.id() == "default"
    assert sub.name() == "Default"


def test_derive_is_deterministic():
    assert derive(Environment.PRODUCTION, 0) == derive(Environment.PRODUCTION, 0)
    assert bytes(derive(Environment.STAGING, 7)) == bytes(derive(Environment.STAGING, 7))


@pytest.mark.parametrize("environment,tag", [
    (Environment.PRODUCTION, 0x00),
    (Environment.DEVELOPMENT, 0x08),
    (Environment.STAGING, 0x10),
])
def test_environment_tag_in_first_byte(environment, tag):
    sub = derive(environment, 1)
    assert sub.value[0] == tag
    assert sub.value[1:] == (1).to_bytes(31, "big")


def test_nonce_is_big_endian():
    sub = derive(Environment.PRODUCTION, 0x0102)
    assert sub.value[-2:] == b"\x01\x02"
    assert sub.value[1:-2] == bytes(29)


@pytest.mark.parametrize("environment,nonce,expected_id,expected_name", [
    (Environment.PRODUCTION, 0, "default", "Default"),
    (Environment.PRODUCTION, 1, "account_1", "Account 2"),
    (Environment.STAGING, 0, "staging_account_0", "Staging Account 1"),
    (Environment.DEVELOPMENT, 4, "development_account_4", "Development Account 5"),
])
def test_ids_and_names(environment, nonce, expected_id, expected_name):
    sub = derive(environment, nonce)
    assert sub.id() == expected_id
    assert sub.name() == expected_name


@settings(max_examples=50)
@given(
    environment=st.sampled_from(list(Environment)),
    nonce=st.integers(min_value=0, max_value=MAX_NONCE),
)
def test_derive_round_trip(environment, nonce):
    sub = derive(environment, nonce)
    assert environment_of(sub) is environment
    assert nonce_of(sub) == nonce
    assert len(bytes(sub)) == 32


def test_max_nonce_is_accepted():
    sub = derive(Environment.STAGING, MAX_NONCE)
    assert sub.value[1:] == b"\xff" * 31
    assert sub.nonce() == MAX_NONCE


@pytest.mark.parametrize("nonce", [-1, MAX_NONCE + 1])
def test_nonce_out_of_range(nonce):
    with pytest.raises(InvalidNonceError):
        derive(Environment.PRODUCTION, nonce)


def test_unknown_environment_name():
    with pytest.raises(UnknownEnvironmentError):
        derive("Testing", 0)


def test_unknown_environment_tag_is_fatal():
    sub = Subaccount(value=b"\x01" + bytes(31))
    with pytest.raises(VaultInvariantError):
        environment_of(sub)
    with pytest.raises(UnknownEnvironmentError):
        sub.id()


def test_wrong_length_rejected():
    with pytest.raises(ValueError):
        Subaccount(value=bytes(31))


def test_derivation_path_is_raw_bytes():
    sub = derive(Environment.DEVELOPMENT, 3)
    assert derivation_path(sub) == [bytes(sub)]
    assert sub.derivation_path() == [sub.value]


@pytest.mark.parametrize("environment,key_id,cycles", [
    (Environment.PRODUCTION, "key_1", 26_153_846_153),
    (Environment.STAGING, "test_key_1", 10_000_000_000),
    (Environment.DEVELOPMENT, "dfx_test_key", 10_000_000_000),
])
def test_key_config(environment, key_id, cycles):
    config = key_config(environment)
    assert config.key_id == key_id
    assert config.sign_cycles == cycles

    sub = derive(environment, 2)
    assert sub.key_id_with_cycles_and_path() == (key_id, cycles, [sub.value])


def test_hex_input_accepted():
    sub = Subaccount(value="0x" + "00" * 31 + "05")
    assert sub.nonce() == 5
    assert Subaccount.model_validate_json(sub.model_dump_json()) == sub
