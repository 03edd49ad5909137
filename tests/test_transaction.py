"""
Tests for signature normalisation and transaction encoding.
"""
import pytest
import rlp
from eth_account import Account
from eth_keys import keys

from signvault_sdk.exceptions import (
    InvalidMessageLengthError, InvalidSignatureError, InvalidTransactionError,
)
from signvault_sdk.identity.crypto import keccak256, sha256
from signvault_sdk.identity.ec_constants import SECP256K1_HALF_N, SECP256K1_N
from signvault_sdk.identity.identifier import account_identifier
from signvault_sdk.identity.subaccount import Subaccount
from signvault_sdk.transaction import (
    AccessListEntry, Eip1559Transaction, LegacyTransaction, NativeTransfer,
    contract_address, decode_unsigned, normalize_signature, sign,
)

from conftest import TEST_EVM_ADDRESS, TEST_OWNER, TEST_PRIVATE_KEY, TEST_PUBLIC_KEY

RECIPIENT = bytes.fromhex("3535353535353535353535353535353535353535")
DIGEST = keccak256(b"signvault")


def _oracle_signature(digest: bytes) -> bytes:
    return TEST_PRIVATE_KEY.sign_msg_hash(digest).to_bytes()[:64]


def _legacy(**overrides) -> LegacyTransaction:
    fields = dict(chain_id=1, nonce=9, gas_price=20 * 10**9, gas_limit=21000, to=RECIPIENT, value=10**18)
    fields.update(overrides)
    return LegacyTransaction(**fields)


def _eip1559(**overrides) -> Eip1559Transaction:
    fields = dict(
        chain_id=1, nonce=3, max_priority_fee_per_gas=2 * 10**9, max_fee_per_gas=50 * 10**9,
        gas_limit=21000, to=RECIPIENT, value=12345, data=b"\x01\x02",
    )
    fields.update(overrides)
    return Eip1559Transaction(**fields)


def _raw(signed_tx) -> bytes:
    return bytes(getattr(signed_tx, "raw_transaction", None) or signed_tx.rawTransaction)


# Signatures


def test_normalize_finds_recovery_id():
    signature = TEST_PRIVATE_KEY.sign_msg_hash(DIGEST)
    normalized = normalize_signature(DIGEST, signature.to_bytes()[:64], TEST_PUBLIC_KEY)

    assert normalized.r == signature.r
    recovered = keys.Signature(vrs=(normalized.recovery_id, normalized.r, normalized.s)).recover_public_key_from_msg_hash(DIGEST)
    assert recovered.to_compressed_bytes() == TEST_PUBLIC_KEY


def test_normalize_ignores_supplied_recovery_byte():
    signature = TEST_PRIVATE_KEY.sign_msg_hash(DIGEST).to_bytes()
    expected = normalize_signature(DIGEST, signature[:64], TEST_PUBLIC_KEY)
    for recovery_byte in (0, 1, 27):
        assert normalize_signature(DIGEST, signature[:64] + bytes([recovery_byte]), TEST_PUBLIC_KEY) == expected


def test_normalize_produces_low_s():
    signature = TEST_PRIVATE_KEY.sign_msg_hash(DIGEST)
    low_s = min(signature.s, SECP256K1_N - signature.s)
    high_s = SECP256K1_N - low_s
    assert high_s > SECP256K1_HALF_N

    raw = signature.r.to_bytes(32, "big") + high_s.to_bytes(32, "big")
    normalized = normalize_signature(DIGEST, raw, TEST_PUBLIC_KEY)

    assert normalized.s == low_s
    assert normalized == normalize_signature(DIGEST, signature.to_bytes()[:64], TEST_PUBLIC_KEY)


@pytest.mark.parametrize("length", [0, 31, 33, 64])
def test_normalize_checks_digest_first(length):
    with pytest.raises(InvalidMessageLengthError):
        normalize_signature(b"\x00" * length, b"", TEST_PUBLIC_KEY)


@pytest.mark.parametrize("signature", [
    b"\x01" * 63,
    b"\x01" * 66,
    bytes(64),
    SECP256K1_N.to_bytes(32, "big") + (1).to_bytes(32, "big"),
])
def test_normalize_rejects_malformed(signature):
    with pytest.raises(InvalidSignatureError):
        normalize_signature(DIGEST, signature, TEST_PUBLIC_KEY)


def test_normalize_rejects_foreign_key():
    other = keys.PrivateKey((2).to_bytes(32, "big"))
    with pytest.raises(InvalidSignatureError):
        normalize_signature(DIGEST, other.sign_msg_hash(DIGEST).to_bytes()[:64], TEST_PUBLIC_KEY)


# EVM


def test_legacy_matches_eth_account():
    tx = _legacy()
    signed = sign(tx, tx.digest(), _oracle_signature(tx.digest()), TEST_PUBLIC_KEY)

    expected = Account.sign_transaction({
        "nonce": 9,
        "gasPrice": 20 * 10**9,
        "gas": 21000,
        "to": "0x" + RECIPIENT.hex(),
        "value": 10**18,
        "data": b"",
        "chainId": 1,
    }, TEST_PRIVATE_KEY.to_bytes())

    assert signed.raw == _raw(expected)
    assert signed.tx_hash == "0x" + keccak256(signed.raw).hex()


def test_legacy_v_uses_eip155():
    tx = _legacy(chain_id=137)
    signed = sign(tx, tx.digest(), _oracle_signature(tx.digest()), TEST_PUBLIC_KEY)
    v = rlp.decode(signed.raw)[6]
    assert int.from_bytes(v, "big") in (35 + 2 * 137, 36 + 2 * 137)
    assert Account.recover_transaction(signed.raw).lower() == TEST_EVM_ADDRESS


def test_pre_eip155_legacy():
    tx = _legacy(chain_id=0)
    signed = sign(tx, tx.digest(), _oracle_signature(tx.digest()), TEST_PUBLIC_KEY)
    assert int.from_bytes(rlp.decode(signed.raw)[6], "big") in (27, 28)
    assert Account.recover_transaction(signed.raw).lower() == TEST_EVM_ADDRESS


def test_eip1559_sender_recovers():
    tx = _eip1559(access_list=[AccessListEntry(address=RECIPIENT, storage_keys=[bytes(32)])])
    signed = sign(tx, tx.digest(), _oracle_signature(tx.digest()), TEST_PUBLIC_KEY)

    assert signed.raw[0] == 0x02
    assert Account.recover_transaction(signed.raw).lower() == TEST_EVM_ADDRESS


def test_sign_rejects_mismatched_digest():
    tx = _legacy()
    with pytest.raises(InvalidTransactionError):
        sign(tx, DIGEST, _oracle_signature(DIGEST), TEST_PUBLIC_KEY)


def test_sign_rejects_short_digest():
    tx = _legacy()
    with pytest.raises(InvalidMessageLengthError):
        sign(tx, tx.digest()[:31], _oracle_signature(tx.digest()), TEST_PUBLIC_KEY)


@pytest.mark.parametrize("tx", [_legacy(), _legacy(to=None, data=b"\x60\x80"), _eip1559()])
def test_decode_unsigned(tx):
    assert decode_unsigned(tx.signing_payload(), tx.chain_id) == tx


def test_decode_pre_eip155_takes_chain_from_argument():
    payload = rlp.encode([1, 2, 21000, RECIPIENT, 5, b""])
    tx = decode_unsigned(payload, 10)
    assert isinstance(tx, LegacyTransaction)
    assert tx.chain_id == 10
    assert tx.nonce == 1


@pytest.mark.parametrize("raw", [
    b"",
    b"\x05\xc0",
    b"\xc3\x01\x02\x03",
    b"\x02\xc0",
    b"\x02" + b"\xff",
])
def test_decode_rejects_malformed(raw):
    with pytest.raises(InvalidTransactionError):
        decode_unsigned(raw)


def test_decode_rejects_other_chain():
    tx = _eip1559(chain_id=10)
    with pytest.raises(InvalidTransactionError):
        decode_unsigned(tx.signing_payload(), 1)


def test_decode_rejects_signed_legacy():
    tx = _legacy()
    signed = sign(tx, tx.digest(), _oracle_signature(tx.digest()), TEST_PUBLIC_KEY)
    with pytest.raises(InvalidTransactionError):
        decode_unsigned(signed.raw, 1)


def test_contract_creation_flag():
    assert _legacy(to=None).is_contract_creation()
    assert _legacy(to=b"").is_contract_creation()
    assert not _legacy().is_contract_creation()
    with pytest.raises(ValueError):
        _legacy(to=b"\x01" * 19)


def test_contract_address_known_vector():
    sender = "0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0"
    assert contract_address(sender, 0) == "0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d"
    assert contract_address(sender, 1) == "0x343c43a37d37dff08ae8c4a11544c718abb4fcf8"


# Native


def test_native_transfer_digest_and_signature():
    source = account_identifier(TEST_OWNER, Subaccount.default())
    to = account_identifier(b"\x04", Subaccount.default())
    transfer = NativeTransfer(source=source, to=to, amount=100, fee=10, memo=7, created_at=1)

    payload = transfer.signing_payload()
    assert payload.startswith(b"\x0fnative-transfer")
    assert len(payload) == 16 + 32 + 32 + 16 + 16 + 9 + 8
    assert transfer.digest() == sha256(payload)

    signed = sign(transfer, transfer.digest(), _oracle_signature(transfer.digest()), TEST_PUBLIC_KEY)
    assert signed.raw[:len(payload)] == payload
    assert len(signed.raw) == len(payload) + 65


def test_native_memo_changes_digest():
    source = account_identifier(TEST_OWNER, Subaccount.default())
    base = dict(source=source, to=source, amount=1, created_at=1)
    assert NativeTransfer(**base).digest() != NativeTransfer(memo=0, **base).digest()
