"""
Tests for the vault: accounts, signing, bridge and persistence.
"""
import json

import pytest
from eth_account import Account
from eth_keys import keys

from signvault_sdk.exceptions import (
    AccountAlreadyExistsError, AccountNotFoundError, BridgeNotInitializedError, ChainNotFoundError,
    CorruptSnapshotError, DefaultAccountRemovalError, InvalidAddressError, InvalidMessageLengthError,
    InvalidTransactionError, MissingPublicKeyError, UnknownEnvironmentError, VaultInvariantError,
)
from signvault_sdk.identity.subaccount import Subaccount, derive
from signvault_sdk.identity.types import Environment
from signvault_sdk.ledger.address_book import btc_address
from signvault_sdk.ledger.chains import EVM, Bitcoin, BitcoinNetwork, NativeLedger, WrappedBitcoin
from signvault_sdk.models import WalletController, WalletSettings
from signvault_sdk.request import CreateAccount, RequestEngine
from signvault_sdk.roles import Role, StaticRoleAuthority
from signvault_sdk.transaction import LegacyTransaction, NativeTransfer
from signvault_sdk.vault import Vault

from conftest import TEST_BTC_MAINNET_ADDRESS, TEST_EVM_ADDRESS, TEST_OWNER, TEST_PUBLIC_KEY

MAINNET = BitcoinNetwork.MAINNET
RECIPIENT = bytes.fromhex("3535353535353535353535353535353535353535")


def _recovers_to(signature, digest: bytes, public_key: bytes) -> bool:
    candidate = keys.Signature(vrs=(signature.recovery_id, signature.r, signature.s))
    return candidate.recover_public_key_from_msg_hash(digest).to_compressed_bytes() == public_key


@pytest.mark.asyncio
async def test_end_to_end_binding(vault):
    assert Subaccount.default() == derive(Environment.PRODUCTION, 0)
    assert bytes(Subaccount.default()) == bytes(32)

    ledger = vault.ledger("default")
    with pytest.raises(MissingPublicKeyError):
        await ledger.bind_chain(Bitcoin(network=MAINNET))

    addresses = vault.set_public_key("default", TEST_PUBLIC_KEY)
    assert addresses["evm:0"] == TEST_EVM_ADDRESS
    assert "btc:mainnet" in addresses

    binding = await vault.create_chain_binding("default", Bitcoin(network=MAINNET))
    assert binding.address == addresses["btc:mainnet"] == btc_address(TEST_PUBLIC_KEY, MAINNET)


# Accounts


def test_fresh_vault_has_default_account(vault):
    views = vault.account_views()
    assert [v.id for v in views] == ["default"]
    assert views[0].name == "Default"
    assert views[0].environment is Environment.PRODUCTION
    assert views[0].nonce == 0


def test_create_accounts_per_environment(vault):
    assert vault.create_account().id == "account_1"
    assert vault.create_account(name="Savings").name == "Savings"

    staging = vault.create_account(Environment.STAGING)
    assert staging.id == "staging_account_0"
    assert staging.name == "Staging Account 1"
    assert vault.create_account(Environment.DEVELOPMENT).id == "development_account_0"

    ids = [v.id for v in vault.account_views()]
    assert ids[0] == "default"
    assert set(ids) == {"default", "account_1", "account_2", "staging_account_0", "development_account_0"}


def test_restore_account_advances_counter(vault):
    restored = vault.restore_account(Environment.PRODUCTION, 2, "Old savings")
    assert restored.id == "account_2"
    assert vault.create_account().id == "account_3"

    with pytest.raises(AccountAlreadyExistsError):
        vault.restore_account(Environment.PRODUCTION, 2)


def test_create_skips_taken_nonce(vault):
    vault.restore_account(Environment.STAGING, 0)
    vault.state.counters.staging = 0
    assert vault.create_account(Environment.STAGING).id == "staging_account_1"


def test_remove_account(vault):
    vault.create_account()
    vault.remove_account("account_1")

    with pytest.raises(AccountNotFoundError):
        vault.get_account("account_1")
    with pytest.raises(AccountNotFoundError):
        vault.remove_account("account_1")
    with pytest.raises(DefaultAccountRemovalError):
        vault.remove_account("default")

    # Removed nonces are not handed out again
    assert vault.create_account().id == "account_2"


def test_rename_hide_and_metadata(vault):
    vault.create_account()
    vault.rename_account("account_1", "Payroll")
    vault.hide_account("account_1")
    vault.set_account_metadata("account_1", "team", "finance")

    assert [v.id for v in vault.account_views()] == ["default"]
    hidden = vault.account_views(include_hidden=True)[1]
    assert (hidden.name, hidden.hidden, hidden.metadata) == ("Payroll", True, {"team": "finance"})

    vault.unhide_account("account_1")
    vault.remove_account_metadata("account_1", "team")
    vault.remove_account_metadata("account_1", "team")
    assert vault.account_views()[1].metadata == {}


@pytest.mark.asyncio
async def test_accounts_get_distinct_keys(vault):
    vault.create_account()
    default_addresses = await vault.acquire_public_key("default")
    other_addresses = await vault.acquire_public_key("account_1")

    assert default_addresses["evm:0"] != other_addresses["evm:0"]
    assert await vault.acquire_public_key("default") == default_addresses


# Signing


@pytest.mark.asyncio
async def test_sign_message(vault):
    digest = bytes(range(32))
    with pytest.raises(MissingPublicKeyError):
        await vault.sign_message("default", digest)

    await vault.acquire_public_key("default")
    signature = await vault.sign_message("default", digest)

    assert _recovers_to(signature, digest, vault.ledger("default").public_key())
    assert len(signature.to_bytes()) == 65


@pytest.mark.asyncio
async def test_sign_message_rejects_bad_digest(vault):
    await vault.acquire_public_key("default")
    with pytest.raises(InvalidMessageLengthError):
        await vault.sign_message("default", b"\x00" * 33)
    assert vault.signer.sign_calls == 0


@pytest.mark.asyncio
async def test_sign_raw_evm_transaction(fixed_vault):
    await fixed_vault.create_chain_binding("default", EVM(chain_id=1))
    tx = LegacyTransaction(chain_id=1, nonce=0, gas_price=10**9, gas_limit=21000, to=RECIPIENT, value=7)

    signed = await fixed_vault.sign_evm_transaction("default", tx.signing_payload(), 1)

    assert Account.recover_transaction(signed.raw).lower() == TEST_EVM_ADDRESS
    assert signed.raw_hex().startswith("0x")

    with pytest.raises(InvalidTransactionError):
        await fixed_vault.sign_evm_transaction("default", tx.signing_payload(), 5)


@pytest.mark.asyncio
async def test_sign_evm_needs_chain_binding(fixed_vault):
    await fixed_vault.acquire_public_key("default")
    tx = LegacyTransaction(chain_id=10, nonce=0, gas_price=1, gas_limit=21000, to=RECIPIENT)
    with pytest.raises(ChainNotFoundError):
        await fixed_vault.sign_evm("default", tx)


@pytest.mark.asyncio
async def test_sign_native_transfer(fixed_vault, clock):
    await fixed_vault.acquire_public_key("default")
    fixed_vault.create_account()
    to = fixed_vault.ledger("account_1").identifier.to_text()

    signed = await fixed_vault.sign_native_transfer("default", to, 500, fee=10, memo=3)

    expected = NativeTransfer(
        source=fixed_vault.ledger("default").identifier,
        to=fixed_vault.ledger("account_1").identifier,
        amount=500, fee=10, memo=3, created_at=clock(),
    )
    assert signed.digest == expected.digest()
    assert _recovers_to(signed.signature, signed.digest, TEST_PUBLIC_KEY)

    with pytest.raises(InvalidAddressError):
        await fixed_vault.sign_native_transfer("default", "not-an-identifier", 1)


# Backends and bridge


@pytest.mark.asyncio
async def test_balance_and_transfer(vault, backend):
    await vault.create_chain_binding("default", NativeLedger())
    address = vault.ledger("default").identifier.to_text()
    backend.balances[address] = 1_000

    assert await vault.balance("default", NativeLedger()) == 1_000
    await vault.transfer("default", NativeLedger(), "f" * 64, 400)
    assert await vault.balance("default", NativeLedger()) == 600
    assert await vault.fee_rate("default", NativeLedger()) == 1

    with pytest.raises(ChainNotFoundError):
        await vault.balance("default", EVM(chain_id=1))


@pytest.mark.asyncio
async def test_bridge_round_trip(vault, bridge, clock):
    await vault.create_chain_binding("default", WrappedBitcoin(network=MAINNET))

    inbound = await vault.initiate_bridge_in("default", MAINNET, 10_000)
    outbound = await vault.initiate_bridge_out("default", MAINNET, TEST_BTC_MAINNET_ADDRESS, 2_000)
    pending = vault.ledger("default").pending(MAINNET)
    assert pending.pending_receive == [inbound]
    assert pending.pending_send == [outbound]
    assert pending.receive[0].initiated_at == clock()

    bridge.confirm(inbound)
    assert await vault.settle_bridge_in("default", MAINNET) == [inbound]
    assert await vault.settle_bridge_out("default", MAINNET) == []

    vault.clear_bridge_out("default", MAINNET, outbound)
    assert vault.ledger("default").pending(MAINNET).is_empty()


@pytest.mark.asyncio
async def test_bridge_requires_oracle(owner, signer):
    vault = Vault(owner, signer)
    await vault.create_chain_binding("default", WrappedBitcoin(network=MAINNET))
    with pytest.raises(BridgeNotInitializedError):
        await vault.initiate_bridge_in("default", MAINNET, 1)


# Persistence


@pytest.mark.asyncio
async def test_save_and_restore(vault, signer, bridge):
    vault.create_account(Environment.STAGING, "QA")
    await vault.create_chain_binding("default", EVM(chain_id=1))
    await vault.create_chain_binding("default", WrappedBitcoin(network=MAINNET))
    await vault.initiate_bridge_in("default", MAINNET, 5)
    vault.update_settings(WalletSettings(controllers={"ops": WalletController(name="Ops")}))
    vault.set_account_metadata("default", "label", "main")
    engine = RequestEngine(vault, StaticRoleAuthority({"admin": Role.ADMIN}))
    engine.submit("admin", CreateAccount())

    restored = Vault.restore(vault.save(), signer, bridge)

    assert restored.state == vault.state
    assert restored.addresses("default") == vault.addresses("default")
    assert restored.create_account().id == "account_1"
    assert restored.state.requests.next_id == 2


@pytest.mark.parametrize("data", [b"", b"not json", b"{}", b'{"owner": "zz"}'])
def test_restore_rejects_garbage(signer, data):
    with pytest.raises(CorruptSnapshotError):
        Vault.restore(data, signer)


def test_restore_rejects_mismatched_account_id(vault, signer):
    vault.create_account()
    state = json.loads(vault.save())
    state["accounts"]["account_7"] = state["accounts"].pop("account_1")

    with pytest.raises(CorruptSnapshotError):
        Vault.restore(json.dumps(state).encode(), signer)


def test_restore_rejects_unknown_environment(vault, signer):
    state = json.loads(vault.save())
    state["accounts"]["default"]["ledger"]["subaccount"]["value"] = "ff" + "00" * 31

    with pytest.raises(UnknownEnvironmentError):
        Vault.restore(json.dumps(state).encode(), signer)


def test_state_of_another_owner_rejected(vault, signer):
    with pytest.raises(VaultInvariantError):
        Vault(b"\x04", signer, state=vault.state)
    assert Vault(TEST_OWNER, signer, state=vault.state).state is vault.state
