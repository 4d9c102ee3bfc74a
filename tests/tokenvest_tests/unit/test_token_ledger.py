import pytest

from tokenvest.core.token_ledger import (
    UINT256_MAX,
    InMemoryTokenLedger,
    LedgerDirectory,
    LedgerOperationError,
    TokenLedger,
)


@pytest.fixture
def ledger():
    token = InMemoryTokenLedger(name="Acme Token", symbol="ACME", owner="0xOwner")
    token.mint("0xowner", "0xAdmin", 1_000)
    return token


def test_mint_is_owner_only_and_normalizes(ledger):
    assert ledger.balance_of("0xADMIN") == 1_000
    assert ledger.total_supply == 1_000

    with pytest.raises(LedgerOperationError):
        ledger.mint("0xmallory", "0xmallory", 5)


def test_transfer_moves_balance(ledger):
    ledger.transfer("0xadmin", "0xbob", 300)

    assert ledger.balance_of("0xadmin") == 700
    assert ledger.balance_of("0xbob") == 300
    assert ledger.events[-1].event_type == "Transfer"

    with pytest.raises(LedgerOperationError):
        ledger.transfer("0xbob", "0xadmin", 301)


def test_transfer_from_consumes_allowance(ledger):
    ledger.approve("0xadmin", "0xcustody", 500)
    ledger.transfer_from("0xcustody", "0xadmin", "0xcustody", 200)

    assert ledger.allowance("0xadmin", "0xcustody") == 300
    assert ledger.balance_of("0xcustody") == 200

    with pytest.raises(LedgerOperationError):
        ledger.transfer_from("0xcustody", "0xadmin", "0xcustody", 301)


def test_unlimited_allowance_is_not_decremented(ledger):
    ledger.approve("0xadmin", "0xcustody", UINT256_MAX)
    ledger.transfer_from("0xcustody", "0xadmin", "0xcustody", 100)

    assert ledger.allowance("0xadmin", "0xcustody") == UINT256_MAX


@pytest.mark.parametrize("amount", [-1, 1.5, True, UINT256_MAX + 1])
def test_invalid_amounts_rejected(ledger, amount):
    with pytest.raises(LedgerOperationError):
        ledger.transfer("0xadmin", "0xbob", amount)


def test_bound_client_reports_failures_as_false(ledger):
    client = ledger.bind("0xCustody")
    ledger.approve("0xadmin", "0xcustody", 100)

    assert isinstance(client, TokenLedger)
    assert client.allowance("0xadmin", "0xcustody") == 100
    assert client.transfer_from("0xadmin", "0xcustody", 100) is True
    assert client.transfer_from("0xadmin", "0xcustody", 1) is False
    assert client.transfer("0xalice", 40) is True
    assert client.transfer("0xalice", 61) is False
    assert client.balance_of("0xalice") == 40
    assert client.balance_of("0xcustody") == 60


def test_bind_requires_operator(ledger):
    with pytest.raises(ValueError):
        ledger.bind("")


def test_ledger_directory_lookup_is_case_insensitive(ledger):
    directory = LedgerDirectory({"Acme": ledger.bind("0xcustody")})

    assert directory.get("ACME") is not None
    assert "acme" in directory
    assert "other" not in directory
    assert directory.get(None) is None
    assert directory.references() == ["acme"]


def test_ledger_directory_rejects_non_ledgers():
    directory = LedgerDirectory()

    with pytest.raises(TypeError):
        directory.register("ACME", object())
    with pytest.raises(ValueError):
        directory.register("", InMemoryTokenLedger(name="x", symbol="X").bind("0xc"))
