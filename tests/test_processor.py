import datetime
import decimal
import pathlib

import pytest

from homebank_import.data_types import Account
from homebank_import.data_types import Assignment
from homebank_import.data_types import Category
from homebank_import.data_types import EntryFlag
from homebank_import.data_types import EntryStatus
from homebank_import.data_types import Payee
from homebank_import.data_types import Paymode
from homebank_import.data_types import PaymodePattern
from homebank_import.data_types import PaymodePatternSet
from homebank_import.data_types import ReferenceModel
from homebank_import.data_types import SourceAccountType
from homebank_import.data_types import SourceTransaction
from homebank_import.data_types import Tag
from homebank_import.extractor import HelloBankCsvExtractor
from homebank_import.ledger import load_ledger
from homebank_import.ledger import load_paymode_patterns
from homebank_import.processor import convert_transaction
from homebank_import.processor import NO_PAYMODE_MATCH
from homebank_import.processor import PaymodeMatch
from homebank_import.processor import process_transactions
from homebank_import.processor import resolve_assignment
from homebank_import.processor import resolve_paymode
from homebank_import.processor import resolve_tags

GIRO = Account(key=1, name="Giro Account")
SAVINGS = Account(key=2, name="Savings Account")
GROCERY_MART = Payee(key=1, name="Grocery Mart")
GROCERIES = Category(key=2, name="Groceries", parent_key=1)


def make_txn(**kwargs) -> SourceTransaction:
    values = dict(
        iban="AT611904300234573201",
        sequence_number=1,
        accounting_date=datetime.date(2024, 3, 1),
        value_date=datetime.datetime(2024, 3, 1, 12, 30),
        payment_reference="",
        currency="EUR",
        amount=decimal.Decimal("-25.50"),
        accounting_text="SEPA credit transfer",
        memo="Grocery Mart",
        file="export.csv",
        lineno=2,
    )
    values.update(kwargs)
    return SourceTransaction(**values)


def make_model(paymode_patterns: list[PaymodePatternSet] | None = None):
    return ReferenceModel(
        accounts=[GIRO, SAVINGS],
        payees=[GROCERY_MART],
        categories=[Category(key=1, name="Food"), GROCERIES],
        tags=[Tag(key=1, name="household")],
        assignments=[
            Assignment(
                key=1,
                name="Grocery Mart",
                ignore_case=True,
                payee=GROCERY_MART,
                category=GROCERIES,
            )
        ],
        paymode_patterns=paymode_patterns or [],
        target_account=GIRO,
        max_link_id=4,
    )


@pytest.mark.parametrize(
    "assignments, text, expected",
    [
        (
            [Assignment(key=1, name="Grocery Mart", ignore_case=True)],
            "GROCERY SUPER MART 1120",
            1,
        ),
        (
            [Assignment(key=1, name="Grocery Mart", ignore_case=False)],
            "GROCERY SUPER MART 1120",
            None,
        ),
        (
            [
                Assignment(key=1, name="Mart"),
                Assignment(key=2, name="Grocery Mart"),
            ],
            "Grocery Mart",
            1,
        ),
        (
            [
                Assignment(key=1, name="Bakery"),
                Assignment(key=2, name="Grocery Mart"),
            ],
            "Grocery Mart",
            2,
        ),
        ([Assignment(key=1, name="Bakery")], "Grocery Mart", None),
        ([Assignment(key=1, name="Bakery")], None, None),
        ([], "Grocery Mart", None),
    ],
)
def test_resolve_assignment(
    assignments: list[Assignment], text: str | None, expected: int | None
):
    assignment = resolve_assignment(assignments, text)
    if expected is None:
        assert assignment is None
    else:
        assert assignment.key == expected


PATTERN_SETS = [
    PaymodePatternSet(
        type=Paymode.BETWEEN_ACCOUNTS,
        patterns=[
            PaymodePattern(
                accounting_text="Umbuchung",
                memo="savings",
                destination_account="^Savings",
                tags="savings",
            )
        ],
    ),
    PaymodePatternSet(
        type=Paymode.DEBIT_CARD,
        patterns=[PaymodePattern(accounting_text="^POS", tags="card")],
    ),
    PaymodePatternSet(
        type=Paymode.TRANSFER,
        patterns=[PaymodePattern(accounting_text="Umbuchung")],
    ),
]


@pytest.mark.parametrize(
    "accounting_text, memo, expected",
    [
        (
            "Umbuchung",
            "Monthly Savings",
            PaymodeMatch(
                paymode=Paymode.BETWEEN_ACCOUNTS,
                destination_account="^Savings",
                tags="savings",
            ),
        ),
        ("UMBUCHUNG", "rent", PaymodeMatch(paymode=Paymode.TRANSFER)),
        ("Umbuchung", None, PaymodeMatch(paymode=Paymode.TRANSFER)),
        ("pos 4711", "Bakery", PaymodeMatch(paymode=Paymode.DEBIT_CARD, tags="card")),
        ("Card POS 4711", "Bakery", NO_PAYMODE_MATCH),
        ("SEPA credit transfer", "Grocery Mart", NO_PAYMODE_MATCH),
        (None, None, NO_PAYMODE_MATCH),
    ],
)
def test_resolve_paymode(
    accounting_text: str | None, memo: str | None, expected: PaymodeMatch
):
    assert resolve_paymode(PATTERN_SETS, accounting_text, memo) == expected


def test_resolve_paymode_empty():
    assert resolve_paymode([], "anything", "anything") == NO_PAYMODE_MATCH
    assert NO_PAYMODE_MATCH.paymode == Paymode.UNKNOWN


def test_resolve_tags():
    model = make_model()
    assert resolve_tags(model, "household new  new other") == [
        "household",
        "new",
        "other",
    ]
    assert model.tags == [
        Tag(key=1, name="household"),
        Tag(key=2, name="new", from_ledger=False),
        Tag(key=3, name="other", from_ledger=False),
    ]
    assert [tag.name for tag in model.new_tags] == ["new", "other"]
    assert resolve_tags(model, "Household") == ["Household"]
    assert model.tags[-1] == Tag(key=4, name="Household", from_ledger=False)
    assert resolve_tags(model, None) == []
    assert resolve_tags(model, "") == []


def test_convert_assignment_no_paymode():
    model = make_model()
    (entry,) = convert_transaction(make_txn(), model)
    assert entry.date == datetime.date(2024, 3, 1)
    assert entry.amount == decimal.Decimal("-25.50")
    assert entry.payee == GROCERY_MART
    assert entry.category == GROCERIES
    assert entry.paymode == Paymode.UNKNOWN
    assert entry.info == "SEPA credit transfer"
    assert entry.memo == "Grocery Mart"
    assert entry.account == GIRO
    assert entry.dst_account is None
    assert entry.status == EntryStatus.RECONCILED
    assert entry.flags == EntryFlag.NONE
    assert entry.link_id == 0
    assert entry.tags == []
    assert model.max_link_id == 4


def test_convert_level_2_paymode():
    model = make_model(
        [
            PaymodePatternSet(
                type=Paymode.DEBIT_CARD,
                patterns=[PaymodePattern(accounting_text="SEPA")],
            )
        ]
    )
    (entry,) = convert_transaction(make_txn(), model)
    assert entry.paymode == Paymode.DEBIT_CARD
    assert entry.payee == GROCERY_MART


def test_convert_transfer():
    model = make_model(PATTERN_SETS)
    txn = make_txn(
        accounting_text="Umbuchung",
        memo="Monthly savings",
        payment_reference="REF-1",
        amount=decimal.Decimal("-150.00"),
    )
    entry, mirror = convert_transaction(txn, model)
    assert entry.paymode == mirror.paymode == Paymode.BETWEEN_ACCOUNTS
    assert entry.link_id == mirror.link_id == 5
    assert model.max_link_id == 5
    assert entry.amount == decimal.Decimal("-150.00")
    assert mirror.amount == -entry.amount
    assert entry.account == mirror.dst_account == GIRO
    assert entry.dst_account == mirror.account == SAVINGS
    assert entry.flags == EntryFlag.SPLIT
    assert mirror.flags == EntryFlag.SPLIT | EntryFlag.INCOME
    assert entry.memo == mirror.memo == "[Ref: REF-1] Monthly savings"
    assert entry.tags == mirror.tags == ["savings"]
    assert entry.tags is not mirror.tags
    assert entry.status == mirror.status == EntryStatus.RECONCILED
    assert [tag.name for tag in model.new_tags] == ["savings"]


def test_convert_transfer_without_destination(caplog: pytest.LogCaptureFixture):
    model = make_model(
        [
            PaymodePatternSet(
                type=Paymode.BETWEEN_ACCOUNTS,
                patterns=[
                    PaymodePattern(accounting_text="Umbuchung", destination_account="^Nope")
                ],
            )
        ]
    )
    entry, mirror = convert_transaction(
        make_txn(accounting_text="Umbuchung", amount=decimal.Decimal("10")), model
    )
    assert entry.dst_account is None
    assert mirror.account is None
    assert "mirror entry has no account" in caplog.text
    assert mirror.dst_account == GIRO
    assert entry.flags == EntryFlag.SPLIT | EntryFlag.INCOME
    assert mirror.flags == EntryFlag.SPLIT


@pytest.mark.parametrize(
    "value_date, expected_date, expected_status",
    [
        (
            datetime.datetime(2024, 3, 2, 23, 59),
            datetime.date(2024, 3, 2),
            EntryStatus.RECONCILED,
        ),
        (None, datetime.date(2024, 3, 1), EntryStatus.CLEARED),
    ],
)
def test_convert_value_date(
    value_date: datetime.datetime | None,
    expected_date: datetime.date,
    expected_status: EntryStatus,
):
    (entry,) = convert_transaction(make_txn(value_date=value_date), make_model())
    assert entry.date == expected_date
    assert entry.status == expected_status


@pytest.mark.parametrize(
    "amount, expected",
    [
        (decimal.Decimal("0"), EntryFlag.INCOME),
        (decimal.Decimal("0.01"), EntryFlag.INCOME),
        (decimal.Decimal("-0.01"), EntryFlag.NONE),
    ],
)
def test_convert_income_flag(amount: decimal.Decimal, expected: EntryFlag):
    (entry,) = convert_transaction(make_txn(amount=amount), make_model())
    assert entry.flags == expected


def test_convert_credit_card_account():
    model = make_model(PATTERN_SETS)
    (entry,) = convert_transaction(
        make_txn(accounting_text="POS 1234"),
        model,
        account_type=SourceAccountType.credit_card,
    )
    assert entry.paymode == Paymode.CREDIT_CARD
    assert entry.tags == []


def test_convert_unsupported_transaction():
    with pytest.raises(ValueError):
        convert_transaction(dict(amount=1), make_model())


def test_process_fixture(
    ledger_file: pathlib.Path,
    paymode_patterns_file: pathlib.Path,
    source_file: pathlib.Path,
):
    _, model = load_ledger(
        ledger_file,
        target_account_pattern="^Giro",
        paymode_patterns=load_paymode_patterns(paymode_patterns_file),
    )
    with source_file.open("rt", newline="") as fo:
        entries = list(process_transactions(HelloBankCsvExtractor(fo)(), model))

    assert [
        (entry.date, entry.amount, entry.paymode, entry.link_id) for entry in entries
    ] == [
        (datetime.date(2024, 3, 1), decimal.Decimal("-25.50"), Paymode.UNKNOWN, 0),
        (datetime.date(2024, 3, 2), decimal.Decimal("-12.30"), Paymode.DEBIT_CARD, 0),
        (
            datetime.date(2024, 3, 5),
            decimal.Decimal("-80.00"),
            Paymode.ELECTRONIC_PAYMENT,
            0,
        ),
        (
            datetime.date(2024, 3, 12),
            decimal.Decimal("-150.00"),
            Paymode.BETWEEN_ACCOUNTS,
            2,
        ),
        (
            datetime.date(2024, 3, 12),
            decimal.Decimal("150.00"),
            Paymode.BETWEEN_ACCOUNTS,
            2,
        ),
        (datetime.date(2024, 3, 15), decimal.Decimal("1234.56"), Paymode.UNKNOWN, 0),
    ]
    assert [entry.payee.name if entry.payee else None for entry in entries] == [
        "Grocery Mart",
        None,
        "City Power",
        None,
        None,
        "Employer Inc",
    ]
    assert entries[3].dst_account.name == "Savings Account"
    assert entries[5].status == EntryStatus.CLEARED
    assert [(tag.key, tag.name) for tag in model.new_tags] == [
        (2, "card"),
        (3, "savings"),
        (4, "monthly"),
    ]
