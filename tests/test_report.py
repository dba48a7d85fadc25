import csv
import datetime
import decimal
import io
import pathlib

import pytest

from homebank_import.data_types import Category
from homebank_import.data_types import LedgerEntry
from homebank_import.data_types import OutputConfig
from homebank_import.data_types import Payee
from homebank_import.data_types import Paymode
from homebank_import.data_types import ReferenceModel
from homebank_import.report import duplicates_paths
from homebank_import.report import entry_to_row
from homebank_import.report import export_csv
from homebank_import.report import render_duplicates_dump
from homebank_import.report import write_csv
from homebank_import.report import write_duplicates
from homebank_import.templates import make_environment

FOOD = Category(key=1, name="Food")
GROCERIES = Category(key=2, name="Groceries", parent_key=1)
MODEL = ReferenceModel(categories=[FOOD, GROCERIES])


def make_entry(**kwargs) -> LedgerEntry:
    values = dict(
        date=datetime.date(2024, 3, 1),
        amount=decimal.Decimal("-25.50"),
        paymode=Paymode.DEBIT_CARD,
        payee=Payee(key=1, name="Grocery Mart"),
        category=GROCERIES,
        memo="[Ref: 1] Grocery Mart",
        info="POS 4711",
        tags=["card", "food"],
    )
    values.update(kwargs)
    return LedgerEntry(**values)


@pytest.mark.parametrize(
    "entry, decimal_separator, expected",
    [
        (
            make_entry(),
            ".",
            [
                "01-03-24",
                "6",
                "POS 4711",
                "Grocery Mart",
                "[Ref: 1] Grocery Mart",
                "-25.50",
                "Food:Groceries",
                "card food",
            ],
        ),
        (
            make_entry(
                date=datetime.date(2023, 12, 31),
                payee=None,
                category=FOOD,
                tags=[],
                paymode=Paymode.UNKNOWN,
            ),
            ",",
            [
                "31-12-23",
                "0",
                "POS 4711",
                "",
                "[Ref: 1] Grocery Mart",
                "-25,50",
                "Food",
                "",
            ],
        ),
        (
            make_entry(category=None),
            ".",
            [
                "01-03-24",
                "6",
                "POS 4711",
                "Grocery Mart",
                "[Ref: 1] Grocery Mart",
                "-25.50",
                "",
                "card food",
            ],
        ),
    ],
)
def test_entry_to_row(entry: LedgerEntry, decimal_separator: str, expected: list[str]):
    assert entry_to_row(entry, MODEL, decimal_separator=decimal_separator) == expected


def test_write_csv():
    output = io.StringIO()
    write_csv(output, [make_entry()], MODEL)
    assert output.getvalue().splitlines() == [
        "date;paymode;info;payee;memo;amount;category;tags",
        "01-03-24;6;POS 4711;Grocery Mart;[Ref: 1] Grocery Mart;-25.50;Food:Groceries;card food",
    ]


@pytest.mark.parametrize(
    "target, expected",
    [
        ("ledger.xhb", ("ledger.duplicates.csv", "ledger.duplicates.txt")),
        ("out.csv", ("out.duplicates.csv", "out.duplicates.txt")),
        ("my.ledger.xhb", ("my.ledger.duplicates.csv", "my.ledger.duplicates.txt")),
    ],
)
def test_duplicates_paths(tmp_path: pathlib.Path, target: str, expected: tuple):
    assert duplicates_paths(tmp_path / target) == tuple(
        tmp_path / name for name in expected
    )


def test_export_csv_append(tmp_path: pathlib.Path):
    target = tmp_path / "out.csv"
    export_csv(target, [make_entry()], MODEL, append=True)
    export_csv(target, [make_entry(amount=decimal.Decimal("3"))], MODEL, append=True)
    with target.open("rt", newline="") as fo:
        rows = list(csv.reader(fo, delimiter=";"))
    assert [row[5] for row in rows] == ["amount", "-25.50", "3"]

    export_csv(
        target,
        [make_entry()],
        MODEL,
        config=OutputConfig(delimiter=",", decimal_separator=","),
    )
    with target.open("rt", newline="") as fo:
        rows = list(csv.reader(fo, delimiter=","))
    assert rows[1][5] == "-25,50"
    assert len(rows) == 2


def test_render_duplicates_dump():
    text = render_duplicates_dump(
        template_env=make_environment(),
        target_path=pathlib.PurePosixPath("/books/ledger.xhb"),
        duplicates=[make_entry(), make_entry(payee=None, category=None, tags=[])],
        model=MODEL,
        timestamp=datetime.datetime(2024, 3, 20, 8, 30, 5),
    )
    assert "importing into /books/ledger.xhb" in text
    assert "Generated at 2024-03-20 08:30:05" in text
    assert "[1]" in text and "[2]" in text
    assert "    amount: -25.50\n" in text
    assert "    paymode: DEBIT_CARD\n" in text
    assert "    payee: Grocery Mart\n" in text
    assert "    payee: \n" in text
    assert "    category: Food:Groceries\n" in text
    assert "    tags: card food\n" in text
    assert "    date: 2024-03-01\n" in text


def test_write_duplicates(tmp_path: pathlib.Path):
    target = tmp_path / "ledger.xhb"
    template_env = make_environment()
    paths = write_duplicates(template_env, target, [make_entry()], MODEL)
    assert paths == [
        tmp_path / "ledger.duplicates.csv",
        tmp_path / "ledger.duplicates.txt",
    ]
    assert not target.exists()
    first_dump = paths[1].read_text()

    write_duplicates(template_env, target, [make_entry()], MODEL, append=True)
    assert len(paths[0].read_text().splitlines()) == 3
    assert paths[1].read_text().count("Duplicate entries rejected") == 2
    assert paths[1].read_text().startswith(first_dump)

    write_duplicates(template_env, target, [make_entry()], MODEL)
    assert len(paths[0].read_text().splitlines()) == 2
    assert paths[1].read_text().count("Duplicate entries rejected") == 1
