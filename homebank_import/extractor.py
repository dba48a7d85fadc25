# an extractor reads a source export and yields SourceTransaction objects
import csv
import datetime
import logging
import typing

from .data_types import SourceConfig
from .data_types import SourceTransaction
from .utils import parse_amount


class ExtractorError(Exception):
    def __init__(self, filename: str | None, lineno: int, reason: str):
        self.filename = filename
        self.lineno = lineno
        self.reason = reason


class ExtractorInvalidRowError(ExtractorError):
    def __str__(self):
        return f"Invalid row at {self.filename}:{self.lineno}: {self.reason}"


class ExtractorBase:
    name: str
    input_file: typing.TextIO
    """The input file to be processed"""

    def __init__(self, input_file: typing.TextIO, config: SourceConfig | None = None):
        self.input_file = input_file
        self.config = config if config is not None else SourceConfig()
        self.filename = getattr(input_file, "name", None)

    def process(self) -> typing.Generator[SourceTransaction, None, None]:
        raise NotImplementedError()

    def __call__(self) -> typing.Generator[SourceTransaction, None, None]:
        return self.process()


class HelloBankCsvExtractor(ExtractorBase):
    """
    Reads the delimited export of the bank, one transaction per row in a fixed
    column order.
    """

    name: str = "hellobank_csv"
    fields: list[str] = [
        "IBAN",
        "Sequence Number",
        "Accounting Date",
        "Unused",
        "Value Date",
        "Payment Reference",
        "Currency",
        "Amount",
        "Accounting Text",
        "Memo",
    ]

    def parse_accounting_date(self, lineno: int, value: str) -> datetime.date:
        try:
            return datetime.datetime.strptime(
                value, self.config.accounting_date_format
            ).date()
        except ValueError as exc:
            raise ExtractorInvalidRowError(
                self.filename, lineno, f"invalid accounting date {value!r}"
            ) from exc

    def parse_value_date(self, value: str) -> datetime.datetime | None:
        logger = logging.getLogger(__name__)
        try:
            return datetime.datetime.strptime(value, self.config.value_date_format)
        except ValueError:
            logger.debug("Cannot parse value date %r, ignored", value)
            return None

    def process_line(self, lineno: int, row: list[str]) -> SourceTransaction:
        if len(row) < len(self.fields):
            raise ExtractorInvalidRowError(
                self.filename,
                lineno,
                f"expected {len(self.fields)} columns but got {len(row)}",
            )
        (
            iban,
            sequence_number,
            accounting_date,
            _,
            value_date,
            payment_reference,
            currency,
            amount,
            accounting_text,
            memo,
        ) = (value.strip() for value in row[: len(self.fields)])
        try:
            parsed_sequence_number = int(sequence_number)
        except ValueError as exc:
            raise ExtractorInvalidRowError(
                self.filename, lineno, f"invalid sequence number {sequence_number!r}"
            ) from exc
        try:
            parsed_amount = parse_amount(
                amount,
                decimal_separator=self.config.decimal_separator,
                thousands_separator=self.config.thousands_separator,
            )
        except ValueError as exc:
            raise ExtractorInvalidRowError(
                self.filename, lineno, f"invalid amount {amount!r}"
            ) from exc
        return SourceTransaction(
            iban=iban,
            sequence_number=parsed_sequence_number,
            accounting_date=self.parse_accounting_date(lineno, accounting_date),
            value_date=self.parse_value_date(value_date),
            payment_reference=payment_reference,
            currency=currency,
            amount=parsed_amount,
            accounting_text=accounting_text,
            memo=memo,
            file=self.filename,
            lineno=lineno,
        )

    def process(self) -> typing.Generator[SourceTransaction, None, None]:
        reader = csv.reader(self.input_file, delimiter=self.config.delimiter)
        for lineno, row in enumerate(reader, start=1):
            if lineno == 1 and self.config.has_header:
                continue
            if not any(value.strip() for value in row):
                continue
            yield self.process_line(lineno, row)
