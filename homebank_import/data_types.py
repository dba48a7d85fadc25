import dataclasses
import datetime
import decimal
import enum

import pydantic
from pydantic import BaseModel

from . import constants


@enum.unique
class AccountType(enum.IntEnum):
    UNKNOWN = 0
    BANK = 1
    CASH = 2
    ASSET = 3
    CREDIT_CARD = 4
    LIABILITY = 5


@enum.unique
class CategoryType(enum.IntEnum):
    UNKNOWN = 0
    EXPENSE = 1
    INCOME = 3


@enum.unique
class ConditionField(enum.IntEnum):
    # the free text an assignment is matched against
    POSTING_TEXT = 0
    PAYEE = 1


@enum.unique
class Paymode(enum.IntEnum):
    UNKNOWN = 0
    CREDIT_CARD = 1
    CHECK = 2
    CASH = 3
    TRANSFER = 4
    BETWEEN_ACCOUNTS = 5
    DEBIT_CARD = 6
    STANDING_ORDER = 7
    ELECTRONIC_PAYMENT = 8
    DEPOSIT = 9
    FI_FEE = 10
    DEBIT = 11


# labels used by the paymode pattern file `type` attribute
PAYMODE_LABELS: dict[Paymode, str] = {
    Paymode.UNKNOWN: "Unknown",
    Paymode.CREDIT_CARD: "CreditCard",
    Paymode.CHECK: "Check",
    Paymode.CASH: "Cash",
    Paymode.TRANSFER: "Transfer",
    Paymode.BETWEEN_ACCOUNTS: "BetweenAccounts",
    Paymode.DEBIT_CARD: "DebitCard",
    Paymode.STANDING_ORDER: "StandingOrder",
    Paymode.ELECTRONIC_PAYMENT: "ElectronicPayment",
    Paymode.DEPOSIT: "Deposit",
    Paymode.FI_FEE: "FiFee",
    Paymode.DEBIT: "Debit",
}


def paymode_from_label(label: str) -> Paymode:
    for paymode, paymode_label in PAYMODE_LABELS.items():
        if paymode_label == label:
            return paymode
    raise ValueError(f"Unexpected paymode label {label!r}")


@enum.unique
class EntryStatus(enum.IntEnum):
    NONE = 0
    CLEARED = 1
    RECONCILED = 2
    REMIND = 3
    VOID = 4


class EntryFlag(enum.IntFlag):
    NONE = 0
    INCOME = 1 << 1
    SPLIT = 1 << 8


@enum.unique
class SourceAccountType(str, enum.Enum):
    unknown = "unknown"
    check = "check"
    deposit = "deposit"
    credit_card = "credit_card"


class ImportBaseModel(BaseModel):
    pass


class PaymodePattern(ImportBaseModel):
    """
    A rule mapping the accounting text (and optionally the memo) of a source transaction
    to a paymode.

    ```yaml
    paymode_patterns:
    - type: BetweenAccounts
      patterns:
        - accounting_text: "Umbuchung"
          memo: "Sparen"
          destination_account: "^Savings"
          tags: "savings monthly"
    ```
    """

    accounting_text: str
    """Regular expression searched in the accounting text"""
    memo: str | None = None
    """Regular expression searched in the memo, makes the pattern a level 1 pattern"""
    destination_account: str | None = None
    """Regular expression matched against account names for transfers"""
    tags: str | None = None
    """Space separated tag names to attach"""

    @property
    def level(self) -> int:
        return 1 if self.memo is not None else 2


class PaymodePatternSet(ImportBaseModel):
    type: Paymode
    patterns: list[PaymodePattern] = pydantic.Field(default_factory=list)

    @pydantic.field_validator("type", mode="before")
    @classmethod
    def parse_paymode_label(cls, value):
        if isinstance(value, str):
            return int(value) if value.isdigit() else paymode_from_label(value)
        return value


class SourceConfig(ImportBaseModel):
    account_type: SourceAccountType = SourceAccountType.unknown
    """The kind of account the source export was taken from"""
    delimiter: str = ";"
    decimal_separator: str = ","
    thousands_separator: str | None = "."
    value_date_format: str = constants.SOURCE_VALUE_DATE_FORMAT
    accounting_date_format: str = constants.SOURCE_ACCOUNTING_DATE_FORMAT
    encoding: str = "utf-8"
    has_header: bool = True


class OutputConfig(ImportBaseModel):
    delimiter: str = ";"
    decimal_separator: str = "."


class ConvertDoc(ImportBaseModel):
    source: SourceConfig = pydantic.Field(default_factory=SourceConfig)
    # regular expression selecting the account new entries are booked on
    target_account: str | None = None
    settings_file: str | None = None
    paymode_patterns_file: str | None = None
    paymode_patterns: list[PaymodePatternSet] | None = None
    output: OutputConfig = pydantic.Field(default_factory=OutputConfig)


@dataclasses.dataclass(frozen=True)
class Account:
    key: int
    name: str
    type: AccountType = AccountType.UNKNOWN
    flags: int = 0
    pos: int = 0
    number: str | None = None
    bankname: str | None = None
    initial: decimal.Decimal = decimal.Decimal(0)
    minimum: decimal.Decimal = decimal.Decimal(0)


@dataclasses.dataclass(frozen=True)
class Payee:
    key: int
    name: str


@dataclasses.dataclass(frozen=True)
class Category:
    key: int
    name: str
    type: CategoryType = CategoryType.UNKNOWN
    parent_key: int | None = None

    @property
    def is_subcategory(self) -> bool:
        return self.parent_key is not None


@dataclasses.dataclass(frozen=True)
class Tag:
    key: int
    name: str
    # False for tags created during conversion
    from_ledger: bool = True


@dataclasses.dataclass(frozen=True)
class Assignment:
    key: int
    name: str
    ignore_case: bool = False
    field: ConditionField = ConditionField.POSTING_TEXT
    payee: Payee | None = None
    category: Category | None = None


@dataclasses.dataclass(frozen=True)
class SourceTransaction:
    iban: str
    sequence_number: int
    accounting_date: datetime.date | None
    # None when the export carries no parsable value date
    value_date: datetime.datetime | None
    payment_reference: str
    currency: str
    amount: decimal.Decimal
    accounting_text: str
    memo: str
    # the filename of the source export
    file: str | None = None
    # the row line number in the source export
    lineno: int | None = None


@dataclasses.dataclass(frozen=True)
class SplitEntry:
    category: Category | None
    amount: decimal.Decimal
    memo: str = ""


@dataclasses.dataclass
class LedgerEntry:
    date: datetime.date
    amount: decimal.Decimal
    paymode: Paymode = Paymode.UNKNOWN
    payee: Payee | None = None
    category: Category | None = None
    account: Account | None = None
    # only set for transfers between accounts
    dst_account: Account | None = None
    memo: str = ""
    info: str = ""
    tags: list[str] = dataclasses.field(default_factory=list)
    status: EntryStatus = EntryStatus.NONE
    flags: EntryFlag = EntryFlag.NONE
    # shared by both halves of a transfer, 0 otherwise
    link_id: int = 0
    splits: list[SplitEntry] = dataclasses.field(default_factory=list)

    @property
    def is_transfer(self) -> bool:
        return self.paymode == Paymode.BETWEEN_ACCOUNTS and self.link_id > 0


@dataclasses.dataclass
class ReferenceModel:
    """Entities of a ledger settings document, used as context for conversion.

    Only `tags` and `max_link_id` change after the document has been parsed: the
    conversion allocates new tags and transfer link ids from them.
    """

    accounts: list[Account] = dataclasses.field(default_factory=list)
    payees: list[Payee] = dataclasses.field(default_factory=list)
    categories: list[Category] = dataclasses.field(default_factory=list)
    tags: list[Tag] = dataclasses.field(default_factory=list)
    assignments: list[Assignment] = dataclasses.field(default_factory=list)
    paymode_patterns: list[PaymodePatternSet] = dataclasses.field(
        default_factory=list
    )
    existing_entries: list[LedgerEntry] = dataclasses.field(default_factory=list)
    target_account: Account | None = None
    max_link_id: int = 0

    def get_category(self, key: int) -> Category | None:
        return next(
            (category for category in self.categories if category.key == key), None
        )

    def find_tag(self, name: str) -> Tag | None:
        return next((tag for tag in self.tags if tag.name == name), None)

    def add_tag(self, name: str) -> Tag:
        tag = Tag(
            key=max((tag.key for tag in self.tags), default=0) + 1,
            name=name,
            from_ledger=False,
        )
        self.tags.append(tag)
        return tag

    @property
    def new_tags(self) -> list[Tag]:
        return [tag for tag in self.tags if not tag.from_ledger]

    def allocate_link_id(self) -> int:
        self.max_link_id += 1
        return self.max_link_id

    def category_path(self, category: Category) -> str:
        if not category.is_subcategory:
            return category.name
        parent = self.get_category(category.parent_key)
        if parent is None:
            return category.name
        return f"{parent.name}:{category.name}"


@dataclasses.dataclass(frozen=True)
class ChangeSet:
    # converted entries to merge into the ledger
    add: list[LedgerEntry]
    # converted entries already present in the ledger
    duplicates: list[LedgerEntry]
