import decimal
import logging
import pathlib
import re
import sys
import typing
import xml.etree.ElementTree as ET

from . import constants
from .data_types import Account
from .data_types import AccountType
from .data_types import Assignment
from .data_types import Category
from .data_types import CategoryType
from .data_types import ConditionField
from .data_types import EntryFlag
from .data_types import EntryStatus
from .data_types import LedgerEntry
from .data_types import Payee
from .data_types import Paymode
from .data_types import PaymodePattern
from .data_types import PaymodePatternSet
from .data_types import ReferenceModel
from .data_types import SplitEntry
from .data_types import Tag
from .utils import julian_to_date

ASSIGNMENT_CASE_SENSITIVE_FLAG = 6


class LedgerParseError(ValueError):
    def __init__(self, tag: str, attribute: str, value: str | None = None):
        self.tag = tag
        self.attribute = attribute
        self.value = value

    def __str__(self):
        if self.value is None:
            return f"Missing required attribute {self.attribute!r} on element <{self.tag}>"
        return f"Malformed attribute {self.attribute}={self.value!r} on element <{self.tag}>"


def get_str(
    element: ET.Element, name: str, required: bool = False, default: str | None = None
) -> str | None:
    value = element.get(name)
    if value is None:
        if required:
            raise LedgerParseError(element.tag, name)
        return default
    return value


def get_int(
    element: ET.Element, name: str, required: bool = False, default: int | None = None
) -> int | None:
    value = get_str(element, name, required=required)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise LedgerParseError(element.tag, name, value) from exc


def get_decimal(
    element: ET.Element,
    name: str,
    required: bool = False,
    default: decimal.Decimal | None = None,
) -> decimal.Decimal | None:
    value = get_str(element, name, required=required)
    if value is None:
        return default
    try:
        return decimal.Decimal(value)
    except decimal.InvalidOperation as exc:
        raise LedgerParseError(element.tag, name, value) from exc


def get_enum(
    element: ET.Element, name: str, enum_type: typing.Type, default
) -> typing.Any:
    value = get_int(element, name)
    if value is None:
        return default
    try:
        return enum_type(value)
    except ValueError as exc:
        raise LedgerParseError(element.tag, name, str(value)) from exc


def lookup_ref(
    element: ET.Element, name: str, items: dict[int, typing.Any]
) -> typing.Any | None:
    logger = logging.getLogger(__name__)
    key = get_int(element, name)
    if key is None or key == 0:
        return None
    item = items.get(key)
    if item is None:
        logger.warning(
            "Element <%s> refers to unknown %s key %s, reference left empty",
            element.tag,
            name,
            key,
        )
    return item


def parse_account(element: ET.Element) -> Account:
    type_code = get_int(element, "type", default=0)
    try:
        account_type = AccountType(type_code)
    except ValueError:
        account_type = AccountType.UNKNOWN
    return Account(
        key=get_int(element, "key", required=True),
        name=get_str(element, "name", required=True),
        type=account_type,
        flags=get_int(element, "flags", default=0),
        pos=get_int(element, "pos", default=0),
        number=get_str(element, "number"),
        bankname=get_str(element, "bankname"),
        initial=get_decimal(element, "initial", default=decimal.Decimal(0)),
        minimum=get_decimal(element, "minimum", default=decimal.Decimal(0)),
    )


def parse_payee(element: ET.Element) -> Payee:
    return Payee(
        key=get_int(element, "key", required=True),
        name=get_str(element, "name", required=True),
    )


def parse_category(element: ET.Element, categories: dict[int, Category]) -> Category:
    logger = logging.getLogger(__name__)
    flags = get_int(element, "flags", default=0)
    if flags == CategoryType.EXPENSE:
        category_type = CategoryType.EXPENSE
    elif flags == CategoryType.INCOME:
        category_type = CategoryType.INCOME
    else:
        category_type = CategoryType.UNKNOWN
    key = get_int(element, "key", required=True)
    name = get_str(element, "name", required=True)
    parent = lookup_ref(element, "parent", categories)
    if parent is not None and parent.is_subcategory:
        # categories nest one level only, attach to the top level ancestor
        logger.warning(
            "Category %s (%s) is nested below subcategory %s, moved below its parent",
            name,
            key,
            parent.name,
        )
        parent = categories.get(parent.parent_key)
    return Category(
        key=key,
        name=name,
        type=category_type,
        parent_key=parent.key if parent is not None else None,
    )


def parse_tag(element: ET.Element) -> Tag:
    return Tag(
        key=get_int(element, "key", required=True),
        name=get_str(element, "name", required=True),
    )


def parse_assignment(
    element: ET.Element,
    payees: dict[int, Payee],
    categories: dict[int, Category],
) -> Assignment:
    flags = get_int(element, "flags")
    field = get_int(element, "field", default=ConditionField.POSTING_TEXT)
    return Assignment(
        key=get_int(element, "key", required=True),
        name=get_str(element, "name", required=True),
        ignore_case=flags is not None and flags != ASSIGNMENT_CASE_SENSITIVE_FLAG,
        field=ConditionField.PAYEE
        if field == ConditionField.PAYEE
        else ConditionField.POSTING_TEXT,
        payee=lookup_ref(element, "payee", payees),
        category=lookup_ref(element, "category", categories),
    )


def parse_splits(
    element: ET.Element, categories: dict[int, Category]
) -> list[SplitEntry]:
    raw_categories = get_str(element, "scat")
    raw_amounts = get_str(element, "samt")
    if raw_categories is None and raw_amounts is None:
        return []
    if raw_categories is None or raw_amounts is None:
        raise LedgerParseError(element.tag, "scat" if raw_categories is None else "samt")
    category_keys = raw_categories.split(constants.SPLIT_SEPARATOR)
    amounts = raw_amounts.split(constants.SPLIT_SEPARATOR)
    raw_memos = get_str(element, "smem")
    memos = (
        raw_memos.split(constants.SPLIT_SEPARATOR)
        if raw_memos is not None
        else [""] * len(category_keys)
    )
    if not len(category_keys) == len(amounts) == len(memos):
        raise LedgerParseError(element.tag, "samt", raw_amounts)
    splits = []
    for category_key, amount, memo in zip(category_keys, amounts, memos):
        try:
            key = int(category_key)
        except ValueError as exc:
            raise LedgerParseError(element.tag, "scat", raw_categories) from exc
        try:
            split_amount = decimal.Decimal(amount)
        except decimal.InvalidOperation as exc:
            raise LedgerParseError(element.tag, "samt", raw_amounts) from exc
        splits.append(
            SplitEntry(category=categories.get(key), amount=split_amount, memo=memo)
        )
    return splits


def parse_entry(
    element: ET.Element,
    accounts: dict[int, Account],
    payees: dict[int, Payee],
    categories: dict[int, Category],
) -> LedgerEntry:
    julian_date = get_int(element, "date", required=True)
    try:
        date = julian_to_date(julian_date)
    except ValueError as exc:
        raise LedgerParseError(element.tag, "date", str(julian_date)) from exc
    tags = get_str(element, "tags")
    return LedgerEntry(
        date=date,
        amount=get_decimal(element, "amount", required=True),
        paymode=get_enum(element, "paymode", Paymode, Paymode.UNKNOWN),
        payee=lookup_ref(element, "payee", payees),
        category=lookup_ref(element, "category", categories),
        account=lookup_ref(element, "account", accounts),
        dst_account=lookup_ref(element, "dst_account", accounts),
        memo=get_str(element, "wording", default=""),
        info=get_str(element, "info", default=""),
        tags=[tag for tag in tags.split(constants.TAG_SEPARATOR) if tag]
        if tags is not None
        else [],
        status=get_enum(element, "st", EntryStatus, EntryStatus.NONE),
        flags=EntryFlag(get_int(element, "flags", default=0)),
        link_id=get_int(element, "kxfer", default=0),
        splits=parse_splits(element, categories),
    )


def find_account(accounts: list[Account], pattern: str | None) -> Account | None:
    if not pattern:
        return None
    regex = re.compile(pattern)
    return next(
        (account for account in accounts if regex.search(account.name) is not None),
        None,
    )


def build_reference_model(
    root: ET.Element,
    target_account_pattern: str | None = None,
    paymode_patterns: list[PaymodePatternSet] | None = None,
) -> ReferenceModel:
    # References are resolved against elements seen earlier in document order only,
    # the ledger writes parents before their children.
    accounts: dict[int, Account] = {}
    payees: dict[int, Payee] = {}
    categories: dict[int, Category] = {}
    model = ReferenceModel(paymode_patterns=list(paymode_patterns or []))
    for element in root.iter():
        if not element.attrib:
            continue
        if element.tag == constants.ACCOUNT_TAG:
            account = parse_account(element)
            accounts[account.key] = account
            model.accounts.append(account)
        elif element.tag == constants.PAYEE_TAG:
            payee = parse_payee(element)
            payees[payee.key] = payee
            model.payees.append(payee)
        elif element.tag == constants.CATEGORY_TAG:
            category = parse_category(element, categories)
            categories[category.key] = category
            model.categories.append(category)
        elif element.tag == constants.TAG_TAG:
            model.tags.append(parse_tag(element))
        elif element.tag == constants.ASSIGNMENT_TAG:
            model.assignments.append(parse_assignment(element, payees, categories))
        elif element.tag == constants.ENTRY_TAG:
            model.existing_entries.append(
                parse_entry(element, accounts, payees, categories)
            )
    model.target_account = find_account(model.accounts, target_account_pattern)
    model.max_link_id = max(
        (entry.link_id for entry in model.existing_entries), default=0
    )
    return model


def read_document(input_file: pathlib.Path | typing.TextIO) -> ET.ElementTree:
    return ET.parse(input_file)


def load_ledger(
    ledger_file: pathlib.Path,
    target_account_pattern: str | None = None,
    paymode_patterns: list[PaymodePatternSet] | None = None,
) -> tuple[ET.ElementTree, ReferenceModel]:
    logger = logging.getLogger(__name__)
    with ledger_file.open("rb") as fo:
        document = read_document(fo)
    model = build_reference_model(
        document.getroot(),
        target_account_pattern=target_account_pattern,
        paymode_patterns=paymode_patterns,
    )
    logger.info(
        "Loaded ledger %s with %s accounts, %s payees, %s categories, %s tags, %s assignments and %s entries",
        ledger_file,
        len(model.accounts),
        len(model.payees),
        len(model.categories),
        len(model.tags),
        len(model.assignments),
        len(model.existing_entries),
    )
    return document, model


def parse_paymode_pattern(element: ET.Element) -> PaymodePattern | None:
    accounting_text = element.get("accountingtext", element.get("accounting-text"))
    if accounting_text is None:
        return None
    return PaymodePattern(
        accounting_text=accounting_text,
        memo=element.get("memo"),
        destination_account=element.get("destination-account-pattern"),
        tags=element.get("tags"),
    )


def parse_paymode_pattern_set(element: ET.Element) -> PaymodePatternSet:
    label = get_str(element, "type", required=True)
    try:
        pattern_set = PaymodePatternSet(type=label)
    except ValueError as exc:
        raise LedgerParseError(element.tag, "type", label) from exc
    for child in element.iter(constants.PAYMODE_PATTERN_TAG):
        pattern = parse_paymode_pattern(child)
        if pattern is not None:
            pattern_set.patterns.append(pattern)
    return pattern_set


def sort_paymode_pattern_sets(
    pattern_sets: list[PaymodePatternSet],
) -> list[PaymodePatternSet]:
    """Order pattern sets and their patterns by specificity, level 1 first"""
    sorted_sets = [
        pattern_set.model_copy(
            update=dict(
                patterns=sorted(pattern_set.patterns, key=lambda p: p.level)
            )
        )
        for pattern_set in pattern_sets
    ]
    return sorted(
        sorted_sets,
        key=lambda s: s.patterns[0].level if s.patterns else sys.maxsize,
    )


def parse_paymode_patterns(root: ET.Element) -> list[PaymodePatternSet]:
    return sort_paymode_pattern_sets(
        [
            parse_paymode_pattern_set(element)
            for element in root.iter(constants.PAYMODE_PATTERNS_TAG)
        ]
    )


def load_paymode_patterns(patterns_file: pathlib.Path) -> list[PaymodePatternSet]:
    logger = logging.getLogger(__name__)
    with patterns_file.open("rb") as fo:
        document = ET.parse(fo)
    pattern_sets = parse_paymode_patterns(document.getroot())
    logger.info(
        "Loaded %s paymode pattern sets from %s", len(pattern_sets), patterns_file
    )
    return pattern_sets
