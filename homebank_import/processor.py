import dataclasses
import logging
import typing

from . import constants
from .data_types import Assignment
from .data_types import EntryFlag
from .data_types import EntryStatus
from .data_types import LedgerEntry
from .data_types import Paymode
from .data_types import PaymodePattern
from .data_types import PaymodePatternSet
from .data_types import ReferenceModel
from .data_types import SourceAccountType
from .data_types import SourceTransaction
from .ledger import find_account
from .utils import search
from .utils import wildcard_pattern


@dataclasses.dataclass(frozen=True)
class PaymodeMatch:
    paymode: Paymode
    # regular expression selecting the destination account of a transfer
    destination_account: str | None = None
    # space separated tag names
    tags: str | None = None


NO_PAYMODE_MATCH = PaymodeMatch(paymode=Paymode.UNKNOWN)


def match_assignment(assignment: Assignment, text: str | None) -> bool:
    return search(
        wildcard_pattern(assignment.name), text, ignore_case=assignment.ignore_case
    )


def resolve_assignment(
    assignments: list[Assignment], text: str | None
) -> Assignment | None:
    for assignment in assignments:
        if match_assignment(assignment, text):
            return assignment
    return None


def match_paymode_pattern(
    pattern: PaymodePattern, accounting_text: str | None, memo: str | None
) -> bool:
    if not search(pattern.accounting_text, accounting_text, ignore_case=True):
        return False
    if pattern.level == 1:
        return search(pattern.memo, memo, ignore_case=True)
    return True


def resolve_paymode(
    pattern_sets: list[PaymodePatternSet],
    accounting_text: str | None,
    memo: str | None,
) -> PaymodeMatch:
    for pattern_set in pattern_sets:
        for pattern in pattern_set.patterns:
            if match_paymode_pattern(pattern, accounting_text, memo):
                return PaymodeMatch(
                    paymode=pattern_set.type,
                    destination_account=pattern.destination_account,
                    tags=pattern.tags,
                )
    return NO_PAYMODE_MATCH


def resolve_tags(model: ReferenceModel, tags: str | None) -> list[str]:
    logger = logging.getLogger(__name__)
    if not tags:
        return []
    names = []
    for name in tags.split(constants.TAG_SEPARATOR):
        if not name or name in names:
            continue
        if model.find_tag(name) is None:
            tag = model.add_tag(name)
            logger.debug("Created tag %s with key %s", tag.name, tag.key)
        names.append(name)
    return names


def compose_memo(txn: SourceTransaction) -> str:
    if txn.payment_reference:
        return constants.REFERENCE_MEMO_TEMPLATE.format(
            reference=txn.payment_reference, memo=txn.memo
        )
    return txn.memo


def income_flag(entry: LedgerEntry) -> EntryFlag:
    return EntryFlag.INCOME if entry.amount >= 0 else EntryFlag.NONE


def make_mirror_entry(entry: LedgerEntry) -> LedgerEntry:
    mirror = dataclasses.replace(
        entry,
        amount=-entry.amount,
        account=entry.dst_account,
        dst_account=entry.account,
        tags=list(entry.tags),
        splits=list(entry.splits),
    )
    mirror.flags = (entry.flags & ~EntryFlag.INCOME) | income_flag(mirror)
    return mirror


def convert_transaction(
    txn: SourceTransaction,
    model: ReferenceModel,
    account_type: SourceAccountType = SourceAccountType.unknown,
) -> list[LedgerEntry]:
    logger = logging.getLogger(__name__)
    if not isinstance(txn, SourceTransaction):
        raise ValueError(f"Unsupported source transaction type {type(txn)}")

    date = txn.value_date.date() if txn.value_date is not None else txn.accounting_date
    if date is None:
        raise ValueError(f"Transaction {txn.file}:{txn.lineno} has no date")
    entry = LedgerEntry(date=date, amount=txn.amount)
    entry.flags |= income_flag(entry)
    entry.account = model.target_account
    entry.status = (
        EntryStatus.RECONCILED if txn.value_date is not None else EntryStatus.CLEARED
    )

    assignment = resolve_assignment(model.assignments, txn.memo)
    if assignment is not None:
        logger.debug(
            "Transaction %s:%s matched assignment %s",
            txn.file,
            txn.lineno,
            assignment.name,
        )
        entry.payee = assignment.payee
        entry.category = assignment.category

    entry.memo = compose_memo(txn)
    entry.info = txn.accounting_text

    # memo and info have to be set before, they are the inputs of the paymode patterns
    if account_type == SourceAccountType.credit_card:
        paymode_match = PaymodeMatch(paymode=Paymode.CREDIT_CARD)
    else:
        paymode_match = resolve_paymode(model.paymode_patterns, entry.info, entry.memo)
    entry.paymode = paymode_match.paymode
    logger.debug(
        "Transaction %s:%s resolved to paymode %s",
        txn.file,
        txn.lineno,
        entry.paymode.name,
    )

    if entry.paymode == Paymode.BETWEEN_ACCOUNTS:
        entry.link_id = model.allocate_link_id()
        entry.flags |= EntryFlag.SPLIT
        if paymode_match.destination_account is not None:
            entry.dst_account = find_account(
                model.accounts, paymode_match.destination_account
            )
        if entry.dst_account is None:
            logger.warning(
                "No destination account found for transfer %s:%s, its mirror entry has no account",
                txn.file,
                txn.lineno,
            )

    entry.tags = resolve_tags(model, paymode_match.tags)

    if entry.is_transfer:
        return [entry, make_mirror_entry(entry)]
    return [entry]


def process_transactions(
    txns: typing.Iterable[SourceTransaction],
    model: ReferenceModel,
    account_type: SourceAccountType = SourceAccountType.unknown,
) -> typing.Generator[LedgerEntry, None, None]:
    for txn in txns:
        yield from convert_transaction(txn, model, account_type=account_type)
