import copy
import datetime
import logging
import typing
import xml.etree.ElementTree as ET

from . import constants
from .data_types import ChangeSet
from .data_types import LedgerEntry
from .data_types import Tag
from .ledger import get_int
from .utils import date_to_julian
from .utils import format_amount


def entry_day(entry: LedgerEntry) -> datetime.date:
    if isinstance(entry.date, datetime.datetime):
        return entry.date.date()
    return entry.date


def duplicate_key(entry: LedgerEntry) -> tuple:
    return entry_day(entry), entry.amount, entry.memo, entry.info


def find_duplicates(
    entries: list[LedgerEntry], existing_entries: list[LedgerEntry]
) -> ChangeSet:
    logger = logging.getLogger(__name__)
    existing_keys = frozenset(map(duplicate_key, existing_entries))
    duplicated_links = set()
    for entry in entries:
        if duplicate_key(entry) in existing_keys and entry.link_id > 0:
            duplicated_links.add(entry.link_id)

    add = []
    duplicates = []
    for entry in entries:
        if duplicate_key(entry) in existing_keys or (
            entry.link_id > 0 and entry.link_id in duplicated_links
        ):
            logger.debug(
                "Entry on %s with amount %s and memo %r is a duplicate",
                entry_day(entry),
                entry.amount,
                entry.memo,
            )
            duplicates.append(entry)
        else:
            add.append(entry)
    return ChangeSet(add=add, duplicates=duplicates)


def entry_to_element(entry: LedgerEntry) -> ET.Element:
    attrib = {
        "date": str(date_to_julian(entry_day(entry))),
        "amount": format_amount(entry.amount),
    }
    if entry.account is not None:
        attrib["account"] = str(entry.account.key)
    if entry.dst_account is not None:
        attrib["dst_account"] = str(entry.dst_account.key)
    if entry.paymode:
        attrib["paymode"] = str(int(entry.paymode))
    if entry.status:
        attrib["st"] = str(int(entry.status))
    if entry.flags:
        attrib["flags"] = str(int(entry.flags))
    if entry.payee is not None:
        attrib["payee"] = str(entry.payee.key)
    if entry.category is not None:
        attrib["category"] = str(entry.category.key)
    if entry.memo:
        attrib["wording"] = entry.memo
    if entry.info:
        attrib["info"] = entry.info
    if entry.tags:
        attrib["tags"] = constants.TAG_SEPARATOR.join(entry.tags)
    if entry.link_id:
        attrib["kxfer"] = str(entry.link_id)
    if entry.splits:
        attrib["scat"] = constants.SPLIT_SEPARATOR.join(
            str(split.category.key if split.category is not None else 0)
            for split in entry.splits
        )
        attrib["samt"] = constants.SPLIT_SEPARATOR.join(
            format_amount(split.amount) for split in entry.splits
        )
        attrib["smem"] = constants.SPLIT_SEPARATOR.join(
            split.memo for split in entry.splits
        )
    return ET.Element(constants.ENTRY_TAG, attrib)


def tag_to_element(tag: Tag) -> ET.Element:
    return ET.Element(constants.TAG_TAG, dict(key=str(tag.key), name=tag.name))


def find_tag_anchor(root: ET.Element) -> int:
    """Index of the child new tags are inserted after, -1 to insert them first"""
    children = list(root)
    for anchor in constants.TAG_ANCHOR_ORDER:
        indexes = [index for index, child in enumerate(children) if child.tag == anchor]
        if indexes:
            return indexes[-1]
    return -1


def insert_tags(root: ET.Element, tags: list[Tag]):
    index = find_tag_anchor(root) + 1
    for offset, tag in enumerate(tags):
        root.insert(index + offset, tag_to_element(tag))


def insert_entries(root: ET.Element, entries: typing.Iterable[LedgerEntry]):
    logger = logging.getLogger(__name__)
    entry_elements = [child for child in root if child.tag == constants.ENTRY_TAG]
    cursor = 0
    for entry in entries:
        element = entry_to_element(entry)
        if not entry_elements:
            root.append(element)
            entry_elements.append(element)
            cursor = 0
            continue

        julian_date = date_to_julian(entry_day(entry))
        while (
            cursor >= 0
            and get_int(entry_elements[cursor], "date", required=True) > julian_date
        ):
            cursor -= 1
        while (
            cursor + 1 < len(entry_elements)
            and get_int(entry_elements[cursor + 1], "date", required=True)
            <= julian_date
        ):
            cursor += 1

        if cursor < 0:
            root_index = list(root).index(entry_elements[0])
        else:
            root_index = list(root).index(entry_elements[cursor]) + 1
        root.insert(root_index, element)
        cursor += 1
        entry_elements.insert(cursor, element)
        logger.debug(
            "Inserted entry on %s at position %s of %s entries",
            entry_day(entry),
            cursor,
            len(entry_elements),
        )


def used_tags(tags: list[Tag], entries: list[LedgerEntry]) -> list[Tag]:
    names = {name for entry in entries for name in entry.tags}
    return [tag for tag in tags if tag.name in names]


def apply_change_set(
    document: ET.ElementTree,
    change_set: ChangeSet,
    new_tags: list[Tag] | None = None,
) -> ET.ElementTree:
    new_document = copy.deepcopy(document)
    root = new_document.getroot()
    # tags only referenced by rejected entries stay out of the ledger
    tags = used_tags(new_tags or [], change_set.add)
    if tags:
        insert_tags(root, tags)
    insert_entries(root, change_set.add)
    return new_document


def write_document(document: ET.ElementTree, output_file: typing.TextIO):
    ET.indent(document, space=constants.XML_INDENT)
    output_file.write(constants.XML_DECLARATION)
    output_file.write("\n")
    output_file.write(ET.tostring(document.getroot(), encoding="unicode"))
    output_file.write("\n")
