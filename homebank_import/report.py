import csv
import datetime
import functools
import logging
import pathlib
import typing

from jinja2.sandbox import SandboxedEnvironment

from . import constants
from .data_types import Category
from .data_types import LedgerEntry
from .data_types import OutputConfig
from .data_types import ReferenceModel
from .post_processor import entry_day
from .utils import format_amount


def format_category(model: ReferenceModel, category: Category | None) -> str:
    if category is None:
        return ""
    return model.category_path(category)


def entry_to_row(
    entry: LedgerEntry, model: ReferenceModel, decimal_separator: str = "."
) -> list[str]:
    return [
        entry_day(entry).strftime(constants.LEDGER_CSV_DATE_FORMAT),
        str(int(entry.paymode)),
        entry.info,
        entry.payee.name if entry.payee is not None else "",
        entry.memo,
        format_amount(entry.amount, decimal_separator=decimal_separator),
        format_category(model, entry.category),
        constants.TAG_SEPARATOR.join(entry.tags),
    ]


def write_csv(
    output_file: typing.TextIO,
    entries: list[LedgerEntry],
    model: ReferenceModel,
    config: OutputConfig | None = None,
    write_header: bool = True,
):
    if config is None:
        config = OutputConfig()
    writer = csv.writer(output_file, delimiter=config.delimiter)
    if write_header:
        writer.writerow(constants.LEDGER_CSV_HEADER)
    for entry in entries:
        writer.writerow(
            entry_to_row(entry, model, decimal_separator=config.decimal_separator)
        )


def export_csv(
    target_path: pathlib.Path,
    entries: list[LedgerEntry],
    model: ReferenceModel,
    config: OutputConfig | None = None,
    append: bool = False,
):
    """Write entries in the ledger's CSV import format.

    When appending to a file that already has content the header row is not written
    again.
    """
    write_header = not (
        append and target_path.exists() and target_path.stat().st_size > 0
    )
    with target_path.open("at" if append else "wt", newline="") as fo:
        write_csv(fo, entries, model, config=config, write_header=write_header)


def duplicates_paths(target_path: pathlib.Path) -> tuple[pathlib.Path, pathlib.Path]:
    base_name = target_path.with_suffix("").name
    return (
        target_path.with_name(base_name + constants.DUPLICATES_CSV_SUFFIX),
        target_path.with_name(base_name + constants.DUPLICATES_DUMP_SUFFIX),
    )


def render_duplicates_dump(
    template_env: SandboxedEnvironment,
    target_path: pathlib.Path,
    duplicates: list[LedgerEntry],
    model: ReferenceModel,
    timestamp: datetime.datetime | None = None,
) -> str:
    template = template_env.from_string(constants.DUPLICATES_DUMP_TEMPLATE)
    return template.render(
        target=target_path,
        timestamp=(timestamp or datetime.datetime.now()).isoformat(
            sep=" ", timespec="seconds"
        ),
        entries=duplicates,
        category_path=functools.partial(format_category, model),
    )


def write_duplicates(
    template_env: SandboxedEnvironment,
    target_path: pathlib.Path,
    duplicates: list[LedgerEntry],
    model: ReferenceModel,
    config: OutputConfig | None = None,
    append: bool = False,
) -> list[pathlib.Path]:
    logger = logging.getLogger(__name__)
    csv_path, dump_path = duplicates_paths(target_path)
    export_csv(csv_path, duplicates, model, config=config, append=append)
    with dump_path.open("at" if append else "wt") as fo:
        fo.write(
            render_duplicates_dump(
                template_env=template_env,
                target_path=target_path,
                duplicates=duplicates,
                model=model,
            )
        )
    logger.info(
        "Wrote %s duplicate entries to [green]%s[/] and [green]%s[/]",
        len(duplicates),
        csv_path,
        dump_path,
        extra={"markup": True, "highlighter": None},
    )
    return [csv_path, dump_path]
