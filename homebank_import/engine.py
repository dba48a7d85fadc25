import logging
import pathlib

import rich
import yaml
from jinja2.sandbox import SandboxedEnvironment
from rich import box
from rich.logging import RichHandler
from rich.markup import escape
from rich.padding import Padding
from rich.table import Table

from . import constants
from .data_types import ChangeSet
from .data_types import ConvertDoc
from .data_types import LedgerEntry
from .data_types import PaymodePatternSet
from .data_types import ReferenceModel
from .data_types import SourceAccountType
from .environment import LOG_LEVEL_MAP
from .environment import LogLevel
from .extractor import HelloBankCsvExtractor
from .ledger import load_ledger
from .ledger import load_paymode_patterns
from .ledger import sort_paymode_pattern_sets
from .post_processor import apply_change_set
from .post_processor import entry_day
from .post_processor import find_duplicates
from .post_processor import write_document
from .processor import process_transactions
from .report import export_csv
from .report import format_category
from .report import write_duplicates
from .templates import make_environment
from .utils import format_amount

TABLE_HEADER_STYLE = "yellow"
TABLE_COLUMN_STYLE = "cyan"


class TargetAccountError(ValueError):
    def __init__(self, pattern: str | None):
        self.pattern = pattern

    def __str__(self):
        if self.pattern is None:
            return "A target account pattern is required to import into a ledger"
        return f"No account matches target account pattern {self.pattern!r}"


class DuplicateEntriesError(Exception):
    def __init__(self, duplicates: list[LedgerEntry], paths: list[pathlib.Path]):
        self.duplicates = duplicates
        self.paths = paths

    def __str__(self):
        paths = ", ".join(map(str, self.paths))
        return f"Rejected {len(self.duplicates)} duplicate entries, see {paths}"


class ConvertEngine:
    log_level: LogLevel = LogLevel.INFO
    logger: logging.Logger = logging.getLogger("homebank_import")
    source_path: pathlib.Path
    target_path: pathlib.Path
    config: ConvertDoc
    template_env: SandboxedEnvironment

    def __init__(
        self,
        source: str,
        target: str,
        config_path: str | None = None,
        settings_file: str | None = None,
        paymode_patterns_file: str | None = None,
        target_account_pattern: str | None = None,
        account_type: str | None = None,
        append_duplicates: bool = False,
        log_level: str = LogLevel.INFO.value,
    ):
        self.source_path = pathlib.Path(source)
        self.target_path = pathlib.Path(target)
        self.append_duplicates = append_duplicates
        self.log_level = LogLevel(log_level.lower())

        FORMAT = "%(message)s"
        logging.basicConfig(
            level=LOG_LEVEL_MAP[self.log_level],
            format=FORMAT,
            datefmt="[%X]",
            handlers=[RichHandler()],
            force=True,
        )
        self.config = self.load_config(config_path)
        if settings_file is not None:
            self.config.settings_file = settings_file
        if paymode_patterns_file is not None:
            self.config.paymode_patterns_file = paymode_patterns_file
        if target_account_pattern is not None:
            self.config.target_account = target_account_pattern
        if account_type is not None:
            self.config.source.account_type = SourceAccountType(account_type)
        self.template_env = make_environment()

    def load_config(self, config_path: str | None) -> ConvertDoc:
        if config_path is None:
            default_path = pathlib.Path(constants.DEFAULT_CONFIG_FILE)
            if not default_path.exists():
                self.logger.debug("No config file found, using defaults")
                return ConvertDoc()
            config_path = default_path
        config_path = pathlib.Path(config_path)
        with config_path.open("rt") as fo:
            doc_payload = yaml.safe_load(fo)

            convert_doc = ConvertDoc.model_validate(doc_payload or {})

            self.logger.info(
                "Loaded config from [green]%s[/]",
                config_path,
                extra={"markup": True, "highlighter": None},
            )

            return convert_doc

    @property
    def settings_path(self) -> pathlib.Path | None:
        if self.config.settings_file is not None:
            return pathlib.Path(self.config.settings_file)
        if self.target_path.suffix.lower() == constants.SETTINGS_SUFFIX:
            return self.target_path
        return None

    def load_paymode_patterns(self) -> list[PaymodePatternSet]:
        if self.config.paymode_patterns_file is not None:
            return load_paymode_patterns(pathlib.Path(self.config.paymode_patterns_file))
        if self.config.paymode_patterns is not None:
            return sort_paymode_pattern_sets(self.config.paymode_patterns)
        self.logger.warning("No paymode patterns configured, paymodes stay unknown")
        return []

    def check_suffixes(self):
        if self.source_path.suffix.lower() != constants.CSV_SUFFIX:
            raise ValueError(
                f"Unsupported source file {self.source_path}, expected a {constants.CSV_SUFFIX} file"
            )
        if self.target_path.suffix.lower() not in (
            constants.SETTINGS_SUFFIX,
            constants.CSV_SUFFIX,
        ):
            raise ValueError(
                f"Unsupported target file {self.target_path}, expected a "
                f"{constants.SETTINGS_SUFFIX} or {constants.CSV_SUFFIX} file"
            )

    def convert(self, model: ReferenceModel) -> list[LedgerEntry]:
        source_config = self.config.source
        with self.source_path.open(
            "rt", encoding=source_config.encoding, newline=""
        ) as fo:
            extractor = HelloBankCsvExtractor(fo, source_config)
            entries = list(
                process_transactions(
                    extractor(), model, account_type=source_config.account_type
                )
            )
        self.logger.info(
            "Converted %s entries from [green]%s[/]",
            len(entries),
            self.source_path,
            extra={"markup": True, "highlighter": None},
        )
        for tag in model.new_tags:
            self.logger.info(
                "Created tag [green]%s[/] with key %s",
                tag.name,
                tag.key,
                extra={"markup": True, "highlighter": None},
            )
        return entries

    def print_entries(self, title: str, entries: list[LedgerEntry], model):
        table = Table(
            title=title,
            box=box.SIMPLE,
            header_style=TABLE_HEADER_STYLE,
            expand=True,
        )
        table.add_column("Date", style=TABLE_COLUMN_STYLE)
        table.add_column("Amount", style=TABLE_COLUMN_STYLE, justify="right")
        table.add_column("Paymode", style=TABLE_COLUMN_STYLE)
        table.add_column("Payee", style=TABLE_COLUMN_STYLE)
        table.add_column("Category", style=TABLE_COLUMN_STYLE)
        table.add_column("Memo", style=TABLE_COLUMN_STYLE)
        for entry in entries:
            table.add_row(
                entry_day(entry).isoformat(),
                format_amount(entry.amount),
                entry.paymode.name,
                escape(entry.payee.name) if entry.payee is not None else "",
                escape(format_category(model, entry.category)),
                escape(entry.memo),
            )
        rich.print(Padding(table, (1, 0, 0, 4)))

    def print_summary(self, change_set: ChangeSet, model: ReferenceModel):
        self.print_entries("Converted entries", change_set.add, model)
        if change_set.duplicates:
            self.print_entries("Duplicate entries", change_set.duplicates, model)
        if model.new_tags:
            table = Table(
                title="New tags",
                box=box.SIMPLE,
                header_style=TABLE_HEADER_STYLE,
                expand=True,
            )
            table.add_column("Key", style=TABLE_COLUMN_STYLE)
            table.add_column("Name", style=TABLE_COLUMN_STYLE)
            for tag in model.new_tags:
                table.add_row(str(tag.key), escape(tag.name))
            rich.print(Padding(table, (1, 0, 0, 4)))

    def run(self) -> ChangeSet:
        self.check_suffixes()
        is_ledger_target = self.target_path.suffix.lower() == constants.SETTINGS_SUFFIX
        paymode_patterns = self.load_paymode_patterns()

        document = None
        settings_path = self.settings_path
        if settings_path is not None:
            document, model = load_ledger(
                settings_path,
                target_account_pattern=self.config.target_account,
                paymode_patterns=paymode_patterns,
            )
        else:
            self.logger.warning(
                "No settings file given, payees, categories and accounts are not resolved"
            )
            model = ReferenceModel(paymode_patterns=paymode_patterns)

        if is_ledger_target and model.target_account is None:
            raise TargetAccountError(self.config.target_account)
        if model.target_account is not None:
            self.logger.info(
                "Booking entries on account [green]%s[/]",
                model.target_account.name,
                extra={"markup": True, "highlighter": None},
            )

        entries = self.convert(model)
        change_set = find_duplicates(entries, model.existing_entries)
        self.logger.info(
            "Accepted %s entries, rejected %s duplicates",
            len(change_set.add),
            len(change_set.duplicates),
        )

        if is_ledger_target:
            new_document = apply_change_set(document, change_set, model.new_tags)
            with self.target_path.open("wt", encoding="utf-8") as fo:
                write_document(new_document, fo)
            self.logger.info(
                "Merged %s entries into [green]%s[/]",
                len(change_set.add),
                self.target_path,
                extra={"markup": True, "highlighter": None},
            )
        else:
            export_csv(
                self.target_path, change_set.add, model, config=self.config.output
            )
            self.logger.info(
                "Exported %s entries to [green]%s[/]",
                len(change_set.add),
                self.target_path,
                extra={"markup": True, "highlighter": None},
            )

        self.print_summary(change_set, model)

        if change_set.duplicates:
            paths = write_duplicates(
                template_env=self.template_env,
                target_path=self.target_path,
                duplicates=change_set.duplicates,
                model=model,
                config=self.config.output,
                append=self.append_duplicates,
            )
            raise DuplicateEntriesError(change_set.duplicates, paths)
        return change_set
