import json
import os
import sys

import click

from .data_types import ConvertDoc
from .data_types import SourceAccountType
from .engine import ConvertEngine
from .engine import DuplicateEntriesError
from .environment import LOG_LEVEL_MAP


@click.group()
def cli():
    pass


@cli.command(name="convert")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.argument("target", type=click.Path(dir_okay=False))
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="The path to the convert config file, .homebank_import.yaml is used when present",
)
@click.option(
    "-s",
    "--settings-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="The ledger document providing accounts, payees, categories and existing entries",
)
@click.option(
    "-p",
    "--paymode-patterns-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="The paymode pattern file",
)
@click.option(
    "-a",
    "--target-account-pattern",
    default=None,
    help="Regular expression selecting the account new entries are booked on",
)
@click.option(
    "-t",
    "--account-type",
    type=click.Choice([item.value for item in SourceAccountType]),
    default=None,
    help="The kind of account the source export was taken from",
)
@click.option(
    "-d",
    "--append-duplicates",
    is_flag=True,
    help="Append rejected duplicates to existing duplicate files instead of overwriting them",
)
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(
        list(map(lambda key: key.value, LOG_LEVEL_MAP.keys())), case_sensitive=False
    ),
    default=lambda: os.environ.get("LOG_LEVEL", "INFO"),
)
def convert_cmd(
    source: str,
    target: str,
    config: str | None,
    settings_file: str | None,
    paymode_patterns_file: str | None,
    target_account_pattern: str | None,
    account_type: str | None,
    append_duplicates: bool,
    log_level: str,
):
    """
    Convert a bank export into ledger entries:

        > homebank-import convert \\
            -p patterns.xpmp \\
            -a "^Giro" \\
            export.csv ledger.xhb

    A .xhb target merges the new entries into the ledger document, a .csv target
    writes them in the ledger's CSV import format. Entries already present in the
    ledger are rejected and written next to the target as
    <target>.duplicates.csv and <target>.duplicates.txt, the command then exits
    with status 2.
    """
    engine = ConvertEngine(
        source=source,
        target=target,
        config_path=config,
        settings_file=settings_file,
        paymode_patterns_file=paymode_patterns_file,
        target_account_pattern=target_account_pattern,
        account_type=account_type,
        append_duplicates=append_duplicates,
        log_level=log_level,
    )
    try:
        engine.run()
    except DuplicateEntriesError as exc:
        click.echo(str(exc), err=True)
        sys.exit(2)


@cli.command(name="schema")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False),
    default="schema.json",
    help="The path to write the config JSON schema to",
)
def schema_cmd(output: str):
    with open(output, "w") as f:
        main_model_schema = ConvertDoc.model_json_schema()
        f.write(json.dumps(main_model_schema, indent=2))


if __name__ == "__main__":
    cli()
