import decimal
import pathlib
import typing

from jinja2.sandbox import SandboxedEnvironment

from .utils import format_amount


def as_posix_path(path: pathlib.Path) -> str:
    return pathlib.Path(path).as_posix()


def amount(value: decimal.Decimal) -> str:
    return format_amount(value)


def name_or_empty(value: typing.Any) -> str:
    if value is None:
        return ""
    return value.name


def make_environment():
    env = SandboxedEnvironment()
    env.filters["as_posix_path"] = as_posix_path
    env.filters["amount"] = amount
    env.filters["name_or_empty"] = name_or_empty
    return env
