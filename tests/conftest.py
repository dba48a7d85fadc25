import pathlib
import typing

import pytest

TEST_PACKAGE_FOLDER = pathlib.Path(__file__).parent
FIXTURE_FOLDER = TEST_PACKAGE_FOLDER / "fixtures"


@pytest.fixture
def fixtures_folder() -> pathlib.Path:
    return FIXTURE_FOLDER


@pytest.fixture
def construct_files() -> (
    typing.Callable[[pathlib.Path, typing.Dict[str, typing.Any]], None]
):
    def _construct_files(workdir: pathlib.Path, files: typing.Dict[str, typing.Any]):
        for name, value in files.items():
            if isinstance(value, str):
                with open(workdir / name, "wt") as fo:
                    fo.write(value)
            elif isinstance(value, dict):
                sub_dir = workdir / name
                sub_dir.mkdir()
                _construct_files(sub_dir, value)
            else:
                raise ValueError()

    return _construct_files


@pytest.fixture
def ledger_file(fixtures_folder: pathlib.Path) -> pathlib.Path:
    return fixtures_folder / "ledger.xhb"


@pytest.fixture
def paymode_patterns_file(fixtures_folder: pathlib.Path) -> pathlib.Path:
    return fixtures_folder / "patterns.xpmp"


@pytest.fixture
def source_file(fixtures_folder: pathlib.Path) -> pathlib.Path:
    return fixtures_folder / "hellobank.csv"
