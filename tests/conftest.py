"""Pytest fixtures."""

import json
import pathlib
import shutil
from collections.abc import Callable

import pytest

from schoolattend.model import access, backup, database


TEST_FOLDER = pathlib.Path(__file__).parent
DATA_FOLDER = TEST_FOLDER / "data"
OUTPUT_FOLDER = TEST_FOLDER / "output"
FULL_DATA_PATH = DATA_FOLDER / "testdata-full.json"


@pytest.fixture()
def empty_output_folder() -> pathlib.Path:
    """Create an empty output folder prior to each test."""
    if OUTPUT_FOLDER.exists():
        for item in OUTPUT_FOLDER.iterdir():
            if item.is_dir():
                shutil.rmtree(item, ignore_errors=True)
            else:
                item.unlink()
    else:
        OUTPUT_FOLDER.mkdir(parents=True)
    return OUTPUT_FOLDER


@pytest.fixture
def empty_database(empty_output_folder: pathlib.Path) -> database.DBase:
    """An empty SchoolAttend database, with tables created."""
    return database.DBase(OUTPUT_FOLDER / "testdatabase.db", create_new=True)


@pytest.fixture
def empty_database2(empty_output_folder: pathlib.Path) -> database.DBase:
    """A second empty database, for copying data between databases."""
    return database.DBase(OUTPUT_FOLDER / "testdatabase2.db", create_new=True)


@pytest.fixture
def full_dbase(empty_database: database.DBase) -> database.DBase:
    """Database with three schools, their users, students and records."""
    blob = FULL_DATA_PATH.read_text(encoding="utf-8")
    assert backup.restore_backup(empty_database, blob)
    return empty_database


@pytest.fixture
def attendance_test_data() -> dict:
    """Get test data as a dictionary.

    Keys are the snapshot collections: schools, students, records, settings
    and users.
    """
    with open(FULL_DATA_PATH, encoding="utf-8") as jfile:
        test_data = json.load(jfile)
    return test_data


@pytest.fixture
def login(full_dbase: database.DBase) -> Callable[[str], access.Session]:
    """Log in to the full database by username."""

    def _login(username: str) -> access.Session:
        result = access.authenticate(full_dbase, username)
        assert result.session is not None, result.message
        return result.session

    return _login


@pytest.fixture
def principal(login) -> access.Session:
    """Principal of school s1."""
    return login("principal1")


@pytest.fixture
def admin(login) -> access.Session:
    return login("admin")
