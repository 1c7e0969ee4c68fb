import pathlib
from typing import Optional

import pytest
from sqlalchemy.engine import Engine

from dbgateway.common.settings import DEFAULT_BLOCKED_KEYWORDS
from dbgateway.security.validator import SqlSecurityValidator
from tests.helpers import make_sqlite_engine


@pytest.fixture
def validator() -> SqlSecurityValidator:
    return SqlSecurityValidator(DEFAULT_BLOCKED_KEYWORDS)


@pytest.fixture
def users_engine(tmp_path) -> Engine:
    engine = make_sqlite_engine(tmp_path / "users.db")
    yield engine
    engine.dispose()


@pytest.fixture
def empty_engine(tmp_path) -> Engine:
    engine = make_sqlite_engine(tmp_path / "empty.db", users=())
    yield engine
    engine.dispose()


@pytest.fixture
def datasource_yaml(tmp_path):
    """Writes a datasources.yaml with two SQLite backends, ``main`` being the default."""

    def _write(extra: Optional[str] = None) -> pathlib.Path:
        main_db = tmp_path / "main.db"
        other_db = tmp_path / "other.db"
        make_sqlite_engine(main_db).dispose()
        make_sqlite_engine(other_db, users=((10, "carol"),)).dispose()
        content = (
            "version: 1\n"
            "datasources:\n"
            f"  - id: main\n    sqlalchemy_url: \"sqlite:///{main_db}\"\n    default: true\n"
            f"  - id: other\n    sqlalchemy_url: \"sqlite:///{other_db}\"\n"
        )
        if extra:
            content += extra
        path = tmp_path / "datasources.yaml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write
