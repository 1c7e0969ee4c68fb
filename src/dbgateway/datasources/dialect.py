"""Advisory dialect metadata for callers that must phrase dialect-correct SQL."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from dbgateway.common.logger import get_logger

logger = get_logger("dialect")

UNKNOWN = "Unknown"
UNKNOWN_DATABASE = "Unknown Database"


class DatabaseType(Enum):
    """Known database systems with the identifiers that reveal them.

    Each member carries its display name, substrings matched against driver
    identifiers and prefixes matched against connection strings (SQLAlchemy
    URLs as well as JDBC URLs).
    """

    MYSQL = ("MySQL", ("mysql",), ("mysql", "jdbc:mysql:"))
    POSTGRESQL = (
        "PostgreSQL",
        ("postgresql", "psycopg", "asyncpg", "pg8000"),
        ("postgresql", "postgres", "jdbc:postgresql:"),
    )
    ORACLE = ("Oracle", ("oracle",), ("oracle", "jdbc:oracle:"))
    SQL_SERVER = (
        "SQL Server",
        ("sqlserver", "mssql", "pytds"),
        ("mssql", "jdbc:sqlserver:"),
    )
    H2 = ("H2", ("h2",), ("h2", "jdbc:h2:"))
    SQLITE = ("SQLite", ("sqlite",), ("sqlite", "jdbc:sqlite:"))
    CLICKHOUSE = ("ClickHouse", ("clickhouse",), ("clickhouse", "jdbc:clickhouse:"))
    MARIADB = ("MariaDB", ("mariadb",), ("mariadb", "jdbc:mariadb:"))
    DUCKDB = ("DuckDB", ("duckdb",), ("duckdb", "jdbc:duckdb:"))
    SNOWFLAKE = ("Snowflake", ("snowflake",), ("snowflake", "jdbc:snowflake:"))

    def __init__(self, display_name: str, driver_keywords: Tuple[str, ...], url_prefixes: Tuple[str, ...]):
        self.display_name = display_name
        self.driver_keywords = driver_keywords
        self.url_prefixes = url_prefixes

    @classmethod
    def from_driver(cls, driver: Optional[str]) -> Optional["DatabaseType"]:
        if not driver or not driver.strip():
            return None
        lowered = driver.lower()
        for member in cls:
            if any(keyword in lowered for keyword in member.driver_keywords):
                return member
        return None

    @classmethod
    def from_url(cls, url: Optional[str]) -> Optional["DatabaseType"]:
        if not url or not url.strip():
            return None
        lowered = url.strip().lower()
        scheme = _scheme(lowered)
        for member in cls:
            for prefix in member.url_prefixes:
                if prefix.startswith("jdbc:"):
                    if lowered.startswith(prefix):
                        return member
                elif scheme == prefix or scheme.startswith(prefix + "+"):
                    return member
        return None


def _scheme(url: str) -> str:
    """Extracts the identifying scheme of a connection string.

    ``jdbc:foo:...`` yields ``foo``; ``foo+driver://...`` yields ``foo+driver``.
    """
    if url.lower().startswith("jdbc:"):
        parts = url.split(":")
        return parts[1] if len(parts) > 1 else url
    return url.split(":", 1)[0]


def resolve_database_type(driver: Optional[str] = None, url: Optional[str] = None) -> str:
    """Infers a database type label from a driver identifier or a connection string.

    The driver wins over the URL. When nothing matches, the label still carries
    the raw identifying text so the caller gets a clue.
    """
    by_driver = DatabaseType.from_driver(driver)
    if by_driver is not None:
        return by_driver.display_name

    by_url = DatabaseType.from_url(url)
    if by_url is not None:
        return by_url.display_name

    if driver and driver.strip():
        return f"{UNKNOWN_DATABASE} ({driver.strip()})"
    if url and url.strip():
        return f"{UNKNOWN_DATABASE} ({_scheme(url.strip())})"
    return UNKNOWN_DATABASE


class DialectInfo(BaseModel):
    """Read-only snapshot of a backend's dialect, recomputed per request."""
    display_type: str = UNKNOWN
    product_name: str = UNKNOWN
    product_version: str = UNKNOWN
    driver_name: str = UNKNOWN
    driver_version: str = UNKNOWN
    connection_url: str = UNKNOWN

    @classmethod
    def unknown(cls) -> "DialectInfo":
        return cls()

    def to_payload(self, is_default: bool) -> Dict[str, Any]:
        return {
            "database_type": self.display_type,
            "database_product": self.product_name,
            "database_version": self.product_version,
            "driver_name": self.driver_name,
            "driver_version": self.driver_version,
            "connection_url": self.connection_url,
            "is_default": is_default,
        }


def _version_string(info: Any) -> str:
    if not info:
        return UNKNOWN
    if isinstance(info, (tuple, list)):
        return ".".join(str(part) for part in info)
    return str(info)


def _driver_version(dialect: Any) -> str:
    """Version of the DBAPI module behind a dialect.

    The stdlib sqlite3 module carries no version of its own on current
    interpreters, so pysqlite reports the linked SQLite library version.
    """
    dbapi = getattr(dialect, "dbapi", None)
    if dbapi is None:
        return UNKNOWN
    for attr in ("__version__", "sqlite_version", "version"):
        value = getattr(dbapi, attr, None)
        if isinstance(value, str) and value:
            return value
    return UNKNOWN


class DialectInspector:
    """Describes a backend from a live connection.

    Failures never propagate: the metadata is advisory, so a backend that
    cannot be inspected is reported with every field set to ``Unknown``.
    """

    def describe(self, handle: Any) -> DialectInfo:
        try:
            with handle.engine.connect() as conn:
                dialect = conn.dialect
                driver = getattr(dialect, "driver", None) or UNKNOWN
                if getattr(dialect, "is_mariadb", False):
                    product = DatabaseType.MARIADB
                else:
                    product = DatabaseType.from_url(dialect.name)
                url = handle.engine.url.render_as_string(hide_password=True)
                if product is not None:
                    display_type = product.display_name
                else:
                    display_type = resolve_database_type(driver=driver, url=url)

                return DialectInfo(
                    display_type=display_type,
                    product_name=product.display_name if product else dialect.name,
                    product_version=_version_string(getattr(dialect, "server_version_info", None)),
                    driver_name=driver,
                    driver_version=_driver_version(dialect),
                    connection_url=url,
                )
        except Exception as e:
            logger.error(f"Failed to get database info for datasource [{getattr(handle, 'name', '?')}]: {e}")
            return DialectInfo.unknown()
