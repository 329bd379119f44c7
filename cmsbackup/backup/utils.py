"""
Helpers for naming backups and deriving the dump connection from the host's
database configuration.
"""

from datetime import datetime
from typing import Any, Dict

from cmsbackup.exceptions import invalid_config_value
from .dumpers import (
    DatabaseConnection,
    DatabaseDriver,
    parse_mysql_connection_string,
    parse_postgres_connection_string,
)


def create_archive_root_name_from_date(date: datetime) -> str:
    day = f"{date.year}{date.month}{date.day}"
    moment = f"{date.hour}{date.minute}{date.second}{date.microsecond // 1000}"
    return f"{day}-{moment}"


def create_backup_filename(prefix: str, date: datetime) -> str:
    """
    Build a backup name such as `database-2024115-1230455`.

    Date and time components are not zero padded.
    """
    return f"{prefix}-{create_archive_root_name_from_date(date)}"


def date_diff_in_seconds(date1: datetime, date2: datetime) -> float:
    """Absolute number of seconds between two datetimes."""
    return abs((date2 - date1).total_seconds())


def _connection_string(connection: Dict[str, Any]):
    return connection.get('connection_string') or connection.get('connectionString')


def create_connection_from_host_db_config(db_config: Dict[str, Any]) -> DatabaseConnection:
    """
    Derive the dump connection from the host database configuration.

    Args:
        db_config: Dict with 'client' (mysql, postgres or sqlite) and
            'connection' holding either a connection string, discrete
            credentials, or a filename for sqlite

    Returns:
        DatabaseConnection for the client

    Raises:
        ConfigError: If the client is not supported
        ConnectionStringParseError: If the connection string is malformed
    """
    client = db_config.get('client')
    connection = db_config.get('connection') or {}

    if client == DatabaseDriver.SQLITE:
        return DatabaseConnection(driver=DatabaseDriver.SQLITE.value, filename=connection.get('filename'))

    if client == DatabaseDriver.MYSQL:
        parse = parse_mysql_connection_string
    elif client == DatabaseDriver.POSTGRES:
        parse = parse_postgres_connection_string
    else:
        raise invalid_config_value('database_driver', client, DatabaseDriver.values())

    connection_string = _connection_string(connection)
    if connection_string:
        fields = parse(connection_string)
    else:
        fields = {
            'user': connection.get('user'),
            'password': connection.get('password'),
            'host': connection.get('host'),
            'port': connection.get('port'),
            'database': connection.get('database'),
        }

    return DatabaseConnection(driver=DatabaseDriver(client).value, **fields)
