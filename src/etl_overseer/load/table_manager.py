import logging

import pymysql

from etl_overseer.errors import ConfigurationError, ConnectionLost, LoadFailed
from etl_overseer.load.connection import error_code, error_message, is_connection_lost
from etl_overseer.load.loader import quote_identifier, quote_table


def column_definitions(definition):
    # Accepts {name: type} or [{name: ..., type: ...}], keeping declared order.
    columns = definition.get("columns")
    if isinstance(columns, dict):
        return list(columns.items())
    if isinstance(columns, list):
        try:
            return [(column["name"], column["type"]) for column in columns]
        except (KeyError, TypeError):
            raise ConfigurationError("Each table_definition column needs a 'name' and a 'type'") from None
    raise ConfigurationError("table_definition requires a 'columns' mapping or list")


# Prepares destination tables: creation from a definition and truncation before a load.
class TableManager:

    def __init__(self, connection):
        self.connection = connection
        self.logger = logging.getLogger('etl.load')

    def create_table(self, table, definition) -> None:
        #Ensure the target table exists.

        lines = [f"{quote_identifier(name)} {column_type}" for name, column_type in column_definitions(definition)]
        primary_key = definition.get("primary_key")
        if primary_key:
            if isinstance(primary_key, str):
                primary_key = [primary_key]
            lines.append("PRIMARY KEY (" + ", ".join(quote_identifier(c) for c in primary_key) + ")")

        statement = f"CREATE TABLE IF NOT EXISTS {quote_table(table)} (\n    " + ",\n    ".join(lines) + "\n)"
        if definition.get("engine"):
            statement += f" ENGINE = {definition['engine']}"
        if definition.get("charset"):
            statement += f" DEFAULT CHARSET = {definition['charset']}"

        self._execute(statement, table)
        self.logger.info(f"Ensured existence of {table}")

    def truncate(self, table) -> None:
        self._execute(f"TRUNCATE TABLE {quote_table(table)}", table)
        self.logger.info(f"Truncated table {table}")

    def _execute(self, statement, table):
        try:
            with self.connection.cursor() as cursor:
                cursor.execute(statement)
            self.connection.commit()
        except pymysql.err.MySQLError as e:
            if is_connection_lost(e):
                raise ConnectionLost(
                    f"Connection lost preparing {table}: {error_message(e)}",
                    code=error_code(e),
                ) from e
            self.logger.error(f"Error preparing table {table}: {error_message(e)}")
            raise LoadFailed(
                f"Could not prepare table {table}: {error_message(e)}",
                table=table,
                code=error_code(e),
            ) from e
