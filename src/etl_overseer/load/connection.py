import logging

import pymysql

from etl_overseer.errors import ConnectionLost
from etl_overseer.utils.retry import create_retry_decorator
from etl_overseer.utils.env_variables import (
    TARGET_HOST, TARGET_PORT, TARGET_USERNAME, TARGET_PASSWORD, TARGET_DATABASE,
    TARGET_SQL_MODE, TARGET_CONNECT_TIMEOUT, TARGET_READ_TIMEOUT, TARGET_WRITE_TIMEOUT,
)

# Client errors meaning the session is gone: server has gone away, lost connection during query,
# lost connection while reading the initial packet.
CONNECTION_LOST_CODES = {2006, 2013, 2055}

# Server ceiling for the rows SHOW WARNINGS keeps per statement (default 64 on older servers).
MAX_ERROR_COUNT = 65535


def error_code(error):
    if error.args and isinstance(error.args[0], int):
        return error.args[0]
    return None


def error_message(error):
    if len(error.args) > 1:
        return str(error.args[1])
    return str(error)


def is_connection_lost(error) -> bool:
    if isinstance(error, pymysql.err.InterfaceError):
        return True
    return isinstance(error, pymysql.err.OperationalError) and error_code(error) in CONNECTION_LOST_CODES


# Connection to the MySQL compatible target shared by every action of one overseer run.
class TargetConnection:

    def __init__(
        self,
        host=TARGET_HOST,
        port=TARGET_PORT,
        username=TARGET_USERNAME,
        password=TARGET_PASSWORD,
        database=TARGET_DATABASE,
        sql_mode=TARGET_SQL_MODE,
        retry_decorator=None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.database = database
        self.sql_mode = sql_mode

        self.logger = logging.getLogger('etl.load')
        self.retry_decorator = retry_decorator or create_retry_decorator(self.logger)
        self.client = None

        self.initialize_session = self.retry_decorator(self.initialize_session)

    def initialize_session(self):
        #Connect and pin the session sql_mode so coercions surface as warnings rather than errors.

        self.client = pymysql.connect(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
            charset="utf8mb4",
            local_infile=True,
            autocommit=False,
            connect_timeout=TARGET_CONNECT_TIMEOUT,
            read_timeout=TARGET_READ_TIMEOUT,
            write_timeout=TARGET_WRITE_TIMEOUT,
        )
        self.logger.info(f"Connected to target at {self.host}:{self.port}")

        with self.client.cursor() as cursor:
            cursor.execute("SET SESSION sql_mode = %s, max_error_count = %s", (self.sql_mode, MAX_ERROR_COUNT))
        self.logger.debug(f"Session sql_mode set to '{self.sql_mode}', max_error_count {MAX_ERROR_COUNT}")
        return self.client

    def connect(self):
        if self.client is not None:
            return self.client
        try:
            return self.initialize_session()
        except (pymysql.err.MySQLError, OSError) as e:
            self.logger.debug(f"Giving up on {self.host}:{self.port}: {e}")
            raise ConnectionLost(
                f"Could not connect to target at {self.host}:{self.port}: {error_message(e)}",
                code=error_code(e),
            ) from e

    def close(self):
        if self.client is not None:
            try:
                self.client.close()
                self.logger.info("Target connection closed")
            except pymysql.err.Error as e:
                # Already closed by the server side
                self.logger.debug(f"Ignoring error while closing target connection: {e}")
            self.client = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
