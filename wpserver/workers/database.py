"""MariaDB administration through the mysql client."""

import gzip
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..exceptions import InputValidationError
from .base import BaseWorker, Runner

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,64}$")


def quote_identifier(name: str) -> str:
    """Backtick-quote a database name after checking it is a plain identifier."""
    if not IDENTIFIER_PATTERN.match(name or ""):
        raise InputValidationError(f"Invalid database identifier: {name!r}")
    return f"`{name}`"


def quote_string(value: str) -> str:
    """Single-quote an SQL string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def account(user: str) -> str:
    if not IDENTIFIER_PATTERN.match(user or ""):
        raise InputValidationError(f"Invalid database user: {user!r}")
    return f"{quote_string(user)}@'localhost'"


class DatabaseClient(BaseWorker):
    """Runs administrative SQL as the MariaDB root account.

    SQL is passed on stdin so secrets never appear in the process list.
    Authentication relies on the unix socket or ``/root/.my.cnf``.
    """

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="database")

    def execute(self, sql: str, check: bool = True):
        """Run SQL statements.

        Args:
            sql: One or more statements
            check: Raise on failure

        Returns:
            Command result
        """
        return self.run(["mysql", "--batch"], input=sql, check=check)

    def create_site_database(self, name: str, user: str, password: str):
        """Create a utf8mb4 database and a localhost user owning it."""
        database = quote_identifier(name)
        self.execute(
            f"CREATE DATABASE IF NOT EXISTS {database} "
            f"CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;\n"
            f"CREATE USER IF NOT EXISTS {account(user)} IDENTIFIED BY {quote_string(password)};\n"
            f"GRANT ALL PRIVILEGES ON {database}.* TO {account(user)};\n"
            "FLUSH PRIVILEGES;\n"
        )
        self.logger.info(f"Database '{name}' and user '{user}' created")

    def drop_site_database(self, name: str, user: Optional[str] = None):
        """Drop a site database and, when known, its user."""
        statements = [f"DROP DATABASE IF EXISTS {quote_identifier(name)};"]
        if user:
            statements.append(f"DROP USER IF EXISTS {account(user)};")
        statements.append("FLUSH PRIVILEGES;")
        self.execute("\n".join(statements) + "\n")
        self.logger.info(f"Removed database: {name}")

    def dump(self, name: str, path: Union[str, Path]) -> Path:
        """Write a gzip-compressed SQL dump of one database.

        Args:
            name: Database name
            path: Destination ``.sql.gz`` file

        Returns:
            The dump path
        """
        quote_identifier(name)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, raw_dump = tempfile.mkstemp(prefix=".dump-", suffix=".sql", dir=str(path.parent))
        os.close(fd)
        try:
            self.run([
                "mysqldump", "--single-transaction", "--quick",
                f"--result-file={raw_dump}", name,
            ])
            with open(raw_dump, "rb") as src, gzip.open(path, "wb") as dst:
                shutil.copyfileobj(src, dst)
        finally:
            if os.path.exists(raw_dump):
                os.unlink(raw_dump)

        self.logger.info(f"Database {name} dumped to {path}")
        return path

    def secure_installation(self, root_password: str):
        """Set the root password and remove anonymous users and the test database."""
        self.execute(
            f"ALTER USER 'root'@'localhost' IDENTIFIED BY {quote_string(root_password)};\n"
            "DELETE FROM mysql.user WHERE User='';\n"
            "DELETE FROM mysql.user WHERE User='root' "
            "AND Host NOT IN ('localhost', '127.0.0.1', '::1');\n"
            "DROP DATABASE IF EXISTS test;\n"
            "DELETE FROM mysql.db WHERE Db='test' OR Db='test\\\\_%';\n"
            "FLUSH PRIVILEGES;\n"
        )
        self.logger.info("MariaDB root account secured")

    @staticmethod
    def client_config(root_password: str) -> str:
        """Content of the root client option file."""
        # Quoted: a bare # would start a comment
        return f"[client]\nuser=root\npassword=\"{root_password}\"\n"
