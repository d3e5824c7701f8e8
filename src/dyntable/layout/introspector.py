"""PostgreSQL layout introspection via information_schema.

Uses psycopg (v3) ``AsyncConnection`` for a short-lived, direct
connection that does not go through the adapter's pool.
"""

from types import TracebackType

from psycopg import AsyncConnection


class SchemaIntrospector:
    """Reads table and column names from a live database.

    Usage:
        async with SchemaIntrospector(database_url) as introspector:
            columns = await introspector.get_column_names()
    """

    # Tables to exclude from introspection (system tables)
    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(self, database_url: str, connect_timeout: int = 10) -> None:
        self._database_url = database_url
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "SchemaIntrospector":
        """Open the connection, appending ``connect_timeout`` if absent."""
        url = self._database_url
        if "connect_timeout" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}connect_timeout={self._connect_timeout}"

        self._conn = await AsyncConnection.connect(url)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def get_column_names(self, schema_name: str = "public") -> dict[str, set[str]]:
        """Get column names for all base tables.

        Returns:
            Dict mapping table name to set of column names
        """
        conn = self._require_conn()
        query = """
            SELECT c.table_name, c.column_name
            FROM information_schema.columns c
            JOIN information_schema.tables t
              ON t.table_schema = c.table_schema AND t.table_name = c.table_name
            WHERE c.table_schema = %s
              AND t.table_type = 'BASE TABLE'
            ORDER BY c.table_name, c.ordinal_position
        """
        result: dict[str, set[str]] = {}
        async with conn.cursor() as cur:
            await cur.execute(query, (schema_name,))
            for table_name, column_name in await cur.fetchall():
                if table_name in self.EXCLUDED_TABLES:
                    continue
                result.setdefault(table_name, set()).add(column_name)
        return result

    def _require_conn(self) -> AsyncConnection:
        if self._conn is None:
            raise RuntimeError("Introspector not connected. Use 'async with'.")
        return self._conn
