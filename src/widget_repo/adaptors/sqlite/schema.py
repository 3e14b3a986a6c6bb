import aiosqlite


async def create_schema(conn: aiosqlite.Connection):
    """Creates the event log and current view tables if they do not exist yet."""
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            widget_id TEXT NOT NULL,
            version INTEGER NOT NULL,
            value TEXT NOT NULL,
            timestamp TEXT NOT NULL
        )
    """
    )
    # One event per (widget, version). A second writer that slips past the view
    # check still cannot append a duplicate version.
    await conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_events_widget_version
        ON events (widget_id, version)
        """
    )
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS views (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            widget_id TEXT NOT NULL,
            version INTEGER NOT NULL,
            value TEXT NOT NULL
        )
    """
    )
    await conn.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_views_widget
        ON views (widget_id)
        """
    )
    await conn.commit()


async def drop_schema(conn: aiosqlite.Connection):
    await conn.execute("DROP TABLE IF EXISTS events")
    await conn.execute("DROP TABLE IF EXISTS views")
    await conn.commit()
