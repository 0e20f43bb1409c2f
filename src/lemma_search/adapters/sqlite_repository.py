"""SQLite-backed repository for sites, pages, lemmas and index rows.

- WAL mode with NORMAL synchronous so searches read while pages index
- Thread-local connections: every indexing worker gets its own connection
- ``UNIQUE(site_id, lemma)`` backs the per-site lemma invariant
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
import logging
from pathlib import Path
import sqlite3
import threading

from lemma_search.adapters.repository import AbstractRepository
from lemma_search.domain.model import IndexEntry, Lemma, MatchedEntry, Page, Site, SiteStatus
from lemma_search.exceptions import StorageError


logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement; stay well below the limit.
_IN_CLAUSE_CHUNK = 500

# Applied to every connection; lock waits use the connect() timeout
_PRAGMAS = """
    PRAGMA journal_mode = WAL;
    PRAGMA synchronous = NORMAL;
    PRAGMA foreign_keys = ON;
    PRAGMA cache_size = -65536;
    PRAGMA mmap_size = 134217728;
    PRAGMA temp_store = MEMORY;
"""

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS site (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL CHECK (status IN ('INDEXING', 'INDEXED', 'FAILED')),
        status_time TEXT NOT NULL,
        last_error TEXT
    );

    CREATE TABLE IF NOT EXISTS page (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_id INTEGER NOT NULL REFERENCES site(id) ON DELETE CASCADE,
        path TEXT NOT NULL,
        code INTEGER NOT NULL,
        content TEXT NOT NULL,
        UNIQUE (site_id, path)
    );

    CREATE TABLE IF NOT EXISTS lemma (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        site_id INTEGER NOT NULL REFERENCES site(id) ON DELETE CASCADE,
        lemma TEXT NOT NULL,
        frequency INTEGER NOT NULL CHECK (frequency >= 0),
        UNIQUE (site_id, lemma)
    );

    CREATE TABLE IF NOT EXISTS search_index (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        page_id INTEGER NOT NULL REFERENCES page(id) ON DELETE CASCADE,
        lemma_id INTEGER NOT NULL REFERENCES lemma(id) ON DELETE CASCADE,
        rank REAL NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_search_index_lemma_page ON search_index(lemma_id, page_id);
    CREATE INDEX IF NOT EXISTS idx_search_index_page ON search_index(page_id);
"""

_MATCHED_SELECT = (
    "SELECT p.id, p.site_id, p.path, p.code, p.content, l.lemma, i.rank, i.id AS entry_id "
    "FROM search_index i "
    "JOIN page p ON p.id = i.page_id "
    "JOIN lemma l ON l.id = i.lemma_id"
)


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"Failed to {action}: {exc}") from exc


def _chunks(values: Sequence[int], size: int = _IN_CLAUSE_CHUNK) -> Iterator[Sequence[int]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _placeholders(count: int) -> str:
    return ", ".join("?" * count)


class SqliteDatabase:
    """Owns the database file, its schema and the thread-local connections.

    File-backed only: ``:memory:`` would give every thread its own database.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._create_schema()

    def connection(self) -> sqlite3.Connection:
        """Get this thread's connection, creating it on first use."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._create_connection()
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def _create_connection(self) -> sqlite3.Connection:
        with _storage_errors(f"open {self.path}"):
            conn = sqlite3.connect(self.path, check_same_thread=False, timeout=30.0)
            conn.row_factory = sqlite3.Row
            conn.executescript(_PRAGMAS)
        return conn

    def _create_schema(self) -> None:
        with _storage_errors("create schema"):
            self.connection().executescript(_SCHEMA)
        logger.debug("SQLite schema ready at %s", self.path)

    def close_all(self) -> None:
        """Close every connection handed out so far."""
        with self._connections_lock:
            connections = list(self._connections)
            self._connections.clear()
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close SQLite connection for %s: %s", self.path, exc)
        self._local = threading.local()


class SqliteRepository(AbstractRepository):
    """Repository over one connection; transactions belong to the unit of work."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # Sites
    def add_site(self, site: Site) -> Site:
        with _storage_errors(f"add site {site.url}"):
            cursor = self.conn.execute(
                "INSERT INTO site (url, name, status, status_time, last_error) VALUES (?, ?, ?, ?, ?)",
                (site.url, site.name, site.status.value, site.status_time.isoformat(), site.last_error),
            )
        site.id = cursor.lastrowid
        return site

    def get_site(self, site_id: int) -> Site | None:
        with _storage_errors(f"load site {site_id}"):
            row = self.conn.execute("SELECT * FROM site WHERE id = ?", (site_id,)).fetchone()
        return self._site_from_row(row) if row else None

    def get_site_by_url(self, url: str) -> Site | None:
        with _storage_errors(f"load site {url}"):
            row = self.conn.execute("SELECT * FROM site WHERE url = ?", (url,)).fetchone()
        return self._site_from_row(row) if row else None

    def list_sites(self) -> list[Site]:
        with _storage_errors("list sites"):
            rows = self.conn.execute("SELECT * FROM site ORDER BY id").fetchall()
        return [self._site_from_row(row) for row in rows]

    def list_sites_by_status(self, status: SiteStatus) -> list[Site]:
        with _storage_errors(f"list {status} sites"):
            rows = self.conn.execute("SELECT * FROM site WHERE status = ? ORDER BY id", (status.value,)).fetchall()
        return [self._site_from_row(row) for row in rows]

    def update_site_status(self, site: Site) -> None:
        with _storage_errors(f"update status of {site.url}"):
            cursor = self.conn.execute(
                "UPDATE site SET status = ?, status_time = ?, last_error = ? WHERE id = ?",
                (site.status.value, site.status_time.isoformat(), site.last_error, site.id),
            )
        if cursor.rowcount == 0:
            raise StorageError(f"Unknown site: {site.url}")

    # Pages
    def add_page(self, page: Page) -> Page:
        with _storage_errors(f"add page {page.path}"):
            cursor = self.conn.execute(
                "INSERT INTO page (site_id, path, code, content) VALUES (?, ?, ?, ?)",
                (page.site_id, page.path, page.code, page.content),
            )
        page.id = cursor.lastrowid
        return page

    # Lemmas
    def get_lemma(self, site_id: int, text: str) -> Lemma | None:
        with _storage_errors(f"load lemma {text!r}"):
            row = self.conn.execute(
                "SELECT id, site_id, lemma, frequency FROM lemma WHERE site_id = ? AND lemma = ?",
                (site_id, text),
            ).fetchone()
        return self._lemma_from_row(row) if row else None

    def find_lemmas(self, site_id: int, texts: Collection[str]) -> list[Lemma]:
        unique = list(dict.fromkeys(texts))
        if not unique:
            return []
        query = (
            "SELECT id, site_id, lemma, frequency FROM lemma "
            f"WHERE site_id = ? AND lemma IN ({_placeholders(len(unique))}) ORDER BY id"
        )
        with _storage_errors("find lemmas"):
            rows = self.conn.execute(query, (site_id, *unique)).fetchall()
        return [self._lemma_from_row(row) for row in rows]

    def save_lemma(self, lemma: Lemma) -> Lemma:
        with _storage_errors(f"save lemma {lemma.lemma!r}"):
            if lemma.id is None:
                cursor = self.conn.execute(
                    "INSERT INTO lemma (site_id, lemma, frequency) VALUES (?, ?, ?)",
                    (lemma.site_id, lemma.lemma, lemma.frequency),
                )
                lemma.id = cursor.lastrowid
            else:
                self.conn.execute("UPDATE lemma SET frequency = ? WHERE id = ?", (lemma.frequency, lemma.id))
        return lemma

    # Index rows
    def add_index_entry(self, entry: IndexEntry) -> IndexEntry:
        with _storage_errors("add index row"):
            cursor = self.conn.execute(
                "INSERT INTO search_index (page_id, lemma_id, rank) VALUES (?, ?, ?)",
                (entry.page_id, entry.lemma_id, entry.rank),
            )
        return IndexEntry(id=cursor.lastrowid, page_id=entry.page_id, lemma_id=entry.lemma_id, rank=entry.rank)

    def entries_for_lemma(self, lemma_id: int) -> list[MatchedEntry]:
        with _storage_errors(f"load index rows of lemma {lemma_id}"):
            rows = self.conn.execute(f"{_MATCHED_SELECT} WHERE i.lemma_id = ? ORDER BY i.id", (lemma_id,)).fetchall()
        return self._matched_from_rows(rows)

    def page_ids_for_lemma(self, lemma_id: int) -> list[int]:
        with _storage_errors(f"load pages of lemma {lemma_id}"):
            rows = self.conn.execute(
                "SELECT page_id FROM search_index WHERE lemma_id = ? GROUP BY page_id ORDER BY MIN(id)",
                (lemma_id,),
            ).fetchall()
        return [row[0] for row in rows]

    def entries_for_lemmas_and_pages(
        self,
        lemma_ids: Collection[int],
        page_ids: Collection[int],
    ) -> list[MatchedEntry]:
        lemma_list = list(dict.fromkeys(lemma_ids))
        page_list = list(dict.fromkeys(page_ids))
        if not lemma_list or not page_list:
            return []
        rows: list[sqlite3.Row] = []
        with _storage_errors("load matched index rows"):
            for chunk in _chunks(page_list):
                query = (
                    f"{_MATCHED_SELECT} WHERE i.lemma_id IN ({_placeholders(len(lemma_list))}) "
                    f"AND i.page_id IN ({_placeholders(len(chunk))}) ORDER BY i.id"
                )
                rows.extend(self.conn.execute(query, (*lemma_list, *chunk)).fetchall())
        # Rows come back chunk by chunk; restore one global insertion order.
        rows.sort(key=lambda row: row["entry_id"])
        return self._matched_from_rows(rows)

    @staticmethod
    def _site_from_row(row: sqlite3.Row) -> Site:
        return Site(
            id=row["id"],
            url=row["url"],
            name=row["name"],
            status=SiteStatus(row["status"]),
            status_time=datetime.fromisoformat(row["status_time"]),
            last_error=row["last_error"],
        )

    @staticmethod
    def _lemma_from_row(row: sqlite3.Row) -> Lemma:
        return Lemma(id=row["id"], site_id=row["site_id"], lemma=row["lemma"], frequency=row["frequency"])

    @staticmethod
    def _matched_from_rows(rows: Sequence[sqlite3.Row]) -> list[MatchedEntry]:
        pages: dict[int, Page] = {}
        matched: list[MatchedEntry] = []
        for page_id, site_id, path, code, content, lemma, rank, _ in rows:
            page = pages.get(page_id)
            if page is None:
                page = Page(id=page_id, site_id=site_id, path=path, code=code, content=content)
                pages[page_id] = page
            matched.append(MatchedEntry(page=page, lemma=lemma, rank=rank))
        return matched
