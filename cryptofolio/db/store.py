"""SQLite data store for cryptofolio.

Holdings are not stored. They are derived from the append-only trade ledger
joined against the coin catalog, which carries the last observed price.
"""

import json
import logging
import sqlite3
from collections import Counter, defaultdict
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from cryptofolio.errors import (
    InitializationError,
    NotFoundError,
    StorageError,
    UniqueConstraintError,
    ValidationError,
)
from cryptofolio.models import (
    TRADE_SIDES,
    Coin,
    EmotionalPattern,
    Holding,
    JournalEntry,
    JournalFilter,
    MarketSnapshot,
    StrategicInsight,
    TrackedWallet,
    Trade,
    canonical_address,
)

logger = logging.getLogger(__name__)

# Net quantities at or below this fraction of the quantity bought are
# closed positions (float residue)
QUANTITY_EPSILON = 1e-9


class PortfolioStore:
    """SQLite-based store for coins, trades, wallets, journal and snapshots."""

    REQUIRED_TABLES = [
        "coins",
        "trades",
        "tracked_wallets",
        "journal_entries",
        "market_snapshots",
    ]

    def __init__(self, db_path: Path, initialize: bool = True):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
            initialize: Create the schema right away. When False, callers
                must call initialize() before any other operation.
        """
        self.db_path = Path(db_path)
        self._initialized = False
        self._ensure_db_dir()
        if initialize:
            self.initialize()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connect(self, require_schema: bool = True) -> Iterator[sqlite3.Connection]:
        """Yield a connection, committing on success and closing afterwards.

        Raises:
            InitializationError: If the schema has not been created yet.
            StorageError: On any sqlite failure.
        """
        if require_schema and not self._initialized:
            raise InitializationError(
                "Store schema not initialized; call initialize() first"
            )
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the schema if absent. Safe to call repeatedly."""
        with self._connect(require_schema=False) as conn:
            cursor = conn.cursor()

            # Coin catalog, one row per coin
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS coins (
                    coin_id INTEGER PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL,
                    last_price REAL NOT NULL,
                    market_cap REAL,
                    volume_24h REAL,
                    price_change_24h REAL,
                    strategy TEXT,
                    last_updated TEXT NOT NULL
                )
            """)

            # Append-only trade ledger
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    coin_id INTEGER NOT NULL,
                    side TEXT NOT NULL CHECK(side IN ('BUY', 'SELL')),
                    quantity REAL NOT NULL CHECK(quantity > 0),
                    price REAL NOT NULL CHECK(price > 0),
                    timestamp TEXT NOT NULL,
                    notes TEXT,
                    FOREIGN KEY (coin_id) REFERENCES coins(coin_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tracked_wallets (
                    address TEXT PRIMARY KEY,
                    chain TEXT NOT NULL,
                    label TEXT,
                    tracked_since TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS journal_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    date TEXT NOT NULL,
                    entry_type TEXT NOT NULL,
                    coin_id INTEGER,
                    trade_type TEXT,
                    amount REAL,
                    price REAL,
                    emotional_state TEXT NOT NULL,
                    confidence_level INTEGER NOT NULL,
                    market_sentiment TEXT NOT NULL,
                    entry_text TEXT NOT NULL,
                    lessons_learned TEXT,
                    follow_up_needed INTEGER NOT NULL DEFAULT 0,
                    tags TEXT NOT NULL DEFAULT '[]'
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_journal_date ON journal_entries(date)"
            )

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS market_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    total_market_cap REAL NOT NULL,
                    btc_dominance REAL NOT NULL,
                    market_sentiment TEXT NOT NULL,
                    total_volume_24h REAL,
                    market_cap_change_24h REAL
                )
            """)

        self._initialized = True
        logger.debug("Schema ready at %s", self.db_path)

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        with self._connect(require_schema=False) as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]

    # ==================== Coins ====================

    def upsert_holding(self, coin: Coin) -> None:
        """Insert or fully replace the catalog row for a coin.

        Args:
            coin: Catalog row. Any existing row with the same coin_id is
                replaced, not merged.
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO coins
                (coin_id, symbol, name, last_price, market_cap, volume_24h,
                 price_change_24h, strategy, last_updated)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    coin.coin_id,
                    coin.symbol,
                    coin.name,
                    coin.last_price,
                    coin.market_cap,
                    coin.volume_24h,
                    coin.price_change_24h,
                    coin.strategy,
                    coin.last_updated.isoformat(),
                ),
            )

    def update_coin_price(
        self,
        coin_id: int,
        price: float,
        market_cap: Optional[float] = None,
        volume_24h: Optional[float] = None,
        price_change_24h: Optional[float] = None,
    ) -> bool:
        """Overwrite the stored price data for a coin.

        Returns:
            True if a catalog row was updated.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE coins
                SET last_price = ?, market_cap = COALESCE(?, market_cap),
                    volume_24h = COALESCE(?, volume_24h),
                    price_change_24h = COALESCE(?, price_change_24h),
                    last_updated = ?
                WHERE coin_id = ?
                """,
                (
                    price,
                    market_cap,
                    volume_24h,
                    price_change_24h,
                    datetime.now().isoformat(),
                    coin_id,
                ),
            )
            return cursor.rowcount > 0

    @staticmethod
    def _row_to_coin(row: sqlite3.Row) -> Coin:
        return Coin(
            coin_id=row["coin_id"],
            symbol=row["symbol"],
            name=row["name"],
            last_price=row["last_price"],
            market_cap=row["market_cap"],
            volume_24h=row["volume_24h"],
            price_change_24h=row["price_change_24h"],
            strategy=row["strategy"],
            last_updated=datetime.fromisoformat(row["last_updated"]),
        )

    def get_coin(self, coin_id: int) -> Optional[Coin]:
        """Get a catalog row by coin id, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM coins WHERE coin_id = ?", (coin_id,)
            ).fetchone()
            return self._row_to_coin(row) if row else None

    def get_coins(self) -> list[Coin]:
        """Get every catalog row, ordered by symbol."""
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM coins ORDER BY symbol").fetchall()
            return [self._row_to_coin(row) for row in rows]

    def remove_holding(self, coin_id: int) -> None:
        """Delete a coin and its ledger. Unknown ids are a no-op.

        Journal entries that mention the coin are kept.
        """
        with self._connect() as conn:
            conn.execute("DELETE FROM trades WHERE coin_id = ?", (coin_id,))
            conn.execute("DELETE FROM coins WHERE coin_id = ?", (coin_id,))

    # ==================== Trades ====================

    @staticmethod
    def _validate_trade(trade: Trade) -> None:
        if trade.side not in TRADE_SIDES:
            raise ValidationError(
                f"Trade side must be BUY or SELL, got {trade.side!r}", field="side"
            )
        if not trade.quantity > 0:
            raise ValidationError("Trade quantity must be positive", field="quantity")
        if not trade.price > 0:
            raise ValidationError("Trade price must be positive", field="price")

    def record_trade(self, trade: Trade) -> int:
        """Append a trade to the ledger.

        Args:
            trade: Trade to record.

        Returns:
            The ID of the recorded trade.

        Raises:
            ValidationError: If side, quantity or price is invalid.
            NotFoundError: If the coin is not in the catalog.
        """
        self._validate_trade(trade)
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM coins WHERE coin_id = ?", (trade.coin_id,)
            ).fetchone()
            if not exists:
                raise NotFoundError(f"Coin {trade.coin_id} is not in the catalog")
            cursor = conn.execute(
                """
                INSERT INTO trades (coin_id, side, quantity, price, timestamp, notes)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    trade.coin_id,
                    trade.side,
                    trade.quantity,
                    trade.price,
                    trade.timestamp.isoformat(),
                    trade.notes,
                ),
            )
            return cursor.lastrowid or 0

    def get_trades(self, coin_id: Optional[int] = None) -> list[Trade]:
        """Get ledger entries, newest first.

        Args:
            coin_id: Optional coin filter. If None, returns all trades.
        """
        query = "SELECT * FROM trades"
        params: tuple = ()
        if coin_id is not None:
            query += " WHERE coin_id = ?"
            params = (coin_id,)
        query += " ORDER BY timestamp DESC, id DESC"

        with self._connect() as conn:
            return [
                Trade(
                    id=row["id"],
                    coin_id=row["coin_id"],
                    side=row["side"],
                    quantity=row["quantity"],
                    price=row["price"],
                    timestamp=datetime.fromisoformat(row["timestamp"]),
                    notes=row["notes"],
                )
                for row in conn.execute(query, params).fetchall()
            ]

    def compute_holdings(self) -> list[Holding]:
        """Derive open positions from the ledger.

        Net quantity is the signed sum of BUY (+) and SELL (-) quantities.
        Coins whose net quantity is not positive are closed positions and
        are left out. A net quantity within QUANTITY_EPSILON of zero,
        relative to the quantity bought, is float residue and also closed. Entry price is the quantity-weighted average BUY price.

        Returns:
            Holdings ordered by value, largest first.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                WITH ledger AS (
                    SELECT
                        coin_id,
                        SUM(CASE WHEN side = 'BUY' THEN quantity ELSE -quantity END)
                            AS net_quantity,
                        SUM(CASE WHEN side = 'BUY' THEN quantity * price ELSE 0 END)
                            AS buy_cost,
                        SUM(CASE WHEN side = 'BUY' THEN quantity ELSE 0 END)
                            AS buy_quantity
                    FROM trades
                    GROUP BY coin_id
                )
                SELECT
                    c.coin_id, c.symbol, c.name, c.last_price, c.strategy,
                    l.net_quantity,
                    CASE WHEN l.buy_quantity > 0
                         THEN l.buy_cost / l.buy_quantity ELSE 0 END AS entry_price
                FROM ledger l
                JOIN coins c ON c.coin_id = l.coin_id
                WHERE l.net_quantity > ? * l.buy_quantity
                ORDER BY l.net_quantity * c.last_price DESC, c.symbol
                """,
                (QUANTITY_EPSILON,),
            ).fetchall()
            return [
                Holding(
                    coin_id=row["coin_id"],
                    symbol=row["symbol"],
                    name=row["name"],
                    quantity=row["net_quantity"],
                    entry_price=row["entry_price"],
                    last_price=row["last_price"],
                    strategy=row["strategy"],
                )
                for row in rows
            ]

    # ==================== Wallets ====================

    def add_wallet(self, wallet: TrackedWallet) -> None:
        """Start tracking a wallet.

        Raises:
            UniqueConstraintError: If the address is already tracked.
        """
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO tracked_wallets (address, chain, label, tracked_since)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        wallet.address,
                        wallet.chain,
                        wallet.label,
                        wallet.tracked_since.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise UniqueConstraintError(
                    f"Wallet {wallet.address} is already tracked"
                ) from e

    def remove_wallet(self, address: str) -> bool:
        """Stop tracking a wallet. Unknown addresses are a no-op.

        Returns:
            True if a wallet was removed.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM tracked_wallets WHERE address = ?", (canonical_address(address),)
            )
            return cursor.rowcount > 0

    @staticmethod
    def _row_to_wallet(row: sqlite3.Row) -> TrackedWallet:
        return TrackedWallet(
            chain=row["chain"],
            address=row["address"],
            label=row["label"],
            tracked_since=datetime.fromisoformat(row["tracked_since"]),
        )

    def list_wallets(self) -> list[TrackedWallet]:
        """Get all tracked wallets, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tracked_wallets ORDER BY tracked_since, address"
            ).fetchall()
            return [self._row_to_wallet(row) for row in rows]

    def get_wallet(self, address: str) -> Optional[TrackedWallet]:
        """Get a tracked wallet by address, or None."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tracked_wallets WHERE address = ?", (canonical_address(address),)
            ).fetchone()
            return self._row_to_wallet(row) if row else None

    # ==================== Journal ====================

    def add_journal_entry(self, entry: JournalEntry) -> int:
        """Append a journal entry.

        Returns:
            The ID of the new entry.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO journal_entries
                (date, entry_type, coin_id, trade_type, amount, price,
                 emotional_state, confidence_level, market_sentiment,
                 entry_text, lessons_learned, follow_up_needed, tags)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.timestamp.isoformat(),
                    entry.entry_type,
                    entry.coin_id,
                    entry.trade_side,
                    entry.amount,
                    entry.price,
                    entry.emotional_state,
                    entry.confidence_level,
                    entry.market_sentiment,
                    entry.entry_text,
                    entry.lessons_learned,
                    1 if entry.follow_up_needed else 0,
                    json.dumps(entry.tags),
                ),
            )
            return cursor.lastrowid or 0

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> JournalEntry:
        return JournalEntry(
            id=row["id"],
            timestamp=datetime.fromisoformat(row["date"]),
            entry_type=row["entry_type"],
            coin_id=row["coin_id"],
            trade_side=row["trade_type"],
            amount=row["amount"],
            price=row["price"],
            emotional_state=row["emotional_state"],
            confidence_level=row["confidence_level"],
            market_sentiment=row["market_sentiment"],
            entry_text=row["entry_text"],
            lessons_learned=row["lessons_learned"],
            follow_up_needed=bool(row["follow_up_needed"]),
            tags=json.loads(row["tags"] or "[]"),
        )

    def query_journal_entries(
        self, filters: Optional[JournalFilter] = None
    ) -> list[JournalEntry]:
        """Get journal entries matching every supplied filter, newest first.

        Args:
            filters: Optional filter. Unset fields impose no constraint.
        """
        filters = filters or JournalFilter()
        clauses: list[str] = []
        params: list = []

        if filters.start_date is not None:
            clauses.append("date >= ?")
            params.append(filters.start_date.isoformat())
        if filters.end_date is not None:
            clauses.append("date <= ?")
            params.append(filters.end_date.isoformat())
        if filters.entry_type is not None:
            clauses.append("entry_type = ?")
            params.append(filters.entry_type)
        if filters.coin_id is not None:
            clauses.append("coin_id = ?")
            params.append(filters.coin_id)
        if filters.emotional_state is not None:
            clauses.append("emotional_state = ?")
            params.append(filters.emotional_state)
        if filters.follow_up_needed is not None:
            clauses.append("follow_up_needed = ?")
            params.append(1 if filters.follow_up_needed else 0)

        query = "SELECT * FROM journal_entries"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY date DESC, id DESC"

        with self._connect() as conn:
            return [self._row_to_entry(row) for row in conn.execute(query, params)]

    def get_follow_ups(self) -> list[JournalEntry]:
        """Get entries flagged for follow-up, newest first."""
        return self.query_journal_entries(JournalFilter(follow_up_needed=True))

    def aggregate_emotional_patterns(self) -> list[EmotionalPattern]:
        """Count, BUY ratio and average confidence per emotional state."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT
                    emotional_state,
                    COUNT(*) AS count,
                    AVG(CASE WHEN trade_type = 'BUY' THEN 1.0 ELSE 0.0 END) AS buy_ratio,
                    AVG(confidence_level) AS avg_confidence
                FROM journal_entries
                GROUP BY emotional_state
                ORDER BY count DESC, emotional_state
                """
            ).fetchall()
            return [
                EmotionalPattern(
                    emotional_state=row["emotional_state"],
                    count=row["count"],
                    buy_ratio=row["buy_ratio"],
                    avg_confidence=row["avg_confidence"],
                )
                for row in rows
            ]

    def aggregate_strategic_insights(self) -> list[StrategicInsight]:
        """Rollup of TRADE entries per market sentiment, with common tags."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT market_sentiment, confidence_level, tags
                FROM journal_entries
                WHERE entry_type = 'TRADE'
                """
            ).fetchall()

        groups: dict[str, dict] = defaultdict(
            lambda: {"count": 0, "confidence": 0, "tags": Counter()}
        )
        for row in rows:
            group = groups[row["market_sentiment"]]
            group["count"] += 1
            group["confidence"] += row["confidence_level"]
            group["tags"].update(json.loads(row["tags"] or "[]"))

        return [
            StrategicInsight(
                entry_type="TRADE",
                market_sentiment=sentiment,
                count=group["count"],
                avg_confidence=group["confidence"] / group["count"],
                common_tags=[tag for tag, _ in group["tags"].most_common()],
            )
            for sentiment, group in sorted(
                groups.items(), key=lambda item: (-item[1]["count"], item[0])
            )
        ]

    # ==================== Market snapshots ====================

    def save_market_snapshot(self, snapshot: MarketSnapshot) -> int:
        """Store a global market snapshot.

        Returns:
            The ID of the stored snapshot.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO market_snapshots
                (timestamp, total_market_cap, btc_dominance, market_sentiment,
                 total_volume_24h, market_cap_change_24h)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.timestamp.isoformat(),
                    snapshot.total_market_cap,
                    snapshot.btc_dominance,
                    snapshot.market_sentiment,
                    snapshot.total_volume_24h,
                    snapshot.market_cap_change_24h,
                ),
            )
            return cursor.lastrowid or 0

    def get_latest_market_snapshot(self) -> Optional[MarketSnapshot]:
        """Get the most recent market snapshot, or None if there is none."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM market_snapshots
                ORDER BY timestamp DESC, id DESC
                LIMIT 1
                """
            ).fetchone()
            if row is None:
                return None
            return MarketSnapshot(
                timestamp=datetime.fromisoformat(row["timestamp"]),
                total_market_cap=row["total_market_cap"],
                btc_dominance=row["btc_dominance"],
                market_sentiment=row["market_sentiment"],
                total_volume_24h=row["total_volume_24h"],
                market_cap_change_24h=row["market_cap_change_24h"],
            )

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        with self._connect() as conn:
            stats = {}
            for table in self.REQUIRED_TABLES:
                row = conn.execute(f"SELECT COUNT(*) AS count FROM {table}").fetchone()
                stats[table] = row["count"]
            return stats
