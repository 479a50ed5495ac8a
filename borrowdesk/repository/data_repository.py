"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from borrowdesk.domain.errors import UnknownResourceTypeError
from borrowdesk.domain.models import (
    Booking,
    BookingStatus,
    DateInterval,
    ItemInstance,
    OperationalState,
    RepairRecord,
    ResourceType,
)
from borrowdesk.utils.config import Settings, get_settings
from borrowdesk.utils.logger import get_logger


logger = get_logger(__name__)


StockSnapshot = tuple[ResourceType, list[ItemInstance], list[Booking]]


DEMO_RESOURCE_TYPES = [
    ResourceType(
        id=1,
        name="Tablet",
        attributes={"brand": "Samsung", "model": "Galaxy Tab S6", "os": "Android"},
        default_loan_days=7,
        max_loan_days=30,
        repair_days=5,
    ),
    ResourceType(
        id=2,
        name="Camera",
        attributes={"brand": "Canon", "model": "EOS 2000D"},
        default_loan_days=3,
        max_loan_days=14,
        repair_days=10,
    ),
    ResourceType(
        id=3,
        name="Oscilloscope",
        attributes={"brand": "Rigol", "model": "DS1054Z", "channels": "4"},
        default_loan_days=7,
        max_loan_days=21,
        repair_days=14,
        requires_validation=True,
    ),
]

DEMO_REQUESTERS = [
    (1, "Alice Martin", "student"),
    (2, "Bruno Leroy", "student"),
    (3, "Claire Dubois", "lecturer"),
    (4, "Denis Moreau", "stock_manager"),
]


class DataRepository:
    """Encapsulates SQLite access so the booking engine stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ResourceTypes (
                        id INTEGER PRIMARY KEY,
                        name TEXT NOT NULL,
                        attributes TEXT NOT NULL DEFAULT '{}',
                        default_loan_days INTEGER NOT NULL CHECK (default_loan_days > 0),
                        max_loan_days INTEGER NOT NULL CHECK (max_loan_days > 0),
                        repair_days INTEGER NOT NULL CHECK (repair_days > 0),
                        requires_validation INTEGER NOT NULL DEFAULT 0
                            CHECK (requires_validation IN (0,1))
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Instances (
                        id INTEGER PRIMARY KEY,
                        resource_type_id INTEGER NOT NULL,
                        position INTEGER NOT NULL,
                        operational_state TEXT NOT NULL,
                        repair_start_date TEXT,
                        repair_duration_days INTEGER,
                        FOREIGN KEY (resource_type_id) REFERENCES ResourceTypes(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        resource_type_id INTEGER NOT NULL,
                        id INTEGER NOT NULL,
                        requester_id INTEGER NOT NULL,
                        start_date TEXT NOT NULL,
                        end_date TEXT NOT NULL,
                        reason TEXT NOT NULL DEFAULT '',
                        status TEXT NOT NULL,
                        PRIMARY KEY (resource_type_id, id),
                        FOREIGN KEY (resource_type_id) REFERENCES ResourceTypes(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS BookingInstances (
                        resource_type_id INTEGER NOT NULL,
                        booking_id INTEGER NOT NULL,
                        instance_id INTEGER NOT NULL,
                        PRIMARY KEY (resource_type_id, booking_id, instance_id),
                        FOREIGN KEY (resource_type_id, booking_id)
                            REFERENCES Bookings(resource_type_id, id) ON DELETE CASCADE
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Requesters (
                        id INTEGER PRIMARY KEY,
                        name TEXT NOT NULL,
                        role TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_instances_type_position
                    ON Instances(resource_type_id, position);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_inventory(self) -> int:
        """Seed demo catalog, instances and requesters only when tables are empty.

        Returns the number of instances created.
        """
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM ResourceTypes;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo inventory already present; skipping seed")
                    return 0

                next_instance_id = 1
                for resource_type in DEMO_RESOURCE_TYPES:
                    self._write_resource_type(cursor, resource_type)
                    for position in range(self._settings.demo_instances_per_type):
                        cursor.execute(
                            """
                            INSERT INTO Instances (
                                id, resource_type_id, position, operational_state
                            )
                            VALUES (?, ?, ?, ?);
                            """,
                            (
                                next_instance_id,
                                resource_type.id,
                                position,
                                OperationalState.IN_SERVICE.value,
                            ),
                        )
                        next_instance_id += 1

                cursor.execute("SELECT COUNT(*) AS count FROM Requesters;")
                if int(cursor.fetchone()["count"]) == 0:
                    cursor.executemany(
                        "INSERT INTO Requesters (id, name, role) VALUES (?, ?, ?);",
                        DEMO_REQUESTERS,
                    )
                conn.commit()
            seeded = next_instance_id - 1
            logger.info(
                "Demo inventory seeded with %s resource types and %s instances",
                len(DEMO_RESOURCE_TYPES),
                seeded,
            )
            return seeded
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo inventory seeding failed: {exc}") from exc

    # ---------- stocks ----------

    def list_resource_type_ids(self) -> list[int]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id FROM ResourceTypes ORDER BY id ASC;")
            return [int(row["id"]) for row in cursor.fetchall()]

    def load_stock(self, type_id: int) -> StockSnapshot:
        """Return the resource type, its instances and its bookings."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    id,
                    name,
                    attributes,
                    default_loan_days,
                    max_loan_days,
                    repair_days,
                    requires_validation
                FROM ResourceTypes
                WHERE id = ?;
                """,
                (type_id,),
            )
            row = cursor.fetchone()
            if row is None:
                raise UnknownResourceTypeError(f"Resource type {type_id} does not exist")
            resource_type = ResourceType(
                id=int(row["id"]),
                name=str(row["name"]),
                attributes={str(k): str(v) for k, v in json.loads(row["attributes"]).items()},
                default_loan_days=int(row["default_loan_days"]),
                max_loan_days=int(row["max_loan_days"]),
                repair_days=int(row["repair_days"]),
                requires_validation=bool(row["requires_validation"]),
            )

            cursor.execute(
                """
                SELECT id, operational_state, repair_start_date, repair_duration_days
                FROM Instances
                WHERE resource_type_id = ?
                ORDER BY position ASC, id ASC;
                """,
                (type_id,),
            )
            instances = [
                ItemInstance(
                    id=int(row["id"]),
                    resource_type_id=type_id,
                    operational_state=OperationalState(row["operational_state"]),
                    repair_record=(
                        RepairRecord(
                            start_date=date.fromisoformat(row["repair_start_date"]),
                            duration_days=int(row["repair_duration_days"]),
                        )
                        if row["repair_start_date"] is not None
                        else None
                    ),
                )
                for row in cursor.fetchall()
            ]

            cursor.execute(
                """
                SELECT booking_id, instance_id
                FROM BookingInstances
                WHERE resource_type_id = ?;
                """,
                (type_id,),
            )
            instance_ids_by_booking: dict[int, set[int]] = {}
            for row in cursor.fetchall():
                instance_ids_by_booking.setdefault(int(row["booking_id"]), set()).add(
                    int(row["instance_id"])
                )

            cursor.execute(
                """
                SELECT id, requester_id, start_date, end_date, reason, status
                FROM Bookings
                WHERE resource_type_id = ?
                ORDER BY id ASC;
                """,
                (type_id,),
            )
            bookings = [
                Booking(
                    id=int(row["id"]),
                    requester_id=int(row["requester_id"]),
                    instance_ids=frozenset(instance_ids_by_booking.get(int(row["id"]), ())),
                    interval=DateInterval(
                        date.fromisoformat(row["start_date"]),
                        date.fromisoformat(row["end_date"]),
                    ),
                    reason=str(row["reason"]),
                    status=BookingStatus(row["status"]),
                )
                for row in cursor.fetchall()
            ]
        return resource_type, instances, bookings

    def save_stock(
        self,
        resource_type: ResourceType,
        instances: Sequence[ItemInstance],
        bookings: Sequence[Booking],
    ) -> None:
        """Replace the persisted snapshot of one stock in a single transaction."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                self._write_resource_type(cursor, resource_type)

                cursor.execute(
                    "DELETE FROM BookingInstances WHERE resource_type_id = ?;",
                    (resource_type.id,),
                )
                cursor.execute(
                    "DELETE FROM Bookings WHERE resource_type_id = ?;",
                    (resource_type.id,),
                )
                cursor.execute(
                    "DELETE FROM Instances WHERE resource_type_id = ?;",
                    (resource_type.id,),
                )

                cursor.executemany(
                    """
                    INSERT INTO Instances (
                        id,
                        resource_type_id,
                        position,
                        operational_state,
                        repair_start_date,
                        repair_duration_days
                    )
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            instance.id,
                            resource_type.id,
                            position,
                            instance.operational_state.value,
                            (
                                instance.repair_record.start_date.isoformat()
                                if instance.repair_record is not None
                                else None
                            ),
                            (
                                instance.repair_record.duration_days
                                if instance.repair_record is not None
                                else None
                            ),
                        )
                        for position, instance in enumerate(instances)
                    ],
                )

                cursor.executemany(
                    """
                    INSERT INTO Bookings (
                        resource_type_id,
                        id,
                        requester_id,
                        start_date,
                        end_date,
                        reason,
                        status
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            resource_type.id,
                            booking.id,
                            booking.requester_id,
                            booking.interval.start.isoformat(),
                            booking.interval.end.isoformat(),
                            booking.reason,
                            booking.status.value,
                        )
                        for booking in bookings
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO BookingInstances (resource_type_id, booking_id, instance_id)
                    VALUES (?, ?, ?);
                    """,
                    [
                        (resource_type.id, booking.id, instance_id)
                        for booking in bookings
                        for instance_id in sorted(booking.instance_ids)
                    ],
                )
                conn.commit()
            logger.debug(
                "Stock %s saved: %s instances, %s bookings",
                resource_type.id,
                len(instances),
                len(bookings),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Saving stock {resource_type.id} failed: {exc}") from exc

    def _write_resource_type(self, cursor: sqlite3.Cursor, resource_type: ResourceType) -> None:
        cursor.execute(
            """
            INSERT INTO ResourceTypes (
                id,
                name,
                attributes,
                default_loan_days,
                max_loan_days,
                repair_days,
                requires_validation
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                attributes = excluded.attributes,
                default_loan_days = excluded.default_loan_days,
                max_loan_days = excluded.max_loan_days,
                repair_days = excluded.repair_days,
                requires_validation = excluded.requires_validation;
            """,
            (
                resource_type.id,
                resource_type.name,
                json.dumps(resource_type.attributes, sort_keys=True),
                resource_type.default_loan_days,
                resource_type.max_loan_days,
                resource_type.repair_days,
                int(resource_type.requires_validation),
            ),
        )

    def next_instance_id(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COALESCE(MAX(id), 0) AS max_id FROM Instances;")
            return int(cursor.fetchone()["max_id"]) + 1

    # ---------- requesters ----------

    def create_requester(self, name: str, role: str) -> int:
        """Insert requester row and return the created id."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Requesters (name, role) VALUES (?, ?);",
                (name, role),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def get_requester_role(self, requester_id: int) -> Optional[str]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT role FROM Requesters WHERE id = ?;",
                (requester_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return str(row["role"])
