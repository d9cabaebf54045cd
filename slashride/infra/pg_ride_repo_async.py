# slashride/infra/pg_ride_repo_async.py
from __future__ import annotations

from typing import Any, Mapping

from slashride.core.domain import Coordinate, Ride, RideStatus
from slashride.core.errors import MissingRideError
from slashride.infra.db_async import safe_db_conn
from slashride.infra.logging_config import get_logger, mask_user_id
from slashride.infra.metrics import AppMetrics

logger = get_logger(__name__)

_COLUMNS = (
    "id, user_id, product_id, start_latitude, start_longitude, "
    "end_latitude, end_longitude, surge_confirmation_id, request_id, "
    "status, created_at, updated_at"
)

# Ride attributes that may be changed through update()
_UPDATABLE = {"surge_confirmation_id", "request_id", "status", "product_id"}


def row_to_ride(row: Mapping[str, Any]) -> Ride:
    return Ride(
        id=row["id"],
        user_id=row["user_id"],
        product_id=row["product_id"],
        start=Coordinate(row["start_latitude"], row["start_longitude"]),
        end=Coordinate(row["end_latitude"], row["end_longitude"]),
        surge_confirmation_id=row["surge_confirmation_id"],
        request_id=row["request_id"],
        status=RideStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, RideStatus) else value


class AsyncPostgresRideRepository:
    """RideRepository backed by the ``rides`` table."""

    async def save(self, ride: Ride) -> Ride:
        try:
            async with safe_db_conn() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO rides(
                      user_id, product_id,
                      start_latitude, start_longitude, end_latitude, end_longitude,
                      surge_confirmation_id, request_id, status
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {_COLUMNS}
                    """,
                    ride.user_id, ride.product_id,
                    ride.start.latitude, ride.start.longitude,
                    ride.end.latitude, ride.end.longitude,
                    ride.surge_confirmation_id, ride.request_id, ride.status.value,
                )
        except Exception:
            logger.error(f"Failed to save ride: user={mask_user_id(ride.user_id)}", exc_info=True)
            AppMetrics.database_error("ride_save")
            raise
        return row_to_ride(row)

    async def most_recent_for_user(self, user_id: str) -> Ride:
        try:
            async with safe_db_conn() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {_COLUMNS} FROM rides
                    WHERE user_id = $1
                    ORDER BY updated_at DESC, id DESC
                    LIMIT 1
                    """,
                    user_id,
                )
        except Exception:
            logger.error(f"Failed to load ride: user={mask_user_id(user_id)}", exc_info=True)
            AppMetrics.database_error("ride_get")
            raise

        if row is None:
            raise MissingRideError(user_id)
        return row_to_ride(row)

    async def update(self, ride: Ride, **fields) -> Ride:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update ride fields: {', '.join(sorted(unknown))}")
        if ride.id is None:
            raise ValueError("Cannot update a ride that was never saved")

        names = list(fields)
        assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(names, start=2))
        set_clause = f"{assignments}, updated_at = now()" if assignments else "updated_at = now()"

        try:
            async with safe_db_conn() as conn:
                row = await conn.fetchrow(
                    f"UPDATE rides SET {set_clause} WHERE id = $1 RETURNING {_COLUMNS}",
                    ride.id, *(_column_value(fields[name]) for name in names),
                )
        except Exception:
            logger.error(f"Failed to update ride: id={ride.id}", exc_info=True)
            AppMetrics.database_error("ride_update")
            raise

        if row is None:
            raise MissingRideError(ride.user_id)
        return row_to_ride(row)
