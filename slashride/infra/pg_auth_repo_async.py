# slashride/infra/pg_auth_repo_async.py
from __future__ import annotations

from slashride.infra.crypto import FernetCrypto
from slashride.infra.db_async import safe_db_conn
from slashride.infra.logging_config import get_logger, mask_user_id
from slashride.infra.metrics import AppMetrics
from slashride.infra.oauth import TokenGrant

logger = get_logger(__name__)


class AsyncPostgresAuthorizationStore:
    """AuthorizationStore backed by the ``authorizations`` table (tokens encrypted)."""

    def __init__(self, crypto: FernetCrypto) -> None:
        self._crypto = crypto

    async def get(self, user_id: str) -> TokenGrant | None:
        try:
            async with safe_db_conn() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT access_token_encrypted, refresh_token_encrypted, expires_at
                    FROM authorizations WHERE user_id = $1
                    """,
                    user_id,
                )
        except Exception:
            logger.error(f"Failed to load authorization: user={mask_user_id(user_id)}", exc_info=True)
            AppMetrics.database_error("authorization_get")
            raise

        if row is None:
            return None

        refresh_blob = row["refresh_token_encrypted"]
        return TokenGrant(
            access_token=self._crypto.decrypt_token(row["access_token_encrypted"], user_id=user_id),
            refresh_token=(
                self._crypto.decrypt_token(refresh_blob, user_id=user_id)
                if refresh_blob is not None else None
            ),
            expires_at=row["expires_at"],
        )

    async def upsert(self, user_id: str, grant: TokenGrant) -> None:
        access_blob = self._crypto.encrypt_token(grant.access_token, user_id=user_id)
        refresh_blob = (
            self._crypto.encrypt_token(grant.refresh_token, user_id=user_id)
            if grant.refresh_token else None
        )
        try:
            async with safe_db_conn() as conn:
                await conn.execute(
                    """
                    INSERT INTO authorizations(
                      user_id, access_token_encrypted, refresh_token_encrypted, expires_at
                    )
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (user_id)
                    DO UPDATE SET
                      access_token_encrypted = EXCLUDED.access_token_encrypted,
                      refresh_token_encrypted = EXCLUDED.refresh_token_encrypted,
                      expires_at = EXCLUDED.expires_at,
                      updated_at = now()
                    """,
                    user_id, access_blob, refresh_blob, grant.expires_at,
                )
        except Exception:
            logger.error(f"Failed to store authorization: user={mask_user_id(user_id)}", exc_info=True)
            AppMetrics.database_error("authorization_upsert")
            raise
