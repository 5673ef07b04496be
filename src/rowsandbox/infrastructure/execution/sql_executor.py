"""Reference executor applying change DTOs on a SQLAlchemy async engine."""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from rowsandbox.core.logging import get_logger
from rowsandbox.infrastructure.execution.base import ChangeExecutor
from rowsandbox.infrastructure.execution.statements import StatementError, build_statement
from rowsandbox.infrastructure.wire.dto import ApplyResult, ChangeDto, FailedChange

logger = get_logger(__name__)


class SqlAlchemyChangeExecutor(ChangeExecutor):
    """Applies changes statement by statement.

    In transactional mode the first failure rolls everything back and no
    change is reported as applied. Otherwise each change commits on its own
    and failures are collected.
    """

    def __init__(self, engine: AsyncEngine, read_only: bool = False) -> None:
        self.engine = engine
        self.read_only = read_only

    async def _apply_one(self, conn: AsyncConnection, change: ChangeDto) -> None:
        result = await conn.execute(build_statement(change))
        if result.rowcount == 0:
            raise StatementError(
                f"{change.change_type.capitalize()} affected 0 rows (possible conflict)"
            )

    async def apply(
        self, session_id: str, changes: list[ChangeDto], use_transaction: bool
    ) -> ApplyResult:
        if self.read_only:
            return ApplyResult(success=False, error="Operation blocked: read-only mode")

        if use_transaction:
            return await self._apply_atomic(session_id, changes)
        return await self._apply_each(session_id, changes)

    async def _apply_atomic(self, session_id: str, changes: list[ChangeDto]) -> ApplyResult:
        async with self.engine.connect() as conn:
            trans = await conn.begin()
            for idx, change in enumerate(changes):
                try:
                    await self._apply_one(conn, change)
                except (SQLAlchemyError, StatementError) as e:
                    await trans.rollback()
                    logger.warning(
                        "Change failed, transaction rolled back",
                        session_id=session_id,
                        index=idx,
                        error=str(e),
                    )
                    return ApplyResult(
                        success=False,
                        applied_count=0,
                        error=f"Change {idx + 1} failed: {e}. Transaction rolled back.",
                        failed_changes=[FailedChange(index=idx, error=str(e))],
                    )
            await trans.commit()

        logger.info("Changes applied", session_id=session_id, applied=len(changes), atomic=True)
        return ApplyResult(success=True, applied_count=len(changes))

    async def _apply_each(self, session_id: str, changes: list[ChangeDto]) -> ApplyResult:
        applied = 0
        failed: list[FailedChange] = []
        for idx, change in enumerate(changes):
            try:
                async with self.engine.begin() as conn:
                    await self._apply_one(conn, change)
                applied += 1
            except (SQLAlchemyError, StatementError) as e:
                logger.warning("Change failed", session_id=session_id, index=idx, error=str(e))
                failed.append(FailedChange(index=idx, error=str(e)))

        logger.info(
            "Changes applied",
            session_id=session_id,
            applied=applied,
            failed=len(failed),
            atomic=False,
        )
        return ApplyResult(
            success=not failed,
            applied_count=applied,
            error=f"{len(failed)} change(s) failed" if failed else None,
            failed_changes=failed,
        )
