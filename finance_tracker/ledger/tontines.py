"""
Tontines (rotating savings groups) and their transactions.

A member pays `contribution_amount` each round and, on their turn,
receives the whole pot: contribution_amount * participant_count.
Transactions are always attached to an existing tontine.
"""

from datetime import date
from typing import Optional

from pydantic import ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.auth.errors import translate_storage_error, translate_validation_error
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import (
    Tontine,
    TontineFrequency,
    TontineTransaction,
    TontineTransactionStatus,
    TontineTransactionType,
)
from finance_tracker.models.results import AppError, Result
from finance_tracker.services.storage import StorageError, TableStorageInterface


TONTINES_TABLE = "tontines"
TRANSACTIONS_TABLE = "transactions_tontine"


class TontineService:

    def __init__(
        self,
        storage: TableStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def create_tontine(
        self,
        user_id: str,
        name: str,
        contribution_amount: int,
        participant_count: int,
        frequency: TontineFrequency = TontineFrequency.MONTHLY,
        start_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Result[Tontine]:
        try:
            tontine = Tontine(
                user_id=user_id,
                name=name,
                contribution_amount=contribution_amount,
                participant_count=participant_count,
                frequency=frequency,
                start_date=start_date,
                description=description or None,
            )
        except ValidationError as e:
            return Result.failure(translate_validation_error(e, "Tontine", Tontine))
        try:
            rows = await self._storage.insert(TONTINES_TABLE, [tontine.to_row()])
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Tontine"))
        return Result.success(Tontine.from_row(rows[0]) if rows else tontine)

    async def list_tontines(self, user_id: str) -> Result[list[Tontine]]:
        try:
            rows = await self._storage.select(
                TONTINES_TABLE, {"user_id": user_id}, order_by="created_at", descending=True,
            )
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Tontine"))
        return Result.success([Tontine.from_row(row) for row in rows])

    async def list_transactions(
        self,
        user_id: str,
        tontine_id: Optional[str] = None,
    ) -> Result[list[TontineTransaction]]:
        """The user's tontine transactions, most recent first."""
        filters = {"user_id": user_id}
        if tontine_id:
            filters["tontine_id"] = tontine_id
        try:
            rows = await self._storage.select(
                TRANSACTIONS_TABLE, filters, order_by="date_transaction", descending=True,
            )
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Tontine transaction"))
        return Result.success([TontineTransaction.from_row(row) for row in rows])

    async def _record(
        self,
        tontine: Tontine,
        transaction_type: TontineTransactionType,
        amount: int,
        status: TontineTransactionStatus,
        on: Optional[date],
    ) -> Result[TontineTransaction]:
        if tontine.id is None:
            return Result.failure(AppError.not_found("Tontine"))
        try:
            # The row must still exist; the transaction would dangle otherwise.
            await self._storage.select_one(TONTINES_TABLE, {"id": tontine.id})
            transaction = TontineTransaction(
                tontine_id=tontine.id,
                user_id=tontine.user_id,
                amount=amount,
                type=transaction_type,
                status=status,
                date=on or date.today(),
            )
            rows = await self._storage.insert(TRANSACTIONS_TABLE, [transaction.to_row()])
        except StorageError as e:
            return Result.failure(translate_storage_error(e, "Tontine"))

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.tontine_transaction(
                tontine.id, tontine.user_id, transaction_type.value, amount,
            ))
        return Result.success(TontineTransaction.from_row(rows[0]) if rows else transaction)

    async def contribute(self, tontine: Tontine, on: Optional[date] = None) -> Result[TontineTransaction]:
        """Record this round's contribution, marked paid."""
        return await self._record(
            tontine,
            TontineTransactionType.CONTRIBUTION,
            tontine.contribution_amount,
            TontineTransactionStatus.PAID,
            on,
        )

    async def receive_payout(self, tontine: Tontine, on: Optional[date] = None) -> Result[TontineTransaction]:
        """Record receiving the pot, marked received."""
        return await self._record(
            tontine,
            TontineTransactionType.PAYOUT,
            tontine.pot_amount,
            TontineTransactionStatus.RECEIVED,
            on,
        )
