# Overview: Transaction entry points for callers: single, batch (continue-on-error), dry-run.

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ...validation import CustodyError, InternalError, ValidationError
from .processor import TransactionProcessor
from .requests import TransactionRequest
from .strategies import supported_transaction_types


logger = logging.getLogger(__name__)


class InventoryTransactionService:
    def __init__(self, processor: TransactionProcessor, max_batch: int = 200):
        self.processor = processor
        self.max_batch = max_batch

    def create_transaction(self, request: TransactionRequest) -> dict:
        return self.processor.process_transaction(request)

    def validate_transaction(self, request: TransactionRequest) -> dict:
        return self.processor.validate_transaction(request)

    def get_supported_transaction_types(self, entity_kind: str) -> list[dict]:
        return supported_transaction_types(entity_kind)

    def process_batch(
        self,
        transactions: Iterable[Union[TransactionRequest, dict]],
        *,
        user_id: Optional[int] = None,
    ) -> dict:
        """
        Process transactions in order, one unit of work each.

        A failing line is recorded and skipped; the remaining lines still run.
        Raw dict lines are parsed here so a malformed line is a per-line failure
        rather than a rejected batch.
        """
        transactions = list(transactions)
        if not transactions:
            raise ValidationError("transactions must be a non-empty list", field="transactions")
        if len(transactions) > self.max_batch:
            raise ValidationError(
                f"Batch exceeds maximum of {self.max_batch} transactions", field="transactions"
            )
        if user_id is None and not all(isinstance(line, TransactionRequest) for line in transactions):
            raise ValidationError("user_id is required to parse transaction lines", field="user_id")

        results = []
        failures = []
        for index, line in enumerate(transactions):
            try:
                if isinstance(line, TransactionRequest):
                    request = line
                else:
                    request = TransactionRequest.from_payload(line, user_id)
                result = self.processor.process_transaction(request)
                results.append({"index": index, **result})
            except CustodyError as exc:
                failures.append({"index": index, **exc.to_dict()})
            except SQLAlchemyError:
                # Unit of work already rolled back; keep going with the next line
                logger.exception("Batch line %d failed with a database error", index)
                failures.append({"index": index, **InternalError("Internal error").to_dict()})

        total = len(transactions)
        succeeded = len(results)
        logger.info("Batch processed: %d/%d succeeded, %d failed", succeeded, total, len(failures))

        return {
            "success": not failures,
            "message": f"Processed {succeeded} of {total} transactions",
            "batch": {
                "total_requested": total,
                "successfully_processed": succeeded,
                "failed": len(failures),
            },
            "results": results,
            "failures": failures,
        }
