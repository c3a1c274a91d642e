# Overview: Service graph wired once per application and shared by routes and CLI commands.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .services.assignment_repository import AssignmentRepository
from .services.assignment_service import AssignmentService
from .services.catalog_provider import CatalogProvider
from .services.consolidation_service import ConsolidationWorkflow
from .services.date_service import InventoryDateService
from .services.ledger_repository import LedgerRepository
from .services.status_history_service import StatusHistoryService
from .services.transactions import InventoryTransactionService, TransactionProcessor


EXTENSION_KEY = "custody"


@dataclass
class ServiceContainer:
    date_service: InventoryDateService
    ledger: LedgerRepository
    assignments: AssignmentRepository
    catalog: CatalogProvider
    history: StatusHistoryService
    processor: TransactionProcessor
    consolidation: ConsolidationWorkflow
    transactions: InventoryTransactionService
    assignment_service: AssignmentService


def build_services(config, *, clock=None) -> ServiceContainer:
    """
    Construct the service graph from a config mapping.

    clock (returns a datetime) pins "now" for the date service; tests use it
    to control the business date.
    """
    date_service = InventoryDateService(
        utc_offset_hours=int(config.get("BUSINESS_UTC_OFFSET_HOURS", -5)),
        clock=clock,
    )
    ledger = LedgerRepository(clock=date_service.now_utc)
    assignments = AssignmentRepository()
    catalog = CatalogProvider()
    history = StatusHistoryService(date_service)
    processor = TransactionProcessor(ledger, assignments)
    consolidation = ConsolidationWorkflow(assignments, ledger, catalog, history, date_service)
    transactions = InventoryTransactionService(
        processor, max_batch=int(config.get("BATCH_MAX_TRANSACTIONS", 200))
    )
    assignment_service = AssignmentService(
        assignments,
        ledger,
        catalog,
        history,
        date_service,
        processor,
        consolidation,
        skip_weekends_default=bool(config.get("SKIP_WEEKENDS_DEFAULT", False)),
    )
    return ServiceContainer(
        date_service=date_service,
        ledger=ledger,
        assignments=assignments,
        catalog=catalog,
        history=history,
        processor=processor,
        consolidation=consolidation,
        transactions=transactions,
        assignment_service=assignment_service,
    )


def init_services(app, *, clock=None) -> ServiceContainer:
    services = build_services(app.config, clock=clock)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> ServiceContainer:
    return current_app.extensions[EXTENSION_KEY]
