"""Price Consolidation Ledger.

The single entry point for merging a price observation into a catalog
entry. Supplier ledgers are keyed by supplier fiscal identity, their price
history is append-only, and the derived prices (current, average, best) are
recomputed from the full history after every append.

Concurrent consolidations into the same ledger are detected by the ledger's
version column (StaleDataError) or by the unique keys on ledgers, history
sequences and source invoice lines (IntegrityError). Either way the whole
consolidation is retried in a fresh transaction, a bounded number of times.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import uuid
import structlog

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from catalog_matching.config import matching_settings
from catalog_matching.db.base import get_session_maker, utcnow
from catalog_matching.db.models.catalog_entry import CatalogEntry
from catalog_matching.db.models.price_history import PriceHistory
from catalog_matching.db.models.supplier_ledger import SupplierLedger
from catalog_matching.db.operations import get_catalog_entry
from catalog_matching.errors.exceptions import ConsolidationConflictError, ValidationError
from catalog_matching.models.line_item import InvoiceReference, PriceObservation, SupplierIdentity

logger = structlog.get_logger(__name__)

CONFLICT_ERRORS = (StaleDataError, IntegrityError)

_CENT = Decimal("0.01")


def recompute_ledger_statistics(ledger: SupplierLedger) -> None:
    """Recompute the derived prices of a ledger from its full history.

    current_price: price of the latest invoice date, ties broken by the
        highest sequence (the later append)
    average_price: arithmetic mean rounded half-up to 2 decimals
    best_price: minimum price
    """
    history = list(ledger.price_history)
    if not history:
        ledger.current_price = None
        ledger.average_price = None
        ledger.best_price = None
        return

    latest = max(history, key=lambda r: (r.source_invoice_date, r.sequence))
    prices = [Decimal(r.price) for r in history]

    ledger.current_price = latest.price
    ledger.average_price = (sum(prices) / len(prices)).quantize(_CENT, rounding=ROUND_HALF_UP)
    ledger.best_price = min(prices)


def append_price_entry(
    entry: CatalogEntry,
    supplier: SupplierIdentity,
    observation: PriceObservation,
    invoice_ref: InvoiceReference,
    line_number: Optional[int] = None,
) -> SupplierLedger:
    """Append one price observation to an entry inside the current transaction.

    Locates the supplier ledger by fiscal id (creating it on first sight),
    appends a new history record and recomputes the ledger's derived prices.
    Prior records are never touched. An invoice line already recorded in
    the ledger is not appended again. Nothing is flushed; the caller owns
    the transaction.

    Args:
        entry: Catalog entry with supplier ledgers loaded
        supplier: Supplier legal identity
        observation: Observed price (currency defaults to EUR, quantity to 1)
        invoice_ref: Invoice the price was observed on
        line_number: Invoice line number, for provenance and deduplication

    Returns:
        The supplier ledger that received (or already held) the record

    Raises:
        ValidationError: If the price is negative
    """
    if observation.price < 0:
        raise ValidationError(
            f"Negative price {observation.price} cannot be consolidated",
            details={"entry_id": str(entry.id), "supplier_fiscal_id": supplier.fiscal_id},
        )

    ledger = entry.ledger_for(supplier.fiscal_id)
    if ledger is None:
        ledger = SupplierLedger(
            supplier_fiscal_id=supplier.fiscal_id,
            supplier_name=supplier.name,
            supplier_id=supplier.supplier_id,
            price_history=[],
        )
        entry.supplier_ledgers.append(ledger)
    else:
        if supplier.name:
            ledger.supplier_name = supplier.name
        if supplier.supplier_id:
            ledger.supplier_id = supplier.supplier_id

    if line_number is not None and any(
        r.source_invoice_id == invoice_ref.invoice_id and r.source_line_number == line_number
        for r in ledger.price_history
    ):
        logger.info(
            "price_entry_already_recorded",
            entry_id=str(entry.id),
            supplier_fiscal_id=supplier.fiscal_id,
            invoice_id=invoice_ref.invoice_id,
            line_number=line_number,
        )
        return ledger

    next_sequence = max((r.sequence for r in ledger.price_history), default=0) + 1
    ledger.price_history.append(
        PriceHistory(
            sequence=next_sequence,
            price=observation.price,
            currency=observation.currency or matching_settings.default_currency,
            quantity=observation.quantity or Decimal("1"),
            unit_of_measure=observation.unit_of_measure,
            source_invoice_id=invoice_ref.invoice_id,
            source_invoice_number=invoice_ref.invoice_number,
            source_invoice_date=invoice_ref.invoice_date,
            source_line_number=line_number,
            notes=observation.notes,
        )
    )

    recompute_ledger_statistics(ledger)
    # Always dirty the ledger row so the version check runs on every append
    ledger.last_updated_at = utcnow()
    return ledger


class PriceConsolidationLedger:
    """Consolidates price observations into catalog entries with bounded retry.

    Attributes:
        max_attempts: Attempts before ConsolidationConflictError is raised
        wait_max: Upper bound (seconds) of the randomized wait between attempts
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        max_attempts: Optional[int] = None,
        wait_max: Optional[float] = None,
    ):
        self._session_maker = session_maker
        self.max_attempts = max_attempts or matching_settings.consolidation_max_attempts
        self.wait_max = wait_max if wait_max is not None else matching_settings.retry_wait_max

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    async def add_price_entry(
        self,
        tenant_id: uuid.UUID,
        entry_id: uuid.UUID,
        supplier: SupplierIdentity,
        observation: PriceObservation,
        invoice_ref: InvoiceReference,
        line_number: Optional[int] = None,
    ) -> CatalogEntry:
        """Consolidate one price observation into a catalog entry.

        Each attempt reloads the entry in a new transaction and commits the
        appended record together with the recomputed derived prices.

        Args:
            tenant_id: Tenant owning the entry
            entry_id: Catalog entry receiving the price
            supplier: Supplier legal identity
            observation: Observed price
            invoice_ref: Invoice the price was observed on
            line_number: Invoice line number, for provenance

        Returns:
            The catalog entry as committed

        Raises:
            CatalogEntryNotFoundError: If the entry does not exist for the tenant
            ValidationError: If the price is negative
            ConsolidationConflictError: If conflicts persisted through every attempt
        """
        log = logger.bind(
            tenant_id=str(tenant_id),
            entry_id=str(entry_id),
            supplier_fiscal_id=supplier.fiscal_id,
            invoice_id=invoice_ref.invoice_id,
        )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_random(0, self.wait_max),
                retry=retry_if_exception_type(CONFLICT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        log.info("consolidation_retry", attempt=attempt_number)
                    entry = await self._consolidate(
                        tenant_id, entry_id, supplier, observation, invoice_ref, line_number
                    )
        except CONFLICT_ERRORS as e:
            log.error(
                "consolidation_conflict_exhausted",
                attempts=self.max_attempts,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ConsolidationConflictError(
                f"Price for entry {entry_id} not consolidated after {self.max_attempts} attempts",
                details={
                    "tenant_id": str(tenant_id),
                    "entry_id": str(entry_id),
                    "supplier_fiscal_id": supplier.fiscal_id,
                    "invoice_id": invoice_ref.invoice_id,
                },
            ) from e

        log.info("price_consolidated", price=str(observation.price))
        return entry

    async def _consolidate(
        self,
        tenant_id: uuid.UUID,
        entry_id: uuid.UUID,
        supplier: SupplierIdentity,
        observation: PriceObservation,
        invoice_ref: InvoiceReference,
        line_number: Optional[int],
    ) -> CatalogEntry:
        async with self.session_maker() as session:
            async with session.begin():
                entry = await get_catalog_entry(session, tenant_id, entry_id)
                append_price_entry(entry, supplier, observation, invoice_ref, line_number)
            return entry
