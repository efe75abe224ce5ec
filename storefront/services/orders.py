"""
Order lifecycle: creation and the pending -> delivered transition.

An order lives in exactly one of two collections: `orders` (pending) or
`delivered`. The store has no cross-collection transaction by default, so the
move is a fixed two-step protocol:

    1. insert the delivered record (same `_id`) into `delivered`
    2. delete the pending record from `orders`

Insert comes first so a crash between the steps leaves two copies, never
zero. If step 2 fails the delivered copy is deleted again (compensation); if
that also fails the order is duplicated and a ConsistencyError is raised and
logged for manual reconciliation. A delete that finds nothing to remove means
the pending record is already gone; the delivered copy is then the only one
and is kept.
Transitions of the same order are serialized in-process by a keyed lock. The
unique `_id` in `delivered` plus the conditional delete keep the move
at-most-once when several processes race.
"""
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Callable, List, Sequence
from bson import ObjectId
from pymongo import DESCENDING
import structlog

from storefront.core.errors import (
    AlreadyDelivered,
    ConsistencyError,
    DuplicateRecord,
    InvalidInput,
    OrderNotFound,
    PersistenceError,
)
from storefront.db.client import DocumentStore, parse_object_id
from storefront.schemas import Customer, DeliveryReceipt, Order, OrderItem, OrderStatus
from storefront.security.utils import now_utc
from storefront.services.catalog import ProductCatalog
from storefront.services.sequence import ORDER, SequenceGenerator
from storefront.utils.locks import KeyedLock

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


class OrderLifecycleManager:
    def __init__(self, store: DocumentStore, catalog: ProductCatalog, sequence: SequenceGenerator,
                 clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.catalog = catalog
        self.sequence = sequence
        self._clock = clock
        self._transitions = KeyedLock()

    # ---------- creation ----------
    def compute_total(self, items: Sequence[OrderItem]) -> float:
        total = Decimal("0")
        for item in items:
            price = self.catalog.price_of(item.product_id)
            if price is None:
                # Unknown products add nothing instead of failing the order.
                logger.warning("order_item_unknown_product", product_id=item.product_id)
                continue
            total += Decimal(str(price)) * item.quantity
        return float(total.quantize(CENT, rounding=ROUND_HALF_UP))

    def create_order(self, customer: Customer, items: Sequence[OrderItem]) -> Order:
        if not items:
            raise InvalidInput("Order must contain at least one item")
        total = self.compute_total(items)
        order_id = self.sequence.next_id(ORDER)
        order = Order(
            order_id=order_id,
            customer=customer,
            items=list(items),
            total=total,
            status=OrderStatus.PENDING,
            created_at=self._clock(),
        )
        with self.store.guard("save order"):
            self.store.orders.insert_one(order.to_document())
        logger.info("order_created", order_id=order.order_id, record_id=order.id, total=order.total)
        return order

    # ---------- reads ----------
    def list_orders(self) -> List[Order]:
        with self.store.guard("fetch orders"):
            docs = list(self.store.orders.find({}, sort=[("createdAt", DESCENDING), ("orderId", DESCENDING)]))
        return [Order.from_document(d) for d in docs]

    def get_order(self, record_id: str) -> Order:
        oid = self._record_id(record_id)
        with self.store.guard("fetch order"):
            doc = self.store.orders.find_one({"_id": oid})
        if not doc:
            raise OrderNotFound()
        return Order.from_document(doc)

    def list_delivered(self) -> List[Order]:
        with self.store.guard("fetch delivered orders"):
            docs = list(self.store.delivered.find({}, sort=[("deliveredAt", DESCENDING), ("orderId", DESCENDING)]))
        return [Order.from_document(d) for d in docs]

    # ---------- delivered transition ----------
    def mark_delivered(self, record_id: str) -> DeliveryReceipt:
        oid = self._record_id(record_id)
        with self._transitions.hold(oid):
            with self.store.guard("fetch order"):
                doc = self.store.orders.find_one({"_id": oid})
            if not doc:
                self._raise_missing(oid)

            order = Order.from_document(doc)
            delivered = order.model_copy(update={
                "status": OrderStatus.DELIVERED.value,
                "delivered_at": self._clock(),
            })

            if self.store.transactions:
                self._move_in_transaction(oid, delivered)
            else:
                self._move(oid, delivered)

        logger.info("order_delivered", order_id=order.order_id, record_id=record_id)
        return DeliveryReceipt(order_id=order.order_id, delivered_at=delivered.delivered_at)

    def _move(self, oid: ObjectId, delivered: Order):
        try:
            with self.store.guard("save delivered order"):
                self.store.delivered.insert_one(delivered.to_document())
        except DuplicateRecord:
            # another transition already inserted this order
            raise AlreadyDelivered(delivered.order_id) from None

        try:
            with self.store.guard("remove order from active orders"):
                removed = self.store.orders.delete_one({"_id": oid}).deleted_count
        except PersistenceError as exc:
            self._compensate(oid, delivered, reason="delete_failed")
            raise PersistenceError("Failed to remove order from active orders") from exc

        if removed == 0:
            # the pending record vanished after it was read; the delivered copy
            # is now the only one, so it stays
            logger.warning("order_active_record_missing", record_id=str(oid), order_id=delivered.order_id)

    def _compensate(self, oid: ObjectId, delivered: Order, reason: str):
        logger.warning("order_delivery_compensating", record_id=str(oid), order_id=delivered.order_id, reason=reason)
        try:
            with self.store.guard("undo delivered order"):
                self.store.delivered.delete_one({"_id": oid})
        except PersistenceError as exc:
            logger.critical(
                "order_state_inconsistent",
                record_id=str(oid),
                order_id=delivered.order_id,
                reason=reason,
                action="manual reconciliation required",
            )
            raise ConsistencyError(record_id=str(oid)) from exc

    def _move_in_transaction(self, oid: ObjectId, delivered: Order):
        def _steps(session):
            self.store.delivered.insert_one(delivered.to_document(), session=session)
            if self.store.orders.delete_one({"_id": oid}, session=session).deleted_count == 0:
                logger.warning("order_active_record_missing", record_id=str(oid), order_id=delivered.order_id)

        try:
            with self.store.guard("move order to delivered"):
                with self.store.client.start_session() as session:
                    session.with_transaction(_steps)
        except DuplicateRecord:
            raise AlreadyDelivered(delivered.order_id) from None

    def _raise_missing(self, oid: ObjectId):
        with self.store.guard("fetch delivered order"):
            done = self.store.delivered.find_one({"_id": oid}, projection={"orderId": 1})
        if done:
            raise AlreadyDelivered(done.get("orderId"))
        raise OrderNotFound()

    @staticmethod
    def _record_id(record_id: str) -> ObjectId:
        oid = parse_object_id(record_id)
        if oid is None:
            raise InvalidInput("Invalid order ID format")
        return oid
