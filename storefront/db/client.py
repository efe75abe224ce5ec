from contextlib import contextmanager
from typing import Iterator
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError
import structlog

from storefront.core.config import Settings
from storefront.core.errors import DuplicateRecord, PersistenceError

logger = structlog.get_logger(__name__)

PRODUCTS = "products"
ORDERS = "orders"
DELIVERED = "delivered"
COUNTERS = "counters"

def parse_object_id(value: str) -> ObjectId | None:
    """Record identity from its 24-hex form, or None if it is not one."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None

def create_client(settings: Settings) -> MongoClient:
    return MongoClient(
        settings.MONGODB_URI,
        serverSelectionTimeoutMS=settings.MONGODB_TIMEOUT_MS,
        timeoutMS=settings.MONGODB_TIMEOUT_MS,
        tz_aware=True,
    )

class DocumentStore:
    """The three storefront collections plus the id counters.

    Every call into pymongo should run inside `guard()` so that driver errors
    reach the rest of the service as PersistenceError and never leak.
    """

    def __init__(self, client: MongoClient, db_name: str, transactions: bool = False):
        self.client = client
        self.db = client[db_name]
        self.products = self.db[PRODUCTS]
        self.orders = self.db[ORDERS]
        self.delivered = self.db[DELIVERED]
        self.counters = self.db[COUNTERS]
        self.transactions = transactions

    @classmethod
    def from_settings(cls, settings: Settings, client: MongoClient | None = None) -> "DocumentStore":
        return cls(client or create_client(settings), settings.MONGODB_DB, settings.MONGODB_TRANSACTIONS)

    @contextmanager
    def guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except DuplicateKeyError as exc:
            logger.warning("store_duplicate_key", action=action, error=str(exc))
            raise DuplicateRecord(f"Failed to {action}: record already exists") from exc
        except PyMongoError as exc:
            logger.error("store_operation_failed", action=action, error=str(exc))
            raise PersistenceError(f"Failed to {action}") from exc

    def ensure_indexes(self):
        with self.guard("create indexes"):
            self.products.create_index([("productId", ASCENDING)], unique=True)
            self.orders.create_index([("orderId", ASCENDING)], unique=True)
            self.orders.create_index([("createdAt", DESCENDING)])
            self.delivered.create_index([("orderId", DESCENDING)])
            self.delivered.create_index([("deliveredAt", DESCENDING)])

    def close(self):
        self.client.close()
