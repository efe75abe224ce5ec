import threading
from typing import Callable, List, Optional
from datetime import datetime
from pymongo import ASCENDING, ReturnDocument
import structlog

from storefront.core.errors import InvalidInput, PersistenceError, ProductNotFound
from storefront.db.client import DocumentStore, parse_object_id
from storefront.schemas import Product, ProductCreate, ProductUpdate
from storefront.security.utils import now_utc
from storefront.services.sequence import PRODUCT, SequenceGenerator

logger = structlog.get_logger(__name__)

# Seeded into an empty products collection on first boot
DEFAULT_PRODUCTS = [
    {"productId": 1, "name": "Chocolate Chip Cookies", "description": "Freshly baked cookies with premium chocolate chips", "price": 8.99, "image": "🍪", "category": "Cookies"},
    {"productId": 2, "name": "Blueberry Muffins", "description": "Moist muffins bursting with fresh blueberries", "price": 6.99, "image": "🧁", "category": "Muffins"},
    {"productId": 3, "name": "Croissant", "description": "Buttery, flaky French croissant", "price": 4.99, "image": "🥐", "category": "Pastries"},
    {"productId": 4, "name": "Chocolate Cake", "description": "Rich chocolate layer cake with buttercream frosting", "price": 24.99, "image": "🎂", "category": "Cakes"},
    {"productId": 5, "name": "Apple Pie", "description": "Homemade apple pie with cinnamon", "price": 18.99, "image": "🥧", "category": "Pies"},
    {"productId": 6, "name": "Bagels", "description": "Fresh New York style bagels (pack of 6)", "price": 7.99, "image": "🥯", "category": "Breads"},
    {"productId": 7, "name": "Cinnamon Roll", "description": "Warm cinnamon rolls with cream cheese glaze", "price": 5.99, "image": "🍩", "category": "Pastries"},
    {"productId": 8, "name": "Strawberry Tart", "description": "Delicate tart with fresh strawberries", "price": 12.99, "image": "🍓", "category": "Tarts"},
]


class CatalogCache:
    """In-memory mirror of the products collection.

    Non-authoritative: the store stays the source of truth and prices used at
    checkout are never read from here.
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock
        self._lock = threading.Lock()
        self._products: List[Product] = []

    def load(self, store: DocumentStore) -> int:
        with store.guard("load products"):
            docs = list(store.products.find({}).sort("productId", ASCENDING))
        if docs:
            products = [Product.from_document(d) for d in docs]
            logger.info("catalog_loaded", products=len(products))
        else:
            created_at = self._clock()
            products = [Product(created_at=created_at, **p) for p in DEFAULT_PRODUCTS]
            with store.guard("seed default products"):
                store.products.insert_many([p.to_document() for p in products])
            logger.info("catalog_seeded", products=len(products))
        with self._lock:
            self._products = products
        return len(products)

    def append(self, product: Product):
        with self._lock:
            self._products.append(product)

    def replace(self, product: Product):
        with self._lock:
            self._products = [product if p.id == product.id else p for p in self._products]

    def discard(self, record_id: str):
        with self._lock:
            self._products = [p for p in self._products if p.id != record_id]

    def snapshot(self) -> List[Product]:
        with self._lock:
            return list(self._products)

    def __len__(self) -> int:
        with self._lock:
            return len(self._products)


class ProductCatalog:
    def __init__(self, store: DocumentStore, cache: CatalogCache, sequence: SequenceGenerator,
                 default_image: str = "/images/default.png", clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.cache = cache
        self.sequence = sequence
        self.default_image = default_image
        self._clock = clock

    def list_products(self) -> List[Product]:
        try:
            with self.store.guard("fetch products"):
                docs = list(self.store.products.find({}).sort("productId", ASCENDING))
        except PersistenceError:
            logger.warning("catalog_served_from_cache", products=len(self.cache))
            return self.cache.snapshot()
        return [Product.from_document(d) for d in docs]

    def get_product(self, ident: str) -> Product:
        oid = parse_object_id(ident)
        if oid is not None:
            query = {"_id": oid}
        elif ident.isascii() and ident.isdigit():
            query = {"productId": int(ident)}
        else:
            raise ProductNotFound()
        with self.store.guard("fetch product"):
            doc = self.store.products.find_one(query)
        if not doc:
            raise ProductNotFound()
        return Product.from_document(doc)

    def price_of(self, product_id: int) -> Optional[float]:
        """Current price straight from the store, None if the product is gone."""
        with self.store.guard("fetch product price"):
            doc = self.store.products.find_one({"productId": product_id}, projection={"price": 1})
        if not doc:
            return None
        return float(doc.get("price") or 0)

    def create_product(self, payload: ProductCreate) -> Product:
        product_id = self.sequence.next_id(PRODUCT)
        product = Product(
            product_id=product_id,
            name=payload.name,
            description=payload.description,
            price=payload.price,
            image=payload.image or self.default_image,
            category=payload.category,
            created_at=self._clock(),
        )
        with self.store.guard("save product"):
            self.store.products.insert_one(product.to_document())
        self.cache.append(product)
        logger.info("product_created", product_id=product.product_id, record_id=product.id)
        return product

    def update_product(self, record_id: str, payload: ProductUpdate) -> Product:
        oid = self._record_id(record_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        with self.store.guard("update product"):
            if changes:
                doc = self.store.products.find_one_and_update(
                    {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
                )
            else:
                doc = self.store.products.find_one({"_id": oid})
        if not doc:
            raise ProductNotFound()
        product = Product.from_document(doc)
        self.cache.replace(product)
        logger.info("product_updated", product_id=product.product_id, fields=sorted(changes))
        return product

    def delete_product(self, record_id: str):
        oid = self._record_id(record_id)
        with self.store.guard("delete product"):
            result = self.store.products.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise ProductNotFound()
        self.cache.discard(record_id)
        logger.info("product_deleted", record_id=record_id)

    @staticmethod
    def _record_id(record_id: str):
        oid = parse_object_id(record_id)
        if oid is None:
            raise InvalidInput("Invalid product ID format")
        return oid
