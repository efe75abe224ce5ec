from fastapi import APIRouter, Depends
from typing import List

from storefront.api.deps import get_catalog
from storefront.core.auth import require_session
from storefront.schemas import Message, Product, ProductCreate, ProductUpdate
from storefront.services.catalog import ProductCatalog

router = APIRouter()

@router.get('/products', response_model=List[Product], response_model_exclude_none=True)
def list_products(catalog: ProductCatalog = Depends(get_catalog)):
    return catalog.list_products()

@router.get('/products/{product_id}', response_model=Product, response_model_exclude_none=True)
def get_product(product_id: str, catalog: ProductCatalog = Depends(get_catalog)):
    # record identity or numeric productId
    return catalog.get_product(product_id)

@router.post('/products', response_model=Product, status_code=201, dependencies=[Depends(require_session)])
def create_product(payload: ProductCreate, catalog: ProductCatalog = Depends(get_catalog)):
    return catalog.create_product(payload)

@router.put('/products/{product_id}', response_model=Message, dependencies=[Depends(require_session)])
def update_product(product_id: str, payload: ProductUpdate, catalog: ProductCatalog = Depends(get_catalog)):
    catalog.update_product(product_id, payload)
    return Message(message='Product updated successfully')

@router.delete('/products/{product_id}', response_model=Message, dependencies=[Depends(require_session)])
def delete_product(product_id: str, catalog: ProductCatalog = Depends(get_catalog)):
    catalog.delete_product(product_id)
    return Message(message='Product deleted successfully')
