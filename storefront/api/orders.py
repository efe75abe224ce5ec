from fastapi import APIRouter, Depends
from typing import List

from storefront.api.deps import get_orders
from storefront.core.auth import require_session
from storefront.schemas import DeliveryReceipt, Order, OrderCreate
from storefront.services.orders import OrderLifecycleManager

router = APIRouter()

# Checkout stays open to anonymous customers
@router.post("/orders", response_model=Order, status_code=201, response_model_exclude_none=True)
def create_order(payload: OrderCreate, orders: OrderLifecycleManager = Depends(get_orders)):
    return orders.create_order(payload.customer, payload.items)

@router.get("/orders", response_model=List[Order], response_model_exclude_none=True,
            dependencies=[Depends(require_session)])
def list_orders(orders: OrderLifecycleManager = Depends(get_orders)):
    return orders.list_orders()

@router.get("/orders/{order_id}", response_model=Order, response_model_exclude_none=True,
            dependencies=[Depends(require_session)])
def get_order(order_id: str, orders: OrderLifecycleManager = Depends(get_orders)):
    return orders.get_order(order_id)

@router.post("/orders/{order_id}/deliver", response_model=DeliveryReceipt,
             dependencies=[Depends(require_session)])
def mark_delivered(order_id: str, orders: OrderLifecycleManager = Depends(get_orders)):
    return orders.mark_delivered(order_id)

@router.get("/delivered", response_model=List[Order], dependencies=[Depends(require_session)])
def list_delivered(orders: OrderLifecycleManager = Depends(get_orders)):
    return orders.list_delivered()
