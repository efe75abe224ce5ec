from fastapi import Request

from storefront.core.config import Settings
from storefront.security.utils import AdminAccount
from storefront.services.catalog import ProductCatalog
from storefront.services.orders import OrderLifecycleManager
from storefront.store.session_store import SessionStore

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_catalog(request: Request) -> ProductCatalog:
    return request.app.state.catalog

def get_orders(request: Request) -> OrderLifecycleManager:
    return request.app.state.orders

def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions

def get_admin(request: Request) -> AdminAccount:
    return request.app.state.admin
