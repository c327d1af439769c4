"""Shared route dependencies"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..core.config import settings
from ..core.session import SessionManager, ShopperSession
from ..services.commerce_client import CommerceClient

# Initialize services (replaced through app.dependency_overrides in tests)
commerce_client: Optional[CommerceClient] = None
session_manager: Optional[SessionManager] = None


def get_commerce_client() -> CommerceClient:
    """Get or create commerce client"""
    global commerce_client
    if commerce_client is None:
        commerce_client = CommerceClient(
            base_url=settings.api_base_url,
            auth_token=settings.api_token,
            timeout=settings.request_timeout,
        )
    return commerce_client


def get_session_manager() -> SessionManager:
    """Get or create session manager"""
    global session_manager
    if session_manager is None:
        session_manager = SessionManager(client=get_commerce_client(), settings=settings)
    return session_manager


def get_shopper_session(
    x_session_id: Optional[str] = Header(None),
    manager: SessionManager = Depends(get_session_manager),
) -> ShopperSession:
    """Resolve the shopper session from the X-Session-Id header"""
    try:
        return manager.get_or_create_session(x_session_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def close_clients() -> None:
    """Close the shared commerce client"""
    global commerce_client, session_manager
    if commerce_client is not None:
        await commerce_client.close()
    commerce_client = None
    session_manager = None
