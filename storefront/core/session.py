"""Shopper sessions: one cart, pricing session and checkout per shopper"""

import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import Settings
from .storage import DurableStore, FileStore, MemoryStore
from ..database.carts import CartStore
from ..services.checkout import CheckoutOrchestrator
from ..services.commerce_client import CommerceClient
from ..services.pricing import PricingSession
from ..services.shipping_advisor import ShippingAdvisor

logger = logging.getLogger(__name__)


@dataclass
class ShopperSession:
    """Everything the core holds for one shopper"""
    session_id: str
    created_at: datetime
    updated_at: datetime
    store: DurableStore
    cart: CartStore
    pricing: PricingSession
    advisor: ShippingAdvisor
    checkout: CheckoutOrchestrator
    notifications: list = field(default_factory=list)

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def pop_notification(self) -> Optional[str]:
        """Latest user-facing cart message, if any"""
        if not self.notifications:
            return None
        message = self.notifications[-1].message
        self.notifications.clear()
        return message


class SessionManager:
    """Manages shopper sessions"""

    def __init__(
        self,
        client: CommerceClient,
        settings: Settings,
        store_factory: Optional[Callable[[str], DurableStore]] = None,
    ):
        self._client = client
        self._settings = settings
        self._store_factory = store_factory or self._default_store_factory
        self.sessions: dict[str, ShopperSession] = {}

    def _default_store_factory(self, session_id: str) -> DurableStore:
        if self._settings.storage_dir:
            return FileStore.for_session(self._settings.storage_dir, session_id)
        return MemoryStore()

    def _build(self, session_id: str) -> ShopperSession:
        now = datetime.now(timezone.utc)
        store = self._store_factory(session_id)
        cart = CartStore(store)
        pricing = PricingSession(cart, self._client, self._settings)
        session = ShopperSession(
            session_id=session_id,
            created_at=now,
            updated_at=now,
            store=store,
            cart=cart,
            pricing=pricing,
            advisor=ShippingAdvisor(self._client, self._settings),
            checkout=CheckoutOrchestrator(cart, pricing, self._client, store, self._settings),
        )
        cart.subscribe(session.notifications.append)
        self.sessions[session_id] = session
        return session

    def create_session(self) -> ShopperSession:
        """Create a new session"""
        session = self._build(uuid.uuid4().hex)
        logger.info(f"Created shopper session {session.session_id}")
        return session

    def get_session(self, session_id: str) -> Optional[ShopperSession]:
        """Get session by ID"""
        return self.sessions.get(session_id)

    def get_or_create_session(self, session_id: Optional[str] = None) -> ShopperSession:
        """
        Get an existing session or create one.

        A known id that is not in memory (e.g. after a restart) is rebuilt
        from its durable store, which restores the cart.
        """
        if session_id:
            session = self.sessions.get(session_id)
            if session is None:
                session = self._build(session_id)
                logger.info(f"Restored shopper session {session_id} with {session.cart.count} cart entries")
            session.touch()
            return session
        return self.create_session()

    def delete_session(self, session_id: str) -> bool:
        """Delete a session"""
        if session_id in self.sessions:
            del self.sessions[session_id]
            return True
        return False

    def cleanup_old_sessions(self, max_age_hours: Optional[int] = None) -> int:
        """Drop in-memory sessions idle for longer than max_age_hours"""
        max_age_hours = max_age_hours or self._settings.session_max_age_hours
        now = datetime.now(timezone.utc)
        old_sessions = [
            sid for sid, session in self.sessions.items()
            if (now - session.updated_at).total_seconds() > max_age_hours * 3600
        ]
        for sid in old_sessions:
            del self.sessions[sid]
        return len(old_sessions)
