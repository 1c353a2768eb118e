"""
Payment intent persistence.

``IntentStore`` is the interface the checkout flow and the admin routes depend
on. ``SqlIntentStore`` is the durable adapter backed by the app database;
``InMemoryIntentStore`` keeps intents in process memory.
"""
from __future__ import annotations

import logging

from sqlalchemy import func

from pix_checkout.config import MISSING_API_KEY_WARNING, Settings
from pix_checkout.database import SessionLocal
from pix_checkout.errors import ConfigurationError
from pix_checkout.models import PaymentIntent, generate_intent_id, parse_amount

logger = logging.getLogger(__name__)


class IntentStore:
    """Ordered collection of payment intents, newest first."""

    def create(self, intent: PaymentIntent) -> PaymentIntent:
        raise NotImplementedError

    def list(self) -> list[PaymentIntent]:
        raise NotImplementedError

    def find_by_id(self, intent_id: str) -> PaymentIntent | None:
        raise NotImplementedError

    def delete(self, intent_id: str) -> None:
        raise NotImplementedError

    def update_status(self, intent_id: str, status: str) -> bool:
        raise NotImplementedError


class InMemoryIntentStore(IntentStore):

    def __init__(self, intents=None):
        self._intents: list[PaymentIntent] = list(intents or [])

    def create(self, intent):
        self._intents.insert(0, intent)
        return intent

    def list(self):
        return list(self._intents)

    def find_by_id(self, intent_id):
        for intent in self._intents:
            if intent.id == intent_id:
                return intent
        return None

    def delete(self, intent_id):
        self._intents = [i for i in self._intents if i.id != intent_id]

    def update_status(self, intent_id, status):
        intent = self.find_by_id(intent_id)
        if intent is None:
            return False
        return intent.settle(status)


class SqlIntentStore(IntentStore):

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def create(self, intent):
        db = self._session_factory()
        try:
            last = db.query(func.max(PaymentIntent.seq)).scalar() or 0
            intent.seq = last + 1
            db.add(intent)
            db.commit()
            return intent
        finally:
            db.close()

    def list(self):
        db = self._session_factory()
        try:
            return db.query(PaymentIntent).order_by(PaymentIntent.seq.desc()).all()
        finally:
            db.close()

    def find_by_id(self, intent_id):
        db = self._session_factory()
        try:
            return db.get(PaymentIntent, intent_id)
        finally:
            db.close()

    def delete(self, intent_id):
        db = self._session_factory()
        try:
            intent = db.get(PaymentIntent, intent_id)
            if intent is not None:
                db.delete(intent)
                db.commit()
        finally:
            db.close()

    def update_status(self, intent_id, status):
        db = self._session_factory()
        try:
            intent = db.get(PaymentIntent, intent_id)
            if intent is None or not intent.settle(status):
                return False
            db.commit()
            return True
        finally:
            db.close()


def _unused_id(store: IntentStore) -> str:
    while True:
        intent_id = generate_intent_id()
        if store.find_by_id(intent_id) is None:
            return intent_id


def create_intent(store: IntentStore, settings: Settings, amount, description: str | None = None) -> PaymentIntent:
    """Validate and persist a new pending intent.

    Raises ConfigurationError when no gateway API key is configured and
    ValidationError when the amount is below the gateway minimum. Nothing is
    stored in either case.
    """
    if not settings.api_key_configured:
        raise ConfigurationError(MISSING_API_KEY_WARNING)

    value = parse_amount(amount)
    intent = PaymentIntent.new(value, description, intent_id=_unused_id(store))
    store.create(intent)
    logger.info("Created payment intent %s for R$ %s", intent.id, intent.amount)
    return intent
