import secrets
import string
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy import Column, String, Integer, Numeric, DateTime

from pix_checkout.database import Base
from pix_checkout.errors import ValidationError

MIN_AMOUNT = Decimal("10.00")
MAX_AMOUNT = Decimal("9999999999.99")  # Numeric(12, 2)
DEFAULT_DESCRIPTION = "Pagamento PIX"
TERMINAL_STATUSES = frozenset({"completed", "expired", "cancelled"})

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 13


def generate_intent_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def parse_amount(value) -> Decimal:
    """Coerce an operator-entered amount to BRL cents, enforcing the gateway minimum."""
    try:
        amount = Decimal(str(value).strip().replace(",", "."))
        if not amount.is_finite():
            raise ValidationError("Valor inválido.")
        amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError("Valor inválido.") from e
    if amount > MAX_AMOUNT:
        raise ValidationError(f"O valor máximo é R$ {MAX_AMOUNT}")
    if amount < MIN_AMOUNT:
        raise ValidationError(f"O valor mínimo para PIX é R$ {MIN_AMOUNT}")
    return amount


class PaymentIntent(Base):
    __tablename__ = "payment_intents"

    id = Column(String, primary_key=True)          # also sent as the gateway external_id
    seq = Column(Integer, index=True)              # creation order, newest is highest
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False)        # pending | completed | expired | cancelled

    @classmethod
    def new(cls, amount, description=None, intent_id=None):
        return cls(
            id=intent_id or generate_intent_id(),
            amount=parse_amount(amount),
            description=(description or "").strip() or DEFAULT_DESCRIPTION,
            created_at=datetime.now(timezone.utc),
            status="pending",
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def settle(self, status: str) -> bool:
        """Move to a terminal status. Returns False if already terminal."""
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"{status!r} is not a terminal status")
        if self.is_terminal:
            return False
        self.status = status
        return True

    def __repr__(self):
        return f"<PaymentIntent {self.id} {self.amount} {self.status}>"
