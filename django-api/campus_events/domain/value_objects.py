"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID, uuid4


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RegistrationId:
    """Unique identifier for a Registration."""

    value: UUID

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ProofId:
    """Unique identifier for a PaymentProof."""

    value: UUID

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Price representation with validation."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    @classmethod
    def zero(cls) -> Self:
        return cls(amount=Decimal("0.00"))

    def __add__(self, other: "Money") -> "Money":
        return Money(amount=self.amount + other.amount)

    def times(self, quantity: int) -> "Money":
        return Money(amount=self.amount * quantity)

    def is_zero(self) -> bool:
        return self.amount == 0

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity. Zero means unlimited."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")

    @property
    def is_unlimited(self) -> bool:
        return self.value == 0

    def has_room_for(self, registered: int) -> bool:
        return self.is_unlimited or registered < self.value


@dataclass(frozen=True)
class RegistrationWindow:
    """Half-open interval [opens_at, closes_at) during which registration is accepted."""

    opens_at: datetime
    closes_at: datetime

    def __post_init__(self) -> None:
        if self.closes_at <= self.opens_at:
            raise ValueError("Registration window must close after it opens")

    def is_open(self, now: datetime) -> bool:
        return self.opens_at <= now < self.closes_at

    def has_expired(self, now: datetime) -> bool:
        return now >= self.closes_at


@dataclass(frozen=True)
class MerchandiseOption:
    """An item an event sells alongside registration."""

    name: str
    price: Money
    stock: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Merchandise name cannot be empty")
        if self.stock < 0:
            raise ValueError("Merchandise stock cannot be negative")


@dataclass(frozen=True)
class MerchandiseSelection:
    """A participant's choice of a merchandise item."""

    name: str
    quantity: int = 1

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("Merchandise quantity must be at least 1")
