"""Sales channels, cash denominations and the raw inputs built from them.

Channels are keyed by stable identifiers (``"cash"``, ``"pedidos_ya_mix"``);
display labels are kept separately so renaming a label never detaches stored
amounts from their channel.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from .formatting import clamp_amount


class Channel(str, Enum):
    """Primary payment channels present on every closing."""

    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    GIFT_CARD = "gift_card"

    @property
    def label(self) -> str:
        return PRIMARY_CHANNEL_LABELS[self]


PRIMARY_CHANNEL_LABELS: dict[Channel, str] = {
    Channel.CASH: "Efectivo",
    Channel.CARD: "Tarjetas",
    Channel.TRANSFER: "Transferencias",
    Channel.GIFT_CARD: "Gift Cards",
}


@dataclass(frozen=True, slots=True)
class DeliveryChannel:
    """A delivery platform selling on behalf of the store."""

    id: str
    label: str


DEFAULT_DELIVERY_CHANNELS: tuple[DeliveryChannel, ...] = (
    DeliveryChannel("pedidos_ya_ice_scroll", "Pedidos Ya Ice Scroll"),
    DeliveryChannel("pedidos_ya_wafix", "Pedidos Ya Wafix"),
    DeliveryChannel("pedidos_ya_mix", "Pedidos Ya Mix"),
    DeliveryChannel("uber_eats", "Uber Eats"),
    DeliveryChannel("junaeb", "Junaeb"),
)

# CLP notes and coins in circulation, largest first.
DENOMINATIONS: tuple[int, ...] = (20000, 10000, 5000, 2000, 1000, 500, 100, 50, 10)

ChannelKey = Union[Channel, str]


def channel_key(channel: ChannelKey) -> str:
    """Return the plain string identifier for ``channel``."""

    if isinstance(channel, Channel):
        return channel.value
    return str(channel)


def non_negative(value: object) -> int:
    """Coerce ``value`` to an ``int`` clamped to ``0..MAX_AMOUNT``."""

    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 0
    return clamp_amount(number)


@dataclass(frozen=True)
class ChannelSalesInput:
    """Sales amount per channel identifier.

    Missing channels read as zero and negative amounts are clamped to zero on
    construction.
    """

    amounts: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned = {channel_key(key): non_negative(value) for key, value in dict(self.amounts).items()}
        object.__setattr__(self, "amounts", MappingProxyType(cleaned))

    @classmethod
    def of(cls, **amounts: int) -> "ChannelSalesInput":
        return cls(amounts)

    def amount(self, channel: ChannelKey) -> int:
        return self.amounts.get(channel_key(channel), 0)

    @property
    def cash(self) -> int:
        return self.amount(Channel.CASH)

    @property
    def card(self) -> int:
        return self.amount(Channel.CARD)

    @property
    def transfer(self) -> int:
        return self.amount(Channel.TRANSFER)

    @property
    def gift_card(self) -> int:
        return self.amount(Channel.GIFT_CARD)

    def delivery_amounts(self, channels: Iterable[DeliveryChannel]) -> dict[str, int]:
        """Return the amount of every delivery channel in ``channels``, zeros included."""

        return {channel.id: self.amount(channel.id) for channel in channels}

    def total(self) -> int:
        return sum(self.amounts.values())


@dataclass(frozen=True)
class CashDenominationCount:
    """Number of notes/coins counted per face value."""

    counts: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        cleaned: dict[int, int] = {}
        for face_value, count in dict(self.counts).items():
            face_value = int(face_value)
            if face_value not in DENOMINATIONS:
                raise ValueError(f"Unknown denomination: {face_value}")
            cleaned[face_value] = non_negative(count)
        object.__setattr__(self, "counts", MappingProxyType(cleaned))

    def count(self, face_value: int) -> int:
        return self.counts.get(int(face_value), 0)

    def subtotal(self, face_value: int) -> int:
        return self.count(face_value) * int(face_value)

    def total(self) -> int:
        return sum(face_value * count for face_value, count in self.counts.items())

    def as_dict(self) -> dict[str, int]:
        """Return the non-zero counts keyed by face value as strings, largest first."""

        return {
            str(face_value): self.count(face_value)
            for face_value in DENOMINATIONS
            if self.count(face_value)
        }


__all__ = [
    "Channel",
    "PRIMARY_CHANNEL_LABELS",
    "DeliveryChannel",
    "DEFAULT_DELIVERY_CHANNELS",
    "DENOMINATIONS",
    "channel_key",
    "non_negative",
    "ChannelSalesInput",
    "CashDenominationCount",
]
