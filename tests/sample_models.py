"""Decorated Python classes used by the provider and CLI tests."""

from __future__ import annotations

import datetime
import decimal
import enum
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Sequence

from type_metadata import to_typescript


class Status(enum.Enum):
    ACTIVE = 1
    SUSPENDED = 2
    CLOSED = 3


@dataclass
class Address:
    street: str
    city: str
    postcode: Optional[str] = None


@dataclass
class Entity:
    id: int
    created: datetime.datetime


@to_typescript("accounts")
@dataclass
class Account(Entity):
    owner: str
    balance: decimal.Decimal
    status: Status
    active: bool
    address: Address
    tags: list[str]
    history: tuple[float, ...]
    scores: list[Optional[int]]
    nickname: int | None
    email: str = field(default="", metadata={"json_name": "emailAddress"})
    kind: ClassVar[str] = "account"


@to_typescript("tree", nullable_properties=True)
@dataclass
class TreeNode:
    value: Any
    children: Sequence[TreeNode]
    parent: Optional[TreeNode] = None


@dataclass
class SubAccount(Account):
    limit: float = 0.0
