from decimal import Decimal

from pydantic import BaseModel, Field


class Group(BaseModel):
    id: int
    name: str


class Expense(BaseModel):
    id: int | None = None
    username: str
    group_id: int
    amount: Decimal = Field(gt=0)
    note: str


class IncomingMessage(BaseModel):
    """A transport-neutral inbound event."""

    session_id: int | str
    sender: str | None = None
    text: str


class GroupDetail(Group):
    members: list[str] = []


class TransferOut(BaseModel):
    debtor: str
    creditor: str
    amount: Decimal
