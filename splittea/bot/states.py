"""Conversation states and bot commands.

Each state is its own small frozen dataclass carrying only the input
collected so far, so a session never holds fields from another flow.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class Start:
    pass


# ----- Create group
@dataclass(frozen=True)
class ReceiveGroupName:
    pass


# ----- Add member to a group
@dataclass(frozen=True)
class ReceiveGroupIdForAddMember:
    pass


@dataclass(frozen=True)
class ReceiveUsername:
    group_id: int


# ----- Add expense
@dataclass(frozen=True)
class ReceiveGroupIdForExpense:
    pass


@dataclass(frozen=True)
class ReceiveAmountSpent:
    group_id: int


@dataclass(frozen=True)
class ReceiveNote:
    group_id: int
    amount: Decimal


# ----- List expenses in group
@dataclass(frozen=True)
class ReceiveGroupIdForExpensesList:
    pass


ChatState = Union[
    Start,
    ReceiveGroupName,
    ReceiveGroupIdForAddMember,
    ReceiveUsername,
    ReceiveGroupIdForExpense,
    ReceiveAmountSpent,
    ReceiveNote,
    ReceiveGroupIdForExpensesList,
]


class Command(str, Enum):
    HELP = "help"
    CREATE_GROUP = "creategroup"
    ADD_MEMBER_TO_GROUP = "addmembertogroup"
    ADD_EXPENSE = "addexpense"
    LIST_EXPENSES_IN_GROUP = "listexpensesingroup"
    LIST_MY_GROUPS = "listmygroups"
    CANCEL = "cancel"

    @property
    def description(self) -> str:
        return COMMAND_DESCRIPTIONS[self]


COMMAND_DESCRIPTIONS: dict[Command, str] = {
    Command.HELP: "display this text",
    Command.CREATE_GROUP: "create new group and put yourself as its first member",
    Command.ADD_MEMBER_TO_GROUP: "add member to a group",
    Command.ADD_EXPENSE: "add an expense",
    Command.LIST_EXPENSES_IN_GROUP: "list all expenses in a group",
    Command.LIST_MY_GROUPS: "list all your groups",
    Command.CANCEL: "cancel whatever you do",
}

COMMAND_ALIASES: dict[str, Command] = {"start": Command.HELP}


def parse_command(text: str) -> Command | str | None:
    """Return the Command for a `/command` message.

    Returns the raw name for an unknown command and None for plain text.
    A trailing `@BotName` is ignored.
    """
    text = text.strip()
    if not text.startswith("/"):
        return None
    name = text[1:].split(maxsplit=1)[0] if len(text) > 1 else ""
    name = name.split("@", 1)[0].lower()
    if name in COMMAND_ALIASES:
        return COMMAND_ALIASES[name]
    try:
        return Command(name)
    except ValueError:
        return name
