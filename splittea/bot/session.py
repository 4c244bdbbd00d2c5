"""Per-chat conversation state machine.

The SessionManager owns one session per chat id. A message is validated
against the session's current state, the matching ledger operation runs,
and the session moves on. Every session has its own lock, so two messages
from the same chat never race on its state while different chats are
processed concurrently.

A session only lives while its chat is inside a flow: once it is back in
Start with no message queued it is dropped, and with an idle timeout set
abandoned flows are swept on the next message from any chat.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from splittea.bot import formatter
from splittea.bot.states import (
    ChatState,
    Command,
    ReceiveAmountSpent,
    ReceiveGroupIdForAddMember,
    ReceiveGroupIdForExpense,
    ReceiveGroupIdForExpensesList,
    ReceiveGroupName,
    ReceiveNote,
    ReceiveUsername,
    Start,
    parse_command,
)
from splittea.bot.validation import (
    parse_amount,
    parse_group_id,
    parse_handle,
    require_sender,
    require_text,
)
from splittea.db.repository import LedgerRepository
from splittea.exceptions import (
    GroupNotFoundError,
    IdentityError,
    InputValidationError,
    LedgerStoreError,
    SettlementInvariantError,
)
from splittea.ledger.settlement import entries_of, settle
from splittea.models.schemas import Group, IncomingMessage

INVALID_STATE = "Unable to handle the message. Type /help to see the usage."
CANCELED = "Canceled whatever you did"
STORE_FAILURE = "Something went wrong while talking to the ledger. Please try again."
REPORT_FAILURE = "Something went wrong while computing the debts. Please start over."
BUSY_IN_FLOW = "Please, finish the current step first or /cancel it."
NO_GROUPS = "You don't belong to any group yet"

Reply = tuple[str, ChatState]


@dataclass
class Session:
    state: ChatState = field(default_factory=Start)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_seen: float = field(default_factory=time.monotonic)
    # Messages inside handle(), waiting or running
    pending: int = 0


class SessionManager:
    def __init__(
        self,
        repo: LedgerRepository,
        idle_minutes: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repo = repo
        self.idle_seconds = idle_minutes * 60
        self._clock = clock
        self._sessions: dict[int | str, Session] = {}

        self._commands: dict[Command, Callable[[IncomingMessage], Awaitable[Reply]]] = {
            Command.HELP: self._help,
            Command.LIST_MY_GROUPS: self._list_my_groups,
            Command.CREATE_GROUP: self._create_group,
            Command.ADD_MEMBER_TO_GROUP: self._add_member_to_group,
            Command.ADD_EXPENSE: self._add_expense,
            Command.LIST_EXPENSES_IN_GROUP: self._list_expenses_in_group,
        }
        self._steps: dict[type, Callable[[Any, str, IncomingMessage], Awaitable[Reply]]] = {
            ReceiveGroupName: self._receive_group_name,
            ReceiveGroupIdForAddMember: self._receive_group_id_for_add_member,
            ReceiveUsername: self._receive_username,
            ReceiveGroupIdForExpense: self._receive_group_id_for_expense,
            ReceiveAmountSpent: self._receive_amount_spent,
            ReceiveNote: self._receive_note,
            ReceiveGroupIdForExpensesList: self._receive_group_id_for_expenses_list,
        }

    def state_of(self, session_id: int | str) -> ChatState:
        session = self._sessions.get(session_id)
        return session.state if session else Start()

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def close(self) -> None:
        """Drop every session. Called on shutdown."""
        logger.info("Dropping {} conversation session(s)", len(self._sessions))
        self._sessions.clear()

    def _session(self, session_id: int | str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = self._sessions[session_id] = Session(last_seen=self._clock())
        return session

    def _release(self, session_id: int | str, session: Session) -> None:
        # A chat back in Start with nothing queued carries no state worth keeping
        if session.pending or not isinstance(session.state, Start):
            return
        if self._sessions.get(session_id) is session:
            del self._sessions[session_id]

    def _drop_idle(self) -> None:
        if not self.idle_seconds:
            return
        now = self._clock()
        for session_id, session in list(self._sessions.items()):
            if session.pending == 0 and now - session.last_seen > self.idle_seconds:
                logger.info("Session {} idle for too long, dropping {}", session_id, session.state)
                del self._sessions[session_id]

    async def handle(self, message: IncomingMessage) -> str:
        """Process one inbound message and return the single reply for it."""
        self._drop_idle()
        session = self._session(message.session_id)
        session.pending += 1
        try:
            async with session.lock:
                return await self._process(session, message)
        finally:
            session.pending -= 1
            self._release(message.session_id, session)

    async def _process(self, session: Session, message: IncomingMessage) -> str:
        current = session.state
        logger.debug(
            "Session {} from {} in {}: {!r}",
            message.session_id, message.sender, current, message.text,
        )

        try:
            reply, next_state = await self._dispatch(current, message)
        except IdentityError as e:
            reply, next_state = e.message, current
        except LedgerStoreError:
            reply, next_state = STORE_FAILURE, current
        except SettlementInvariantError as e:
            logger.error("Settlement aborted for session {}: {}", message.session_id, e.message)
            reply, next_state = REPORT_FAILURE, Start()

        if next_state != current:
            logger.debug("Session {}: {} -> {}", message.session_id, current, next_state)
        session.state = next_state
        session.last_seen = self._clock()
        return reply

    async def _dispatch(self, state: ChatState, message: IncomingMessage) -> Reply:
        command = parse_command(message.text)

        if command is Command.CANCEL:
            return CANCELED, Start()

        if isinstance(state, Start):
            if isinstance(command, Command):
                return await self._commands[command](message)
            return INVALID_STATE, state

        if command is not None:
            return BUSY_IN_FLOW, state

        step = self._steps.get(type(state))
        if step is None:
            return INVALID_STATE, state
        try:
            return await step(state, message.text, message)
        except InputValidationError as e:
            return e.message, state
        except GroupNotFoundError as e:
            return f"{e.message}. Please, provide id from the list:", state

    async def _store(self, method: Callable, *args):
        """Run a blocking ledger call off the event loop."""
        try:
            return await asyncio.to_thread(method, *args)
        except Exception as e:
            logger.exception("Ledger call {} failed", method.__name__)
            raise LedgerStoreError(f"{method.__name__} failed: {e}") from e

    async def _existing_group(self, group_id: int) -> Group:
        group = await self._store(self.repo.get_group_by_id, group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    # ----- Flow entries (from Start)

    async def _help(self, message: IncomingMessage) -> Reply:
        return formatter.help_text(), Start()

    async def _list_my_groups(self, message: IncomingMessage) -> Reply:
        username = require_sender(message)
        groups = await self._store(self.repo.list_groups_for_user, username)
        if not groups:
            return NO_GROUPS, Start()
        return f"Here are your groups:\n{formatter.groups_to_pretty(groups)}", Start()

    async def _create_group(self, message: IncomingMessage) -> Reply:
        require_sender(message)
        return "Pick a name for your group", ReceiveGroupName()

    async def _add_member_to_group(self, message: IncomingMessage) -> Reply:
        username = require_sender(message)
        groups = await self._store(self.repo.list_groups_for_user, username)
        if not groups:
            return NO_GROUPS, Start()
        text = (
            "Choose id of the group where you want to add a member:\n"
            f"{formatter.groups_to_pretty(groups)}"
        )
        return text, ReceiveGroupIdForAddMember()

    async def _add_expense(self, message: IncomingMessage) -> Reply:
        username = require_sender(message)
        groups = await self._store(self.repo.list_groups_for_user, username)
        if not groups:
            return NO_GROUPS, Start()
        text = (
            "Choose id of the group you'd like to add the expense:\n"
            f"{formatter.groups_to_pretty(groups)}"
        )
        return text, ReceiveGroupIdForExpense()

    async def _list_expenses_in_group(self, message: IncomingMessage) -> Reply:
        username = require_sender(message)
        groups = await self._store(self.repo.list_groups_for_user, username)
        if not groups:
            return (
                "You are not a member of any group, yet. You can create one with /creategroup",
                Start(),
            )
        text = f"Good, choose id of one of your groups:\n{formatter.groups_to_pretty(groups)}"
        return text, ReceiveGroupIdForExpensesList()

    # ----- Data-entry steps

    async def _receive_group_name(
        self, state: ReceiveGroupName, text: str, message: IncomingMessage
    ) -> Reply:
        username = require_sender(message)
        name = require_text(text, "Please, send a non-empty group name:")

        group = await self._store(self.repo.create_group, name, username)
        logger.info("Group #{} {!r} created by {}", group.id, name, username)
        return f'Group "{name}" was successfully created and you\'ve been added to it', Start()

    async def _receive_group_id_for_add_member(
        self, state: ReceiveGroupIdForAddMember, text: str, message: IncomingMessage
    ) -> Reply:
        group_id = parse_group_id(text)
        username = require_sender(message)

        if not await self._store(self.repo.is_member, username, group_id):
            return "Please, provide id from the list:", state
        return "Provide @username of that user:", ReceiveUsername(group_id=group_id)

    async def _receive_username(
        self, state: ReceiveUsername, text: str, message: IncomingMessage
    ) -> Reply:
        handle = parse_handle(text)
        await self._store(self.repo.add_membership, state.group_id, handle)
        logger.info("{} added to group #{}", handle, state.group_id)
        return f"User {handle} has been successfully added to a group", Start()

    async def _receive_group_id_for_expense(
        self, state: ReceiveGroupIdForExpense, text: str, message: IncomingMessage
    ) -> Reply:
        group = await self._existing_group(parse_group_id(text))
        text = (
            f'You want to add an expense to a group "{group.name}".\n'
            "Now, type the amount you spent:"
        )
        return text, ReceiveAmountSpent(group_id=group.id)

    async def _receive_amount_spent(
        self, state: ReceiveAmountSpent, text: str, message: IncomingMessage
    ) -> Reply:
        amount = parse_amount(text)
        return "Provide some note:", ReceiveNote(group_id=state.group_id, amount=amount)

    async def _receive_note(self, state: ReceiveNote, text: str, message: IncomingMessage) -> Reply:
        username = require_sender(message)
        note = require_text(text, "Please, provide a non-empty note:")

        await self._store(self.repo.record_expense, username, state.group_id, state.amount, note)
        logger.info("{} spent {} in group #{}", username, state.amount, state.group_id)
        return "The expense has been added", Start()

    async def _receive_group_id_for_expenses_list(
        self, state: ReceiveGroupIdForExpensesList, text: str, message: IncomingMessage
    ) -> Reply:
        group = await self._existing_group(parse_group_id(text))
        expenses = await self._store(self.repo.list_expenses, group.id)
        if not expenses:
            return "There are no expenses yet in this group", Start()

        transfers = settle(entries_of(expenses))
        return formatter.settlement_report(group, transfers, expenses), Start()
