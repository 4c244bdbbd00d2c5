import threading
from decimal import Decimal

from tinydb import Query, TinyDB

from splittea.models.schemas import Expense, Group


class LedgerRepository:
    """Groups, memberships and expenses kept in a TinyDB JSON file.

    TinyDB is not thread-safe and the bot calls in from worker threads,
    so every public method runs under a single lock.
    """

    def __init__(self, db_path: str = "splittea_ledger.json"):
        self.db = TinyDB(db_path)
        self.groups = self.db.table("groups")
        self.users = self.db.table("users")
        self.memberships = self.db.table("memberships")
        self.expenses = self.db.table("expenses")
        self._lock = threading.Lock()

    def create_group(self, name: str, creator: str | None = None) -> Group:
        """Insert a group and, if given, make the creator its first member.

        Both writes happen under one lock. When the membership cannot be
        written the group is removed again, so no memberless group is left.
        """
        with self._lock:
            doc_id = self.groups.insert({"name": name})
            if creator is not None:
                try:
                    self._add_membership(doc_id, creator)
                except Exception:
                    self.groups.remove(doc_ids=[doc_id])
                    raise
        return Group(id=doc_id, name=name)

    def get_group_by_id(self, group_id: int) -> Group | None:
        with self._lock:
            doc = self.groups.get(doc_id=group_id)
        if doc is None:
            return None
        return Group(id=doc.doc_id, **doc)

    def add_membership(self, group_id: int, username: str) -> None:
        with self._lock:
            self._add_membership(group_id, username)

    def _add_membership(self, group_id: int, username: str) -> None:
        User = Query()
        if not self.users.contains(User.username == username):
            self.users.insert({"username": username})
        if not self.memberships.contains(
            (User.username == username) & (User.group_id == group_id)
        ):
            self.memberships.insert({"username": username, "group_id": group_id})

    def is_member(self, username: str, group_id: int) -> bool:
        Member = Query()
        with self._lock:
            return self.memberships.contains(
                (Member.username == username) & (Member.group_id == group_id)
            )

    def list_members(self, group_id: int) -> list[str]:
        Member = Query()
        with self._lock:
            docs = self.memberships.search(Member.group_id == group_id)
        return sorted(doc["username"] for doc in docs)

    def list_groups_for_user(self, username: str) -> list[Group]:
        Member = Query()
        with self._lock:
            group_ids = [
                doc["group_id"] for doc in self.memberships.search(Member.username == username)
            ]
            docs = [self.groups.get(doc_id=gid) for gid in sorted(set(group_ids))]
        return [Group(id=doc.doc_id, **doc) for doc in docs if doc is not None]

    def record_expense(
        self, username: str, group_id: int, amount: Decimal, note: str
    ) -> Expense:
        expense = Expense(username=username, group_id=group_id, amount=amount, note=note)
        # Amounts are stored as decimal strings, never floats
        data = expense.model_dump(mode="json", exclude={"id"})
        with self._lock:
            expense.id = self.expenses.insert(data)
        return expense

    def list_expenses(self, group_id: int) -> list[Expense]:
        Exp = Query()
        with self._lock:
            docs = self.expenses.search(Exp.group_id == group_id)
        docs.sort(key=lambda doc: doc.doc_id)
        return [Expense(id=doc.doc_id, **doc) for doc in docs]

    def close(self) -> None:
        with self._lock:
            self.db.close()
