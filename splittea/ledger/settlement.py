"""Greedy debt settlement for a single group.

Everybody who spent something is expected to carry an equal share of the
group's total. Whoever spent more than the share is owed money, whoever
spent less owes it, and debtors are matched against creditors largest
first until both sides are exhausted.

This is a greedy heuristic: it does not guarantee the minimum number of
transfers.

Balances are exact rationals. The per-spender mean of a finite decimal
total is usually not a finite decimal (100 / 3), and rounding it would
break the zero-sum property the matching relies on.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction

from splittea.exceptions import EmptyLedgerError, SettlementInvariantError
from splittea.models.schemas import Expense

Entry = tuple[str, Decimal]


@dataclass(frozen=True)
class Transfer:
    debtor: str
    creditor: str
    amount: Fraction


def entries_of(expenses: Iterable[Expense]) -> list[Entry]:
    return [(expense.username, expense.amount) for expense in expenses]


def total_spent(entries: Iterable[Entry]) -> dict[str, Fraction]:
    """Exact sum of amounts per distinct spender.

    A zero amount still makes its handle a participant.
    """
    spent: dict[str, Fraction] = defaultdict(Fraction)
    for username, amount in entries:
        if amount < 0:
            raise ValueError(f"Negative amount {amount} for {username}")
        spent[username] += Fraction(amount)
    return dict(spent)


def compute_balances(entries: Iterable[Entry]) -> dict[str, Fraction]:
    """Signed balance per spender: spent minus the per-spender mean.

    Only handles present in the entries take part. A group member who
    never recorded an expense is neither charged a share nor counted in
    the divisor.
    """
    spent = total_spent(entries)
    if not spent:
        raise EmptyLedgerError()

    mean = sum(spent.values(), Fraction(0)) / len(spent)
    return {username: amount - mean for username, amount in spent.items()}


def _ranked(balances: dict[str, Fraction]) -> list[list]:
    # Largest first; equal amounts fall back to handle order
    ranked = [[username, abs(balance)] for username, balance in balances.items()]
    ranked.sort(key=lambda entry: (-entry[1], entry[0]))
    return ranked


def settle(entries: Iterable[Entry]) -> list[Transfer]:
    """Turn (handle, amount) entries into transfers that zero every balance.

    Raises EmptyLedgerError when there is nothing to settle, and
    SettlementInvariantError if the balances fail to sum to zero.
    """
    balances = compute_balances(entries)

    if sum(balances.values(), Fraction(0)) != 0:
        raise SettlementInvariantError(
            f"Balances sum to {sum(balances.values(), Fraction(0))}, expected 0"
        )

    creditors = _ranked({u: b for u, b in balances.items() if b > 0})
    debtors = _ranked({u: b for u, b in balances.items() if b < 0})

    transfers: list[Transfer] = []
    debtor_index = 0
    creditor_index = 0

    while debtor_index < len(debtors) and creditor_index < len(creditors):
        debtor = debtors[debtor_index]
        creditor = creditors[creditor_index]

        amount = min(debtor[1], creditor[1])
        transfers.append(Transfer(debtor=debtor[0], creditor=creditor[0], amount=amount))

        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] == 0:
            debtor_index += 1
        if creditor[1] == 0:
            creditor_index += 1

    return transfers
