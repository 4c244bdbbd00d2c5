from decimal import ROUND_HALF_UP, Decimal, localcontext
from fractions import Fraction

from splittea.bot.states import Command
from splittea.ledger.settlement import Transfer
from splittea.models.schemas import Expense, Group

CENT = Decimal("0.01")


def to_decimal(amount: Fraction | Decimal) -> Decimal:
    """Round an exact amount to cents for display.

    Precision grows with the magnitude so large amounts never overflow
    the default 28-digit context.
    """
    with localcontext() as ctx:
        if isinstance(amount, Fraction):
            whole = abs(amount.numerator) // amount.denominator
            ctx.prec = max(ctx.prec, len(str(whole)) + 12)
            amount = Decimal(amount.numerator) / Decimal(amount.denominator)
        ctx.prec = max(ctx.prec, amount.adjusted() + 4)
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Fraction | Decimal) -> str:
    return f"{to_decimal(amount):f}"


def help_text() -> str:
    lines = ["Splittea supports the following commands:"]
    for command in Command:
        lines.append(f"/{command.value} — {command.description}")
    return "\n".join(lines)


def groups_to_pretty(groups: list[Group]) -> str:
    return "\n".join(f"{group.id} — {group.name}" for group in groups)


def settlement_report(group: Group, transfers: list[Transfer], expenses: list[Expense]) -> str:
    lines = [f'Group debt state of "{group.name}":']

    if not transfers:
        lines.append("😊 No debt in this group 😊")
    for transfer in transfers:
        lines.append(
            f"{transfer.debtor} owes {format_amount(transfer.amount)} to {transfer.creditor}"
        )

    lines.append("")
    lines.append("---")
    lines.append("Overall expenses in group:")
    for expense in expenses:
        lines.append(
            f"{expense.username} spent {format_amount(expense.amount)} with note: {expense.note}"
        )
    return "\n".join(lines)
