from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from splittea.bot.formatter import to_decimal
from splittea.db.repository import LedgerRepository
from splittea.deps import get_repo
from splittea.exceptions import EmptyLedgerError, SettlementInvariantError
from splittea.ledger.settlement import entries_of, settle
from splittea.models.schemas import Expense, Group, GroupDetail, TransferOut

router = APIRouter()


def _group_or_404(repo: LedgerRepository, group_id: int) -> Group:
    group = repo.get_group_by_id(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/users/{handle}/groups", response_model=list[Group])
def list_user_groups(handle: str, repo: LedgerRepository = Depends(get_repo)):
    if not handle.startswith("@"):
        handle = f"@{handle}"
    return repo.list_groups_for_user(handle)


@router.get("/groups/{group_id}", response_model=GroupDetail)
def get_group(group_id: int, repo: LedgerRepository = Depends(get_repo)):
    group = _group_or_404(repo, group_id)
    return GroupDetail(id=group.id, name=group.name, members=repo.list_members(group_id))


@router.get("/groups/{group_id}/expenses", response_model=list[Expense])
def list_group_expenses(group_id: int, repo: LedgerRepository = Depends(get_repo)):
    _group_or_404(repo, group_id)
    return repo.list_expenses(group_id)


@router.get("/groups/{group_id}/settlement", response_model=list[TransferOut])
def get_settlement(group_id: int, repo: LedgerRepository = Depends(get_repo)):
    _group_or_404(repo, group_id)
    try:
        transfers = settle(entries_of(repo.list_expenses(group_id)))
    except EmptyLedgerError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except SettlementInvariantError as e:
        logger.error("Settlement aborted for group #{}: {}", group_id, e.message)
        raise HTTPException(status_code=500, detail=e.message)

    return [
        TransferOut(debtor=t.debtor, creditor=t.creditor, amount=to_decimal(t.amount))
        for t in transfers
    ]
