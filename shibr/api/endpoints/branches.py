"""Branch endpoints for store owners."""
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.database import get_db
from shibr.core.security import require_store_owner
from shibr.models.shelf import Branch
from shibr.models.user import User
from shibr.schemas.catalog import BranchCreate, BranchResponse, BranchUpdate

router = APIRouter()
logger = structlog.get_logger()


async def _own_branch(db: AsyncSession, branch_id: int, user: User) -> Branch:
    branch = await db.get(Branch, branch_id)
    if not branch:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Branch not found",
        )
    if branch.owner_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage this branch",
        )
    return branch


@router.post("/", response_model=BranchResponse, status_code=status.HTTP_201_CREATED)
async def create_branch(
    branch_data: BranchCreate,
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """Create a branch for the current store owner."""
    branch = Branch(**branch_data.model_dump(), owner_id=user.id, is_active=True)
    db.add(branch)
    await db.flush()

    logger.info("branch_created", branch_id=branch.id, owner_id=user.id)
    return branch


@router.get("/", response_model=list[BranchResponse])
async def list_my_branches(
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """List the current store owner's branches."""
    result = await db.execute(
        select(Branch).where(Branch.owner_id == user.id).order_by(Branch.created_at.desc())
    )
    return result.scalars().all()


@router.get("/{branch_id}", response_model=BranchResponse)
async def get_branch(
    branch_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get branch by ID."""
    branch = await db.get(Branch, branch_id)
    if not branch:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Branch not found",
        )
    return branch


@router.patch("/{branch_id}", response_model=BranchResponse)
async def update_branch(
    branch_id: int,
    branch_data: BranchUpdate,
    user: User = Depends(require_store_owner),
    db: AsyncSession = Depends(get_db),
):
    """Update one of the current store owner's branches."""
    branch = await _own_branch(db, branch_id, user)
    for field, value in branch_data.model_dump(exclude_unset=True).items():
        setattr(branch, field, value)
    await db.flush()

    logger.info("branch_updated", branch_id=branch.id)
    return branch
