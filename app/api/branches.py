from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.api.auth import get_current_actor, require_admin
from app.database import get_db
from app.exceptions import ConflictError, NotFoundError
from app.models.branch import Branch
from app.schemas.common import ok

router = APIRouter(prefix="/branches", tags=["Branches"])


class BranchCreate(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    address: str = ""
    phone: str = ""


class BranchOut(BaseModel):
    id: str
    name: str
    code: str
    address: str
    phone: str
    active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


@router.get("")
def list_branches(_: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    branches = db.query(Branch).filter(Branch.active == True).order_by(Branch.name).all()  # noqa: E712
    return ok([BranchOut.model_validate(b) for b in branches])


@router.post("", status_code=201)
def create_branch(data: BranchCreate, _: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    code = data.code.strip().upper()
    if db.query(Branch).filter(Branch.code == code).first():
        raise ConflictError(f"Branch with code {code} already exists")
    branch = Branch(name=data.name, code=code, address=data.address, phone=data.phone)
    db.add(branch)
    db.commit()
    db.refresh(branch)
    return ok(BranchOut.model_validate(branch), message="Branch created")


@router.get("/{branch_id}")
def get_branch(branch_id: str, _: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    branch = db.get(Branch, branch_id)
    if not branch:
        raise NotFoundError.of("Branch")
    return ok(BranchOut.model_validate(branch))
