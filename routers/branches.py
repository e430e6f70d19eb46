from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from typing import List, Optional
import logging

from models import Branch, User
from services.branch import detect_branch, KNOWN_BRANCHES
from utils.auth import get_admin_user

router = APIRouter()
logger = logging.getLogger("branches")

class BranchSettings(BaseModel):
    slug: str
    name: str
    esignature_enabled: bool
    esignature_sandbox: bool
    esignature_provider: str

class BranchSettingsUpdate(BaseModel):
    name: Optional[str] = None
    esignature_enabled: Optional[bool] = None
    esignature_sandbox: Optional[bool] = None
    esignature_provider: Optional[str] = None

def branch_to_settings(branch: Branch) -> BranchSettings:
    return BranchSettings(
        slug=branch.slug,
        name=branch.name,
        esignature_enabled=branch.esignature_enabled,
        esignature_sandbox=branch.esignature_sandbox,
        esignature_provider=branch.esignature_provider,
    )

@router.get("/branch")
async def get_current_branch(request: Request):
    """
    The branch of the requesting host, e.g. koblenz.cnsform.com. Public so
    the login page can show the branch title.
    """
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    info = detect_branch(host)
    branch = await Branch.filter(slug=info['slug']).first()
    info['esignature_enabled'] = branch.esignature_enabled if branch else False
    info['esignature_sandbox'] = branch.esignature_sandbox if branch else True
    return info

@router.get("/branches", response_model=List[BranchSettings])
async def list_branches(admin: User = Depends(get_admin_user)):
    branches = await Branch.all().order_by("slug")
    return [branch_to_settings(b) for b in branches]

@router.put("/branches/{slug}/settings", response_model=BranchSettings)
async def update_branch_settings(slug: str, request: BranchSettingsUpdate, admin: User = Depends(get_admin_user)):
    """
    Update the e-signature settings of a branch. Unknown slugs are rejected
    unless a row already exists for them.
    """
    slug = slug.lower()
    branch = await Branch.filter(slug=slug).first()
    if branch is None:
        if slug not in KNOWN_BRANCHES:
            raise HTTPException(status_code=404, detail=f"Niederlassung '{slug}' nicht gefunden")
        branch = await Branch.create(slug=slug, name=KNOWN_BRANCHES[slug])

    updates = request.model_dump(exclude_none=True)
    if updates:
        branch.update_from_dict(updates)
        await branch.save()

    logger.info(f"Branch {slug} settings updated by {admin.email}: {updates}")
    return branch_to_settings(branch)
