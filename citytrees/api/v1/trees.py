"""
Tree record endpoints.

Every handler that touches an existing tree goes through the authorization
gate first, either via a RequireTree* dependency or, for moderation, via
AuthorizationGate.authorize_transition.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, File, Query, Request, UploadFile, status

from citytrees.api.deps import (
    CurrentPrincipal,
    Gate,
    OptionalPrincipal,
    RequireTreeDelete,
    RequireTreeEdit,
    RequireTreeView,
    Trees,
    get_client_ip,
)
from citytrees.kernel.errors import NotFoundError
from citytrees.kernel.permissions.policy import Domain, Permission
from citytrees.kernel.trees.tree_service import tree_status
from citytrees.orchestration.state_machine import ModerationOutcome, TreeStatus
from citytrees.schemas.common import CountResponse, SuccessResponse
from citytrees.schemas.tree import (
    AttachedFileResponse,
    FileUploadResponse,
    TreeCreate,
    TreeCreateResponse,
    TreeResponse,
    TreeUpdate,
)

router = APIRouter()


@router.post("", response_model=TreeCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_tree(
    request: Request,
    data: TreeCreate,
    principal: CurrentPrincipal,
    trees: Trees,
):
    """Submit a new tree. It starts in SUBMITTED and belongs to the caller."""
    tree = await trees.create(
        principal.id,
        data.model_dump(exclude_unset=True),
        ip_address=get_client_ip(request),
    )
    return TreeCreateResponse(tree_id=tree.id)


@router.get("", response_model=List[TreeResponse])
async def list_trees(
    trees: Trees,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status_filter: Optional[TreeStatus] = Query(None, alias="status"),
):
    """Public listing, newest first."""
    items = await trees.list_all(limit=limit, offset=offset, status=status_filter)
    return [TreeResponse.model_validate(t) for t in items]


@router.get("/count", response_model=CountResponse)
async def count_trees(
    trees: Trees,
    status_filter: Optional[TreeStatus] = Query(None, alias="status"),
):
    return CountResponse(count=await trees.count_all(status=status_filter))


@router.get("/mine", response_model=List[TreeResponse])
async def list_my_trees(
    principal: CurrentPrincipal,
    trees: Trees,
    limit: int = Query(30, ge=1, le=100),
    cursor_position: Optional[uuid.UUID] = Query(None),
):
    """
    The caller's own trees, newest first.

    Pass the id of the last tree received as cursor_position to get the next page.
    """
    items = await trees.list_user_trees(principal.id, limit=limit, cursor_position=cursor_position)
    return [TreeResponse.model_validate(t) for t in items]


@router.get("/{tree_id}", response_model=TreeResponse)
async def get_tree(tree_id: uuid.UUID, _: RequireTreeView, trees: Trees):
    tree = await trees.get_or_404(tree_id)
    return TreeResponse.model_validate(tree)


@router.put("/{tree_id}", response_model=TreeResponse)
async def update_tree(
    request: Request,
    tree_id: uuid.UUID,
    data: TreeUpdate,
    principal: RequireTreeEdit,
    trees: Trees,
):
    """Update tree attributes. Owner, or admin."""
    tree = await trees.update(
        tree_id,
        data.model_dump(exclude_unset=True),
        user_id=principal.id,
        ip_address=get_client_ip(request),
    )
    return TreeResponse.model_validate(tree)


@router.delete("/{tree_id}", response_model=SuccessResponse)
async def delete_tree(
    request: Request,
    tree_id: uuid.UUID,
    principal: RequireTreeDelete,
    trees: Trees,
):
    """Soft-delete a tree. Owner, or admin."""
    await trees.delete(tree_id, user_id=principal.id, ip_address=get_client_ip(request))
    return SuccessResponse(message="Tree deleted")


async def _moderate(
    request: Request,
    tree_id: uuid.UUID,
    outcome: ModerationOutcome,
    principal: OptionalPrincipal,
    gate: Gate,
    trees: Trees,
) -> TreeResponse:
    tree = await trees.get_by_id(tree_id)
    if tree is None:
        # Unauthenticated or unprivileged callers learn nothing about existence
        await gate.require(principal, Domain.TREE, tree_id, Permission.APPROVE)
        raise NotFoundError("Tree not found", tree_id=str(tree_id))

    current = tree_status(tree)
    to_state = await gate.authorize_transition(principal, tree_id, current, outcome)
    await trees.persist_transition(
        tree_id,
        from_state=current,
        to_state=to_state,
        user_id=principal.id,
        ip_address=get_client_ip(request),
    )
    # The conditional UPDATE bypasses the identity map
    await trees.session.refresh(tree)
    return TreeResponse.model_validate(tree)


@router.post("/{tree_id}/approve", response_model=TreeResponse)
async def approve_tree(
    request: Request,
    tree_id: uuid.UUID,
    principal: OptionalPrincipal,
    gate: Gate,
    trees: Trees,
):
    """Approve a submitted tree. Moderators and admins only."""
    return await _moderate(request, tree_id, ModerationOutcome.APPROVE, principal, gate, trees)


@router.post("/{tree_id}/reject", response_model=TreeResponse)
async def reject_tree(
    request: Request,
    tree_id: uuid.UUID,
    principal: OptionalPrincipal,
    gate: Gate,
    trees: Trees,
):
    """Reject a submitted tree. Moderators and admins only."""
    return await _moderate(request, tree_id, ModerationOutcome.REJECT, principal, gate, trees)


@router.post(
    "/{tree_id}/files",
    response_model=FileUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def attach_file(
    request: Request,
    tree_id: uuid.UUID,
    principal: RequireTreeEdit,
    trees: Trees,
    file: UploadFile = File(...),
):
    """Upload a photo and attach it to the tree."""
    content = await trees.file_service.read_upload(file)
    stored = await trees.attach_file(
        tree_id,
        uploader_id=principal.id,
        filename=file.filename or "",
        content=content,
        mime_type=file.content_type,
        ip_address=get_client_ip(request),
    )
    return FileUploadResponse(file_id=stored.id, url=trees.file_service.download_url(stored.id))


@router.get("/{tree_id}/files", response_model=List[AttachedFileResponse])
async def list_tree_files(tree_id: uuid.UUID, _: RequireTreeView, trees: Trees):
    files = await trees.list_attached_files(tree_id)
    return [
        AttachedFileResponse(
            id=f.id,
            name=f.name,
            size=f.size,
            url=trees.file_service.download_url(f.id),
        )
        for f in files
    ]
