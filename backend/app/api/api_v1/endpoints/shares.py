from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Response, status

from app import models, schemas
from app.api import deps
from app.api.responses import delivery_response
from app.services.share_service import ShareLifecycleService

router = APIRouter()

# Authenticated routes come before the public /{token} wildcard

@router.post("/", response_model=schemas.ShareView, status_code=status.HTTP_201_CREATED)
def create_share(
    *,
    service: ShareLifecycleService = Depends(deps.get_share_service),
    current_user: models.User = Depends(deps.get_current_user),
    share_in: schemas.ShareCreate,
) -> Any:
    """
    Create a share link for a file the caller owns.
    """
    return service.create_share(current_user.id, share_in)


@router.get("/shared-with-me", response_model=List[schemas.ShareSummary])
def read_shared_with_me(
    service: ShareLifecycleService = Depends(deps.get_share_service),
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    """
    Unexpired shares addressed to the caller's email.
    """
    return service.list_shares_for_recipient(current_user.email)


@router.get("/file/{file_id}", response_model=List[schemas.ShareView])
def read_file_shares(
    file_id: int,
    service: ShareLifecycleService = Depends(deps.get_share_service),
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    return service.list_shares_for_file(file_id, current_user.id, current_user.email)


@router.delete("/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_share(
    share_id: int,
    service: ShareLifecycleService = Depends(deps.get_share_service),
    current_user: models.User = Depends(deps.get_current_user),
) -> Response:
    """
    Delete a share. Allowed for its creator and for the addressed recipient.
    """
    service.delete_share(share_id, current_user.id, current_user.email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{token}", response_model=schemas.SharePeek)
def peek_share(
    token: str,
    service: ShareLifecycleService = Depends(deps.get_share_service),
) -> Any:
    """
    Get public share info (never needs the password).
    """
    return service.peek_share(token)


@router.post("/{token}/validate", response_model=schemas.ShareValidation)
def validate_share_password(
    token: str,
    body: Optional[schemas.SharePassword] = None,
    service: ShareLifecycleService = Depends(deps.get_share_service),
) -> Any:
    return service.validate_share_password(token, body.password if body else None)


@router.post("/{token}/download")
def download_shared_file(
    token: str,
    body: Optional[schemas.SharePassword] = None,
    service: ShareLifecycleService = Depends(deps.get_share_service),
) -> Any:
    """
    Download the shared file. Password goes in the body, never in the URL.
    """
    password = body.password if body else None
    return delivery_response(service.consume_share(token, password))
