import logging
import mimetypes
import re
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from app import crud, models, schemas
from app.api import deps
from app.api.responses import delivery_response
from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, StorageUnavailableError, ValidationError
from app.models.file import ROOT_FOLDER_ID
from app.services.delivery import DownloadDeliveryAdapter
from app.services.storage import ObjectStore, ObjectTooLarge, StorageError, new_object_key

logger = logging.getLogger(__name__)

router = APIRouter()


def is_filename_valid(filename: str) -> bool:
    """
    Checks if a filename contains illegal characters for Windows, Linux, and macOS.
    """
    return bool(filename.strip()) and not re.search(r'[<>:"/\\|?*]', filename)


def _owned_item(db: Session, item_id: int, user_id: int) -> models.FileMeta:
    item = crud.file.get(db, id=item_id)
    # Another user's item looks exactly like a missing one
    if not item or item.is_deleted or item.user_id != user_id:
        raise NotFoundError("File not found", code="file_not_found")
    return item


def _owned_file(db: Session, file_id: int, user_id: int) -> models.FileMeta:
    item = _owned_item(db, file_id, user_id)
    if item.is_folder:
        raise ValidationError("Cannot download a folder", code="is_folder")
    return item


def _check_parent(db: Session, parent_id: int, user_id: int) -> None:
    if parent_id != ROOT_FOLDER_ID and not crud.file.get_folder(db, folder_id=parent_id, user_id=user_id):
        raise NotFoundError("Folder not found", code="folder_not_found")


def _check_name_free(db: Session, name: str, parent_id: int, user_id: int) -> None:
    if crud.file.get_by_name_and_parent(db, name=name, parent_id=parent_id, user_id=user_id):
        raise ConflictError()


@router.get("", response_model=List[schemas.FileMeta])
def read_files(
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    parent_id: int = ROOT_FOLDER_ID,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> Any:
    """
    List one folder (root by default); with `search`, match names across all folders.
    """
    if not search:
        _check_parent(db, parent_id, current_user.id)
    return crud.file.get_by_user_and_parent(
        db, user_id=current_user.id, parent_id=parent_id, search=search, skip=skip, limit=limit
    )


@router.post("/folder", response_model=schemas.FileMeta, status_code=status.HTTP_201_CREATED)
def create_folder(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    folder_in: schemas.FolderCreate,
) -> Any:
    name = folder_in.file_name.strip()
    if not is_filename_valid(name):
        raise ValidationError('Folder name contains illegal characters: < > : " / \\ | ? *')
    _check_parent(db, folder_in.parent_id, current_user.id)
    _check_name_free(db, name, folder_in.parent_id, current_user.id)

    folder = crud.file.create_folder(
        db, user_id=current_user.id, file_name=name, parent_id=folder_in.parent_id
    )
    logger.info("User %s created folder %s", current_user.id, folder.id)
    return folder


@router.get("/path/{folder_id}", response_model=List[schemas.FileMeta])
def get_folder_path(
    folder_id: int,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    """
    Breadcrumb from the root down to the folder.
    """
    if folder_id == ROOT_FOLDER_ID:
        return []
    _check_parent(db, folder_id, current_user.id)
    return crud.file.get_ancestors(db, folder_id=folder_id, user_id=current_user.id)


@router.post("", response_model=schemas.FileMeta, status_code=status.HTTP_201_CREATED)
def upload_file(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    store: ObjectStore = Depends(deps.get_object_store),
    file: UploadFile = File(...),
    parent_id: int = Form(ROOT_FOLDER_ID),
) -> Any:
    file_name = (file.filename or "").strip()
    if not file_name:
        raise HTTPException(status_code=400, detail="File name is required")
    # Declared size when the client sent one; the store enforces the cap while copying anyway
    if file.size is not None and file.size > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(status_code=413, detail="File too large")
    _check_parent(db, parent_id, current_user.id)
    _check_name_free(db, file_name, parent_id, current_user.id)

    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"

    key = new_object_key(file_name)
    try:
        size = store.put(key, file.file, content_type=mime_type, max_size=settings.MAX_UPLOAD_SIZE)
    except ObjectTooLarge:
        raise HTTPException(status_code=413, detail="File too large")
    except StorageError as exc:
        logger.error("Upload of %r for user %s failed: %s", file_name, current_user.id, exc)
        raise StorageUnavailableError() from exc

    meta = crud.file.create_with_user(
        db,
        user_id=current_user.id,
        parent_id=parent_id,
        file_name=file_name,
        mime_type=mime_type,
        file_size=size,
        storage_path=key,
    )
    logger.info("User %s uploaded file %s (%d bytes)", current_user.id, meta.id, size)
    return meta


@router.get("/{file_id}", response_model=schemas.FileMeta)
def read_file(
    file_id: int,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    return _owned_item(db, file_id, current_user.id)


@router.put("/{file_id}", response_model=schemas.FileMeta)
def update_file(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    file_id: int,
    file_in: schemas.FileMetaUpdate,
) -> Any:
    """
    Rename and/or move a file or folder.
    """
    item = _owned_item(db, file_id, current_user.id)
    name = file_in.file_name.strip() if file_in.file_name is not None else item.file_name
    if not is_filename_valid(name):
        raise ValidationError('File name contains illegal characters: < > : " / \\ | ? *')

    parent_id = item.parent_id if file_in.parent_id is None else file_in.parent_id
    if parent_id != item.parent_id:
        _check_parent(db, parent_id, current_user.id)
        if item.is_folder and crud.file.is_within(db, folder_id=parent_id, ancestor_id=item.id, user_id=current_user.id):
            raise ValidationError("Cannot move a folder into itself or its descendant", code="folder_cycle")

    if (name, parent_id) != (item.file_name, item.parent_id):
        _check_name_free(db, name, parent_id, current_user.id)
    return crud.file.update(db, db_obj=item, file_name=name, parent_id=parent_id)


@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    delivery: DownloadDeliveryAdapter = Depends(deps.get_delivery),
) -> Any:
    """
    Owner download; goes through the same delivery adapter as shared downloads.
    """
    file = _owned_file(db, file_id, current_user.id)
    return delivery_response(delivery.deliver(file))


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
) -> Response:
    """
    Move a file or a whole folder to the trash. Shares on the affected files stay
    and resolve as "file not found".
    """
    _owned_item(db, file_id, current_user.id)
    crud.file.soft_remove(db, id=file_id, user_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
