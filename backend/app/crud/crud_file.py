from typing import List, Optional
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase
from app.models.file import FileMeta, FOLDER_MIME_TYPE, ROOT_FOLDER_ID
from datetime import datetime


class CRUDFileMeta(CRUDBase[FileMeta]):
    def resolve_owned_file(self, db: Session, *, file_id: int) -> Optional[FileMeta]:
        """
        Resolve a file id to its live row (owner, name, size, mime type, storage key).
        Soft-deleted rows, folders and missing ids all resolve to None.
        """
        return db.query(FileMeta).filter(
            FileMeta.id == file_id,
            FileMeta.is_folder == False,
            FileMeta.is_deleted == False
        ).first()

    def get_folder(self, db: Session, *, folder_id: int, user_id: int) -> Optional[FileMeta]:
        return db.query(FileMeta).filter(
            FileMeta.id == folder_id,
            FileMeta.user_id == user_id,
            FileMeta.is_folder == True,
            FileMeta.is_deleted == False
        ).first()

    def get_by_user_and_parent(
        self, db: Session, *, user_id: int, parent_id: int = ROOT_FOLDER_ID, search: Optional[str] = None,
        skip: int = 0, limit: int = 100
    ) -> List[FileMeta]:
        query = db.query(FileMeta).filter(FileMeta.user_id == user_id, FileMeta.is_deleted == False)
        if search:
            # Search mode: ignore parent_id, search all active items
            query = query.filter(FileMeta.file_name.like(f"%{search}%"))
        else:
            query = query.filter(FileMeta.parent_id == parent_id)

        # Folders first, then by name
        return (
            query.order_by(FileMeta.is_folder.desc(), FileMeta.file_name, FileMeta.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_by_name_and_parent(
        self, db: Session, *, name: str, parent_id: int, user_id: int
    ) -> Optional[FileMeta]:
        return db.query(FileMeta).filter(
            FileMeta.user_id == user_id,
            FileMeta.parent_id == parent_id,
            FileMeta.file_name == name,
            FileMeta.is_deleted == False
        ).first()

    def create_with_user(
        self,
        db: Session,
        *,
        user_id: int,
        file_name: str,
        mime_type: str,
        file_size: int,
        storage_path: str,
        parent_id: int = ROOT_FOLDER_ID,
    ) -> FileMeta:
        db_obj = FileMeta(
            user_id=user_id,
            parent_id=parent_id,
            file_name=file_name,
            is_folder=False,
            mime_type=mime_type,
            file_size=file_size,
            storage_path=storage_path,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow()
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def create_folder(
        self, db: Session, *, user_id: int, file_name: str, parent_id: int = ROOT_FOLDER_ID
    ) -> FileMeta:
        db_obj = FileMeta(
            user_id=user_id,
            parent_id=parent_id,
            file_name=file_name,
            is_folder=True,
            mime_type=FOLDER_MIME_TYPE,
            file_size=0,
            storage_path=None,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow()
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: FileMeta, file_name: Optional[str] = None, parent_id: Optional[int] = None
    ) -> FileMeta:
        if file_name is not None:
            db_obj.file_name = file_name
        if parent_id is not None:
            db_obj.parent_id = parent_id
        db_obj.updated_at = datetime.utcnow()
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def soft_remove(self, db: Session, *, id: int, user_id: int) -> Optional[FileMeta]:
        """
        Soft delete: Mark as deleted, folders recursively. Shares pointing at the files stay behind.
        """
        obj = db.query(self.model).filter(self.model.id == id, self.model.user_id == user_id).first()
        if not obj:
            return None

        # Recursively soft delete children if folder
        if obj.is_folder:
            children = db.query(self.model).filter(
                self.model.parent_id == id,
                self.model.user_id == user_id,
                self.model.is_deleted == False
            ).all()
            for child in children:
                self.soft_remove(db=db, id=child.id, user_id=user_id)

        obj.is_deleted = True
        obj.deleted_at = datetime.utcnow()
        obj.updated_at = datetime.utcnow() # Update timestamp
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    def get_ancestors(self, db: Session, *, folder_id: int, user_id: int) -> List[FileMeta]:
        """
        Folders from the root down to folder_id (inclusive).
        """
        ancestors = []
        current_id = folder_id

        while current_id != ROOT_FOLDER_ID:
            folder = db.query(FileMeta).filter(FileMeta.id == current_id, FileMeta.user_id == user_id).first()
            if not folder:
                break
            ancestors.insert(0, folder)
            current_id = folder.parent_id

        return ancestors

    def is_within(self, db: Session, *, folder_id: int, ancestor_id: int, user_id: int) -> bool:
        """
        True when folder_id is ancestor_id itself or lies somewhere below it.
        """
        return any(
            folder.id == ancestor_id
            for folder in self.get_ancestors(db, folder_id=folder_id, user_id=user_id)
        )

file = CRUDFileMeta(FileMeta)
