from __future__ import annotations

from sqlalchemy.orm import Session

from gradebook.core.tenancy import load_class
from gradebook.models import TeacherNote, User


def serialize_note(class_id: int, row: TeacherNote | None) -> dict:
    return {
        'class_id': class_id,
        'notes': row.notes if row else '',
        'updated_at': row.updated_at.isoformat() if row and row.updated_at else None,
    }


def get_note(db: Session, actor: User, class_id: int) -> TeacherNote | None:
    load_class(db, actor, class_id)
    return db.query(TeacherNote).filter(TeacherNote.class_id == class_id).first()


def upsert_note(db: Session, actor: User, class_id: int, notes: str | None) -> TeacherNote:
    load_class(db, actor, class_id)
    row = db.query(TeacherNote).filter(TeacherNote.class_id == class_id).first()
    if row is None:
        row = TeacherNote(class_id=class_id)
        db.add(row)
    row.notes = notes or ''
    db.commit()
    db.refresh(row)
    return row
