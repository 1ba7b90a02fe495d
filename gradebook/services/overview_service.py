from __future__ import annotations

from sqlalchemy.orm import Session

from gradebook.core.tenancy import load_class
from gradebook.models import User
from gradebook.services import aggregation, csv_import
from gradebook.services.assessment_service import load_class_assessments
from gradebook.services.assignment_service import load_class_assignments
from gradebook.services.grade_service import load_class_grades
from gradebook.services.student_service import load_roster
from gradebook.services.submission_service import load_class_submissions


def class_overview(db: Session, actor: User, class_id: int) -> dict:
    school_class = load_class(db, actor, class_id)
    return aggregation.class_overview(
        school_class,
        load_roster(db, school_class.id),
        load_class_assessments(db, school_class.id),
        load_class_grades(db, school_class.id),
        load_class_assignments(db, school_class.id),
        load_class_submissions(db, school_class.id),
    )


def _export_name(school_class, kind: str) -> str:
    section = ''.join(ch for ch in (school_class.section or '') if ch.isalnum()) or 'class'
    return f'{section}-{kind}.csv'


def export_grades(db: Session, actor: User, class_id: int) -> tuple[str, str]:
    school_class = load_class(db, actor, class_id)
    content = csv_import.export_gradebook_csv(
        load_roster(db, school_class.id),
        load_class_assessments(db, school_class.id),
        load_class_grades(db, school_class.id),
    )
    return _export_name(school_class, 'grades'), content


def export_homework(db: Session, actor: User, class_id: int) -> tuple[str, str]:
    school_class = load_class(db, actor, class_id)
    content = csv_import.export_homework_csv(
        load_roster(db, school_class.id),
        load_class_assignments(db, school_class.id),
        load_class_submissions(db, school_class.id),
    )
    return _export_name(school_class, 'homework'), content
