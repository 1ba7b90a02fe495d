from datetime import timedelta
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from gradebook.db import Base, SessionLocal, engine
from gradebook.models import AccountStatus, EduRole, SchoolClass, User
from gradebook.services import assessment_service, assignment_service, grade_service, student_service
from gradebook.services import submission_service
from gradebook.core.time_provider import default_time_provider
from gradebook.services.auth_service import hash_password


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    if not db.query(SchoolClass).first():
        teacher = User(
            open_id='email_demo_teacher',
            name='Demo Teacher',
            email='teacher@example.com',
            login_method='email',
            password_hash=hash_password('demo-password'),
            edu_role=EduRole.TEACHER.value,
            account_status=AccountStatus.APPROVED.value,
            avatar_initials='DT',
        )
        db.add(teacher)
        db.commit()
        db.refresh(teacher)

        school_class = SchoolClass(
            teacher_id=teacher.id,
            subject_name='Mathematics',
            grade_level='Grade 7',
            section='Rizal',
            academic_year='2026-2027',
            term='First Quarter',
            alert_threshold=60,
        )
        db.add(school_class)
        db.commit()
        db.refresh(school_class)

        students = student_service.bulk_import_students(
            db,
            teacher,
            school_class.id,
            [{'name': 'Alice Smith'}, {'name': 'Ben Cruz'}, {'name': 'Carla Reyes'}],
        )
        quiz = assessment_service.create_assessment(
            db, teacher, school_class.id, {'name': 'Quiz 1', 'type': 'quiz', 'max_score': 50}
        )
        homework = assignment_service.create_assignment(
            db,
            teacher,
            school_class.id,
            {'name': 'Worksheet 1', 'week_number': 1, 'week_label': 'Week 1', 'due_date': default_time_provider.today() + timedelta(days=5)},
        )
        grade_service.bulk_upsert_grades(
            db,
            teacher,
            [
                {'student_id': s.id, 'assessment_id': quiz.id, 'score': score}
                for s, score in zip(students, (45, 32, 27))
            ],
        )
        submission_service.bulk_upsert_submissions(
            db,
            teacher,
            [
                {'student_id': s.id, 'assignment_id': homework.id, 'status': status}
                for s, status in zip(students, ('submitted', 'late', 'missing'))
            ],
        )
finally:
    db.close()

print('DB initialized with sample data.')
