import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gradebook.core.errors import CapacityError, ConflictError, InputValidationError
from gradebook.db import Base
from gradebook.models import Assessment, Assignment, Grade, SchoolClass, Student, Submission, TeacherNote, User
from gradebook.services import class_service, student_service
from gradebook.services.student_service import allocate_student_codes, generate_student_code


CLASS_FIELDS = {
    'subject_name': 'Mathematics',
    'grade_level': 'Grade 7',
    'section': 'Rizal A',
    'academic_year': '2026-2027',
    'term': 'First Quarter',
}


class StudentCodeTests(unittest.TestCase):
    def test_code_uses_compacted_section_prefix(self):
        self.assertEqual(generate_student_code('Rizal A', 7), 'RIZ0007')
        self.assertEqual(generate_student_code(' b 1', 12), 'B10012')
        self.assertEqual(generate_student_code('Sampaguita', 1234), 'SAM1234')

    def test_batch_codes_continue_from_roster_size_once(self):
        codes = allocate_student_codes('Rizal', 2, 3, {'RIZ0001', 'RIZ0002'})
        self.assertEqual(codes, ['RIZ0003', 'RIZ0004', 'RIZ0005'])

    def test_batch_skips_codes_still_in_use(self):
        # Roster shrank to two students but RIZ0003 is still taken.
        codes = allocate_student_codes('Rizal', 2, 2, {'RIZ0001', 'RIZ0003'})
        self.assertEqual(codes, ['RIZ0004', 'RIZ0005'])


class RosterServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_roster.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        for table in (Grade, Submission, TeacherNote, Student, Assignment, Assessment, SchoolClass, User):
            self.db.query(table).delete()
        self.db.commit()
        self.teacher = User(id=1, open_id='t1', name='Teacher', edu_role='teacher', role='user')
        self.admin = User(id=2, open_id='a1', name='Admin', edu_role='admin', role='user')
        self.db.add_all([self.teacher, self.admin])
        self.db.commit()

    def tearDown(self):
        self.db.close()

    def test_teacher_capped_at_three_classes(self):
        for _ in range(3):
            class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        with self.assertRaises(CapacityError) as ctx:
            class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        self.assertIn('maximum of 3', ctx.exception.message)
        self.assertEqual(class_service.count_owned_classes(self.db, self.teacher.id), 3)

    def test_admin_is_exempt_from_class_cap(self):
        for _ in range(5):
            class_service.create_class(self.db, self.admin, dict(CLASS_FIELDS))
        self.assertEqual(class_service.count_owned_classes(self.db, self.admin.id), 5)

    def test_class_defaults_and_validation(self):
        row = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        self.assertEqual(row.alert_threshold, 60)
        with self.assertRaises(InputValidationError):
            class_service.create_class(self.db, self.teacher, {**CLASS_FIELDS, 'alert_threshold': 101})
        with self.assertRaises(InputValidationError):
            class_service.create_class(self.db, self.teacher, {**CLASS_FIELDS, 'section': '  '})

    def test_list_classes_scopes_teachers_to_their_own(self):
        class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        class_service.create_class(self.db, self.admin, dict(CLASS_FIELDS))
        self.assertEqual(len(class_service.list_classes(self.db, self.teacher)), 1)
        self.assertEqual(len(class_service.list_classes(self.db, self.admin)), 2)

    def test_bulk_import_assigns_sequential_codes(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        student_service.create_student(self.db, self.teacher, school_class.id, name='First')
        rows = student_service.bulk_import_students(
            self.db,
            self.teacher,
            school_class.id,
            [{'name': ' Ana '}, {'name': 'Ben', 'email': 'ben@example.com'}, {'name': 'Cy', 'email': ''}],
        )
        self.assertEqual([row.student_code for row in rows], ['RIZ0002', 'RIZ0003', 'RIZ0004'])
        self.assertEqual(rows[0].name, 'Ana')
        self.assertIsNone(rows[2].email)

    def test_create_after_delete_never_reuses_a_code(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        first = student_service.create_student(self.db, self.teacher, school_class.id, name='One')
        student_service.create_student(self.db, self.teacher, school_class.id, name='Two')
        student_service.delete_student(self.db, self.teacher, first.id)
        third = student_service.create_student(self.db, self.teacher, school_class.id, name='Three')
        self.assertEqual(third.student_code, 'RIZ0003')

    def test_code_rename_must_be_unique_in_class(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        a = student_service.create_student(self.db, self.teacher, school_class.id, name='A')
        b = student_service.create_student(self.db, self.teacher, school_class.id, name='B')
        with self.assertRaises(ConflictError):
            student_service.update_student(self.db, self.teacher, b.id, {'student_code': a.student_code.lower()})
        renamed = student_service.update_student(self.db, self.teacher, b.id, {'student_code': 'CUSTOM-1'})
        self.assertEqual(renamed.student_code, 'CUSTOM-1')

    def test_invalid_email_rejected_on_create(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        with self.assertRaises(InputValidationError):
            student_service.create_student(self.db, self.teacher, school_class.id, name='A', email='not-an-email')

    def test_csv_parse_error_inserts_nothing(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        with self.assertRaises(InputValidationError):
            student_service.import_students_csv(
                self.db, self.teacher, school_class.id, b'Name,Email\nAna,ana@example.com,extra\n'
            )
        self.assertEqual(self.db.query(Student).count(), 0)

    def test_csv_import_detects_columns(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        content = '\ufeffFull Name,Email Address\nAna Cruz,ana@example.com\n,\nBen Uy,\n'.encode('utf-8')
        rows = student_service.import_students_csv(self.db, self.teacher, school_class.id, content)
        self.assertEqual([(r.name, r.email) for r in rows], [('Ana Cruz', 'ana@example.com'), ('Ben Uy', None)])

    def test_delete_class_cascades(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        student = student_service.create_student(self.db, self.teacher, school_class.id, name='A')
        assessment = Assessment(class_id=school_class.id, name='Quiz', max_score=10)
        assignment = Assignment(class_id=school_class.id, name='W1')
        self.db.add_all([assessment, assignment, TeacherNote(class_id=school_class.id, notes='n')])
        self.db.commit()
        self.db.add_all(
            [
                Grade(student_id=student.id, assessment_id=assessment.id, score=5),
                Submission(student_id=student.id, assignment_id=assignment.id, status='submitted'),
            ]
        )
        self.db.commit()

        class_service.delete_class(self.db, self.teacher, school_class.id)
        for table in (SchoolClass, Student, Assessment, Assignment, Grade, Submission, TeacherNote):
            self.assertEqual(self.db.query(table).count(), 0, table.__tablename__)

    def test_delete_student_removes_grades_and_submissions(self):
        school_class = class_service.create_class(self.db, self.teacher, dict(CLASS_FIELDS))
        keep = student_service.create_student(self.db, self.teacher, school_class.id, name='Keep')
        drop = student_service.create_student(self.db, self.teacher, school_class.id, name='Drop')
        assessment = Assessment(class_id=school_class.id, name='Quiz', max_score=10)
        self.db.add(assessment)
        self.db.commit()
        self.db.add_all(
            [
                Grade(student_id=keep.id, assessment_id=assessment.id, score=5),
                Grade(student_id=drop.id, assessment_id=assessment.id, score=6),
            ]
        )
        self.db.commit()

        student_service.delete_student(self.db, self.teacher, drop.id)
        self.assertEqual([g.student_id for g in self.db.query(Grade).all()], [keep.id])


if __name__ == '__main__':
    unittest.main()
