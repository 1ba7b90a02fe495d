import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gradebook.core.errors import ForbiddenError, NarrativeUnavailableError, NotFoundError
from gradebook.db import Base
from gradebook.models import Assessment, Assignment, Grade, SchoolClass, Student, Submission, User
from gradebook.services import narrative_client, report_service


class ReportServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_reports.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        db = cls._session_factory()
        try:
            db.add_all(
                [
                    User(id=1, open_id='owner', name='Owner', edu_role='teacher', role='user'),
                    User(id=2, open_id='other', name='Other', edu_role='teacher', role='user'),
                ]
            )
            db.commit()
            db.add_all(
                [
                    SchoolClass(
                        id=1,
                        teacher_id=1,
                        subject_name='Science',
                        grade_level='Grade 8',
                        section='Mabini',
                        academic_year='2026-2027',
                        term='Q1',
                        alert_threshold=75,
                    ),
                    SchoolClass(
                        id=2,
                        teacher_id=1,
                        subject_name='Art',
                        grade_level='Grade 8',
                        section='Mabini',
                        academic_year='2026-2027',
                        term='Q1',
                    ),
                ]
            )
            db.commit()
            db.add_all(
                [
                    Student(id=1, class_id=1, student_code='MAB0001', name='Alice'),
                    Student(id=2, class_id=1, student_code='MAB0002', name='Ben'),
                    Student(id=3, class_id=1, student_code='MAB0003', name='Cara'),
                    Student(id=4, class_id=2, student_code='MAB0001', name='Dino'),
                    Assessment(id=1, class_id=1, name='Quiz 1', type='quiz', max_score=20),
                    Assignment(id=1, class_id=1, name='Lab 1', week_label='Week 1'),
                ]
            )
            db.commit()
            db.add_all(
                [
                    Grade(student_id=1, assessment_id=1, score=19),
                    Grade(student_id=2, assessment_id=1, score=10),
                    Submission(student_id=1, assignment_id=1, status='submitted'),
                ]
            )
            db.commit()
        finally:
            db.close()

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        self.db = self._session_factory()
        self.owner = self.db.get(User, 1)
        self.other = self.db.get(User, 2)
        self.prompts = []

    def tearDown(self):
        self.db.close()

    def _fake_generator(self, prompt):
        self.prompts.append(prompt)
        return 'Narrative text'

    def test_student_report(self):
        report = report_service.generate_report(self.db, self.owner, 1, 1, generator=self._fake_generator)
        self.assertEqual(report['kind'], 'student')
        self.assertEqual(report['student_name'], 'Alice')
        self.assertEqual(report['term_average'], 95)
        self.assertEqual(report['submission_rate'], 100)
        self.assertEqual(report['grade_summary'][0]['percentage'], 95)
        self.assertEqual(report['narrative'], 'Narrative text')

        prompt = self.prompts[0]
        self.assertIn('Student: Alice', prompt)
        self.assertIn('Term Average: 95%', prompt)
        self.assertIn('Submission Rate: 100%', prompt)
        self.assertIn('- Quiz 1 (quiz): 19/20 (95%)', prompt)

    def test_prompt_is_deterministic(self):
        report_service.generate_report(self.db, self.owner, 1, 2, generator=self._fake_generator)
        report_service.generate_report(self.db, self.owner, 1, 2, generator=self._fake_generator)
        self.assertEqual(self.prompts[0], self.prompts[1])

    def test_class_report(self):
        report = report_service.generate_report(self.db, self.owner, 1, generator=self._fake_generator)
        self.assertEqual(report['kind'], 'class')
        self.assertEqual(report['roster_size'], 3)
        self.assertEqual(report['class_average'], 73)
        self.assertEqual(report['above_90_count'], 1)
        self.assertEqual(report['at_risk_count'], 1)
        self.assertEqual([row['average'] for row in report['students']], [95, 50, None])
        self.assertIn('Students at risk (<75%): 1', self.prompts[0])
        self.assertIn('Total Students: 3', self.prompts[0])

    def test_student_from_another_class_is_not_found(self):
        with self.assertRaises(NotFoundError):
            report_service.generate_report(self.db, self.owner, 1, 4, generator=self._fake_generator)
        self.assertEqual(self.prompts, [])

    def test_foreign_teacher_forbidden(self):
        with self.assertRaises(ForbiddenError):
            report_service.generate_report(self.db, self.other, 1, generator=self._fake_generator)

    def test_generator_failure_returns_summary_with_empty_narrative(self):
        def failing(prompt):
            raise NarrativeUnavailableError('Narrative generator timed out')

        with self.assertLogs('gradebook.services.report_service', level='WARNING'):
            report = report_service.generate_report(self.db, self.owner, 1, 1, generator=failing)
        self.assertEqual(report['narrative'], '')
        self.assertEqual(report['narrative_error'], 'Narrative generator timed out')
        self.assertEqual(report['term_average'], 95)

    def test_narrative_can_be_skipped(self):
        report = report_service.generate_report(
            self.db, self.owner, 1, include_narrative=False, generator=self._fake_generator
        )
        self.assertEqual(report['narrative'], '')
        self.assertEqual(self.prompts, [])

    def test_default_generator_is_disabled_without_configuration(self):
        with patch.object(narrative_client.settings, 'narrative_enabled', False):
            report = report_service.generate_report(self.db, self.owner, 1, 1)
        self.assertEqual(report['narrative'], '')
        self.assertNotIn('narrative_error', report)


if __name__ == '__main__':
    unittest.main()
