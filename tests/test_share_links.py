import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gradebook.config import Settings, settings
from gradebook.db import Base, get_db
from gradebook.models import Assessment, Assignment, Grade, SchoolClass, Student, Submission, TeacherNote, User
from gradebook.routers import share_links
from gradebook.services import share_link_service
from gradebook.services.auth_service import hash_password, issue_session_token


class ShareLinkTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_share_links.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        db = cls._session_factory()
        try:
            owner = User(
                id=1,
                open_id='owner',
                name='Owner',
                email='owner@example.com',
                password_hash=hash_password('owner-password'),
                edu_role='teacher',
                role='user',
            )
            other = User(id=2, open_id='other', name='Other', edu_role='teacher', role='user')
            db.add_all([owner, other])
            db.commit()
            db.add(
                SchoolClass(
                    id=1,
                    teacher_id=1,
                    subject_name='Mathematics',
                    grade_level='Grade 7',
                    section='Rizal',
                    academic_year='2026-2027',
                    term='Q1',
                    alert_threshold=60,
                )
            )
            db.commit()
            db.add_all(
                [
                    Student(id=1, class_id=1, student_code='RIZ0001', name='Alice Smith', email='alice@example.com'),
                    Student(id=2, class_id=1, student_code='RIZ0002', name='Ben Cruz', email='ben@example.com'),
                    Assessment(id=1, class_id=1, name='Quiz 1', max_score=100),
                    Assessment(id=2, class_id=1, name='Exam', type='exam', max_score=50),
                    Assignment(id=1, class_id=1, name='Worksheet 1', week_label='Week 1'),
                    Assignment(id=2, class_id=1, name='Worksheet 2', week_label='Week 2'),
                    TeacherNote(class_id=1, notes='Private: Ben needs a parent meeting'),
                ]
            )
            db.commit()
            db.add_all(
                [
                    Grade(student_id=1, assessment_id=1, score=55),
                    Grade(student_id=2, assessment_id=1, score=99),
                    Submission(student_id=1, assignment_id=1, status='late'),
                    Submission(student_id=2, assignment_id=1, status='submitted'),
                ]
            )
            db.commit()
            cls.owner_headers = {'Authorization': f"Bearer {issue_session_token(owner)['token']}"}
            cls.other_headers = {'Authorization': f"Bearer {issue_session_token(other)['token']}"}
        finally:
            db.close()

        app = FastAPI()
        app.include_router(share_links.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def _generate(self, student_id=1):
        response = self.client.post(f'/api/students/{student_id}/share-link', headers=self.owner_headers)
        self.assertEqual(response.status_code, 200)
        return response.json()['token']

    def test_token_is_long_and_url_safe(self):
        token = self._generate()
        self.assertGreaterEqual(len(token), 22)
        self.assertRegex(token, r'^[A-Za-z0-9_-]+$')

    def test_projection_contains_summaries_and_nothing_private(self):
        token = self._generate()
        response = self.client.get(f'/api/parent-view/{token}')
        self.assertEqual(response.status_code, 200)
        body = response.json()

        self.assertEqual(body['student'], {'name': 'Alice Smith', 'student_code': 'RIZ0001'})
        self.assertEqual(body['class']['subject_name'], 'Mathematics')
        self.assertEqual(body['grades']['term_average'], 55)
        self.assertEqual(body['grades']['bucket'], 'at_risk')
        self.assertEqual([item['percentage'] for item in body['grades']['summary']], [55, None])
        self.assertEqual(body['homework']['submission_rate'], 50)
        self.assertEqual(body['homework']['late_count'], 1)
        self.assertEqual([item['status'] for item in body['homework']['summary']], ['late', 'pending'])

        raw = response.text
        for forbidden in ('alice@example.com', 'owner@example.com', 'pbkdf2', 'Private', 'Ben Cruz', 'password', 'share_token'):
            self.assertNotIn(forbidden, raw)

    def test_regenerate_invalidates_previous_token(self):
        first = self._generate()
        second = self._generate()
        self.assertNotEqual(first, second)
        self.assertEqual(self.client.get(f'/api/parent-view/{first}').status_code, 404)
        self.assertEqual(self.client.get(f'/api/parent-view/{second}').status_code, 200)

    def test_revoke_makes_token_not_found(self):
        token = self._generate()
        response = self.client.delete('/api/students/1/share-link', headers=self.owner_headers)
        self.assertEqual(response.json(), {'student_id': 1, 'revoked': True})
        response = self.client.get(f'/api/parent-view/{token}')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['detail']['message'], 'Invalid or expired link')

    def test_unknown_token_is_not_found(self):
        self.assertEqual(self.client.get('/api/parent-view/never-issued').status_code, 404)

    def test_foreign_teacher_cannot_manage_links(self):
        self.assertEqual(self.client.post('/api/students/1/share-link', headers=self.other_headers).status_code, 403)
        self.assertEqual(self.client.delete('/api/students/1/share-link', headers=self.other_headers).status_code, 403)


class ShareTokenSizeTests(unittest.TestCase):
    def setUp(self):
        self._original = settings.share_token_bytes
        self.addCleanup(setattr, settings, 'share_token_bytes', self._original)

    def test_token_fits_the_share_token_column(self):
        column_width = Student.__table__.c.share_token.type.length
        settings.share_token_bytes = 48
        self.assertEqual(len(share_link_service.new_token()), column_width)
        settings.share_token_bytes = 500
        self.assertLessEqual(len(share_link_service.new_token()), column_width)
        settings.share_token_bytes = 1
        self.assertGreaterEqual(len(share_link_service.new_token()), 22)

    def test_settings_reject_out_of_range_token_sizes(self):
        with self.assertRaises(ValidationError):
            Settings(share_token_bytes=64)
        with self.assertRaises(ValidationError):
            Settings(share_token_bytes=8)
        self.assertEqual(Settings(share_token_bytes=48).share_token_bytes, 48)


if __name__ == '__main__':
    unittest.main()
