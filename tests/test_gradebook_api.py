import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gradebook.db import Base, get_db
from gradebook.models import Assessment, Assignment, Grade, SchoolClass, Student, Submission, TeacherNote, User
from gradebook.routers import assessments, assignments, classes, grades, students
from gradebook.services import storage_service
from gradebook.services.auth_service import issue_session_token


PDF_BYTES = b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n'


class GradebookApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_gradebook_api.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        for module in (classes, students, assignments, assessments, grades):
            app.include_router(module.router)

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

    def setUp(self):
        db = self._session_factory()
        try:
            for table in (Grade, Submission, TeacherNote, Student, Assignment, Assessment, SchoolClass, User):
                db.query(table).delete()
            db.commit()
            owner = User(id=1, open_id='owner', name='Owner', edu_role='teacher', role='user')
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
                    Student(id=1, class_id=1, student_code='RIZ0001', name='Alice Smith'),
                    Student(id=2, class_id=1, student_code='RIZ0002', name='Ben Cruz'),
                    Assessment(id=1, class_id=1, name='Quiz 1', max_score=50),
                    Assignment(id=1, class_id=1, name='Worksheet 1', week_number=1, week_label='Week 1'),
                ]
            )
            db.commit()
            self.owner_headers = {'Authorization': f"Bearer {issue_session_token(owner)['token']}"}
            self.other_headers = {'Authorization': f"Bearer {issue_session_token(other)['token']}"}
        finally:
            db.close()

    def test_requests_without_session_are_unauthorized(self):
        response = self.client.get('/api/classes')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['detail']['kind'], 'unauthorized')

    def test_foreign_teacher_gets_forbidden(self):
        response = self.client.get('/api/classes/1/students', headers=self.other_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['detail']['kind'], 'forbidden')
        response = self.client.put(
            '/api/grades', json={'student_id': 1, 'assessment_id': 1, 'score': 10}, headers=self.other_headers
        )
        self.assertEqual(response.status_code, 403)

    def test_missing_class_is_not_found(self):
        response = self.client.get('/api/classes/99', headers=self.owner_headers)
        self.assertEqual(response.status_code, 404)

    def test_grade_upsert_enforces_bounds(self):
        response = self.client.put(
            '/api/grades', json={'student_id': 1, 'assessment_id': 1, 'score': 51}, headers=self.owner_headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['detail']['message'], 'Score must be between 0 and 50')

        response = self.client.put(
            '/api/grades', json={'student_id': 1, 'assessment_id': 1, 'score': 45}, headers=self.owner_headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['score'], 45)

        response = self.client.put(
            '/api/grades', json={'student_id': 1, 'assessment_id': 1, 'score': None}, headers=self.owner_headers
        )
        self.assertIsNone(response.json()['score'])
        listed = self.client.get('/api/classes/1/grades', headers=self.owner_headers).json()
        self.assertEqual(len(listed), 1)

    def test_bulk_grades_report_per_row_failures(self):
        response = self.client.put(
            '/api/grades/bulk',
            json={
                'entries': [
                    {'student_id': 1, 'assessment_id': 1, 'score': 40},
                    {'student_id': 2, 'assessment_id': 1, 'score': 80},
                    {'student_id': 99, 'assessment_id': 1, 'score': 10},
                ]
            },
            headers=self.owner_headers,
        )
        body = response.json()
        self.assertEqual(body['updated'], 1)
        self.assertEqual([item['index'] for item in body['failed']], [1, 2])
        self.assertEqual(body['failed'][1]['kind'], 'not_found')
        student_grades = self.client.get('/api/students/1/grades', headers=self.owner_headers).json()
        self.assertEqual(student_grades[0]['score'], 40)

    def test_score_import_endpoints(self):
        response = self.client.post(
            '/api/grades/import',
            json={
                'class_id': 1,
                'assessment_id': 1,
                'rows': [
                    {'identifier': 'alice smith', 'score_raw': '42'},
                    {'identifier': 'Nobody', 'score_raw': '10'},
                    {'identifier': 'Ben Cruz', 'score_raw': ''},
                ],
            },
            headers=self.owner_headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(), {'imported': 1, 'skipped': ['Ben Cruz'], 'unmatched': ['Nobody'], 'invalid': []}
        )

        response = self.client.post(
            '/api/grades/import-csv',
            data={'class_id': '1', 'assessment_id': '1'},
            files={'file': ('scores.csv', b'ID,Mark\nRIZ0002,30\n', 'text/csv')},
            headers=self.owner_headers,
        )
        self.assertEqual(response.json()['imported'], 1)

        response = self.client.post(
            '/api/grades/import-csv',
            data={'class_id': '1', 'assessment_id': '1'},
            files={'file': ('scores.csv', b'ID,Mark\nRIZ0002,30,oops\n', 'text/csv')},
            headers=self.owner_headers,
        )
        self.assertEqual(response.status_code, 400)

    def test_submission_upsert_stamps_submitted_at(self):
        response = self.client.put(
            '/api/submissions',
            json={'student_id': 1, 'assignment_id': 1, 'status': 'submitted'},
            headers=self.owner_headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.json()['submitted_at'])

        response = self.client.put(
            '/api/submissions',
            json={'student_id': 1, 'assignment_id': 1, 'status': 'missing'},
            headers=self.owner_headers,
        )
        self.assertIsNone(response.json()['submitted_at'])
        rows = self.client.get('/api/classes/1/submissions', headers=self.owner_headers).json()
        self.assertEqual([row['status'] for row in rows], ['missing'])

    def test_bulk_submissions(self):
        response = self.client.put(
            '/api/submissions/bulk',
            json={
                'entries': [
                    {'student_id': 1, 'assignment_id': 1, 'status': 'late'},
                    {'student_id': 2, 'assignment_id': 1, 'status': 'submitted'},
                ]
            },
            headers=self.owner_headers,
        )
        self.assertEqual(response.json(), {'updated': 2, 'failed': []})

    def test_max_score_cannot_drop_below_recorded_score(self):
        self.client.put('/api/grades', json={'student_id': 1, 'assessment_id': 1, 'score': 45}, headers=self.owner_headers)
        response = self.client.patch('/api/assessments/1', json={'max_score': 40}, headers=self.owner_headers)
        self.assertEqual(response.status_code, 400)
        response = self.client.patch('/api/assessments/1', json={'max_score': 45}, headers=self.owner_headers)
        self.assertEqual(response.json()['max_score'], 45)

    def test_assessment_file_upload_and_removal(self):
        stored = []

        def fake_put(key, data, mime_type):
            stored.append(key)
            return {'key': key, 'url': f'https://files.example.com/{key}'}

        with patch.object(storage_service, 'put', side_effect=fake_put), patch.object(storage_service, 'delete') as fake_delete:
            response = self.client.post(
                '/api/assessments/1/file',
                files={'file': ('quiz1.pdf', PDF_BYTES, 'application/pdf')},
                headers=self.owner_headers,
            )
            self.assertEqual(response.status_code, 200)
            body = response.json()
            self.assertTrue(stored[0].startswith('test-papers/1/'))
            self.assertTrue(stored[0].endswith('-quiz1.pdf'))
            self.assertEqual(body['file_name'], 'quiz1.pdf')
            self.assertTrue(body['has_file'])

            rejected = self.client.post(
                '/api/assessments/1/file',
                files={'file': ('notes.txt', b'hello', 'text/plain')},
                headers=self.owner_headers,
            )
            self.assertEqual(rejected.status_code, 400)

            removed = self.client.delete('/api/assessments/1/file', headers=self.owner_headers).json()
            self.assertIsNone(removed['file_url'])
            self.assertIsNone(removed['file_name'])
            fake_delete.assert_called_with(stored[0])

    def test_overview_and_exports(self):
        self.client.put('/api/grades', json={'student_id': 1, 'assessment_id': 1, 'score': 25}, headers=self.owner_headers)
        overview = self.client.get('/api/classes/1/overview', headers=self.owner_headers).json()
        self.assertEqual(overview['class_average'], 50)
        self.assertEqual([row['name'] for row in overview['at_risk']], ['Alice Smith'])

        response = self.client.get('/api/classes/1/grades/export', headers=self.owner_headers)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers['content-type'].startswith('text/csv'))
        lines = response.text.strip().split('\n')
        self.assertEqual(lines[0], 'Student ID,Name,Quiz 1,Term Average')
        self.assertEqual(lines[1], 'RIZ0001,Alice Smith,25,50%')
        self.assertEqual(lines[2], 'RIZ0002,Ben Cruz,,')

        homework = self.client.get('/api/classes/1/homework/export', headers=self.owner_headers).text
        self.assertIn('RIZ0001,Alice Smith,pending,0%', homework)

    def test_teacher_notes_round_trip(self):
        empty = self.client.get('/api/classes/1/notes', headers=self.owner_headers).json()
        self.assertEqual(empty['notes'], '')
        self.client.put('/api/classes/1/notes', json={'notes': 'Call parents of Ben'}, headers=self.owner_headers)
        saved = self.client.get('/api/classes/1/notes', headers=self.owner_headers).json()
        self.assertEqual(saved['notes'], 'Call parents of Ben')

    def test_student_and_assignment_crud(self):
        created = self.client.post(
            '/api/classes/1/students', json={'name': 'Cara Lim'}, headers=self.owner_headers
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()['student_code'], 'RIZ0003')
        bulk = self.client.post(
            '/api/classes/1/students/bulk',
            json={'students': [{'name': 'Dan'}, {'name': 'Eli'}]},
            headers=self.owner_headers,
        ).json()
        self.assertEqual([row['student_code'] for row in bulk['students']], ['RIZ0004', 'RIZ0005'])

        assignment = self.client.post(
            '/api/classes/1/assignments',
            json={'name': 'Worksheet 2', 'week_number': 2, 'due_date': '2026-10-30'},
            headers=self.owner_headers,
        ).json()
        self.assertEqual(assignment['points'], 10)
        self.assertEqual(assignment['due_date'], '2026-10-30')
        deleted = self.client.delete(f"/api/assignments/{assignment['id']}", headers=self.owner_headers)
        self.assertEqual(deleted.status_code, 200)


if __name__ == '__main__':
    unittest.main()
