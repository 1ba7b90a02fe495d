from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


SubmissionStatusValue = Literal['submitted', 'late', 'missing', 'pending']
AssessmentTypeValue = Literal['quiz', 'exam', 'project', 'activity', 'other']


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class GoogleLoginRequest(BaseModel):
    id_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class ClassCreateRequest(BaseModel):
    subject_name: str
    grade_level: str
    section: str
    academic_year: str
    term: str
    alert_threshold: int | None = Field(default=None, ge=0, le=100)


class ClassUpdateRequest(BaseModel):
    subject_name: str | None = None
    grade_level: str | None = None
    section: str | None = None
    academic_year: str | None = None
    term: str | None = None
    alert_threshold: int | None = Field(default=None, ge=0, le=100)


class StudentCreateRequest(BaseModel):
    name: str
    email: str | None = None


class StudentBulkItem(BaseModel):
    name: str
    email: str | None = None


class StudentBulkRequest(BaseModel):
    students: list[StudentBulkItem]


class StudentUpdateRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    student_code: str | None = None


class AssignmentCreateRequest(BaseModel):
    name: str
    due_date: date | None = None
    week_number: int | None = None
    week_label: str | None = None
    points: int = Field(default=10, ge=0)


class AssignmentUpdateRequest(BaseModel):
    name: str | None = None
    due_date: date | None = None
    week_number: int | None = None
    week_label: str | None = None
    points: int | None = Field(default=None, ge=0)


class SubmissionUpsertRequest(BaseModel):
    student_id: int
    assignment_id: int
    status: SubmissionStatusValue


class SubmissionBulkRequest(BaseModel):
    entries: list[SubmissionUpsertRequest]


class AssessmentCreateRequest(BaseModel):
    name: str
    date_taken: date | None = None
    type: AssessmentTypeValue = 'quiz'
    max_score: int = Field(default=100, ge=1)
    description: str | None = None


class AssessmentUpdateRequest(BaseModel):
    name: str | None = None
    date_taken: date | None = None
    type: AssessmentTypeValue | None = None
    max_score: int | None = Field(default=None, ge=1)
    description: str | None = None


class GradeUpsertRequest(BaseModel):
    student_id: int
    assessment_id: int
    score: float | None = None


class GradeBulkRequest(BaseModel):
    entries: list[GradeUpsertRequest]


class ScoreImportRow(BaseModel):
    identifier: str
    score_raw: str = ''


class ScoreImportRequest(BaseModel):
    class_id: int
    assessment_id: int
    rows: list[ScoreImportRow]


class TeacherNoteRequest(BaseModel):
    notes: str = ''


class UserRoleRequest(BaseModel):
    edu_role: Literal['teacher', 'admin']


class UserStatusRequest(BaseModel):
    account_status: Literal['pending', 'approved', 'rejected']


class ReportRequest(BaseModel):
    class_id: int
    student_id: int | None = None
    include_narrative: bool = True
