from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gradebook.db import Base


class PlatformRole(str, Enum):
    USER = 'user'
    ADMIN = 'admin'


class EduRole(str, Enum):
    TEACHER = 'teacher'
    ADMIN = 'admin'


class AccountStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class SubmissionStatus(str, Enum):
    SUBMITTED = 'submitted'
    LATE = 'late'
    MISSING = 'missing'
    PENDING = 'pending'


class AssessmentType(str, Enum):
    QUIZ = 'quiz'
    EXAM = 'exam'
    PROJECT = 'project'
    ACTIVITY = 'activity'
    OTHER = 'other'


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    open_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True, index=True)
    login_method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default=PlatformRole.USER.value)
    edu_role: Mapped[str] = mapped_column(String(16), default=EduRole.TEACHER.value, index=True)
    account_status: Mapped[str] = mapped_column(String(16), default=AccountStatus.APPROVED.value, index=True)
    avatar_initials: Mapped[str | None] = mapped_column(String(4), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_signed_in: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    classes: Mapped[list['SchoolClass']] = relationship('SchoolClass', back_populates='teacher')


class SchoolClass(Base):
    __tablename__ = 'classes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    subject_name: Mapped[str] = mapped_column(String(128))
    grade_level: Mapped[str] = mapped_column(String(32))
    section: Mapped[str] = mapped_column(String(32))
    academic_year: Mapped[str] = mapped_column(String(16))
    term: Mapped[str] = mapped_column(String(32))
    alert_threshold: Mapped[int] = mapped_column(Integer, default=60)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    teacher: Mapped['User'] = relationship('User', back_populates='classes')
    students: Mapped[list['Student']] = relationship(
        'Student', back_populates='school_class', cascade='all, delete-orphan'
    )
    assignments: Mapped[list['Assignment']] = relationship(
        'Assignment', back_populates='school_class', cascade='all, delete-orphan'
    )
    assessments: Mapped[list['Assessment']] = relationship(
        'Assessment', back_populates='school_class', cascade='all, delete-orphan'
    )
    teacher_note: Mapped['TeacherNote'] = relationship(
        'TeacherNote', back_populates='school_class', cascade='all, delete-orphan', uselist=False
    )


class Student(Base):
    __tablename__ = 'students'
    __table_args__ = (
        UniqueConstraint('class_id', 'student_code', name='uq_students_class_code'),
        UniqueConstraint('share_token', name='uq_students_share_token'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id', ondelete='CASCADE'), index=True)
    student_code: Mapped[str] = mapped_column(String(32), index=True)
    name: Mapped[str] = mapped_column(String(128))
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    share_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='students')
    grades: Mapped[list['Grade']] = relationship(
        'Grade', back_populates='student', cascade='all, delete-orphan'
    )
    submissions: Mapped[list['Submission']] = relationship(
        'Submission', back_populates='student', cascade='all, delete-orphan'
    )


class Assignment(Base):
    __tablename__ = 'assignments'
    __table_args__ = (
        Index('ix_assignments_class_week', 'class_id', 'week_number'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id', ondelete='CASCADE'), index=True)
    name: Mapped[str] = mapped_column(String(128))
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    week_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    week_label: Mapped[str | None] = mapped_column(String(32), nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=10)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='assignments')
    submissions: Mapped[list['Submission']] = relationship(
        'Submission', back_populates='assignment', cascade='all, delete-orphan'
    )


class Submission(Base):
    __tablename__ = 'submissions'
    __table_args__ = (
        UniqueConstraint('student_id', 'assignment_id', name='uq_submissions_student_assignment'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), index=True)
    assignment_id: Mapped[int] = mapped_column(ForeignKey('assignments.id', ondelete='CASCADE'), index=True)
    status: Mapped[str] = mapped_column(String(16), default=SubmissionStatus.PENDING.value)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='submissions')
    assignment: Mapped['Assignment'] = relationship('Assignment', back_populates='submissions')


class Assessment(Base):
    __tablename__ = 'assessments'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id', ondelete='CASCADE'), index=True)
    name: Mapped[str] = mapped_column(String(128))
    date_taken: Mapped[date | None] = mapped_column(Date, nullable=True)
    type: Mapped[str] = mapped_column(String(16), default=AssessmentType.QUIZ.value)
    max_score: Mapped[int] = mapped_column(Integer, default=100)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='assessments')
    grades: Mapped[list['Grade']] = relationship(
        'Grade', back_populates='assessment', cascade='all, delete-orphan'
    )


class Grade(Base):
    __tablename__ = 'grades'
    __table_args__ = (
        UniqueConstraint('student_id', 'assessment_id', name='uq_grades_student_assessment'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id', ondelete='CASCADE'), index=True)
    assessment_id: Mapped[int] = mapped_column(ForeignKey('assessments.id', ondelete='CASCADE'), index=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student: Mapped['Student'] = relationship('Student', back_populates='grades')
    assessment: Mapped['Assessment'] = relationship('Assessment', back_populates='grades')


class TeacherNote(Base):
    __tablename__ = 'teacher_notes'
    __table_args__ = (
        UniqueConstraint('class_id', name='uq_teacher_notes_class_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id', ondelete='CASCADE'), index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='teacher_note')
