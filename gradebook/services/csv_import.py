from __future__ import annotations

import csv
import io
import math
import re
from dataclasses import dataclass, field
from typing import Iterable

from gradebook.core.errors import InputValidationError
from gradebook.services import aggregation


IDENTIFIER_HEADER_RE = re.compile(r'name|student|id', re.IGNORECASE)
SCORE_HEADER_RE = re.compile(r'score|mark|grade|result', re.IGNORECASE)
NAME_HEADER_RE = re.compile(r'name|student|full', re.IGNORECASE)
EMAIL_HEADER_RE = re.compile(r'email', re.IGNORECASE)


@dataclass
class ParsedCsv:
    headers: list[str]
    rows: list[dict[str, str]]


@dataclass
class ScoreImportResult:
    entries: list[dict] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.entries)

    def as_dict(self) -> dict:
        return {
            'imported': self.imported,
            'skipped': list(self.skipped),
            'unmatched': list(self.unmatched),
            'invalid': list(self.invalid),
        }


def parse_csv(file_bytes: bytes) -> ParsedCsv:
    try:
        text = file_bytes.decode('utf-8-sig')
    except UnicodeDecodeError as exc:
        raise InputValidationError('Could not parse CSV file: file is not UTF-8 text') from exc

    reader = csv.DictReader(io.StringIO(text), restkey='__extra__')
    try:
        headers = [str(item or '').strip() for item in (reader.fieldnames or [])]
        if not any(headers):
            raise InputValidationError('Could not parse CSV file: header row is missing')
        rows: list[dict[str, str]] = []
        for line_number, raw in enumerate(reader, start=2):
            if raw.get('__extra__'):
                raise InputValidationError(f'Could not parse CSV file: row {line_number} has more cells than headers')
            values = {
                str(key or '').strip(): str(value or '')
                for key, value in raw.items()
                if key != '__extra__'
            }
            if not any(value.strip() for value in values.values()):
                continue
            rows.append(values)
    except csv.Error as exc:
        raise InputValidationError(f'Could not parse CSV file: {exc}') from exc
    return ParsedCsv(headers=headers, rows=rows)


def _first_matching(headers: Iterable[str], pattern: re.Pattern, exclude: str | None = None) -> str | None:
    for header in headers:
        if header and header != exclude and pattern.search(header):
            return header
    return None


def detect_identifier_column(headers: Iterable[str]) -> str | None:
    return _first_matching(headers, IDENTIFIER_HEADER_RE)


def detect_score_column(headers: Iterable[str], identifier_column: str | None = None) -> str | None:
    return _first_matching(headers, SCORE_HEADER_RE, exclude=identifier_column)


def detect_name_column(headers: Iterable[str]) -> str | None:
    return _first_matching(headers, NAME_HEADER_RE)


def detect_email_column(headers: Iterable[str]) -> str | None:
    return _first_matching(headers, EMAIL_HEADER_RE)


def _require_column(headers: list[str], column: str | None, label: str) -> str:
    if not column:
        raise InputValidationError(f'Could not find a {label} column in the CSV header')
    if column not in headers:
        raise InputValidationError(f'Column "{column}" is not present in the CSV header')
    return column


def student_candidates(
    parsed: ParsedCsv,
    name_column: str | None = None,
    email_column: str | None = None,
) -> list[dict]:
    name_column = _require_column(parsed.headers, name_column or detect_name_column(parsed.headers), 'name')
    if email_column is None:
        email_column = detect_email_column(parsed.headers)
    elif email_column and email_column not in parsed.headers:
        raise InputValidationError(f'Column "{email_column}" is not present in the CSV header')

    candidates = []
    for row in parsed.rows:
        name = (row.get(name_column) or '').strip()
        if not name:
            continue
        email = (row.get(email_column) or '').strip() if email_column else ''
        candidates.append({'name': name, 'email': email or None})
    return candidates


def score_rows(
    parsed: ParsedCsv,
    identifier_column: str | None = None,
    score_column: str | None = None,
) -> list[dict]:
    identifier_column = _require_column(
        parsed.headers,
        identifier_column or detect_identifier_column(parsed.headers),
        'student name/ID',
    )
    score_column = _require_column(
        parsed.headers,
        score_column or detect_score_column(parsed.headers, identifier_column),
        'score',
    )
    rows = []
    for row in parsed.rows:
        identifier = (row.get(identifier_column) or '').strip()
        if not identifier:
            continue
        rows.append({'identifier': identifier, 'score_raw': (row.get(score_column) or '').strip()})
    return rows


def _parse_score(raw: str) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _find_student(identifier: str, roster: list) -> object | None:
    needle = identifier.strip().lower()
    matches = [
        student
        for student in roster
        if (student.name or '').strip().lower() == needle or (student.student_code or '').strip().lower() == needle
    ]
    if len(matches) != 1:
        return None
    return matches[0]


def match_score_rows(rows: Iterable[dict], roster: list, assessment_id: int, max_score: float) -> ScoreImportResult:
    """Resolves import rows against a class roster.

    Every row lands in exactly one of entries, skipped or unmatched. Rows whose score
    fails to parse or falls outside ``[0, max_score]`` are unmatched and also listed
    under ``invalid``.
    """
    result = ScoreImportResult()
    for row in rows:
        identifier = str(row.get('identifier') or '')
        score_raw = str(row.get('score_raw') or '').strip()
        student = _find_student(identifier, roster) if identifier.strip() else None
        if student is None:
            result.unmatched.append(identifier)
            continue
        if not score_raw:
            result.skipped.append(identifier)
            continue
        score = _parse_score(score_raw)
        if score is None or score < 0 or score > max_score:
            result.unmatched.append(identifier)
            result.invalid.append(identifier)
            continue
        result.entries.append({'student_id': int(student.id), 'assessment_id': int(assessment_id), 'score': score})
    return result


def _format_score(score: float | None) -> str:
    if score is None:
        return ''
    if float(score).is_integer():
        return str(int(score))
    return str(score)


def _write_csv(header: list[str], rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def export_gradebook_csv(students: list, assessments: list, grades: list) -> str:
    scores = {(int(g.student_id), int(g.assessment_id)): g.score for g in grades}
    header = ['Student ID', 'Name', *[assessment.name for assessment in assessments], 'Term Average']
    rows = []
    for student in students:
        average = aggregation.term_average(student.id, assessments, grades)
        rows.append(
            [
                student.student_code,
                student.name,
                *[_format_score(scores.get((int(student.id), int(a.id)))) for a in assessments],
                f'{average}%' if average is not None else '',
            ]
        )
    return _write_csv(header, rows)


def export_homework_csv(students: list, assignments: list, submissions: list) -> str:
    statuses = {(int(s.student_id), int(s.assignment_id)): s.status for s in submissions}
    header = ['Student ID', 'Name', *[assignment.name for assignment in assignments], 'Submission Rate']
    rows = []
    for student in students:
        rate = aggregation.student_submission_rate(student.id, submissions, len(assignments))
        rows.append(
            [
                student.student_code,
                student.name,
                *[statuses.get((int(student.id), int(a.id)), 'pending') for a in assignments],
                f'{rate}%',
            ]
        )
    return _write_csv(header, rows)
