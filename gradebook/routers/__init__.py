from gradebook.routers import admin, assessments, assignments, auth, classes, grades, reports, share_links, students

__all__ = [
    'admin',
    'assessments',
    'assignments',
    'auth',
    'classes',
    'grades',
    'reports',
    'share_links',
    'students',
]
