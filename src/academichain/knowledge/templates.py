"""
Confluence page templates for a course space.

Template bodies use the knowledge base's own substitution syntax:
``{{placeholder}}`` for values and ``{{#each items}} ... {{/each}}`` for
repeated rows. Substitution happens inside the knowledge base when a page is
created from a template. Lecture pages are created directly, so
:meth:`PageTemplate.render` fills a body locally for them.

The assignment feedback page is created directly (not from a template) and
later patched in place by :func:`patch_feedback_body` once a grade exists.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from datetime import date

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
_EACH_BLOCK = re.compile(r"\{\{#each\s+([A-Za-z_][A-Za-z0-9_]*)\s*\}\}(.*?)\{\{/each\}\}", re.S)


@dataclass(frozen=True)
class PageTemplate:
    key: str
    name: str
    description: str
    body: str
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()

    def placeholders(self) -> set[str]:
        """Top-level placeholders (names used inside ``{{#each}}`` rows are excluded)."""
        outside = _EACH_BLOCK.sub("", self.body)
        names = set(_PLACEHOLDER.findall(outside))
        names.update(m.group(1) for m in _EACH_BLOCK.finditer(self.body))
        return names

    def missing(self, values: dict[str, object]) -> list[str]:
        """Required variables absent from *values*."""
        return [name for name in self.required if values.get(name) in (None, "")]

    def render(self, values: dict[str, object]) -> str:
        """
        Substitute *values* into the body locally, escaping each value.

        ``{{#each}}`` blocks expand once per mapping in the named list.
        Placeholders without a value render empty.
        """

        def row(block: str, item: object) -> str:
            scope = item if isinstance(item, dict) else {}
            return _PLACEHOLDER.sub(lambda m: _text(scope.get(m.group(1))), block)

        def each(m: re.Match[str]) -> str:
            items = values.get(m.group(1)) or []
            if not isinstance(items, list):
                return ""
            return "".join(row(m.group(2), item) for item in items)

        expanded = _EACH_BLOCK.sub(each, self.body)
        return _PLACEHOLDER.sub(lambda m: _text(values.get(m.group(1))), expanded)


def _text(value: object) -> str:
    return "" if value is None else html.escape(str(value))


SYLLABUS = PageTemplate(
    key="syllabus-template",
    name="Course Syllabus",
    description="Template for course syllabus and curriculum",
    body="""<h1>Course Syllabus</h1>
<h2>Course Information</h2>
<ul>
  <li><strong>Course Code:</strong> {{courseCode}}</li>
  <li><strong>Course Title:</strong> {{courseTitle}}</li>
  <li><strong>Credits:</strong> {{credits}}</li>
  <li><strong>Semester:</strong> {{semester}}</li>
  <li><strong>Academic Year:</strong> {{academicYear}}</li>
</ul>
<h2>Instructor</h2>
<p>{{instructorName}} ({{instructorEmail}}), office hours: {{officeHours}}</p>
<h2>Course Description</h2>
<p>{{courseDescription}}</p>
<h2>Learning Objectives</h2>
<p>{{learningObjectives}}</p>
<h2>Course Schedule</h2>
<table>
  <tr><th>Week</th><th>Topic</th><th>Assignments</th></tr>
  {{#each schedule}}
  <tr><td>{{week}}</td><td>{{topic}}</td><td>{{assignments}}</td></tr>
  {{/each}}
</table>
<h2>Grading Policy</h2>
<p>{{gradingPolicy}}</p>
<h2>Resources</h2>
<p>{{resources}}</p>
""",
    required=(
        "courseCode",
        "courseTitle",
        "credits",
        "semester",
        "academicYear",
        "instructorName",
        "instructorEmail",
        "courseDescription",
        "learningObjectives",
        "gradingPolicy",
    ),
    optional=("officeHours", "resources", "schedule"),
)

ASSIGNMENT = PageTemplate(
    key="assignment-template",
    name="Assignment Page",
    description="Template for assignment descriptions and requirements",
    body="""<h1>Assignment: {{assignmentTitle}}</h1>
<h2>Overview</h2>
<p>{{assignmentOverview}}</p>
<h2>Objectives</h2>
<p>{{objectives}}</p>
<h2>Requirements</h2>
<p>{{requirements}}</p>
<h2>Submission Guidelines</h2>
<ul>
  <li><strong>Due Date:</strong> {{dueDate}}</li>
  <li><strong>Submission Format:</strong> {{submissionFormat}}</li>
  <li><strong>File Types Accepted:</strong> {{fileTypes}}</li>
  <li><strong>Maximum File Size:</strong> {{maxFileSize}}</li>
</ul>
<h2>Grading Criteria</h2>
<p>{{gradingCriteria}}</p>
<h2>Resources</h2>
<p>{{resources}}</p>
""",
    required=(
        "assignmentTitle",
        "assignmentOverview",
        "objectives",
        "requirements",
        "dueDate",
        "submissionFormat",
        "gradingCriteria",
    ),
    optional=("fileTypes", "maxFileSize", "resources"),
)

LECTURE = PageTemplate(
    key="lecture-template",
    name="Lecture Notes",
    description="Template for lecture notes and materials",
    body="""<h1>Lecture {{lectureNumber}}: {{lectureTitle}}</h1>
<p><strong>Date:</strong> {{lectureDate}}</p>
<h2>Learning Objectives</h2>
<p>{{learningObjectives}}</p>
<h2>Agenda</h2>
<p>{{agenda}}</p>
<h2>Key Concepts</h2>
<p>{{keyConcepts}}</p>
<h2>Examples</h2>
<p>{{examples}}</p>
<h2>Next Lecture</h2>
<p>{{nextLecture}}</p>
""",
    required=(
        "lectureNumber",
        "lectureTitle",
        "lectureDate",
        "learningObjectives",
        "agenda",
        "keyConcepts",
    ),
    optional=("examples", "nextLecture"),
)

COURSE_TEMPLATES: tuple[PageTemplate, ...] = (SYLLABUS, ASSIGNMENT, LECTURE)


def lecture_page_title(number: int, title: str) -> str:
    return f"Lecture {number}: {title}"


# ---------------------------------------------------------------------------
# Initial course pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InitialPage:
    title: str
    body: str


@dataclass
class SemesterInfo:
    space_key: str
    semester_name: str
    start_date: date | None = None
    end_date: date | None = None
    extra_pages: list[InitialPage] = field(default_factory=list)


def initial_pages(info: SemesterInfo) -> list[InitialPage]:
    """The landing pages every semester space starts with."""
    key = html.escape(info.space_key)
    name = html.escape(info.semester_name)
    start = info.start_date.isoformat() if info.start_date else "TBA"
    end = info.end_date.isoformat() if info.end_date else "TBA"
    pages = [
        InitialPage(
            "Course Overview",
            f"""<h1>Welcome to {name}</h1>
<p>This space holds the course materials, assignments and resources for the semester.</p>
<ul>
  <li><a href="/wiki/spaces/{key}/pages/syllabus">Course Syllabus</a></li>
  <li><a href="/wiki/spaces/{key}/pages/assignments">Assignments</a></li>
  <li><a href="/wiki/spaces/{key}/pages/lectures">Lecture Notes</a></li>
  <li><a href="/wiki/spaces/{key}/pages/resources">Resources</a></li>
</ul>
<p><strong>Semester Start:</strong> {start}</p>
<p><strong>Semester End:</strong> {end}</p>
""",
        ),
        InitialPage(
            "Assignments",
            """<h1>Course Assignments</h1>
<p>Assignments are listed here as they are created.</p>
<ul>
  <li>All assignments are submitted through the course issue tracker.</li>
  <li>Late submissions may incur grade penalties.</li>
</ul>
""",
        ),
        InitialPage(
            "Lecture Notes",
            "<h1>Lecture Notes</h1>\n<p>Lecture notes are posted here after each class.</p>\n",
        ),
        InitialPage(
            "Resources",
            "<h1>Course Resources</h1>\n<p>Textbooks, online material and required tools.</p>\n",
        ),
    ]
    pages.extend(info.extra_pages)
    return pages


# ---------------------------------------------------------------------------
# Assignment feedback page
# ---------------------------------------------------------------------------

_GRADE_PENDING = '<span id="grade-score">Pending</span>'
_TOTAL_PENDING = '<span id="total-points">{{totalPoints}}</span>'
_FEEDBACK_PENDING = re.compile(r'<div id="feedback-content">.*?</div>', re.S)


def feedback_page_title(issue_key: str) -> str:
    return f"Assignment Feedback - {issue_key}"


def feedback_page_body(issue_key: str, student: str | None) -> str:
    return f"""<h1>Assignment Feedback</h1>
<h2>Assignment Details</h2>
<p><strong>Assignment ID:</strong> {html.escape(issue_key)}</p>
<p><strong>Student:</strong> {html.escape(student or "Unassigned")}</p>
<h2>Grade</h2>
<p><strong>Score:</strong> {_GRADE_PENDING}</p>
<p><strong>Total Points:</strong> {_TOTAL_PENDING}</p>
<h2>Feedback</h2>
<div id="feedback-content">
  <p>Feedback will be provided here once grading is complete.</p>
</div>
<h2>Submission Files</h2>
<div id="submission-files">
  <p>Submitted files will be linked here.</p>
</div>
"""


def patch_feedback_body(body: str, grade: float, total_marks: float, feedback: str) -> str:
    """
    Fill the grade, total and feedback slots of a feedback page body.

    Slots are located by element id, so a page that was already graded is
    re-patched with the new values rather than left untouched.
    """
    body = re.sub(
        r'<span id="grade-score">.*?</span>',
        f'<span id="grade-score">{_fmt_number(grade)}</span>',
        body,
        count=1,
    )
    body = re.sub(
        r'<span id="total-points">.*?</span>',
        f'<span id="total-points">{_fmt_number(total_marks)}</span>',
        body,
        count=1,
    )
    paragraphs = "".join(
        f"\n  <p>{html.escape(line)}</p>" for line in feedback.splitlines() if line.strip()
    )
    return _FEEDBACK_PENDING.sub(
        lambda _m: f'<div id="feedback-content">{paragraphs}\n</div>', body, count=1
    )


def _fmt_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
