"""
Lesson plan form state.
The form record is immutable: every update returns a new LessonPlanFormData,
so a generation works on the exact snapshot that was submitted.
"""

import re
from dataclasses import dataclass, field, replace
from typing import ClassVar, Optional

from errors import InvalidFieldError

GRADES = tuple(str(g) for g in range(6, 13))
CONTENT_KINDS = ("text", "url", "file")


# ── Content inputs (text / url / file) ──────────────────────

@dataclass(frozen=True)
class Attachment:
    """An uploaded file, read into memory once at upload time."""
    filename: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self):
        return len(self.data)


@dataclass(frozen=True)
class TextContent:
    kind: ClassVar[str] = "text"
    value: str = ""

    @property
    def is_empty(self):
        return not self.value.strip()


@dataclass(frozen=True)
class UrlContent:
    kind: ClassVar[str] = "url"
    value: str = ""

    @property
    def is_empty(self):
        return not self.value.strip()


@dataclass(frozen=True)
class FileContent:
    kind: ClassVar[str] = "file"
    attachment: Optional[Attachment] = None

    @property
    def is_empty(self):
        return self.attachment is None or not self.attachment.data


_CONTENT_TYPES = {"text": TextContent, "url": UrlContent, "file": FileContent}


def empty_content(kind):
    """Return the empty value for a content kind (switching kinds resets the value)."""
    try:
        return _CONTENT_TYPES[kind]()
    except (KeyError, TypeError):
        raise InvalidFieldError(f"Loại nội dung không hợp lệ: {kind}") from None


def content_to_dict(content):
    if isinstance(content, FileContent):
        att = content.attachment
        return {
            "kind": "file",
            "value": None if att is None else {
                "filename": att.filename, "mimeType": att.mime_type, "size": att.size,
            },
        }
    return {"kind": content.kind, "value": content.value}


# ── Form record ─────────────────────────────────────────────

@dataclass(frozen=True)
class LessonPlanFormData:
    grade: str = "10"
    subject: str = "Tin học"
    lesson_title: str = ""
    duration: str = "2 tiết"
    group_activity: bool = True
    student_count: int = 40
    has_computers: bool = True
    computer_count: int = 20
    worksheet: bool = True
    teaching_technique: str = "Dạy học dự án, Thảo luận nhóm"
    textbook_content: object = field(default_factory=TextContent)
    include_digital_competency: bool = True
    digital_competency: object = field(default_factory=TextContent)
    generate_images: bool = False

    @property
    def uses_computers(self):
        return self.has_computers and self.computer_count > 0


TEXT_FIELDS = ("grade", "subject", "lesson_title", "duration", "teaching_technique")
FLAG_FIELDS = ("group_activity", "has_computers", "worksheet",
               "include_digital_competency", "generate_images")
COUNT_FIELDS = ("student_count", "computer_count")
CONTENT_FIELDS = ("textbook_content", "digital_competency")

# The page script speaks camelCase.
FIELD_NAMES = {
    "grade": "grade",
    "subject": "subject",
    "lessonTitle": "lesson_title",
    "duration": "duration",
    "groupActivity": "group_activity",
    "studentCount": "student_count",
    "hasComputers": "has_computers",
    "computerCount": "computer_count",
    "worksheet": "worksheet",
    "teachingTechnique": "teaching_technique",
    "textbookContent": "textbook_content",
    "includeDigitalCompetency": "include_digital_competency",
    "digitalCompetency": "digital_competency",
    "generateImages": "generate_images",
}


def resolve_field(name):
    """Map a camelCase or snake_case field name to the record attribute."""
    if not isinstance(name, str):
        raise InvalidFieldError(f"Trường không tồn tại: {name!r}")
    if name in FIELD_NAMES:
        return FIELD_NAMES[name]
    if name in FIELD_NAMES.values():
        return name
    raise InvalidFieldError(f"Trường không tồn tại: {name}")


def coerce_count(value):
    """Parse a numeric input the way a number box does; anything invalid becomes 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    m = re.match(r"\s*([+-]?\d+)", str(value if value is not None else ""))
    if not m:
        return 0
    try:
        return max(0, int(m.group(1)))
    except ValueError:
        # past the interpreter's digit limit
        return 0


def coerce_flag(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "on", "yes")
    return bool(value)


# ── Update operations ───────────────────────────────────────

def set_text(form, name, value):
    if name not in TEXT_FIELDS:
        raise InvalidFieldError(f"Trường không phải văn bản: {name}")
    value = "" if value is None else str(value)
    if name == "grade" and value not in GRADES:
        raise InvalidFieldError(f"Khối lớp không hợp lệ: {value}")
    return replace(form, **{name: value})


def set_flag(form, name, value):
    if name not in FLAG_FIELDS:
        raise InvalidFieldError(f"Trường không phải lựa chọn: {name}")
    return replace(form, **{name: coerce_flag(value)})


def set_count(form, name, value):
    if name not in COUNT_FIELDS:
        raise InvalidFieldError(f"Trường không phải số: {name}")
    return replace(form, **{name: coerce_count(value)})


def set_content(form, name, content):
    """Replace a content input wholesale."""
    if name not in CONTENT_FIELDS:
        raise InvalidFieldError(f"Trường không phải nội dung: {name}")
    if not isinstance(content, (TextContent, UrlContent, FileContent)):
        raise InvalidFieldError("Nội dung không hợp lệ.")
    return replace(form, **{name: content})


def switch_content_kind(form, name, kind):
    """Switch a content input to another kind. The value is always reset."""
    return set_content(form, name, empty_content(kind))


def set_content_value(form, name, kind, value):
    """Edit the value of a text or url content input."""
    if kind == "file":
        raise InvalidFieldError("Nội dung dạng file phải được tải lên.")
    content = empty_content(kind)
    return set_content(form, name, replace(content, value="" if value is None else str(value)))


def attach_file(form, name, filename, mime_type, data):
    attachment = Attachment(filename=filename, mime_type=mime_type, data=data)
    return set_content(form, name, FileContent(attachment=attachment))


def update_field(form, name, value):
    """Apply one scalar, boolean or numeric field update coming from the page."""
    name = resolve_field(name)
    if name in TEXT_FIELDS:
        return set_text(form, name, value)
    if name in FLAG_FIELDS:
        return set_flag(form, name, value)
    if name in COUNT_FIELDS:
        return set_count(form, name, value)
    raise InvalidFieldError(f"Dùng cập nhật nội dung cho trường: {name}")


# ── Derived state ───────────────────────────────────────────

def can_generate(form):
    """Generation needs a lesson title and some textbook content."""
    return bool(form.lesson_title.strip()) and not form.textbook_content.is_empty


def form_to_dict(form):
    data = {}
    for camel, attr in FIELD_NAMES.items():
        value = getattr(form, attr)
        if attr in CONTENT_FIELDS:
            value = content_to_dict(value)
        data[camel] = value
    return data
