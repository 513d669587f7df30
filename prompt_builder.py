"""
Prompt assembly for 5512 lesson plans (Phụ lục IV, Công văn 5512/BGDĐT-GDTrH).

build_prompt_parts() turns a form snapshot into an ordered list of segments:
    {"text": str}                                   text segment
    {"data": bytes, "mime_type": str, "filename": str}  attachment segment
The first segment always holds the full instruction; uploaded files follow,
each wrapped in opening/closing marker text segments.
"""

from errors import InvalidInputError
from form_state import can_generate


def is_attachment(segment):
    return "data" in segment


# ── Conditional instruction fragments ───────────────────────

DIGITAL_COMPETENCY_OBJECTIVE = (
    "   - **Năng lực số:** (Dựa vào nội dung Năng lực số đã cung cấp, trích dẫn chính xác "
    "các kí hiệu và nội dung tương ứng được tích hợp trong bài học.)"
)

DIGITAL_COMPETENCY_INSTRUCTION = (
    "- **Tích hợp Năng lực số chi tiết (BẮT BUỘC):** Trong phần **Nội dung** hoặc "
    "**Tổ chức thực hiện** của mỗi hoạt động, phải **chỉ rõ và mô tả** hoạt động đó giúp "
    "phát triển năng lực số nào. Luôn sử dụng kí hiệu đã được cung cấp trong phần Năng lực số. "
    "*Ví dụ: \"GV yêu cầu HS sử dụng phần mềm trình chiếu để tạo báo cáo kết quả (NLS 5.a, 5.b)\" "
    "hoặc \"HS hợp tác trên tài liệu trực tuyến để hoàn thành phiếu học tập (NLS 4.a, 3.b)\".*"
)

WORKSHEET_INSTRUCTION = (
    "Nếu người dùng yêu cầu, hãy tạo nội dung cho phiếu học tập trong trường \"worksheet\"."
)
NO_WORKSHEET_INSTRUCTION = "Không tạo phiếu học tập."

IMAGE_INSTRUCTION = (
    "Nếu người dùng yêu cầu, hãy tạo danh sách các gợi ý hình ảnh minh họa trong trường \"images\"."
)
NO_IMAGE_INSTRUCTION = "Không tạo gợi ý hình ảnh."


def computer_grouping_instruction(form):
    return (
        f"- **Chia nhóm và thiết bị:** Dựa trên số lượng {form.student_count} HS và "
        f"{form.computer_count} máy tính, hãy đề xuất phương án chia nhóm và sử dụng thiết bị "
        "hợp lý trong phần **II. Thiết bị dạy học** và **III. Tổ chức thực hiện** "
        "(ví dụ: chia thành bao nhiêu nhóm, mỗi nhóm bao nhiêu HS, bao nhiêu em chung 1 máy)."
    )


def plain_grouping_instruction(form):
    return (
        f"- **Chia nhóm và thiết bị:** Dựa trên số lượng {form.student_count} HS "
        "(lớp học không sử dụng máy tính), hãy đề xuất phương án chia nhóm "
        "hợp lý trong phần **II. Thiết bị dạy học** và **III. Tổ chức thực hiện** "
        "(ví dụ: chia thành bao nhiêu nhóm, mỗi nhóm bao nhiêu HS)."
    )


# Evaluated in this order; every matching fragment becomes one line of the
# closing instructions.
CLOSING_INSTRUCTIONS = [
    (lambda f: f.include_digital_competency, DIGITAL_COMPETENCY_INSTRUCTION),
    (lambda f: f.student_count > 0 and f.uses_computers, computer_grouping_instruction),
    (lambda f: f.student_count > 0 and not f.uses_computers, plain_grouping_instruction),
    (lambda f: f.worksheet, WORKSHEET_INSTRUCTION),
    (lambda f: not f.worksheet, NO_WORKSHEET_INSTRUCTION),
    (lambda f: f.generate_images, IMAGE_INSTRUCTION),
    (lambda f: not f.generate_images, NO_IMAGE_INSTRUCTION),
]


def closing_instructions(form):
    lines = []
    for predicate, fragment in CLOSING_INSTRUCTIONS:
        if predicate(form):
            lines.append(fragment(form) if callable(fragment) else fragment)
    return lines


# ── Source material ─────────────────────────────────────────

# (form attribute, label inside the instruction, attachment marker name, enabled?)
SOURCE_SECTIONS = [
    ("textbook_content", "Nội dung chính từ sách giáo khoa",
     "Nội dung sách giáo khoa", lambda f: True),
    ("digital_competency", "Nội dung Năng lực số (Phụ lục 3)",
     "Nội dung Năng lực số", lambda f: f.include_digital_competency),
]


def _inline_sources(form):
    """Text/url sources are embedded verbatim between --- delimiters."""
    blocks = []
    for attr, label, _marker, enabled in SOURCE_SECTIONS:
        content = getattr(form, attr)
        if not enabled(form) or content.kind == "file":
            continue
        blocks.append(f"\n- {label}: \n---\n{content.value}\n---\n")
    return "".join(blocks)


def _attachment_segments(form):
    segments = []
    for attr, _label, marker, enabled in SOURCE_SECTIONS:
        content = getattr(form, attr)
        if not enabled(form) or content.kind != "file" or content.is_empty:
            continue
        att = content.attachment
        segments.append({"text": f"\n--- Bắt đầu {marker} từ file đính kèm ---"})
        segments.append({"data": att.data, "mime_type": att.mime_type, "filename": att.filename})
        segments.append({"text": f"--- Kết thúc {marker} từ file đính kèm ---"})
    return segments


# ── Instruction template ────────────────────────────────────

def _yes_no(value):
    return "Có" if value else "Không"


def build_instruction(form):
    """Build the leading text segment: every field plus the required output outline."""
    computers = f"Có ({form.computer_count} máy)" if form.uses_computers else "Không"
    equipment_note = f" và {form.computer_count} máy" if form.uses_computers else ""
    objective_extra = f"\n{DIGITAL_COMPETENCY_OBJECTIVE}" if form.include_digital_competency else ""

    prompt = f"""
Bạn là một chuyên gia giáo dục và giáo viên giỏi tại Việt Nam. Nhiệm vụ của bạn là soạn thảo Kế hoạch bài dạy (Giáo án) theo đúng khung Phụ lục IV của Công văn 5512/BGDĐT-GDTrH.

**Dữ liệu đầu vào:**
- Khối lớp: {form.grade}
- Môn học: {form.subject}
- Tên bài: {form.lesson_title}
- Thời lượng: {form.duration}
- Số lượng học sinh: {form.student_count}
- Sử dụng máy tính: {computers}
- Hoạt động nhóm: {_yes_no(form.group_activity)}
- Phiếu học tập: {_yes_no(form.worksheet)}
- Kỹ thuật dạy học: {form.teaching_technique}
"""
    prompt += _inline_sources(form)

    prompt += f"""
**Yêu cầu:**
Dựa vào dữ liệu trên, hãy soạn thảo nội dung và trả về kết quả dưới dạng JSON (không dùng Markdown code block, chỉ trả về raw JSON) theo schema sau:
{{
  "lessonPlan": "Chuỗi văn bản chứa nội dung giáo án định dạng Markdown",
  "worksheet": "Chuỗi văn bản chứa nội dung phiếu học tập định dạng Markdown (nếu có)",
  "images": [
      {{
          "description": "Mô tả chi tiết hình ảnh cần tìm hoặc tạo",
          "prompt": "Câu lệnh (Prompt) tiếng Anh để tạo ảnh bằng AI (Midjourney/DALL-E)"
      }}
  ]
}}

**Quy tắc nội dung trường "lessonPlan":**
TUÂN THỦ NGHIÊM NGẶT cấu trúc dưới đây.
**Quan trọng: Bắt đầu phần lessonPlan trực tiếp với Tên bài học được VIẾT HOA và IN ĐẬM, theo sau là Thời lượng. Không thêm bất kỳ lời dẫn, câu giới thiệu, hay dòng phân cách (`---`) nào trước đó.**

**{form.lesson_title.upper()}**
**Thời lượng:** {form.duration}

**I. MỤC TIÊU**
**1. Kiến thức:** [Nội dung kiến thức cốt lõi, viết thường]
**2. Năng lực:**
   - **Năng lực chung:** [Nội dung năng lực chung, viết thường]
   - **Năng lực đặc thù môn học:** [Nội dung năng lực đặc thù, viết thường]{objective_extra}
**3. Phẩm chất:** [Liệt kê các phẩm chất chính, viết thường]

**II. THIẾT BỊ DẠY HỌC VÀ HỌC LIỆU**
**1. Thiết bị dạy học:** (Liệt kê các thiết bị cần thiết. Dựa trên số liệu {form.student_count} HS{equipment_note}, nêu rõ cách bố trí và tổ chức.)
**2. Học liệu:** (Liệt kê các học liệu: Sách giáo khoa, phiếu học tập (nếu có), video, phần mềm mô phỏng,...)

**III. TIẾN TRÌNH DẠY HỌC**

**HOẠT ĐỘNG 1: MỞ ĐẦU (XÁC ĐỊNH VẤN ĐỀ)**
**a) Mục tiêu:** [Mục tiêu hoạt động, viết thường]
**b) Nội dung:** [Mô tả nhiệm vụ, viết thường]
**c) Sản phẩm:** [Mô tả sản phẩm, viết thường]
**d) Tổ chức thực hiện:** (Mô tả 4 bước rõ ràng: Giao nhiệm vụ -> Thực hiện -> Báo cáo -> Kết luận).

**HOẠT ĐỘNG 2: HÌNH THÀNH KIẾN THỨC MỚI**
(Chia thành các mục nhỏ tương ứng với các phần trong sách giáo khoa đã cung cấp. Sử dụng định dạng số `**1.**`, `**2.**`, `**3.**` cho tiêu đề mỗi mục.)
**1. [Tên mục 1 trong SGK]**
**a) Mục tiêu:** [Nội dung viết tiếp ở đây, không in đậm]
**b) Nội dung:** [Nội dung viết tiếp ở đây, không in đậm]
**c) Sản phẩm:** [Nội dung viết tiếp ở đây, không in đậm]
**d) Tổ chức thực hiện:**
[Mô tả các bước tổ chức thực hiện ở đây]

**2. [Tên mục 2 trong SGK]**
... (Tương tự cho các mục khác)

**HOẠT ĐỘNG 3: LUYỆN TẬP**
**a) Mục tiêu:**
**b) Nội dung:**
**c) Sản phẩm:**
**d) Tổ chức thực hiện:**

**HOẠT ĐỘNG 4: VẬN DỤNG**
**a) Mục tiêu:**
**b) Nội dung:**
**c) Sản phẩm:**
**d) Tổ chức thực hiện:**

**LƯU Ý QUAN TRỌNG:**
- Sử dụng ngôn ngữ sư phạm, rõ ràng, ngắn gọn.
- Chỉ in đậm phần tiêu đề của các mục (ví dụ: **a) Mục tiêu:**, **1. Kiến thức:**, **3. Phẩm chất:**), phần nội dung chi tiết phía sau để ở dạng chữ thường, tuyệt đối KHÔNG in đậm.
- Tuyệt đối không thêm ước tính thời gian (ví dụ: 'Khoảng 5 phút').
- Tuyệt đối không chia nội dung thành các TIẾT (ví dụ: 'TIẾT 1', 'TIẾT 2').
"""
    prompt += "\n".join(closing_instructions(form)) + "\n"
    return prompt


# ── Main Entry Point ────────────────────────────────────────

def build_prompt_parts(form):
    """
    Build the ordered segment list for one generation request.
    Raises InvalidInputError when the lesson title or textbook content is missing.
    """
    if not can_generate(form):
        raise InvalidInputError()

    parts = [{"text": build_instruction(form)}]
    parts.extend(_attachment_segments(form))
    return parts
