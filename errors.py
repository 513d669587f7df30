"""
Error taxonomy for lesson plan generation.
Every error carries a machine-readable kind and a message shown to the teacher.
"""


class LessonPlanError(Exception):
    """Base class for every user-facing failure."""

    kind = "unexpected"
    default_message = "Đã có lỗi không mong muốn xảy ra. Vui lòng thử lại."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.message, "kind": self.kind}


class InvalidInputError(LessonPlanError):
    kind = "invalid-input"
    default_message = "Vui lòng nhập Tên bài và Nội dung sách giáo khoa trước khi tạo giáo án."


class InvalidFieldError(LessonPlanError):
    kind = "invalid-field"
    default_message = "Trường thông tin không hợp lệ."


class GenerationError(LessonPlanError):
    """Failures on the generation path, normalized at the client boundary."""


class InvalidApiKeyError(GenerationError):
    kind = "invalid-api-key"
    default_message = "API Key không hợp lệ. Vui lòng kiểm tra lại cấu hình."


class MalformedResponseError(GenerationError):
    kind = "malformed-response"
    default_message = "Phản hồi từ dịch vụ AI không đúng định dạng. Vui lòng thử lại."


class ProviderFailureError(GenerationError):
    kind = "provider-failure"
    default_message = "Không nhận được phản hồi hợp lệ từ dịch vụ AI."


class UnexpectedGenerationError(GenerationError):
    kind = "unexpected"
    default_message = "Không thể tạo giáo án. Đã có lỗi xảy ra trong quá trình xử lý."


class GenerationInFlightError(LessonPlanError):
    kind = "in-flight"
    default_message = "Giáo án đang được tạo. Vui lòng chờ trong giây lát."


class ConfigurationError(RuntimeError):
    """Raised at startup when the process configuration is unusable."""
