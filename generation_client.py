"""
Generation client: sends prompt segments to the AI provider and parses the
structured reply into a GenerationResult.

Exactly one attempt per call. Every failure leaves this module as a
GenerationError subclass carrying a message that can be shown as is.
"""

import base64
import json
import logging
import re
from dataclasses import dataclass, field

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

import config
from errors import (
    ConfigurationError, GenerationError, InvalidApiKeyError, MalformedResponseError,
    ProviderFailureError, UnexpectedGenerationError,
)
from prompt_builder import is_attachment

logger = logging.getLogger(__name__)

RESPONSE_KEYS = ("lessonPlan", "worksheet", "images")

# Declared to providers that support structured output.
RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "lessonPlan": {"type": "string"},
        "worksheet": {"type": "string"},
        "images": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "prompt": {"type": "string"},
                },
                "required": ["description", "prompt"],
                "additionalProperties": False,
            },
        },
    },
    "required": list(RESPONSE_KEYS),
    "additionalProperties": False,
}


# ── Result ──────────────────────────────────────────────────

@dataclass(frozen=True)
class ImageSuggestion:
    description: str
    prompt: str


@dataclass(frozen=True)
class GenerationResult:
    lesson_plan: str
    worksheet: str = ""
    images: tuple = field(default_factory=tuple)

    def to_dict(self):
        return {
            "lessonPlan": self.lesson_plan,
            "worksheet": self.worksheet,
            "images": [{"description": i.description, "prompt": i.prompt} for i in self.images],
        }


def strip_json_fences(raw):
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw)
    raw = re.sub(r"\s*```$", "", raw)
    return raw


def parse_generation_result(raw):
    """Parse provider text into a GenerationResult or raise MalformedResponseError."""
    try:
        data = json.loads(strip_json_fences(raw))
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedResponseError() from e

    if not isinstance(data, dict):
        raise MalformedResponseError()
    missing = [k for k in RESPONSE_KEYS if k not in data]
    if missing:
        logger.warning("Generation response missing keys: %s", ", ".join(missing))
        raise MalformedResponseError()

    lesson_plan, worksheet, images = data["lessonPlan"], data["worksheet"], data["images"]
    if not isinstance(lesson_plan, str) or not isinstance(worksheet, str) or not isinstance(images, list):
        raise MalformedResponseError()

    suggestions = []
    for item in images:
        if not isinstance(item, dict):
            raise MalformedResponseError()
        description, prompt = item.get("description"), item.get("prompt")
        if not isinstance(description, str) or not isinstance(prompt, str):
            raise MalformedResponseError()
        suggestions.append(ImageSuggestion(description=description, prompt=prompt))

    return GenerationResult(lesson_plan=lesson_plan, worksheet=worksheet, images=tuple(suggestions))


# ── Provider backends ───────────────────────────────────────
# A backend turns segments into one provider call and returns the raw reply
# text ("" or None when the provider sent nothing back).

def _data_uri(segment):
    encoded = base64.b64encode(segment["data"]).decode("ascii")
    return f"data:{segment['mime_type']};base64,{encoded}"


class GeminiBackend:
    """Google Gemini through the google-genai SDK, with a declared response schema."""

    def __init__(self, api_key, model, timeout):
        self.model = model
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    @staticmethod
    def to_parts(segments):
        parts = []
        for seg in segments:
            if is_attachment(seg):
                parts.append(types.Part.from_bytes(data=seg["data"], mime_type=seg["mime_type"]))
            else:
                parts.append(types.Part.from_text(text=seg["text"]))
        return parts

    @staticmethod
    def response_schema():
        return types.Schema(
            type=types.Type.OBJECT,
            properties={
                "lessonPlan": types.Schema(type=types.Type.STRING),
                "worksheet": types.Schema(type=types.Type.STRING),
                "images": types.Schema(
                    type=types.Type.ARRAY,
                    items=types.Schema(
                        type=types.Type.OBJECT,
                        properties={
                            "description": types.Schema(type=types.Type.STRING),
                            "prompt": types.Schema(type=types.Type.STRING),
                        },
                        required=["description", "prompt"],
                    ),
                ),
            },
            required=list(RESPONSE_KEYS),
        )

    def send(self, segments):
        response = self._client.models.generate_content(
            model=self.model,
            contents=self.to_parts(segments),
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=self.response_schema(),
            ),
        )
        return response.text if response is not None else None

    @staticmethod
    def is_invalid_credential(exc):
        if not isinstance(exc, genai_errors.APIError):
            return False
        message = f"{exc.message or ''} {exc}"
        return "API key not valid" in message or exc.code == 401


class AnthropicBackend:
    """Anthropic Claude. The JSON envelope is requested by the instruction text."""

    def __init__(self, api_key, model, timeout):
        import anthropic
        self._anthropic = anthropic
        self.model = model
        self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    @staticmethod
    def to_content(segments):
        blocks = []
        for seg in segments:
            if not is_attachment(seg):
                blocks.append({"type": "text", "text": seg["text"]})
                continue
            source = {
                "type": "base64",
                "media_type": seg["mime_type"],
                "data": base64.b64encode(seg["data"]).decode("ascii"),
            }
            block_type = "image" if seg["mime_type"].startswith("image/") else "document"
            blocks.append({"type": block_type, "source": source})
        return blocks

    def send(self, segments):
        message = self._client.messages.create(
            model=self.model,
            max_tokens=16000,
            messages=[{"role": "user", "content": self.to_content(segments)}],
        )
        if not message.content:
            return None
        return "".join(getattr(block, "text", "") for block in message.content)

    def is_invalid_credential(self, exc):
        return isinstance(exc, self._anthropic.AuthenticationError)


class OpenAIBackend:
    """OpenAI chat completions with a strict json_schema response format."""

    def __init__(self, api_key, model, timeout):
        import openai
        self._openai = openai
        self.model = model
        self._client = openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @staticmethod
    def to_content(segments):
        content = []
        for seg in segments:
            if not is_attachment(seg):
                content.append({"type": "text", "text": seg["text"]})
            elif seg["mime_type"].startswith("image/"):
                content.append({"type": "image_url", "image_url": {"url": _data_uri(seg)}})
            else:
                content.append({"type": "file", "file": {
                    "filename": seg.get("filename") or "attachment.pdf",
                    "file_data": _data_uri(seg),
                }})
        return content

    def send(self, segments):
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "You are an expert Vietnamese curriculum specialist."},
                {"role": "user", "content": self.to_content(segments)},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "lesson_plan", "schema": RESPONSE_SCHEMA, "strict": True},
            },
        )
        if not response.choices:
            return None
        return response.choices[0].message.content

    def is_invalid_credential(self, exc):
        return isinstance(exc, self._openai.AuthenticationError)


OFFLINE_RESPONSE = {
    "lessonPlan": (
        "**BÀI MẪU: LÀM QUEN VỚI TRỢ LÝ SOẠN GIÁO ÁN**\n"
        "**Thời lượng:** 1 tiết\n"
        "\n"
        "**I. MỤC TIÊU**\n"
        "**1. Kiến thức:** nêu được cấu trúc kế hoạch bài dạy theo Công văn 5512.\n"
        "**2. Năng lực:**\n"
        "* **Năng lực chung:** tự chủ và tự học.\n"
        "* **Năng lực đặc thù môn học:** sử dụng công cụ số để soạn bài.\n"
        "**3. Phẩm chất:** chăm chỉ, trách nhiệm.\n"
        "\n"
        "**II. THIẾT BỊ DẠY HỌC VÀ HỌC LIỆU**\n"
        "**1. Thiết bị dạy học:** máy chiếu, máy tính.\n"
        "**2. Học liệu:** sách giáo khoa, phiếu học tập.\n"
        "\n"
        "**III. TIẾN TRÌNH DẠY HỌC**\n"
        "**HOẠT ĐỘNG 1: MỞ ĐẦU (XÁC ĐỊNH VẤN ĐỀ)**\n"
        "**a) Mục tiêu:** tạo hứng thú cho học sinh.\n"
        "**d) Tổ chức thực hiện:** GV giao nhiệm vụ, HS thực hiện, báo cáo và kết luận."
    ),
    "worksheet": "**PHIẾU HỌC TẬP SỐ 1**\n* Câu 1: Kế hoạch bài dạy gồm mấy phần?",
    "images": [
        {"description": "Sơ đồ cấu trúc kế hoạch bài dạy",
         "prompt": "A clean infographic of a lesson plan structure, flat design"},
    ],
}


class OfflineBackend:
    """Canned reply for local development; never touches the network."""

    def __init__(self, api_key=None, model=None, timeout=None):
        self.model = model or "offline"

    def send(self, segments):
        return json.dumps(OFFLINE_RESPONSE, ensure_ascii=False)

    def is_invalid_credential(self, exc):
        return False


BACKENDS = {
    "gemini": GeminiBackend,
    "anthropic": AnthropicBackend,
    "openai": OpenAIBackend,
    "offline": OfflineBackend,
}


# ── Client ──────────────────────────────────────────────────

class GenerationClient:
    """
    One generation request per generate() call.
    The credential is required at construction for every networked provider.
    """

    def __init__(self, api_key, provider="gemini", model=None,
                 timeout=config.GENERATION_TIMEOUT, backend=None):
        if provider not in BACKENDS:
            raise ConfigurationError(f"Unknown AI provider: {provider}")
        if provider != "offline" and not api_key:
            names = " / ".join(config.API_KEY_ENV_VARS.get(provider, ("API_KEY",)))
            raise ConfigurationError(f"{names} environment variable not set")
        self.provider = provider
        self.model = model or config.DEFAULT_MODELS[provider]
        self.timeout = timeout
        self._backend = backend or BACKENDS[provider](api_key, self.model, timeout)

    @classmethod
    def from_config(cls):
        provider = config.AI_PROVIDER
        return cls(config.get_api_key(provider), provider=provider,
                   model=config.get_model(provider), timeout=config.GENERATION_TIMEOUT)

    def generate(self, segments):
        """Send segments, return a GenerationResult or raise a GenerationError."""
        attachments = sum(1 for s in segments if is_attachment(s))
        logger.info("Generating lesson plan via %s/%s (%d segments, %d attachments)",
                    self.provider, self.model, len(segments), attachments)
        try:
            raw = self._backend.send(segments)
        except GenerationError:
            raise
        except Exception as e:
            if self._backend.is_invalid_credential(e):
                logger.error("AI provider rejected the API key: %s", e)
                raise InvalidApiKeyError() from e
            logger.exception("Lỗi khi gọi %s API", self.provider)
            raise UnexpectedGenerationError() from e

        if not raw or not raw.strip():
            logger.error("Empty response from %s", self.provider)
            raise ProviderFailureError()
        return parse_generation_result(raw)
