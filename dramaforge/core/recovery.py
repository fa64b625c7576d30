"""
Output Recovery - turning raw model text into a trustworthy AgentResponse.

Strategies, ordered by confidence:
1. A fenced ```json block holding an object.
2. The first balanced {...} object in the text.
3. The whole trimmed text, when it is itself an object or array.
4. JSON parse of the candidate, accepted only when it carries a
   "message" string or a "saveRequest" object.
5. Field-level extraction of "message", "saveRequest" and "stageComplete".
6. The raw text as a plain chat message.

Save requests are normalized to SaveRequest(target_file, content, summary)
straight away, so nothing downstream sees the alternate field names.
"""

import json
import re
from typing import Any, Dict, Optional, Tuple

from ..models.schemas import AgentResponse, RecoveryPath, ResponseType, SaveRequest
from .log import get_logger

logger = get_logger(__name__)


FENCED_OBJECT_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
CODE_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
JSON_ARRAY_START_RE = re.compile(r'^\[\s*(?:"|-?\d|true|false|null|\{|\[|\])')

MESSAGE_KEY_RE = re.compile(r'"message"\s*:\s*"')
SAVE_REQUEST_KEY_RE = re.compile(r'"saveRequest"\s*:\s*')
STAGE_COMPLETE_RE = re.compile(r'"stageComplete"\s*:\s*true')
TARGET_FILE_RE = re.compile(r'"(?:targetFile|fileName)"\s*:\s*"((?:[^"\\]|\\.)+)"')
CONTENT_RE = re.compile(r'"(?:content|fileContent)"\s*:\s*"((?:[^"\\]|\\.)*)"')
SUMMARY_RE = re.compile(r'"summary"\s*:\s*"((?:[^"\\]|\\.)*)"')

VALID_TYPES = {t.value for t in ResponseType}

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
}


# ============================================================================
# Candidate Location
# ============================================================================

def clean_json_output(text: str) -> str:
    """Strip code fences and slice from the first opening to the last closing bracket."""
    if not text:
        return ""
    cleaned = CODE_FENCE_RE.sub("", text).replace("```", "").strip()

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if starts and end > min(starts):
        return cleaned[min(starts):end + 1]
    return cleaned


def find_balanced_object(text: str, start: int = 0) -> Optional[str]:
    """
    Return the first complete {...} object at or after start.

    Braces inside string literals are ignored. Returns None when the object
    never closes.
    """
    begin = text.find("{", start)
    if begin == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(begin, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[begin:i + 1]
    return None


def extract_json_candidate(text: str) -> Optional[str]:
    """Locate the most likely JSON value in raw model text."""
    if not text:
        return None

    fenced = FENCED_OBJECT_RE.search(text)
    if fenced:
        return fenced.group(1)

    balanced = find_balanced_object(text)
    if balanced:
        return balanced

    trimmed = text.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed
    if trimmed.startswith("[") and trimmed.endswith("]") and JSON_ARRAY_START_RE.match(trimmed):
        return trimmed
    return None


# ============================================================================
# Normalization
# ============================================================================

def normalize_save_request(raw: Any) -> Optional[SaveRequest]:
    """Map targetFile/fileName and content/fileContent onto SaveRequest."""
    if not isinstance(raw, dict):
        return None

    target = raw.get("targetFile") or raw.get("fileName")
    content = raw.get("content") if "content" in raw else raw.get("fileContent")
    if not isinstance(target, str) or not target.strip() or not isinstance(content, str):
        return None

    summary = raw.get("summary")
    return SaveRequest(
        target_file=target.strip(),
        content=content,
        summary=summary if isinstance(summary, str) else None,
    )


def _from_envelope(data: Dict[str, Any]) -> Optional[AgentResponse]:
    message = data.get("message")
    raw_save = data.get("saveRequest")
    if not isinstance(message, str) and not isinstance(raw_save, dict):
        return None

    save_request = normalize_save_request(raw_save)
    declared = data.get("type")
    if declared in VALID_TYPES:
        response_type = ResponseType(declared)
    else:
        response_type = ResponseType.SAVE if save_request else ResponseType.CHAT

    suggested = data.get("suggestedNextStage")
    return AgentResponse(
        type=response_type,
        message=message if isinstance(message, str) else "",
        save_request=save_request,
        stage_complete=data.get("stageComplete") is True,
        suggested_next_stage=suggested if isinstance(suggested, str) else None,
        recovery=RecoveryPath.STRUCTURED,
    )


# ============================================================================
# Field-Level Extraction
# ============================================================================

def _read_json_string(text: str, start: int) -> Tuple[str, bool]:
    """Decode a JSON string body from start; returns (value, terminated)."""
    out = []
    i = start
    while i < len(text):
        ch = text[i]
        if ch == '"':
            return "".join(out), True
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            if nxt == "u" and i + 5 < len(text):
                try:
                    out.append(chr(int(text[i + 2:i + 6], 16)))
                    i += 6
                    continue
                except ValueError:
                    pass
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out), False


def decode_json_string(body: str) -> str:
    """Decode the escapes of an already-delimited JSON string body."""
    value, _ = _read_json_string(body + '"', 0)
    return value


def extract_message_field(text: str) -> Optional[str]:
    """Read the "message" string value; None if absent or unterminated."""
    match = MESSAGE_KEY_RE.search(text)
    if not match:
        return None
    value, terminated = _read_json_string(text, match.end())
    return value if terminated else None


def extract_save_request_field(text: str) -> Optional[SaveRequest]:
    """Recover a saveRequest from text that failed to parse as a whole."""
    match = SAVE_REQUEST_KEY_RE.search(text)
    if not match:
        return None

    object_text = find_balanced_object(text, match.end())
    if object_text:
        try:
            request = normalize_save_request(json.loads(object_text))
        except json.JSONDecodeError:
            request = None
        if request:
            return request

    fragment = object_text or text[match.end():]
    target = TARGET_FILE_RE.search(fragment)
    content = CONTENT_RE.search(fragment)
    if not target or not content:
        return None

    summary = SUMMARY_RE.search(fragment)
    return SaveRequest(
        target_file=decode_json_string(target.group(1)).strip(),
        content=decode_json_string(content.group(1)),
        summary=decode_json_string(summary.group(1)) if summary else None,
    )


# ============================================================================
# Final Response Parsing
# ============================================================================

def parse_agent_response(raw: str) -> AgentResponse:
    """Parse a completed Writer turn. Never raises."""
    if not raw or not raw.strip():
        return AgentResponse(type=ResponseType.CHAT, message="", recovery=RecoveryPath.RAW_TEXT)

    candidate = extract_json_candidate(raw)
    if candidate:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug(f"[parse_agent_response] candidate is not valid JSON: {e}")
            data = None
        if isinstance(data, dict):
            response = _from_envelope(data)
            if response:
                return response

    message = extract_message_field(raw)
    save_request = extract_save_request_field(raw)
    stage_complete = bool(STAGE_COMPLETE_RE.search(raw))

    if save_request:
        logger.warning(f"[parse_agent_response] recovered saveRequest for {save_request.target_file} by field extraction")
        return AgentResponse(
            type=ResponseType.SAVE,
            message=message or save_request.summary or "",
            save_request=save_request,
            stage_complete=stage_complete,
            recovery=RecoveryPath.FIELD_EXTRACTION,
        )

    if message is not None:
        return AgentResponse(
            type=ResponseType.CHAT,
            message=message,
            stage_complete=stage_complete,
            recovery=RecoveryPath.FIELD_EXTRACTION,
        )

    return AgentResponse(type=ResponseType.CHAT, message=raw, recovery=RecoveryPath.RAW_TEXT)


def parse_json_value(raw: str) -> Any:
    """
    Parse JSON from agent output that is expected to be pure JSON.

    Tries the text as-is, then the cleaned slice. Raises json.JSONDecodeError
    when neither parses.
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return json.loads(clean_json_output(raw))
