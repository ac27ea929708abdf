"""Secret redaction for stored transcripts.

Free-text answers and grading rationales pass through `redact` before they are
written. Matches are replaced with a typed marker such as `[REDACTED:API_KEY]`.
Scoring always sees the original text.
"""
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecretPattern:
    name: str
    pattern: re.Pattern
    marker: str


SECRET_PATTERNS: tuple[SecretPattern, ...] = (
    # AWS access key ids
    SecretPattern("API_KEY", re.compile(r"AKIA[A-Z0-9]{16}"), "[REDACTED:API_KEY]"),
    SecretPattern("API_KEY", re.compile(r"(?:sk|pk)-[a-zA-Z0-9]{20,}"), "[REDACTED:API_KEY]"),
    SecretPattern("BEARER", re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*"), "[REDACTED:BEARER]"),
    SecretPattern(
        "CONNECTION_STRING",
        re.compile(r"(?:mongodb|postgres|postgresql|mysql|redis)://\S+"),
        "[REDACTED:CONNECTION_STRING]",
    ),
    SecretPattern("PASSWORD", re.compile(r"password\s*[=:]\s*[^\s;,&\"']+", re.IGNORECASE), "[REDACTED:PASSWORD]"),
    SecretPattern("PASSWORD", re.compile(r"secret\s*[=:]\s*[^\s;,&\"']+", re.IGNORECASE), "[REDACTED:PASSWORD]"),
    SecretPattern("TOKEN", re.compile(r"token\s*[=:]\s*[^\s;,&\"']+", re.IGNORECASE), "[REDACTED:TOKEN]"),
)


@dataclass
class RedactionResult:
    text: str
    redaction_count: int = 0
    redaction_types: list[str] = field(default_factory=list)


def redact(text: str) -> RedactionResult:
    """Replace every secret match with its marker, applying patterns in table order."""
    if not text:
        return RedactionResult(text=text)

    result = RedactionResult(text=text)
    for secret in SECRET_PATTERNS:
        redacted, count = secret.pattern.subn(secret.marker, result.text)
        if count:
            result.text = redacted
            result.redaction_count += count
            if secret.name not in result.redaction_types:
                result.redaction_types.append(secret.name)

    if result.redaction_count:
        logger.info(
            "Redacted %d secret(s) of type %s from transcript text",
            result.redaction_count,
            ",".join(result.redaction_types),
        )
    return result


def redact_optional(value: str | None) -> str | None:
    if not value:
        return value
    return redact(value).text
