"""
Error Handling Module
Exception taxonomy for the conversion pipeline plus centralized
classification of failures into user-visible messages with remediation.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of conversion errors for handling and reporting"""
    INPUT_CONFLICT = "input_conflict"
    INVALID_PARAMETER = "invalid_parameter"
    SOURCE_UNAVAILABLE = "source_unavailable"
    NO_SUITABLE_FORMAT = "no_suitable_format"
    EXTRACTION = "extraction"
    LOOP_PRECONDITION = "loop_precondition"
    CONVERSION = "conversion"
    COMPRESSION_SKIPPED = "compression_skipped"
    GENERAL = "general"


class VgifError(Exception):
    """Base class for all classified pipeline failures."""
    category = ErrorCategory.GENERAL

    def __init__(self, message: str, suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.suggestions = list(suggestions or [])


class InputConflict(VgifError):
    """Neither or both of remote URL and local input were provided."""
    category = ErrorCategory.INPUT_CONFLICT


class InvalidParameter(VgifError):
    category = ErrorCategory.INVALID_PARAMETER


class SourceUnavailable(VgifError):
    """Remote source could not be resolved or transferred."""
    category = ErrorCategory.SOURCE_UNAVAILABLE

    def __init__(self, message: str, suggestions: Optional[List[str]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, suggestions)
        self.status_code = status_code


class NoSuitableFormat(VgifError):
    category = ErrorCategory.NO_SUITABLE_FORMAT


class ExtractionFailed(VgifError):
    category = ErrorCategory.EXTRACTION


class LoopPrecondition(VgifError):
    """Crossfade duration is not shorter than the clip duration."""
    category = ErrorCategory.LOOP_PRECONDITION


class ConversionFailed(VgifError):
    """Every encoding strategy failed; carries the last engine error."""
    category = ErrorCategory.CONVERSION

    def __init__(self, message: str, suggestions: Optional[List[str]] = None,
                 last_error: Optional[BaseException] = None):
        super().__init__(message, suggestions)
        self.last_error = last_error


class CompressionSkipped(VgifError):
    """Post-compression did not run; downgraded to a warning by callers."""
    category = ErrorCategory.COMPRESSION_SKIPPED


@dataclass
class ProcessingError:
    """Structured representation of a classified failure"""
    category: ErrorCategory
    message: str
    exception_type: str
    severity: str  # 'warning', 'error'
    suggestions: List[str] = field(default_factory=list)

    def get_short_description(self) -> str:
        return f"{self.category.value}: {self.message}"

    def get_detailed_description(self) -> str:
        base = f"Error: {self.message}"
        if self.suggestions:
            base += "\nSuggestions:\n" + "\n".join(f"  - {s}" for s in self.suggestions)
        return base


def restriction_suggestions(url: str, start: float, duration: float,
                            crossfade: float, width: int) -> List[str]:
    """Remediation for access-denied (403) downloads."""
    return [
        "The video may be age-restricted, geo-restricted or under copyright claims",
        "Install yt-dlp (https://github.com/yt-dlp/yt-dlp#installation)",
        f'Download the video manually: yt-dlp "{url}" -o video.mp4',
        f"Create the GIF from the local file: vgif -i video.mp4 -s {start:g} "
        f"-d {duration:g} -c {crossfade:g} -w {width}",
    ]


def rate_limit_suggestions() -> List[str]:
    """Remediation for rate-limited (429) requests."""
    return [
        "Too many requests were sent to the video host",
        "Wait a while and try again",
    ]


def _status_code_of(exception: BaseException) -> Optional[int]:
    response = getattr(exception, 'response', None)
    code = getattr(response, 'status_code', None)
    if isinstance(code, int):
        return code
    message = str(exception)
    if '403' in message or 'Forbidden' in message:
        return 403
    if '429' in message or 'Too Many Requests' in message:
        return 429
    return None


def classify_transfer_error(exception: BaseException, url: str, request) -> SourceUnavailable:
    """Map a transfer failure onto SourceUnavailable with remediation text.

    The manual-download remediation echoes the request's window and width so
    the suggested command reproduces the same GIF from a local file.
    """
    status = _status_code_of(exception)
    if status == 403:
        return SourceUnavailable(
            f"Access denied (403 Forbidden) when downloading this video: {exception}",
            restriction_suggestions(url, request.start, request.duration,
                                    request.crossfade, request.width),
            status_code=403,
        )
    if status == 429:
        return SourceUnavailable(
            f"Rate limited (429 Too Many Requests): {exception}",
            rate_limit_suggestions(),
            status_code=429,
        )
    return SourceUnavailable(f"Error downloading video: {exception}", status_code=status)


class ErrorHandler:
    """Turns exceptions into user-visible, categorized messages"""

    def categorize_error(self, exception: BaseException) -> ProcessingError:
        if isinstance(exception, VgifError):
            severity = 'warning' if isinstance(exception, CompressionSkipped) else 'error'
            return ProcessingError(
                category=exception.category,
                message=exception.message,
                exception_type=type(exception).__name__,
                severity=severity,
                suggestions=exception.suggestions,
            )

        return ProcessingError(
            category=ErrorCategory.GENERAL,
            message=str(exception),
            exception_type=type(exception).__name__,
            severity='error',
            suggestions=["Re-run with -v for more details"],
        )

    def handle_error(self, exception: BaseException, verbose: bool = False) -> ProcessingError:
        """Log a failure at the level matching its severity and return it"""
        error = self.categorize_error(exception)
        if error.severity == 'warning':
            logger.warning(error.get_short_description())
        else:
            logger.error(error.get_detailed_description())
        if verbose:
            logger.debug("Error details", exc_info=exception)
        return error

    def describe(self, exception: BaseException) -> str:
        """User-visible message for a failure, including remediation"""
        return self.categorize_error(exception).get_detailed_description()
