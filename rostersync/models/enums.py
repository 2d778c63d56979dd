from enum import Enum


class ErrorKind(str, Enum):
    AUTH = "auth"
    BAD_REQUEST = "bad_request"
    RATE_LIMIT = "rate_limit"
    UNAVAILABLE = "unavailable"
    PARSE = "parse"
    UNKNOWN = "unknown"


class ProviderKind(str, Enum):
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    # Add other generator backends as needed


# Fallback values written by the sanitizer when the provider omits a field
UNKNOWN_TEAM = "Unknown Team"
UNKNOWN_SPORT = "Unknown Sport"
UNKNOWN_POSITION = "Unknown"
UNKNOWN_ATHLETE = "Unknown Athlete"
DEFAULT_VERIFICATION_NOTES = "Extraction completed successfully."
