"""
Core constants: **Single Source of Truth** for project-wide magic numbers.

Any validation bound or business rule that references a numeric constant
should import it from here instead of hardcoding.  This avoids drift between
serializers (request validation) and services (domain validation).
"""

# ── Report submission ──────────────────────────────────────────────
REPORT_TITLE_MIN_LENGTH: int = 5
REPORT_TITLE_MAX_LENGTH: int = 200
REPORT_DESCRIPTION_MIN_LENGTH: int = 10
REPORT_DESCRIPTION_MAX_LENGTH: int = 2000
REPORT_MIN_PHOTOS: int = 1
REPORT_MAX_PHOTOS: int = 3

# ── Report rejection ───────────────────────────────────────────────
# Bounds are applied to the trimmed reason.
REJECTION_REASON_MIN_LENGTH: int = 10
REJECTION_REASON_MAX_LENGTH: int = 500

# ── Telegram account linking ───────────────────────────────────────
TELEGRAM_LINK_CODE_LENGTH: int = 6
DEFAULT_TELEGRAM_LINK_CODE_TTL_MINUTES: int = 10

# ── Reference data ─────────────────────────────────────────────────
ORGANIZATION_DEPARTMENT: str = "Organization"

# ── Internal comments ──────────────────────────────────────────────
COMMENT_MAX_LENGTH: int = 2000
