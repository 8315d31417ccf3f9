"""Administration: audit trail and the single-row system settings."""
