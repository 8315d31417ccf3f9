"""Organization-wide aggregation of analyzed meeting recordings."""
