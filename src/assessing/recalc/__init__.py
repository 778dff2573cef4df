"""Mass recalculation jobs with batch progress tracking."""
