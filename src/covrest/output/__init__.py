"""Output layer — rendering ServiceResult for humans or as JSON."""
