"""Small helpers shared by the workflow modules."""
