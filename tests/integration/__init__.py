"""End-to-end tests combining the distributed lock and the task pool."""
