"""Domain services: bucketing, ingestion, feed assembly and scoring."""
