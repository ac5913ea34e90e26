"""Domain logic: merging, ingestion cycles and the fallback dataset."""
