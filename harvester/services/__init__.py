"""
Services layer - core logic for the job harvester.

1. Ingestion (ingestion/):
   - Rate limiting per source
   - Deduplication
   - Concurrent orchestration and metrics
"""
