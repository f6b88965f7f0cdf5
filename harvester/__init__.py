"""
Job Harvester - concurrent ingestion of job postings from remote APIs.
"""

__version__ = "0.1.0"
