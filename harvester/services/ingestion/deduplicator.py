"""
Content-based deduplication of job records.

Exact duplicates share the same normalized (title, company, location) triple
and are collapsed by hashing. Near-duplicates are only reported.
"""

import hashlib
import threading

from harvester.models.domain import JobRecord, JobSimilarity

KEY_SEPARATOR = "|"

TITLE_WEIGHT = 0.5
COMPANY_WEIGHT = 0.3
LOCATION_WEIGHT = 0.2


def string_similarity(s1: str, s2: str) -> float:
    """Jaccard similarity over lower-cased whitespace-separated words."""
    if s1 == s2:
        return 1.0

    if not s1 or not s2:
        return 0.0

    words1 = set(s1.lower().split())
    words2 = set(s2.lower().split())

    if not words1 or not words2:
        return 0.0

    intersection = 0
    union = len(words1)

    for word in words2:
        if word in words1:
            intersection += 1
        else:
            union += 1

    if union == 0:
        return 0.0

    return intersection / union


def job_similarity(job1: JobRecord, job2: JobRecord) -> float:
    """Weighted similarity between two jobs (0.0 to 1.0)."""
    return (
        string_similarity(job1.title, job2.title) * TITLE_WEIGHT
        + string_similarity(job1.company, job2.company) * COMPANY_WEIGHT
        + string_similarity(job1.location, job2.location) * LOCATION_WEIGHT
    )


class Deduplicator:
    """
    Tracks which jobs have been seen during one run.

    The seen set only grows until reset() is called.
    """

    def __init__(self):
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def job_hash(job: JobRecord) -> str:
        """Hash of the normalized title, company and location."""
        key = KEY_SEPARATOR.join(
            part.strip().lower() for part in (job.title, job.company, job.location)
        )
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def remove_duplicates(self, jobs: list[JobRecord]) -> list[JobRecord]:
        """Return the jobs not seen before, marking them seen. First occurrence wins."""
        unique = []
        with self._lock:
            for job in jobs:
                digest = self.job_hash(job)
                if digest not in self._seen:
                    self._seen.add(digest)
                    unique.append(job)
        return unique

    def is_duplicate(self, job: JobRecord) -> bool:
        """Check a job against the seen set without recording it."""
        digest = self.job_hash(job)
        with self._lock:
            return digest in self._seen

    def reset(self):
        with self._lock:
            self._seen = set()

    @property
    def seen_count(self) -> int:
        with self._lock:
            return len(self._seen)

    def find_similar_jobs(self, jobs: list[JobRecord], threshold: float) -> list[JobSimilarity]:
        """
        Pairwise search for near-duplicates.

        Exact matches (similarity 1.0) are left to the hash check and are
        not returned.
        """
        similarities = []

        for i in range(len(jobs)):
            for j in range(i + 1, len(jobs)):
                similarity = job_similarity(jobs[i], jobs[j])

                if threshold <= similarity < 1.0:
                    similarities.append(JobSimilarity(
                        job_a=jobs[i],
                        job_b=jobs[j],
                        similarity=similarity,
                    ))

        return similarities
