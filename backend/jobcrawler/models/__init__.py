from jobcrawler.models.job import Job
from jobcrawler.models.job_source import JobSource

__all__ = ["Job", "JobSource"]
