"""
Performance metrics collection for MapReduce jobs.
"""

import json
import os
import threading
import time
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Optional

import psutil


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds / 60)
    seconds = seconds % 60
    if minutes < 60:
        return f"{minutes}m {seconds:.1f}s"
    hours = int(minutes / 60)
    minutes = minutes % 60
    return f"{hours}h {minutes}m {seconds:.1f}s"


@dataclass
class JobMetrics:
    """Metrics for a single MapReduce job execution."""

    job_id: str
    job_name: str
    start_time: float
    num_map_tasks: int
    num_reduce_tasks: int
    use_combiner: bool
    end_time: float = 0.0
    map_phase_start: float = 0.0
    map_phase_end: float = 0.0
    reduce_phase_start: float = 0.0
    reduce_phase_end: float = 0.0
    intermediate_size_bytes: int = 0
    peak_memory_bytes: int = 0

    @property
    def total_time_seconds(self) -> float:
        """Total job execution time in seconds."""
        return self.end_time - self.start_time

    @property
    def map_phase_time_seconds(self) -> float:
        """Map phase execution time in seconds."""
        return self.map_phase_end - self.map_phase_start

    @property
    def reduce_phase_time_seconds(self) -> float:
        """Reduce phase execution time in seconds."""
        return self.reduce_phase_end - self.reduce_phase_start

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        return asdict(self)

    def save_to_file(self, filepath: str):
        """Save metrics to JSON file."""
        os.makedirs(os.path.dirname(filepath) or '.', exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


class MetricsCollector:
    """Collects and manages metrics for MapReduce jobs."""

    def __init__(self):
        self.job_metrics: Dict[str, JobMetrics] = {}
        self.process = psutil.Process()
        self.lock = threading.Lock()

    def _sample_memory(self, job_id: str):
        rss = self.process.memory_info().rss
        with self.lock:
            metrics = self.job_metrics[job_id]
            metrics.peak_memory_bytes = max(metrics.peak_memory_bytes, rss)

    def start_job(self, job_id: str, job_name: str, num_map_tasks: int,
                  num_reduce_tasks: int, use_combiner: bool):
        """Initialize metrics tracking for a new job; the map phase starts now."""
        now = time.time()
        self.job_metrics[job_id] = JobMetrics(
            job_id=job_id,
            job_name=job_name,
            start_time=now,
            map_phase_start=now,
            num_map_tasks=num_map_tasks,
            num_reduce_tasks=num_reduce_tasks,
            use_combiner=use_combiner,
        )
        self._sample_memory(job_id)

    def end_map_phase(self, job_id: str):
        """Mark the end of the map phase."""
        if job_id in self.job_metrics:
            self.job_metrics[job_id].map_phase_end = time.time()
            self._sample_memory(job_id)

    def start_reduce_phase(self, job_id: str):
        """Mark the start of the reduce phase."""
        if job_id in self.job_metrics:
            self.job_metrics[job_id].reduce_phase_start = time.time()
            self._sample_memory(job_id)

    def record_intermediate_files(self, job_id: str, paths: Iterable[str]):
        """Add the size of written intermediate files; safe to call from task threads."""
        size = sum(os.path.getsize(p) for p in paths if os.path.exists(p))
        with self.lock:
            if job_id in self.job_metrics:
                self.job_metrics[job_id].intermediate_size_bytes += size

    def end_job(self, job_id: str):
        """Mark job completion, successful or not."""
        if job_id in self.job_metrics:
            now = time.time()
            metrics = self.job_metrics[job_id]
            if metrics.reduce_phase_start and not metrics.reduce_phase_end:
                metrics.reduce_phase_end = now
            metrics.end_time = now
            self._sample_memory(job_id)

    def get_metrics(self, job_id: str) -> Optional[JobMetrics]:
        """Retrieve metrics for a specific job."""
        return self.job_metrics.get(job_id)
