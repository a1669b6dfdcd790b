"""
Master (coordinator) for MapReduce jobs
Runs map tasks, partitions and persists their output, then runs one reduce
task per partition. The first failure anywhere fails the whole job.
"""

import logging
import os
import re
import threading
import uuid
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from minihadoop.common.config import SAVE_METRICS, Configuration
from minihadoop.common.counters import Counters
from minihadoop.common.errors import ConfigurationError, MapReduceError
from minihadoop.common.writable import KeyValue, Writable
from minihadoop.coordinator.metrics import JobMetrics, MetricsCollector
from minihadoop.coordinator.partitioner import HashPartitioner
from minihadoop.worker.function_loader import (resolve_combiner, resolve_mapper,
                                               resolve_partitioner, resolve_reducer)
from minihadoop.worker.map_executor import MapExecutor
from minihadoop.worker.reduce_executor import ReduceExecutor
from minihadoop.worker.writer import Writer

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Status of a MapReduce job"""
    PENDING = "pending"
    MAP_PHASE = "map_phase"
    SHUFFLE_PHASE = "shuffle_phase"
    REDUCE_PHASE = "reduce_phase"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskStatus(Enum):
    """Status of individual map or reduce tasks"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class MapTask:
    """Represents a single map task"""
    task_id: int
    records: Iterable
    status: TaskStatus = TaskStatus.PENDING
    output: Dict[int, List[KeyValue]] = field(default_factory=dict)
    execution_time_ms: int = 0
    error: Optional[str] = None


@dataclass
class ReduceTask:
    """Represents a single reduce task"""
    task_id: int
    partition_id: int
    intermediate_files: List[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    execution_time_ms: int = 0
    error: Optional[str] = None


def safe_name(name: str) -> str:
    """name reduced to characters that are safe in a single path component"""
    cleaned = re.sub(r'[^\w.-]', '_', name).lstrip('.')
    return cleaned or "job"


def intermediate_file_name(job_id: str) -> str:
    """File name used for one run's map output inside every partition directory"""
    return safe_name(job_id) + "-map-output"


class Master:
    """Coordinates one MapReduce job from map tasks to final output"""

    def __init__(self, conf: Configuration, job_name: str = "job",
                 inputs: Iterable[Iterable] = (), verbose: bool = False):
        """
        Args:
            conf: Job configuration with mapper/reducer bindings
            job_name: Name used in logs and metrics, and (sanitized) as the
                job id prefix that names intermediate files
            inputs: Input splits, each an iterable of (key, value) records;
                one map task runs per split
            verbose: Log per-task progress at INFO instead of DEBUG
        """
        self.conf = conf
        self.job_name = job_name
        self.job_id = f"{safe_name(job_name)}_{uuid.uuid4().hex[:8]}"
        self.inputs = list(inputs)
        self.verbose = verbose

        self.status = JobStatus.PENDING
        self.counters = Counters()
        self.metrics_collector = MetricsCollector()
        self.map_tasks: List[MapTask] = []
        self.reduce_tasks: List[ReduceTask] = []
        self.output: Dict[int, List[KeyValue]] = {}
        self.error: Optional[MapReduceError] = None
        self.lock = threading.Lock()

    @property
    def metrics(self) -> Optional[JobMetrics]:
        return self.metrics_collector.get_metrics(self.job_id)

    def submit_job(self) -> bool:
        """
        Run the job to completion

        Returns:
            True if every map, write and reduce succeeded. Expected failures
            (configuration, task, write, serialization) return False and are
            kept in self.error.
        """
        try:
            self.run()
        except MapReduceError:
            return False
        return True

    def run(self):
        """
        Run the job to completion, raising the first failure

        Raises:
            MapReduceError: The first error that failed the job
        """
        if self.status != JobStatus.PENDING:
            raise RuntimeError(f"Job {self.job_id} already ran (status {self.status.value})")

        try:
            self._validate()
            self._create_map_tasks()
            self.metrics_collector.start_job(
                self.job_id, self.job_name, len(self.map_tasks),
                self.num_reduce_tasks, self.combiner is not None)

            partitions = self._run_map_phase()
            self._run_reduce_phase(partitions)

            with self.lock:
                self.status = JobStatus.COMPLETED
            logger.info(f"Job {self.job_id} completed successfully")
        except Exception as e:
            self._mark_failed(e)
            raise
        finally:
            self.metrics_collector.end_job(self.job_id)
            self._save_metrics()

    def _validate(self):
        """Resolve and check every binding before any task runs"""
        conf = self.conf
        if conf.get_mapper_class() is None:
            raise ConfigurationError("Mapper class is not set")
        if conf.get_reducer_class() is None:
            raise ConfigurationError("Reducer class is not set")

        try:
            self.num_reduce_tasks = conf.get_num_reduce_tasks()
            self.max_workers = conf.get_max_workers()
        except ValueError as e:
            raise ConfigurationError(f"Invalid task count setting: {e}") from e
        if self.num_reduce_tasks < 1:
            raise ConfigurationError(
                f"Number of reduce tasks must be at least 1, got {self.num_reduce_tasks}")
        if self.max_workers < 1:
            raise ConfigurationError(f"Max workers must be at least 1, got {self.max_workers}")

        self.output_key_class = self._writable_class(conf.get_output_key_class(), "output key")
        self.output_value_class = self._writable_class(conf.get_output_value_class(), "output value")
        self.map_output_key_class = self._writable_class(
            conf.get_map_output_key_class() or self.output_key_class, "map output key")
        self.map_output_value_class = self._writable_class(
            conf.get_map_output_value_class() or self.output_value_class, "map output value")

        self.mapper = resolve_mapper(conf.get_mapper_class())
        self.reducer = resolve_reducer(conf.get_reducer_class())
        combiner = conf.get_combiner_class()
        self.combiner = resolve_combiner(combiner) if combiner is not None else None
        partitioner = conf.get_partitioner_class()
        self.partitioner = (resolve_partitioner(partitioner) if partitioner is not None
                            else HashPartitioner())

        self.work_dir = conf.get_work_dir()
        self.output_dir = conf.get_output_dir()

    @staticmethod
    def _writable_class(cls, role: str):
        if not isinstance(cls, type) or not issubclass(cls, Writable):
            raise ConfigurationError(f"The {role} class must be a Writable subclass, got {cls!r}")
        return cls

    def _create_map_tasks(self):
        self.map_tasks = [MapTask(task_id=i, records=split)
                          for i, split in enumerate(self.inputs)]

    def _run_map_phase(self) -> Dict[int, List[KeyValue]]:
        """
        Run every map task and merge their output by partition

        Returns:
            Dictionary mapping partition number to pairs. Pairs from one map
            task keep emission order; tasks are concatenated by task id.
        """
        with self.lock:
            self.status = JobStatus.MAP_PHASE
        logger.info(f"Job {self.job_id} started MAP phase with {len(self.map_tasks)} tasks")

        self._run_tasks(self._run_map_task, self.map_tasks)
        self.metrics_collector.end_map_phase(self.job_id)

        with self.lock:
            self.status = JobStatus.SHUFFLE_PHASE
        partitions: Dict[int, List[KeyValue]] = {p: [] for p in range(self.num_reduce_tasks)}
        for task in sorted(self.map_tasks, key=lambda t: t.task_id):
            for partition_id, pairs in task.output.items():
                partitions[partition_id].extend(pairs)
        logger.info(f"Job {self.job_id} shuffled "
                    f"{sum(len(p) for p in partitions.values())} pairs "
                    f"into {self.num_reduce_tasks} partitions")
        return partitions

    def _run_reduce_phase(self, partitions: Dict[int, List[KeyValue]]):
        with self.lock:
            self.status = JobStatus.REDUCE_PHASE
        self.metrics_collector.start_reduce_phase(self.job_id)
        logger.info(f"Job {self.job_id} started REDUCE phase")

        self.writer = Writer(self.counters, self.work_dir)
        self.reduce_tasks = [ReduceTask(task_id=p, partition_id=p)
                             for p in range(self.num_reduce_tasks)]
        self._partition_input = partitions
        self._run_tasks(self._run_reduce_task, self.reduce_tasks)

    def _run_tasks(self, target, tasks):
        """
        Run tasks on a thread pool, stopping at the first failure

        Tasks that have not started when a failure is seen are cancelled.
        Running tasks finish before this returns or raises.

        Raises:
            Exception: The failure of the lowest-numbered failed task
        """
        if not tasks:
            return

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix=self.job_id) as executor:
            futures = {executor.submit(target, task): task for task in tasks}
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in not_done:
                future.cancel()

        failed = [futures[f] for f in futures
                  if not f.cancelled() and f.exception() is not None]
        if not failed:
            return

        with self.lock:
            for task in tasks:
                if task.status == TaskStatus.PENDING:
                    task.status = TaskStatus.CANCELLED
        first = min(failed, key=lambda t: t.task_id)
        for future, task in futures.items():
            if task is first:
                raise future.exception()

    def _run_map_task(self, task: MapTask):
        self._set_task_status(task, TaskStatus.RUNNING)
        executor = MapExecutor(
            task_id=task.task_id,
            records=task.records,
            mapper=self.mapper,
            partitioner=self.partitioner,
            num_reduce_tasks=self.num_reduce_tasks,
            key_class=self.map_output_key_class,
            value_class=self.map_output_value_class,
            counters=self.counters,
            combiner=self.combiner,
        )
        try:
            task.output = executor.execute()
        except Exception as e:
            task.error = str(e)
            self._set_task_status(task, TaskStatus.FAILED)
            logger.error(f"Map task {task.task_id} of job {self.job_id} failed: {e}")
            raise
        task.execution_time_ms = executor.execution_time_ms
        self._set_task_status(task, TaskStatus.COMPLETED)

    def _run_reduce_task(self, task: ReduceTask):
        """Write the task's partition, then reduce it"""
        self._set_task_status(task, TaskStatus.RUNNING)
        try:
            pairs = self._partition_input.get(task.partition_id, [])
            path = self.writer.write(pairs, task.partition_id,
                                     intermediate_file_name(self.job_id))
            if path is None:
                logger.warning(f"No intermediate data for reduce task partition {task.partition_id}")
            else:
                task.intermediate_files = [path]
                self.metrics_collector.record_intermediate_files(self.job_id, [path])

            executor = ReduceExecutor(
                task_id=task.task_id,
                partition_id=task.partition_id,
                intermediate_files=task.intermediate_files,
                reducer=self.reducer,
                key_class=self.map_output_key_class,
                value_class=self.map_output_value_class,
                output_key_class=self.output_key_class,
                output_value_class=self.output_value_class,
                counters=self.counters,
                output_path=self.output_dir,
            )
            results = executor.execute()
        except Exception as e:
            task.error = str(e)
            self._set_task_status(task, TaskStatus.FAILED)
            logger.error(f"Reduce task {task.task_id} of job {self.job_id} failed: {e}")
            raise

        with self.lock:
            self.output[task.partition_id] = results
        task.execution_time_ms = executor.execution_time_ms
        self._set_task_status(task, TaskStatus.COMPLETED)

    def _set_task_status(self, task, status: TaskStatus):
        with self.lock:
            task.status = status
        if status == TaskStatus.COMPLETED:
            self._log_progress()

    def _log_progress(self):
        status = self.get_job_status()
        level = logging.INFO if self.verbose else logging.DEBUG
        logger.log(level, f"Job {self.job_id}: {status['status']} "
                          f"map {status['map_completed']}/{status['map_total']} "
                          f"reduce {status['reduce_completed']}/{status['reduce_total']} "
                          f"({status['progress']}%)")

    def _mark_failed(self, error: Exception):
        with self.lock:
            self.status = JobStatus.FAILED
            if isinstance(error, MapReduceError):
                self.error = error
        logger.error(f"Job {self.job_id} failed: {error}")

    def _save_metrics(self):
        metrics = self.metrics
        if metrics is None or not self.conf.get_bool(SAVE_METRICS):
            return
        path = os.path.join(self.conf.get_work_dir(), 'metrics', f"{self.job_id}.json")
        try:
            metrics.save_to_file(path)
        except OSError as e:
            logger.warning(f"Could not save metrics for job {self.job_id}: {e}")

    def get_output(self) -> List[KeyValue]:
        """Reduce output ordered by partition, then key"""
        with self.lock:
            return [pair for p in sorted(self.output) for pair in self.output[p]]

    def get_job_status(self) -> Dict:
        """Get current job status with progress"""
        with self.lock:
            map_completed = sum(1 for t in self.map_tasks if t.status == TaskStatus.COMPLETED)
            reduce_completed = sum(1 for t in self.reduce_tasks if t.status == TaskStatus.COMPLETED)
            total_tasks = len(self.map_tasks) + len(self.reduce_tasks)
            completed_tasks = map_completed + reduce_completed
            progress = int((completed_tasks / total_tasks * 100)) if total_tasks > 0 else 0

            return {
                'job_id': self.job_id,
                'status': self.status.value,
                'progress': progress,
                'map_completed': map_completed,
                'map_total': len(self.map_tasks),
                'reduce_completed': reduce_completed,
                'reduce_total': len(self.reduce_tasks),
                'error_message': str(self.error) if self.error else '',
            }
