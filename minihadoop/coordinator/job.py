"""
The job submitter's view of a MapReduce job
Configure the job through its setters, then submit it with
wait_for_completion. Setters are only valid until submission.
"""

import logging
from enum import Enum
from typing import Iterable, List, Optional

from minihadoop.common.config import Configuration
from minihadoop.common.counters import Counters
from minihadoop.common.errors import MapReduceError, StateError
from minihadoop.common.writable import KeyValue
from minihadoop.coordinator.master import JobStatus, Master
from minihadoop.coordinator.metrics import JobMetrics, format_duration
from minihadoop.worker.map_executor import TextInputSplit

logger = logging.getLogger(__name__)


class JobState(Enum):
    """Client-visible lifecycle of a job"""
    CONFIGURING = "configuring"
    SUBMITTED = "submitted"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_STATE_BY_STATUS = {
    JobStatus.PENDING: JobState.SUBMITTED,
    JobStatus.MAP_PHASE: JobState.RUNNING,
    JobStatus.SHUFFLE_PHASE: JobState.RUNNING,
    JobStatus.REDUCE_PHASE: JobState.RUNNING,
    JobStatus.COMPLETED: JobState.SUCCEEDED,
    JobStatus.FAILED: JobState.FAILED,
}


class Job:
    """A configurable, submittable MapReduce job"""

    def __init__(self, conf: Optional[Configuration] = None, job_name: Optional[str] = None):
        """
        Create a job from a copy of conf, so changes made to the job do not
        leak back into the caller's configuration

        Args:
            conf: Configuration to start from (environment defaults if None)
            job_name: Name used in logs, metrics and file names
        """
        self._conf = conf.copy() if conf is not None else Configuration()
        self._job_name = job_name or "job"
        self._inputs: List[Iterable] = []
        self._state = JobState.CONFIGURING
        self._master: Optional[Master] = None
        self.error: Optional[MapReduceError] = None

    @classmethod
    def get_instance(cls, conf: Optional[Configuration] = None,
                     job_name: Optional[str] = None) -> 'Job':
        return cls(conf, job_name)

    @property
    def state(self) -> JobState:
        if self._state == JobState.SUBMITTED and self._master is not None:
            return _STATE_BY_STATUS[self._master.status]
        return self._state

    @property
    def job_name(self) -> str:
        return self._job_name

    @property
    def job_id(self) -> Optional[str]:
        return self._master.job_id if self._master else None

    def _ensure_configuring(self, operation: str):
        if self._state != JobState.CONFIGURING:
            raise StateError(
                f"Cannot {operation}: job {self._job_name} is {self.state.value}")

    # Configuration surface

    def get_configuration(self) -> Configuration:
        """The live configuration while configuring, a copy once submitted"""
        if self._state == JobState.CONFIGURING:
            return self._conf
        return self._conf.copy()

    def set_configuration(self, conf: Configuration):
        self._ensure_configuring("set configuration")
        self._conf = conf.copy()

    def set_job_name(self, name: str):
        self._ensure_configuring("set job name")
        self._job_name = name

    def set_jar(self, jar: str):
        self._ensure_configuring("set jar")
        self._conf.set_jar(jar)

    def set_jar_by_class(self, cls):
        self._ensure_configuring("set jar")
        self._conf.set_jar_by_class(cls)

    def set_mapper_class(self, mapper):
        """Bind the mapper: a Mapper subclass or instance, a function, or a reference string"""
        self._ensure_configuring("set mapper class")
        self._conf.set_mapper_class(mapper)

    def set_reducer_class(self, reducer):
        """Bind the reducer: a Reducer subclass or instance, a function, or a reference string"""
        self._ensure_configuring("set reducer class")
        self._conf.set_reducer_class(reducer)

    def set_combiner_class(self, combiner):
        """Bind a reducer run over each map task's output before it is written"""
        self._ensure_configuring("set combiner class")
        self._conf.set_combiner_class(combiner)

    def set_partitioner_class(self, partitioner):
        self._ensure_configuring("set partitioner class")
        self._conf.set_partitioner_class(partitioner)

    def set_output_key_class(self, cls):
        self._ensure_configuring("set output key class")
        self._conf.set_output_key_class(cls)

    def set_output_value_class(self, cls):
        self._ensure_configuring("set output value class")
        self._conf.set_output_value_class(cls)

    def set_map_output_key_class(self, cls):
        """Map output key class, when it differs from the final output key class"""
        self._ensure_configuring("set map output key class")
        self._conf.set_map_output_key_class(cls)

    def set_map_output_value_class(self, cls):
        """Map output value class, when it differs from the final output value class"""
        self._ensure_configuring("set map output value class")
        self._conf.set_map_output_value_class(cls)

    def set_num_reduce_tasks(self, num: int):
        self._ensure_configuring("set number of reduce tasks")
        self._conf.set_num_reduce_tasks(num)

    def set_output_path(self, path: str):
        self._ensure_configuring("set output path")
        self._conf.set_output_dir(path)

    def add_input(self, records: Iterable):
        """Add one input split of (key, value) records; one map task runs per split"""
        self._ensure_configuring("add input")
        self._inputs.append(list(records))

    def add_input_path(self, path: str):
        """Add a text file as one input split of (line number, line) records"""
        self._ensure_configuring("add input")
        self._inputs.append(TextInputSplit(path))

    # Submission

    def _apply_map_output_defaults(self):
        """Unset map output classes take the final output classes"""
        if self._conf.get_map_output_key_class() is None:
            self._conf.set_map_output_key_class(self._conf.get_output_key_class())
        if self._conf.get_map_output_value_class() is None:
            self._conf.set_map_output_value_class(self._conf.get_output_value_class())

    def wait_for_completion(self, verbose: bool = False) -> bool:
        """
        Submit the job and block until it finishes

        Args:
            verbose: Log progress and a completion summary

        Returns:
            True if the job succeeded. On failure the error is in self.error.

        Raises:
            StateError: If the job was already submitted
            Exception: Errors other than MapReduceError propagate; the job
                is still left FAILED
        """
        self._ensure_configuring("submit job")
        self._apply_map_output_defaults()
        self._state = JobState.SUBMITTED
        logger.info(f"Submitting job {self._job_name} with {len(self._inputs)} input splits")

        self._master = Master(self._conf, self._job_name, self._inputs, verbose=verbose)
        success = False
        try:
            success = self._master.submit_job()
        finally:
            self.error = self._master.error
            self._state = JobState.SUCCEEDED if success else JobState.FAILED

        if verbose:
            self._log_summary()
        return success

    def _log_summary(self):
        metrics = self.get_metrics()
        logger.info(f"Job {self.job_id} {self._state.value}")
        if metrics is not None:
            logger.info(f"  Runtime: {format_duration(metrics.total_time_seconds)}")
        if self.error is not None:
            logger.info(f"  Error: {self.error}")
        for name, value in sorted(self.get_counters().snapshot().items()):
            logger.info(f"  {name}={value}")

    # Results

    def is_complete(self) -> bool:
        return self._state in (JobState.SUCCEEDED, JobState.FAILED)

    def is_successful(self) -> bool:
        return self._state == JobState.SUCCEEDED

    def get_counters(self) -> Counters:
        """Counters of the submitted run (empty before submission)"""
        return self._master.counters if self._master else Counters()

    def get_metrics(self) -> Optional[JobMetrics]:
        return self._master.metrics if self._master else None

    def get_output(self) -> List[KeyValue]:
        """Reduce output ordered by partition, then key"""
        return self._master.get_output() if self._master else []
