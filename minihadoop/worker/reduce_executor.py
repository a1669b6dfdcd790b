"""
Reduce Task Executor
Executes reduce tasks by reading a partition's intermediate files, grouping
by key, applying the reducer, and writing final output
"""

import logging
import os
import tempfile
import time
from typing import Dict, List, Optional, Sequence, Type

from minihadoop.common.counters import (REDUCE_INPUT_GROUPS, REDUCE_INPUT_RECORDS,
                                        REDUCE_OUTPUT_RECORDS, Counters)
from minihadoop.common.errors import MapReduceError, TaskError, WriteError
from minihadoop.common.writable import KeyValue, Writable, read_pairs
from minihadoop.mapreduce import Reducer, iter_reduce_output

logger = logging.getLogger(__name__)


def output_file_name(partition_id: int) -> str:
    return f"part-r-{partition_id:05d}"


class ReduceExecutor:
    """Executes a single reduce task"""

    def __init__(self, task_id: int, partition_id: int, intermediate_files: Sequence[str],
                 reducer: Reducer, key_class: Type[Writable], value_class: Type[Writable],
                 output_key_class: Type[Writable], output_value_class: Type[Writable],
                 counters: Counters, output_path: Optional[str] = None):
        """
        Initialize the reduce executor

        Args:
            task_id: Unique ID for this reduce task
            partition_id: Partition this reduce task is responsible for
            intermediate_files: Partition files to read
            reducer: Reducer to apply to every key group
            key_class: Map output key class stored in the files
            value_class: Map output value class stored in the files
            output_key_class: Expected reducer output key class
            output_value_class: Expected reducer output value class
            counters: Counters of the running job
            output_path: Directory for the final part file, or None to keep
                results in memory only
        """
        self.task_id = task_id
        self.partition_id = partition_id
        self.intermediate_files = list(intermediate_files)
        self.reducer = reducer
        self.key_class = key_class
        self.value_class = value_class
        self.output_key_class = output_key_class
        self.output_value_class = output_value_class
        self.counters = counters
        self.output_path = output_path
        self.execution_time_ms = 0

    def execute(self) -> List[KeyValue]:
        """
        Execute the reduce task

        Returns:
            Output pairs in sorted key order

        Raises:
            TaskError: If an input file is missing or the reducer fails
            SerializationError: If an input file is malformed
            WriteError: If the output file cannot be written
        """
        start_time = time.time()

        key_groups = self._read_and_group_intermediate()
        logger.debug(f"Reduce task {self.task_id}: Grouped {len(key_groups)} unique keys")

        try:
            keys = sorted(key_groups)
        except TypeError as e:
            raise TaskError(f"Reduce task {self.task_id}: keys are not orderable: {e}",
                            self.task_id) from e

        results = []
        for key in keys:
            values = key_groups[key]
            self.counters.increment(REDUCE_INPUT_GROUPS)
            self.counters.increment(REDUCE_INPUT_RECORDS, len(values))
            try:
                result = self.reducer.reduce(key, iter(values))
                for out_key, out_value in iter_reduce_output(key, result):
                    results.append(self._checked_pair(out_key, out_value))
            except MapReduceError:
                raise
            except Exception as e:
                raise TaskError(
                    f"Reduce task {self.task_id} failed on key {key!r}: {e}", self.task_id) from e
        self.counters.increment(REDUCE_OUTPUT_RECORDS, len(results))

        if self.output_path:
            self._write_output(results)

        self.execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Reduce task {self.task_id}: Generated {len(results)} output pairs "
                    f"in {self.execution_time_ms}ms")
        return results

    def _read_and_group_intermediate(self) -> Dict[Writable, List[Writable]]:
        """
        Read every intermediate file and group values by key

        Returns:
            Dictionary mapping key to its values in file order
        """
        key_groups: Dict[Writable, List[Writable]] = {}
        for filepath in self.intermediate_files:
            if not os.path.exists(filepath):
                raise TaskError(
                    f"Reduce task {self.task_id}: intermediate file not found: {filepath}",
                    self.task_id)
            with open(filepath, 'rb') as f:
                for key, value in read_pairs(f, self.key_class, self.value_class):
                    key_groups.setdefault(key, []).append(value)
        return key_groups

    def _checked_pair(self, key, value) -> KeyValue:
        if not isinstance(key, self.output_key_class) or not isinstance(value, self.output_value_class):
            raise TaskError(
                f"Type mismatch in reduce output: expected ({self.output_key_class.__name__}, "
                f"{self.output_value_class.__name__}), received ({type(key).__name__}, "
                f"{type(value).__name__})", self.task_id)
        return KeyValue(key, value)

    def _write_output(self, results: List[KeyValue]):
        """
        Write final reduce output as key<TAB>value lines

        Args:
            results: Output pairs to write
        """
        output_file = os.path.join(self.output_path, output_file_name(self.partition_id))
        tmp_path = None
        try:
            os.makedirs(self.output_path, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".part-r-", suffix=".tmp", dir=self.output_path)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                for key, value in results:
                    f.write(f"{key}\t{value}\n")
            os.replace(tmp_path, output_file)
            tmp_path = None
        except OSError as e:
            raise WriteError(f"Reduce task {self.task_id}: cannot write {output_file}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.debug(f"Reduce task {self.task_id}: Wrote output to {output_file}")
