"""
Map Task Executor
Executes map tasks by applying the mapper to an input split, optionally
combining the output, and partitioning it for the reduce phase
"""

import logging
import time
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple, Type

from minihadoop.common.counters import (COMBINE_INPUT_RECORDS, COMBINE_OUTPUT_RECORDS,
                                        MAP_INPUT_RECORDS, Counters)
from minihadoop.common.errors import MapReduceError, TaskError
from minihadoop.common.writable import IntWritable, KeyValue, Text, Writable
from minihadoop.mapreduce import Mapper, Partitioner, Reducer, iter_reduce_output

logger = logging.getLogger(__name__)


class TextInputSplit:
    """
    One text file as a map input split: (IntWritable line number, Text line)
    records, read when the map task iterates it
    """

    def __init__(self, path: str):
        self.path = path

    def __iter__(self):
        with open(self.path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f):
                yield IntWritable(line_num), Text(line.rstrip('\r\n'))

    def __repr__(self):
        return f"TextInputSplit({self.path!r})"


class MapExecutor:
    """Executes a single map task"""

    def __init__(self, task_id: int, records: Iterable[Tuple[object, object]],
                 mapper: Mapper, partitioner: Partitioner, num_reduce_tasks: int,
                 key_class: Type[Writable], value_class: Type[Writable],
                 counters: Counters, combiner: Optional[Reducer] = None):
        """
        Initialize the map executor

        Args:
            task_id: Unique ID for this map task
            records: Input split as (key, value) records
            mapper: Mapper to apply to every record
            partitioner: Partitioner assigning keys to reduce partitions
            num_reduce_tasks: Number of reduce tasks (for partitioning)
            key_class: Expected map output key class
            value_class: Expected map output value class
            counters: Counters of the running job
            combiner: Optional reducer applied to this task's output
        """
        self.task_id = task_id
        self.records = records
        self.mapper = mapper
        self.partitioner = partitioner
        self.num_reduce_tasks = num_reduce_tasks
        self.key_class = key_class
        self.value_class = value_class
        self.counters = counters
        self.combiner = combiner
        self.execution_time_ms = 0

    def execute(self) -> Dict[int, List[KeyValue]]:
        """
        Execute the map task

        Returns:
            Dictionary mapping partition number to pairs in emission order

        Raises:
            TaskError: If the mapper, combiner or partitioner fails, or emits
                pairs of the wrong type
        """
        start_time = time.time()

        logger.debug(f"Map task {self.task_id}: Applying mapper")
        emitted = self._apply_mapper()
        logger.debug(f"Map task {self.task_id}: Generated {len(emitted)} intermediate pairs")

        if self.combiner is not None:
            emitted = self._apply_combiner(emitted)
            logger.debug(f"Map task {self.task_id}: After combiner: {len(emitted)} pairs")

        intermediate = defaultdict(list)
        for pair in emitted:
            intermediate[self._partition(pair)].append(pair)

        self.execution_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Map task {self.task_id}: Completed in {self.execution_time_ms}ms")
        return dict(intermediate)

    def _apply_mapper(self) -> List[KeyValue]:
        emitted = []
        key = None
        try:
            for key, value in self.records:
                self.counters.increment(MAP_INPUT_RECORDS)
                for out_key, out_value in self.mapper.map(key, value):
                    emitted.append(self._checked_pair(out_key, out_value, "mapper"))
        except MapReduceError:
            raise
        except Exception as e:
            raise TaskError(
                f"Map task {self.task_id} failed after record {key!r}: {e}", self.task_id) from e
        return emitted

    def _apply_combiner(self, emitted: List[KeyValue]) -> List[KeyValue]:
        """
        Apply the combiner to this task's output, grouped by key

        Args:
            emitted: Pairs produced by the mapper

        Returns:
            Combined pairs, ordered by first appearance of each key
        """
        key_groups = defaultdict(list)
        for key, value in emitted:
            key_groups[key].append(value)
        self.counters.increment(COMBINE_INPUT_RECORDS, len(emitted))

        combined = []
        for key, values in key_groups.items():
            try:
                result = self.combiner.reduce(key, iter(values))
                for out_key, out_value in iter_reduce_output(key, result):
                    combined.append(self._checked_pair(out_key, out_value, "combiner"))
            except MapReduceError:
                raise
            except Exception as e:
                raise TaskError(
                    f"Combiner in map task {self.task_id} failed on key {key!r}: {e}",
                    self.task_id) from e

        self.counters.increment(COMBINE_OUTPUT_RECORDS, len(combined))
        return combined

    def _checked_pair(self, key, value, source: str) -> KeyValue:
        if not isinstance(key, self.key_class):
            raise TaskError(
                f"Type mismatch in key from {source}: expected {self.key_class.__name__}, "
                f"received {type(key).__name__}", self.task_id)
        if not isinstance(value, self.value_class):
            raise TaskError(
                f"Type mismatch in value from {source}: expected {self.value_class.__name__}, "
                f"received {type(value).__name__}", self.task_id)
        return KeyValue(key, value)

    def _partition(self, pair: KeyValue) -> int:
        try:
            partition = self.partitioner.get_partition(pair.key, pair.value, self.num_reduce_tasks)
        except Exception as e:
            raise TaskError(
                f"Partitioner failed in map task {self.task_id} on key {pair.key!r}: {e}",
                self.task_id) from e
        if not isinstance(partition, int) or not 0 <= partition < self.num_reduce_tasks:
            raise TaskError(
                f"Illegal partition {partition!r} for key {pair.key!r}: "
                f"must be in [0, {self.num_reduce_tasks})", self.task_id)
        return partition
