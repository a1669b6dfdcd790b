"""
minihadoop: an in-process MapReduce execution core
"""

from minihadoop.common.config import Configuration
from minihadoop.common.counters import Counters
from minihadoop.common.errors import (ConfigurationError, MapReduceError, SerializationError,
                                      StateError, TaskError, WriteError)
from minihadoop.common.writable import IntWritable, KeyValue, Text, Writable, read_pairs
from minihadoop.coordinator.job import Job, JobState
from minihadoop.coordinator.master import Master
from minihadoop.coordinator.partitioner import HashPartitioner
from minihadoop.mapreduce import Mapper, Partitioner, Reducer
from minihadoop.worker.writer import Writer

__version__ = "0.1.0"
