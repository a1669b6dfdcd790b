"""
Job configuration
String-keyed settings plus typed accessors for the class bindings a job needs.
Defaults come from the environment.
"""

import copy
import inspect
import os
from typing import Any, Dict, Optional

from minihadoop.common.writable import Text

JAR = "mapreduce.job.jar"
MAPPER_CLASS = "mapreduce.job.map.class"
REDUCER_CLASS = "mapreduce.job.reduce.class"
COMBINER_CLASS = "mapreduce.job.combine.class"
PARTITIONER_CLASS = "mapreduce.job.partitioner.class"
OUTPUT_KEY_CLASS = "mapreduce.job.output.key.class"
OUTPUT_VALUE_CLASS = "mapreduce.job.output.value.class"
MAP_OUTPUT_KEY_CLASS = "mapreduce.map.output.key.class"
MAP_OUTPUT_VALUE_CLASS = "mapreduce.map.output.value.class"
NUM_REDUCE_TASKS = "mapreduce.job.reduces"
MAX_WORKERS = "mapreduce.job.max.workers"
WORK_DIR = "mapreduce.work.dir"
OUTPUT_DIR = "mapreduce.output.dir"
SAVE_METRICS = "mapreduce.job.metrics.save"

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def environment_defaults() -> Dict[str, Any]:
    """Settings taken from MAPREDUCE_* environment variables"""
    defaults = {
        WORK_DIR: os.getenv('MAPREDUCE_WORK_DIR', '.'),
        NUM_REDUCE_TASKS: os.getenv('MAPREDUCE_NUM_REDUCE_TASKS', '1'),
        MAX_WORKERS: os.getenv('MAPREDUCE_MAX_WORKERS', '4'),
    }
    output_dir = os.getenv('MAPREDUCE_OUTPUT_DIR')
    if output_dir:
        defaults[OUTPUT_DIR] = output_dir
    return defaults


class Configuration:
    """Mutable job settings and class bindings"""

    def __init__(self, load_defaults: bool = True):
        self._settings: Dict[str, Any] = {}
        if load_defaults:
            self._settings.update(environment_defaults())

    def get(self, name: str, default: Any = None) -> Any:
        return self._settings.get(name, default)

    def set(self, name: str, value: Any):
        self._settings[name] = value

    def unset(self, name: str):
        self._settings.pop(name, None)

    def get_int(self, name: str, default: int = 0) -> int:
        value = self._settings.get(name)
        if value is None:
            return default
        return int(value)

    def get_bool(self, name: str, default: bool = False) -> bool:
        value = self._settings.get(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_STRINGS

    def copy(self) -> 'Configuration':
        clone = Configuration(load_defaults=False)
        clone._settings = copy.copy(self._settings)
        return clone

    def __contains__(self, name):
        return name in self._settings

    def __repr__(self):
        return f"Configuration({len(self._settings)} settings)"

    # Job artifact

    def set_jar(self, jar: str):
        self.set(JAR, jar)

    def set_jar_by_class(self, cls):
        """Record the source file that defines cls as the job artifact"""
        self.set(JAR, inspect.getsourcefile(cls))

    def get_jar(self) -> Optional[str]:
        return self.get(JAR)

    # User logic bindings

    def set_mapper_class(self, mapper):
        self.set(MAPPER_CLASS, mapper)

    def get_mapper_class(self):
        return self.get(MAPPER_CLASS)

    def set_reducer_class(self, reducer):
        self.set(REDUCER_CLASS, reducer)

    def get_reducer_class(self):
        return self.get(REDUCER_CLASS)

    def set_combiner_class(self, combiner):
        self.set(COMBINER_CLASS, combiner)

    def get_combiner_class(self):
        return self.get(COMBINER_CLASS)

    def set_partitioner_class(self, partitioner):
        self.set(PARTITIONER_CLASS, partitioner)

    def get_partitioner_class(self):
        return self.get(PARTITIONER_CLASS)

    # Record types. Final output defaults to Text; map output has no default
    # here because Job fills it from the final output types at submission.

    def set_output_key_class(self, cls):
        self.set(OUTPUT_KEY_CLASS, cls)

    def get_output_key_class(self):
        return self.get(OUTPUT_KEY_CLASS, Text)

    def set_output_value_class(self, cls):
        self.set(OUTPUT_VALUE_CLASS, cls)

    def get_output_value_class(self):
        return self.get(OUTPUT_VALUE_CLASS, Text)

    def set_map_output_key_class(self, cls):
        self.set(MAP_OUTPUT_KEY_CLASS, cls)

    def get_map_output_key_class(self):
        return self.get(MAP_OUTPUT_KEY_CLASS)

    def set_map_output_value_class(self, cls):
        self.set(MAP_OUTPUT_VALUE_CLASS, cls)

    def get_map_output_value_class(self):
        return self.get(MAP_OUTPUT_VALUE_CLASS)

    # Execution

    def set_num_reduce_tasks(self, num: int):
        self.set(NUM_REDUCE_TASKS, num)

    def get_num_reduce_tasks(self) -> int:
        return self.get_int(NUM_REDUCE_TASKS, 1)

    def get_max_workers(self) -> int:
        return self.get_int(MAX_WORKERS, 4)

    def get_work_dir(self) -> str:
        return self.get(WORK_DIR, '.')

    def set_output_dir(self, path: str):
        self.set(OUTPUT_DIR, path)

    def get_output_dir(self) -> Optional[str]:
        return self.get(OUTPUT_DIR)
