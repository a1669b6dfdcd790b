"""
Error types raised by the MapReduce core
"""


class MapReduceError(Exception):
    """Base class for all framework errors"""


class ConfigurationError(MapReduceError):
    """Missing or invalid job configuration (class bindings, task counts)"""


class SerializationError(MapReduceError):
    """Malformed, truncated or unencodable Writable bytes"""


class WriteError(MapReduceError):
    """I/O failure while persisting a partition file"""


class StateError(MapReduceError):
    """Illegal operation for the job's current lifecycle state"""


class TaskError(MapReduceError):
    """A map, combine or reduce invocation raised an error"""

    def __init__(self, message, task_id=None):
        super().__init__(message)
        self.task_id = task_id
