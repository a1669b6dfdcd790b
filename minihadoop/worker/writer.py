"""
Partitioned writer for intermediate map output
Persists one partition's key/value pairs as a flat stream of Writables at
<work_dir>/partition/<partition_number>/<file_name>.
"""

import logging
import os
import tempfile
from typing import Optional, Sequence

from minihadoop.common.counters import MAP_OUTPUT_RECORDS, Counters
from minihadoop.common.errors import SerializationError, WriteError
from minihadoop.common.writable import KeyValue, Writable

logger = logging.getLogger(__name__)

PARTITION_FOLDER_NAME = "partition"


def partition_dir(work_dir: str, partition_number: int) -> str:
    return os.path.join(work_dir, PARTITION_FOLDER_NAME, str(partition_number))


def partition_path(work_dir: str, partition_number: int, file_name: str) -> str:
    return os.path.join(partition_dir(work_dir, partition_number), file_name)


class Writer:
    """Writes partitions of intermediate pairs, counting each record"""

    def __init__(self, counters: Counters, work_dir: str = '.'):
        self.counters = counters
        self.work_dir = work_dir

    def write(self, pairs: Sequence[KeyValue], partition_number: int,
              file_name: str) -> Optional[str]:
        """
        Write pairs as one partition file, replacing any previous content

        Data goes to a temporary file in the partition directory which is
        renamed over the target once every pair is written, so readers never
        see a partial file.

        Args:
            pairs: Ordered key/value pairs, all Writables
            partition_number: Non-negative partition index
            file_name: Name of the file inside the partition directory

        Returns:
            Path of the written file, or None when pairs is empty

        Raises:
            ValueError: If partition_number is negative
            WriteError: On any I/O or serialization failure. Nothing is
                counted for a failed call.
        """
        if partition_number < 0:
            raise ValueError(f"Partition number must be non-negative, got {partition_number}")
        if not pairs:
            return None

        folder = partition_dir(self.work_dir, partition_number)
        target = os.path.join(folder, file_name)
        tmp_path = None
        written = 0

        try:
            os.makedirs(folder, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{file_name}.", suffix=".tmp", dir=folder)
            with os.fdopen(fd, 'wb') as f:
                for key, value in pairs:
                    if not isinstance(key, Writable) or not isinstance(value, Writable):
                        raise SerializationError(
                            f"Pair ({key!r}, {value!r}) is not made of Writables")
                    key.write(f)
                    value.write(f)
                    written += 1
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
            tmp_path = None
            self.counters.increment(MAP_OUTPUT_RECORDS, written)
        except (OSError, SerializationError) as e:
            logger.error(f"Write of partition {partition_number}/{file_name} failed "
                         f"after {written} records: {e}")
            raise WriteError(
                f"Failed to write partition {partition_number} file {file_name}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.debug(f"Wrote {written} records to {target}")
        return target
