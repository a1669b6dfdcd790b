"""
Default partitioning of intermediate keys
"""

import hashlib

from minihadoop.mapreduce import Partitioner


class HashPartitioner(Partitioner):
    """
    Partition by MD5 of the key's encoded bytes modulo the partition count.
    Unlike hash(), the result is the same in every process.
    """

    def get_partition(self, key, value, num_partitions: int) -> int:
        hash_value = int(hashlib.md5(key.encode()).hexdigest(), 16)
        return hash_value % num_partitions
