"""
Unit tests for the partitioned Writer
"""

import os
from unittest.mock import patch

import pytest

from minihadoop.common.counters import MAP_OUTPUT_RECORDS, Counters
from minihadoop.common.errors import WriteError
from minihadoop.common.writable import KeyValue, Text, read_pairs
from minihadoop.worker.writer import Writer, partition_path


class ExplodingText(Text):
    """Text whose serialization fails like a full disk"""

    def write(self, stream):
        raise OSError("No space left on device")


def make_pairs(*items):
    return [KeyValue(Text(k), Text(v)) for k, v in items]


def read_back(path):
    with open(path, 'rb') as f:
        return list(read_pairs(f, Text, Text))


class TestWriterLayout:
    """Tests for file placement and content"""

    def test_writes_three_pairs_to_partition_file(self, temp_dir):
        """Three pairs land in partition/2/part-0 and read back in order"""
        counters = Counters()
        writer = Writer(counters, temp_dir)
        pairs = make_pairs(("a", "1"), ("b", "2"), ("c", "3"))

        path = writer.write(pairs, 2, "part-0")

        assert path == os.path.join(temp_dir, "partition", "2", "part-0")
        assert read_back(path) == pairs
        assert counters.get(MAP_OUTPUT_RECORDS) == 3

    def test_file_is_flat_key_value_sequence(self, temp_dir):
        writer = Writer(Counters(), temp_dir)
        pairs = make_pairs(("k", "v"), ("key", "value"))

        path = writer.write(pairs, 0, "part-0")

        with open(path, 'rb') as f:
            assert f.read() == b"".join(k.encode() + v.encode() for k, v in pairs)

    def test_rewrite_replaces_content(self, temp_dir):
        """Writing the same (partition, file) twice keeps only the second batch"""
        writer = Writer(Counters(), temp_dir)
        writer.write(make_pairs(("a", "1"), ("b", "2")), 1, "part-0")

        path = writer.write(make_pairs(("z", "26")), 1, "part-0")

        assert read_back(path) == make_pairs(("z", "26"))

    def test_path_depends_only_on_partition_and_name(self, temp_dir):
        writer = Writer(Counters(), temp_dir)

        first = writer.write(make_pairs(("a", "1")), 3, "data")
        second = writer.write(make_pairs(("b", "2")), 3, "data")

        assert first == second == partition_path(temp_dir, 3, "data")

    def test_no_temporary_files_left_behind(self, temp_dir):
        writer = Writer(Counters(), temp_dir)
        writer.write(make_pairs(("a", "1")), 0, "part-0")

        assert os.listdir(os.path.join(temp_dir, "partition", "0")) == ["part-0"]


class TestWriterEdgeCases:

    def test_empty_pairs_is_noop(self, temp_dir):
        counters = Counters()
        writer = Writer(counters, temp_dir)

        assert writer.write([], 0, "part-0") is None
        assert not os.path.exists(os.path.join(temp_dir, "partition"))
        assert counters.get(MAP_OUTPUT_RECORDS) == 0

    def test_negative_partition_rejected(self, temp_dir):
        with pytest.raises(ValueError):
            Writer(Counters(), temp_dir).write(make_pairs(("a", "1")), -1, "part-0")


class TestWriterFailures:
    """Tests that I/O failures propagate and counters stay exact"""

    def test_failure_midway_counts_nothing(self, temp_dir):
        """Pairs that reached the temporary file before the failure are not counted"""
        counters = Counters()
        writer = Writer(counters, temp_dir)
        pairs = make_pairs(("a", "1"), ("b", "2"))
        pairs.append(KeyValue(ExplodingText("c"), Text("3")))
        pairs.extend(make_pairs(("d", "4")))

        with pytest.raises(WriteError) as exc_info:
            writer.write(pairs, 0, "part-0")

        assert isinstance(exc_info.value.__cause__, OSError)
        assert counters.get(MAP_OUTPUT_RECORDS) == 0
        assert os.listdir(os.path.join(temp_dir, "partition", "0")) == []

    def test_failure_leaves_previous_file_intact(self, temp_dir):
        writer = Writer(Counters(), temp_dir)
        path = writer.write(make_pairs(("old", "1")), 0, "part-0")

        with pytest.raises(WriteError):
            writer.write([KeyValue(ExplodingText("new"), Text("2"))], 0, "part-0")

        assert read_back(path) == make_pairs(("old", "1"))
        assert os.listdir(os.path.dirname(path)) == ["part-0"]

    def test_non_writable_pair_raises(self, temp_dir):
        counters = Counters()

        with pytest.raises(WriteError):
            Writer(counters, temp_dir).write([("a", "1")], 0, "part-0")

        assert counters.get(MAP_OUTPUT_RECORDS) == 0

    def test_directory_creation_failure_raises(self, temp_dir):
        with patch('minihadoop.worker.writer.os.makedirs',
                   side_effect=PermissionError("read-only")):
            with pytest.raises(WriteError):
                Writer(Counters(), temp_dir).write(make_pairs(("a", "1")), 0, "part-0")

    def test_rename_failure_raises(self, temp_dir):
        counters = Counters()
        with patch('minihadoop.worker.writer.os.replace', side_effect=OSError("EXDEV")):
            with pytest.raises(WriteError):
                Writer(counters, temp_dir).write(make_pairs(("a", "1")), 0, "part-0")

        assert os.listdir(os.path.join(temp_dir, "partition", "0")) == []
        assert counters.get(MAP_OUTPUT_RECORDS) == 0
