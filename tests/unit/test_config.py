"""
Unit tests for Configuration
"""

from minihadoop.common.config import (NUM_REDUCE_TASKS, OUTPUT_DIR, WORK_DIR,
                                      Configuration)
from minihadoop.common.writable import IntWritable, Text


class TestConfigurationDefaults:
    """Tests for environment-driven defaults"""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv('MAPREDUCE_WORK_DIR', '/data/work')
        monkeypatch.setenv('MAPREDUCE_NUM_REDUCE_TASKS', '5')
        monkeypatch.setenv('MAPREDUCE_OUTPUT_DIR', '/data/out')

        conf = Configuration()

        assert conf.get_work_dir() == '/data/work'
        assert conf.get_num_reduce_tasks() == 5
        assert conf.get_output_dir() == '/data/out'

    def test_builtin_defaults(self, monkeypatch):
        for name in ('MAPREDUCE_WORK_DIR', 'MAPREDUCE_NUM_REDUCE_TASKS',
                     'MAPREDUCE_MAX_WORKERS', 'MAPREDUCE_OUTPUT_DIR'):
            monkeypatch.delenv(name, raising=False)

        conf = Configuration()

        assert conf.get_work_dir() == '.'
        assert conf.get_num_reduce_tasks() == 1
        assert conf.get_max_workers() == 4
        assert OUTPUT_DIR not in conf

    def test_without_defaults_is_empty(self):
        conf = Configuration(load_defaults=False)
        assert WORK_DIR not in conf
        assert conf.get_num_reduce_tasks() == 1


class TestConfigurationAccessors:

    def test_output_classes_default_to_text(self):
        conf = Configuration()
        assert conf.get_output_key_class() is Text
        assert conf.get_output_value_class() is Text
        assert conf.get_map_output_key_class() is None

    def test_typed_setters(self):
        conf = Configuration()
        conf.set_output_value_class(IntWritable)
        conf.set_num_reduce_tasks(3)

        assert conf.get_output_value_class() is IntWritable
        assert conf.get(NUM_REDUCE_TASKS) == 3

    def test_get_bool_parses_strings(self):
        conf = Configuration(load_defaults=False)
        conf.set('a', 'true')
        conf.set('b', 'No')
        conf.set('c', True)

        assert conf.get_bool('a') is True
        assert conf.get_bool('b') is False
        assert conf.get_bool('c') is True
        assert conf.get_bool('missing', default=True) is True

    def test_copy_is_independent(self):
        conf = Configuration()
        clone = conf.copy()
        clone.set_num_reduce_tasks(7)
        clone.unset(WORK_DIR)

        assert conf.get(NUM_REDUCE_TASKS) != 7
        assert clone.get(NUM_REDUCE_TASKS) == 7
        assert WORK_DIR in conf
        assert WORK_DIR not in clone
