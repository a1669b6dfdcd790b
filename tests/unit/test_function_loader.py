"""
Unit tests for FunctionLoader and binding resolution
"""

import os
from unittest.mock import patch

import pytest

from minihadoop.common.errors import ConfigurationError
from minihadoop.common.writable import IntWritable, Text
from minihadoop.coordinator.partitioner import HashPartitioner
from minihadoop.mapreduce import FunctionMapper, FunctionReducer, Mapper, Reducer
from minihadoop.worker.function_loader import (FunctionLoader, resolve_combiner,
                                               resolve_mapper, resolve_partitioner,
                                               resolve_reducer)


class UpperMapper(Mapper):
    def map(self, key, value):
        yield (Text(value.get().upper()), IntWritable(1))


class TestFunctionLoaderBasics:
    """Tests for basic loading functionality"""

    def test_loads_valid_job_file(self, wordcount_job_file):
        loader = FunctionLoader(wordcount_job_file)
        module = loader.load_module()

        assert hasattr(module, 'map_function')
        assert hasattr(module, 'reduce_function')
        assert hasattr(module, 'combiner_function')

    def test_raises_error_for_nonexistent_file(self):
        with pytest.raises(ConfigurationError):
            FunctionLoader('/nonexistent/file.py').load_module()

    def test_map_function_works_correctly(self, wordcount_job_file):
        map_func = FunctionLoader(wordcount_job_file).get_map_function()

        results = list(map_func(IntWritable(0), Text("hello world hello")))

        assert results.count((Text('hello'), IntWritable(1))) == 2
        assert (Text('world'), IntWritable(1)) in results

    def test_raises_error_when_map_function_missing(self, temp_dir):
        invalid_file = os.path.join(temp_dir, 'invalid.py')
        with open(invalid_file, 'w') as f:
            f.write("def reduce_function(key, values):\n    return None\n")

        with pytest.raises(ConfigurationError, match="map_function"):
            FunctionLoader(invalid_file).get_map_function()

    def test_combiner_is_optional(self, temp_dir):
        job_file = os.path.join(temp_dir, 'no_combiner.py')
        with open(job_file, 'w') as f:
            f.write("def map_function(key, value):\n    return []\n")

        assert FunctionLoader(job_file).get_combiner_function() is None

    def test_import_error_in_job_file(self, temp_dir):
        broken = os.path.join(temp_dir, 'broken.py')
        with open(broken, 'w') as f:
            f.write("raise RuntimeError('cannot import me')\n")

        with pytest.raises(ConfigurationError, match="cannot import me"):
            FunctionLoader(broken).load_module()


class TestBindingResolution:
    """Tests for turning bindings into Mapper/Reducer values"""

    def test_class_is_instantiated(self):
        assert isinstance(resolve_mapper(UpperMapper), UpperMapper)

    def test_instance_is_used_as_is(self):
        mapper = UpperMapper()
        assert resolve_mapper(mapper) is mapper

    def test_function_is_wrapped(self):
        def my_reduce(key, values):
            return []

        reducer = resolve_reducer(my_reduce)

        assert isinstance(reducer, FunctionReducer)
        assert reducer.func is my_reduce

    def test_file_reference_with_attribute(self, wordcount_job_file):
        mapper = resolve_mapper(f"{wordcount_job_file}:WordCountMapper")

        assert isinstance(mapper, Mapper)
        assert list(mapper.map(IntWritable(0), Text("Hi"))) == [(Text("hi"), IntWritable(1))]

    def test_bare_file_reference_uses_default_function(self, wordcount_job_file):
        assert isinstance(resolve_mapper(wordcount_job_file), FunctionMapper)
        assert isinstance(resolve_combiner(wordcount_job_file), Reducer)

    def test_module_reference(self):
        partitioner = resolve_partitioner("minihadoop.coordinator.partitioner:HashPartitioner")
        assert isinstance(partitioner, HashPartitioner)

    def test_module_reference_requires_attribute(self):
        with pytest.raises(ConfigurationError):
            resolve_mapper("minihadoop.mapreduce")

    def test_unknown_module_raises(self):
        with pytest.raises(ConfigurationError):
            resolve_mapper("no_such_module_anywhere:Mapper")

    def test_wrong_base_class_raises(self):
        with pytest.raises(ConfigurationError):
            resolve_reducer(UpperMapper)

    def test_partitioner_function_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_partitioner(lambda key, value, n: 0)

    def test_module_failing_at_import_raises_configuration_error(self, temp_dir, monkeypatch):
        with open(os.path.join(temp_dir, 'explodes_on_import.py'), 'w') as f:
            f.write("raise RuntimeError('boom at import')\n")
        monkeypatch.syspath_prepend(temp_dir)

        with pytest.raises(ConfigurationError, match="boom at import") as exc_info:
            resolve_mapper("explodes_on_import:Mapper")
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_module_with_syntax_error_raises_configuration_error(self, temp_dir, monkeypatch):
        with open(os.path.join(temp_dir, 'bad_syntax_job.py'), 'w') as f:
            f.write("def map(:\n")
        monkeypatch.syspath_prepend(temp_dir)

        with pytest.raises(ConfigurationError):
            resolve_reducer("bad_syntax_job:Reducer")


class TestBareFileReferences:
    """Tests that bare job file references go through the loader's getters"""

    def test_bare_reducer_reference_uses_get_reduce_function(self, wordcount_job_file):
        def replacement(key, values):
            return []

        with patch.object(FunctionLoader, 'get_reduce_function', return_value=replacement) as getter:
            reducer = resolve_reducer(wordcount_job_file)

        getter.assert_called_once_with()
        assert reducer.func is replacement

    def test_bare_combiner_reference_without_combiner_raises(self, temp_dir):
        job_file = os.path.join(temp_dir, 'map_only.py')
        with open(job_file, 'w') as f:
            f.write("def map_function(key, value):\n    return []\n")

        with pytest.raises(ConfigurationError, match="combiner_function"):
            resolve_combiner(job_file)

    def test_bare_partitioner_reference_reads_partitioner_attribute(self, temp_dir):
        job_file = os.path.join(temp_dir, 'with_partitioner.py')
        with open(job_file, 'w') as f:
            f.write("from minihadoop.coordinator.partitioner import HashPartitioner\n"
                    "partitioner = HashPartitioner\n")

        assert isinstance(resolve_partitioner(job_file), HashPartitioner)
