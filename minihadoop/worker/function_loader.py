"""
Resolution of user-provided map/reduce logic
A binding may be a Mapper/Reducer subclass, an instance, a plain function,
or a string reference: "package.module:Name", "path/to/job.py:Name", or a
bare "path/to/job.py" that defines map_function / reduce_function /
combiner_function / partitioner.
"""

import importlib
import importlib.util
import inspect
import logging
import os
import sys

from minihadoop.common.errors import ConfigurationError
from minihadoop.mapreduce import (FunctionMapper, FunctionReducer, Mapper,
                                  Partitioner, Reducer)

logger = logging.getLogger(__name__)


class FunctionLoader:
    """Dynamically loads a user job file and looks up its functions"""

    def __init__(self, job_file: str):
        """
        Initialize the function loader

        Args:
            job_file: Path to user's Python file containing job logic
        """
        self.job_file = job_file
        self.module = None

    def load_module(self):
        """
        Load the job file as a module

        Returns:
            The loaded module object

        Raises:
            ConfigurationError: If the file doesn't exist or fails to import
        """
        if not os.path.exists(self.job_file):
            raise ConfigurationError(f"Job file not found: {self.job_file}")

        module_name = "user_job_" + os.path.splitext(os.path.basename(self.job_file))[0]
        spec = importlib.util.spec_from_file_location(module_name, self.job_file)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Failed to load job file: {self.job_file}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise ConfigurationError(f"Error importing job file {self.job_file}: {e}") from e
        logger.debug(f"Loaded job file {self.job_file} as {module_name}")
        self.module = module
        return module

    def get_attribute(self, name: str, required: bool = True):
        if not self.module:
            self.load_module()

        if not hasattr(self.module, name):
            if required:
                raise ConfigurationError(f"Job file {self.job_file} must define '{name}'")
            return None
        return getattr(self.module, name)

    def get_map_function(self):
        return self.get_attribute('map_function')

    def get_reduce_function(self):
        return self.get_attribute('reduce_function')

    def get_combiner_function(self):
        """The combiner_function callable, or None when the file has none"""
        return self.get_attribute('combiner_function', required=False)

    def get_partitioner(self):
        return self.get_attribute('partitioner')


def _load_reference(reference: str, default_getter: str):
    """
    Turn a string reference into the object it names

    A bare job file path is looked up with the FunctionLoader method named
    by default_getter.
    """
    target, _, attribute = reference.partition(':')

    if target.endswith('.py') or os.sep in target:
        loader = FunctionLoader(target)
        if attribute:
            return loader.get_attribute(attribute)
        found = getattr(loader, default_getter)()
        if found is None:
            raise ConfigurationError(
                f"Job file {target} has nothing for {default_getter[len('get_'):]}")
        return found

    if not attribute:
        raise ConfigurationError(
            f"Module reference {reference!r} must have the form 'module:Name'")
    try:
        module = importlib.import_module(target)
    except Exception as e:
        raise ConfigurationError(f"Cannot import {target!r}: {e}") from e
    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ConfigurationError(f"Module {target!r} has no attribute {attribute!r}") from e


def _resolve(binding, base, wrapper, default_getter):
    if isinstance(binding, str):
        binding = _load_reference(binding, default_getter)

    if isinstance(binding, base):
        return binding
    if inspect.isclass(binding):
        if not issubclass(binding, base):
            raise ConfigurationError(
                f"{binding.__name__} is not a {base.__name__} subclass")
        try:
            return binding()
        except Exception as e:
            raise ConfigurationError(f"Cannot instantiate {binding.__name__}: {e}") from e
    if wrapper is not None and callable(binding):
        return wrapper(binding)
    raise ConfigurationError(f"Cannot use {binding!r} as a {base.__name__}")


def resolve_mapper(binding) -> Mapper:
    return _resolve(binding, Mapper, FunctionMapper, 'get_map_function')


def resolve_reducer(binding) -> Reducer:
    return _resolve(binding, Reducer, FunctionReducer, 'get_reduce_function')


def resolve_combiner(binding) -> Reducer:
    return _resolve(binding, Reducer, FunctionReducer, 'get_combiner_function')


def resolve_partitioner(binding) -> Partitioner:
    return _resolve(binding, Partitioner, None, 'get_partitioner')
