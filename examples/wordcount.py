#!/usr/bin/env python3
"""
Classic MapReduce word count example.
Counts the frequency of each word in the input text.
"""

import argparse
import logging
import string
import sys

from minihadoop import Configuration, IntWritable, Job, Mapper, Reducer, Text


def map_function(key, value):
    """
    Map function: emit (word, 1) for each word in the line.

    Args:
        key: Line number (unused)
        value: Text line

    Yields:
        (Text word, IntWritable 1) tuples
    """
    # Remove punctuation and split into words
    words = str(value).translate(str.maketrans('', '', string.punctuation)).split()

    for word in words:
        yield (Text(word.lower()), IntWritable(1))


def reduce_function(key, values):
    """
    Reduce function: sum all counts for a word.

    Yields:
        (word, total_count) tuple
    """
    yield (key, IntWritable(sum(v.get() for v in values)))


# Addition is associative, so the reducer doubles as the combiner
combiner_function = reduce_function


class WordCountMapper(Mapper):
    def map(self, key, value):
        return map_function(key, value)


class WordCountReducer(Reducer):
    def reduce(self, key, values):
        return reduce_function(key, values)


def build_job(conf, inputs, output_path=None, num_reduce_tasks=2, use_combiner=False):
    job = Job.get_instance(conf, "wordcount")
    job.set_jar_by_class(WordCountMapper)
    job.set_mapper_class(WordCountMapper)
    job.set_reducer_class(WordCountReducer)
    if use_combiner:
        job.set_combiner_class(WordCountReducer)
    job.set_output_key_class(Text)
    job.set_output_value_class(IntWritable)
    job.set_num_reduce_tasks(num_reduce_tasks)
    for path in inputs:
        job.add_input_path(path)
    if output_path:
        job.set_output_path(output_path)
    return job


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description='Count words in text files')
    parser.add_argument('inputs', nargs='+', help='Input text files, one map task each')
    parser.add_argument('--output', required=True, help='Output directory')
    parser.add_argument('--num-reduce-tasks', type=int, default=2)
    parser.add_argument('--use-combiner', action='store_true')
    args = parser.parse_args()

    job = build_job(Configuration(), args.inputs, args.output,
                    args.num_reduce_tasks, args.use_combiner)
    return 0 if job.wait_for_completion(verbose=True) else 1


if __name__ == '__main__':
    sys.exit(main())
