#!/usr/bin/env python3

import argparse
import contextlib
import heapq
import logging
import os
import sys

from timestamps import DemuxError, TimedLine, TimestampError

log = logging.getLogger(__name__)


class InputError(DemuxError):

    def __init__(self, path, error, lineno=None):
        super().__init__(path, error)
        self.path = path
        self.error = error
        self.lineno = lineno

    def __str__(self):
        if self.lineno is None:
            return 'could not open %s: %s' % (self.path, self.error)
        return 'could not read %s:%d: %s' % (self.path, self.lineno, self.error)


class OutputError(DemuxError):

    def __init__(self, index, name, error):
        super().__init__(index, name, error)
        self.index = index
        self.name = name
        self.error = error

    def __str__(self):
        return 'could not write to %s: %s' % (self.name, self.error)


def strip_newline(line):
    if line.endswith('\n'):
        line = line[:-1]
        if line.endswith('\r'):
            line = line[:-1]
    return line


class Frontier:
    """At most one pending line per source, earliest first.

    Each reader only needs readline(), returning '' once it is exhausted.
    Heap entries are (timestamp, source, line) so equal timestamps come out
    in ascending source order and TimedLine itself is never compared.
    """

    def __init__(self, readers, names=None):
        self.readers = list(readers)
        self.names = names
        self.heap = []
        self.done = [False] * len(self.readers)
        self.linenos = [0] * len(self.readers)
        for source in range(len(self.readers)):
            self.refill(source)

    def __len__(self):
        return len(self.heap)

    def exhausted(self, source):
        return self.done[source]

    def lineno(self, source):
        return self.linenos[source]

    def refill(self, source):
        if self.done[source]:
            return
        try:
            line = self.readers[source].readline()
        except (OSError, UnicodeDecodeError) as e:
            name = self.names[source] if self.names else 'input %d' % source
            raise InputError(name, e, self.linenos[source] + 1) from e
        if not line:
            self.done[source] = True
            log.debug("input %d exhausted after %d lines",
                      source, self.linenos[source])
            return
        self.linenos[source] += 1
        text = strip_newline(line)
        try:
            entry = TimedLine(text, source)
        except TimestampError as e:
            name = self.names[source] if self.names else None
            raise e.locate(source, self.linenos[source], name)
        heapq.heappush(self.heap, (entry.key, source, entry))

    def pop_min(self):
        if not self.heap:
            return None
        return heapq.heappop(self.heap)[2]


def merge_lines(frontier):
    while True:
        entry = frontier.pop_min()
        if entry is None:
            return
        # Keep one pending line for the source before handing this one out
        frontier.refill(entry.source)
        yield entry


def demux(lines, writers, names=None):
    """Write each line to its own output and a blank line to all others.

    Returns the number of merge steps, which is also the number of lines
    in every output.
    """
    steps = 0
    for entry in lines:
        for index, writer in enumerate(writers):
            text = entry.text if index == entry.source else ''
            try:
                writer.write(text + '\n')
            except (OSError, UnicodeEncodeError) as e:
                name = names[index] if names else 'output %d' % index
                raise OutputError(index, name, e) from e
        steps += 1
    return steps


def output_names(count, output_dir='.'):
    return [os.path.join(output_dir, '%d.txt' % i) for i in range(count)]


def open_text(path, mode):
    # Only LF ends a line, and undecodable bytes pass through unchanged
    return open(path, mode, newline='\n', errors='surrogateescape')


def demux_files(logs, output_dir='.'):
    outputs = output_names(len(logs), output_dir)
    with contextlib.ExitStack() as stack:
        readers = []
        for path in logs:
            try:
                readers.append(stack.enter_context(open_text(path, 'r')))
            except OSError as e:
                raise InputError(path, e) from e
            log.info("Opened %s", path)
        writers = []
        for index, path in enumerate(outputs):
            try:
                writers.append(stack.enter_context(open_text(path, 'w')))
            except OSError as e:
                raise OutputError(index, path, e) from e
            log.info("Created %s", path)

        frontier = Frontier(readers, names=list(logs))
        steps = demux(merge_lines(frontier), writers, names=outputs)
        for index, writer in enumerate(writers):
            try:
                writer.flush()
            except OSError as e:
                raise OutputError(index, outputs[index], e) from e
    log.info("Wrote %d lines to each of %d outputs", steps, len(outputs))
    return steps


def main(argv=None):
    parser = argparse.ArgumentParser(prog='demux-logs',
                                     description='Interleave timestamped logs into lockstep outputs.',
                                     epilog="""
Reads LOG1 ... LOGN, whose lines start with a timestamp such as
"Jan 1 00:00:01 00:", and writes 0.txt ... N-1.txt. Every output gets
one line per input line across all logs: the log owning the earliest
pending line gets that line, all others get an empty line. Line numbers
in the outputs are therefore globally ordered by time.
                                     """)
    parser.add_argument('logs', nargs='+', metavar='LOG')
    parser.add_argument('-d', '--output-dir', default='.',
                        help='directory for the N output files (default: current)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='report progress on stderr')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(name)s: %(message)s')
    log.info("Starting %s", args)

    try:
        demux_files(args.logs, args.output_dir)
    except DemuxError as e:
        print("%s: error: %s" % (parser.prog, e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
