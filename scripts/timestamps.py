import functools
import re

MONTHS = {
    'Jan': 1, 'Feb': 2, 'Mar': 3, 'Apr': 4, 'May': 5, 'Jun': 6,
    'Jul': 7, 'Aug': 8, 'Sep': 9, 'Oct': 10, 'Nov': 11, 'Dec': 12,
}

# <Mon> +<day> <HH>:<MM>:<SS> <hundredths>:<rest>
# Numeric groups are matched loosely here and validated in convert_int so a
# bad digit is reported as such instead of as a malformed prefix.
pattern = re.compile(r"^(\S{3}) +(\S+) ([^: ]+):([^: ]+):([^: ]+) ([^: ]+):")

FIELDS = ('day', 'hour', 'minute', 'second', 'hundredths')

_digits = re.compile(r"[0-9]+")


class DemuxError(Exception):
    pass


class TimestampError(DemuxError):
    """A line whose timestamp prefix could not be parsed.

    source and lineno are unknown when the line is parsed on its own and
    get filled in by the reader that pulled the line.
    """

    reason = 'malformed timestamp'

    def __init__(self, line, source=None, lineno=None, name=None):
        super().__init__(line)
        self.line = line
        self.source = source
        self.lineno = lineno
        self.name = name

    def locate(self, source, lineno, name=None):
        self.source = source
        self.lineno = lineno
        self.name = name
        return self

    def __str__(self):
        where = ''
        if self.name is not None:
            where = self.name
        elif self.source is not None:
            where = 'input %d' % self.source
        if self.lineno is not None:
            where += ':%d' % self.lineno
        if where:
            return '%s: %s: %r' % (where, self.reason, self.line)
        return '%s: %r' % (self.reason, self.line)


class MalformedPrefixError(TimestampError):
    reason = 'malformed timestamp prefix'


class UnknownMonthError(TimestampError):
    reason = 'unknown month'


class BadFieldError(TimestampError):

    def __init__(self, line, field, value, **kwargs):
        super().__init__(line, **kwargs)
        self.field = field
        self.value = value

    @property
    def reason(self):
        return 'bad %s field %r' % (self.field, self.value)


# Convert decimal digit group into integer
def convert_int(line, name, value):
    if not _digits.fullmatch(value):
        raise BadFieldError(line, name, value)
    return int(value)


def parse_timestamp(line):
    """Return (month, day, hour, minute, second, subsecond) for line."""
    match = pattern.match(line)
    if not match:
        raise MalformedPrefixError(line)
    month = MONTHS.get(match.group(1))
    if month is None:
        raise UnknownMonthError(line)
    day, hour, minute, second, hundredths = (
        convert_int(line, name, value)
        for name, value in zip(FIELDS, match.groups()[1:]))
    # Hundredths of a second, normalized to ten-thousandths
    return (month, day, hour, minute, second, hundredths * 100)


@functools.total_ordering
class TimedLine:
    """One input line together with its parsed timestamp.

    Ordering and equality only look at the timestamp. The text and the
    source index are carried along but never compared.
    """

    __slots__ = ('text', 'source', 'key')

    def __init__(self, text, source):
        object.__setattr__(self, 'key', parse_timestamp(text))
        object.__setattr__(self, 'text', text)
        object.__setattr__(self, 'source', source)

    def __setattr__(self, name, value):
        raise AttributeError("TimedLine is immutable")

    def __delattr__(self, name):
        raise AttributeError("TimedLine is immutable")

    @property
    def month(self):
        return self.key[0]

    @property
    def day(self):
        return self.key[1]

    @property
    def hour(self):
        return self.key[2]

    @property
    def minute(self):
        return self.key[3]

    @property
    def second(self):
        return self.key[4]

    @property
    def subsecond(self):
        return self.key[5]

    def __eq__(self, other):
        if not isinstance(other, TimedLine):
            return NotImplemented
        return self.key == other.key

    def __lt__(self, other):
        if not isinstance(other, TimedLine):
            return NotImplemented
        return self.key < other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return 'TimedLine(%r, source=%d)' % (self.text, self.source)


def compare(a, b):
    """Three-way compare of two TimedLines by timestamp: -1, 0 or 1."""
    return (a.key > b.key) - (a.key < b.key)
