# Copyright (c) 2022 Neil Webber
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included
# in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import collections.abc
import functools
import json
import logging
import numbers
import random
from decimal import Decimal
from fractions import Fraction


logger = logging.getLogger(__name__)


# A HashHistogram counts how many times (or how much weight) each distinct
# key has been seen, and answers questions about the resulting distribution:
# total, mode, ranking, normalization, and weighted random sampling.
#
# TERMINOLOGY:
#     A "key" is the thing being counted. Any hashable python value.
#     A "count" is the accumulated weight for a key.
#     To "bump" a key is to add to its count.
#
# EXAMPLE:
#     h = HashHistogram()
#     for s in ("a", "b", "a", "b", "c", "b", "a", "b"):
#         h.bump(s)
#
#     h.count("a")     -->  3
#     h.count("d")     -->  0
#     h.total_count()  -->  8
#     h.mode()         -->  'b'
#     h.ranking()      -->  ['b', 'a', 'c']
#
# COUNTER TYPES:
#     Counts are ints by default. Any numeric type can be used by giving
#     counter_type; counter_type() must be the zero value and
#     counter_type(1) the unit increment. For example:
#
#         h = HashHistogram(counter_type=Decimal)
#         h.bump_by("a", Decimal("0.6"))
#
#     int, float, Decimal and Fraction are all known to pick_random_key();
#     see register_random_ranger() for anything else.
#
# IMPLEMENTATION NOTE: this is a dict subclass, so h[key] still raises
# KeyError for a key that was never bumped. Use count() (or get()) when
# "absent means zero" is wanted.
#
class HashHistogram(dict):
    """A HashHistogram accumulates a count for each distinct key.

    If h is a HashHistogram:
       h.bump(k)          -- adds one to the count of k.
       h.bump_by(k, w)    -- adds w (any counter value) to the count of k.
       h.count(k)         -- count of k; zero if k was never bumped.
       h.total_count()    -- sum of all counts.
       h.ranking()        -- keys, highest count first.
       h.mode()           -- a key with the highest count (None if empty).
       h += other         -- adds every count in other into h.

    Iterating a histogram returns each key once, in no particular order.
    """

    def __init__(self, keys=(), /, *, counter_type=int):
        """HashHistogram(keys=(), *, counter_type=int)

        Every element of keys (if given) is bumped once.
        """
        super().__init__()
        self.counter_type = counter_type
        self.extend(keys)

    @classmethod
    def from_keys(cls, keys, *, counter_type=int):
        """Build a histogram by bumping each key in keys once."""
        return cls(keys, counter_type=counter_type)

    @classmethod
    def from_pairs(cls, pairs, *, counter_type=int):
        """Build a histogram from (key, amount) pairs via bump_by."""
        h = cls(counter_type=counter_type)
        h.extend_pairs(pairs)
        return h

    # dict.fromkeys would make None counts
    @classmethod
    def fromkeys(cls, keys, value=None):
        """Like from_keys(); if value is given each key is bumped by it."""
        if value is None:
            return cls.from_keys(keys)
        return cls.from_pairs((k, value) for k in keys)

    def __repr__(self):
        return f"<{self.__class__.__qualname__}() n={self.total_count()} @ 0x{id(self):x}>"

    def __str__(self):
        return "".join(f"{k}:{self[k]}; " for k in sorted(self.keys()))

    @property
    def zero(self):
        return self.counter_type()

    @property
    def one(self):
        return self.counter_type(1)

    def bump(self, key):
        """Add one to the count of key."""
        self.bump_by(key, self.one)

    def bump_by(self, key, amount):
        """Add amount to the count of key.

        A key seen for the first time starts at amount, whatever it is
        (zero and negative amounts included).
        """
        try:
            self[key] += amount
        except KeyError:
            self[key] = amount

    def extend(self, keys):
        """Bump every key in keys, in order."""
        for key in keys:
            self.bump(key)

    def extend_pairs(self, pairs):
        """bump_by every (key, amount) in pairs, in order."""
        for key, amount in pairs:
            self.bump_by(key, amount)

    def count(self, key):
        """Return the count for key, zero if it has never been bumped."""
        try:
            return self[key]
        except KeyError:
            return self.zero

    # like dictionary.get - but default value is zero rather than None
    def get(self, key, default=None):
        if default is None:
            default = self.zero
        try:
            return self[key]
        except KeyError:
            return default

    def counts(self):
        """Generate the counts only (no keys)."""
        return iter(self.values())

    def all_labels(self):
        """Return the set of keys that have been bumped."""
        return set(self.keys())

    def total_count(self):
        """Return the sum of all counts."""
        return sum(self.values(), self.zero)

    def copy(self):
        h = self.__class__(counter_type=self.counter_type)
        h.update(self)
        return h

    def __iadd__(self, other):
        if not isinstance(other, HashHistogram):
            return NotImplemented
        logger.debug("merging %d keys into %r", len(other), self)
        for key, amount in other.items():
            self.bump_by(key, amount)
        return self

    def __add__(self, other):
        if not isinstance(other, HashHistogram):
            return NotImplemented
        h = self.copy()
        h += other
        return h

    def ranking_with_counts(self):
        """Return a list of (key, count) tuples, highest count first.

        Counts that cannot be ordered against each other (e.g., NaN)
        are treated as equal. Ties stay in iteration order.
        """
        return sorted(self.items(),
                      key=functools.cmp_to_key(_cmp_items), reverse=True)

    def ranking(self):
        """Return the list of keys, highest count first."""
        return [k for k, _ in self.ranking_with_counts()]

    def mode(self):
        """Return the key with the highest count, or None if empty.

        If several keys share the highest count, the first one
        encountered wins.
        """
        best = None
        for key, c in self.items():
            if best is None or _cmp_counts(c, best[1]) > 0:
                best = (key, c)
        return None if best is None else best[0]

    def normalize(self, target_total):
        """Rescale every count so the counts add up to target_total.

        Integer counts are floor-divided, so the new total can fall
        short of target_total by up to len(self).
        """
        total = self.total_count()
        if not total:
            raise ValueError(f"can't normalize: total count is {total!r}")

        logger.debug("normalizing %r from %r to %r", self, total, target_total)
        if isinstance(total, numbers.Integral):
            for key, c in self.items():
                self[key] = c * target_total // total
        else:
            for key, c in self.items():
                self[key] = c * target_total / total

    def pick_random_key(self, rng=None):
        """Return a key chosen with probability proportional to its count.

        rng, if given, is a random.Random instance; otherwise the
        module-level random functions are used.
        """
        if not self:
            raise ValueError("empty histogram: no key to pick")

        total = self.total_count()
        if not total > self.zero:
            raise ValueError(f"can't pick: total count is {total!r}")

        choice = _random_ranger(type(total))(total, rng or random)

        running = self.zero
        last = None
        for key, c in self.items():
            running += c
            if running > choice:
                return key
            if c > self.zero:
                last = key

        # only reachable if float rounding put choice at the very top
        return last

    def to_record(self):
        """Return a plain {"histogram": {key: count}} structure."""
        return {"histogram": dict(self)}

    @classmethod
    def from_record(cls, record, *, counter_type=None):
        """Inverse of to_record().

        With counter_type None the counts are kept exactly as found.
        Otherwise each count goes through counter_type, and a count
        that doesn't survive the conversion raises ValueError.
        """
        try:
            mapping = record["histogram"]
        except (KeyError, TypeError):
            raise ValueError(f"not a histogram record: {record!r}") from None
        if not isinstance(mapping, collections.abc.Mapping):
            raise ValueError(f"histogram record is not a mapping: {mapping!r}")

        if counter_type is None:
            for key, c in mapping.items():
                if isinstance(c, str):
                    raise ValueError(
                        f"count {c!r} for {key!r} needs an explicit counter_type")
            counts = dict(mapping)
            counter_type = type(next(iter(counts.values()), 0))
        else:
            counts = {}
            for key, c in mapping.items():
                v = counter_type(c)
                # NaN never equals itself, so it can't be checked this way
                if not isinstance(c, str) and c == c and v != c:
                    raise ValueError(
                        f"count {c!r} for {key!r} is not a "
                        f"{counter_type.__qualname__}")
                counts[key] = v

        h = cls(counter_type=counter_type)
        for key, c in counts.items():
            h.bump_by(key, c)
        return h

    def to_json(self, **kwargs):
        """Encode as JSON. Counts that JSON can't hold become strings."""
        return json.dumps(self.to_record(), default=str, **kwargs)

    @classmethod
    def from_json(cls, s, *, key_type=str, counter_type=None):
        """Decode JSON produced by to_json().

        JSON object keys are always strings; key_type converts them back.
        """
        record = json.loads(s)
        try:
            mapping = record["histogram"]
            pairs = [(key_type(k), c) for k, c in mapping.items()]
        except (KeyError, TypeError, AttributeError):
            raise ValueError(f"not a histogram record: {s!r}") from None
        logger.debug("decoded %d keys from JSON", len(pairs))
        return cls.from_record({"histogram": dict(pairs)},
                               counter_type=counter_type)


# Three-way comparison of counts where "unordered" (NaN) means equal.
def _cmp_counts(a, b):
    if a < b:
        return -1
    elif a > b:
        return 1
    return 0


def _cmp_items(a, b):
    return _cmp_counts(a[1], b[1])


#
# RANDOM RANGERS
#
# pick_random_key() needs a value drawn uniformly from [0, total) in the
# counter's own type. How to get one depends on the type, so each
# supported type has a ranger:
#
#       ranger(total, rng) --> value in [0, total)
#
# where rng is anything with random() and randrange() (a random.Random
# or the random module itself).
#
_RANDOM_RANGERS = {
    int: lambda total, rng: rng.randrange(total),
    float: lambda total, rng: rng.random() * total,
    Decimal: lambda total, rng: Decimal(rng.random()) * total,
    Fraction: lambda total, rng: Fraction(rng.random()) * total,
}


def register_random_ranger(counter_type, ranger):
    """Make pick_random_key() work for histograms counting counter_type."""
    if not callable(ranger):
        raise TypeError(f"ranger (={ranger}) must be a callable")
    _RANDOM_RANGERS[counter_type] = ranger


def _random_ranger(counter_type):
    for t in counter_type.__mro__:
        try:
            return _RANDOM_RANGERS[t]
        except KeyError:
            pass
    raise TypeError(f"no random ranger for {counter_type.__qualname__}")


def mode(iterable):
    """Return the most common element of iterable (None if empty)."""
    return HashHistogram(iterable).mode()


# same thing; python has no distinction between borrowed and owned values
mode_values = mode
