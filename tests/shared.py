# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import datetime
import os
import tempfile
import time

from cardsched import Collection
from cardsched.clock import Clock
from cardsched.intervals import fuzzIvlRange


def assertException(exception, func):
    found = False
    try:
        func()
    except exception:
        found = True
    assert found


class MockClock(Clock):
    """Starts at noon on a fixed day, and moves forward by step seconds each
    time it is read."""

    def __init__(self, start=None, step=0.01):
        if start is None:
            start = time.mktime(datetime.datetime(2020, 6, 15, 12, 0).timetuple())
        self._now = start
        self.step = step

    def time(self):
        self._now += self.step
        return self._now

    def advance(self, seconds):
        self._now += seconds


def getEmptyCol(clock=None):
    (fd, path) = tempfile.mkstemp(suffix=".anki2")
    os.close(fd)
    os.unlink(path)
    return Collection(path, clock=clock or MockClock())


def checkRevIvl(col, card, targetIvl):
    "True if the card's interval is targetIvl, up to the fuzz."
    min, max = fuzzIvlRange(targetIvl)
    return min <= card.ivl <= max
