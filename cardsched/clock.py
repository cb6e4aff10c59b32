# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import datetime
import time


class Clock:
    """The source of the current time for a collection.

    Everything the scheduler computes about "now" and "today" goes
    through the collection's clock, so tests can replace it."""

    def time(self):
        """Seconds since the epoch, as a float."""
        return time.time()

    def intTime(self, scale=1):
        "The time in integer seconds. Pass scale=1000 to get milliseconds."
        return int(self.time()*scale)

    def now(self):
        return datetime.datetime.fromtimestamp(self.time())

    def dayCutoff(self, rollover=4):
        """Timestamp of the next rollover hour; the end of today."""
        if rollover < 0:
            rollover = 24+rollover
        today = self.now()
        date = today.replace(hour=rollover, minute=0, second=0, microsecond=0)
        if date < today:
            date = date + datetime.timedelta(days=1)
        return int(time.mktime(date.timetuple()))

    def daysSince(self, crt, rollover=4):
        """Number of day rollovers since the timestamp crt."""
        if rollover < 0:
            rollover = 24+rollover
        startDate = datetime.datetime.fromtimestamp(crt)
        startDate = startDate.replace(hour=rollover,
                                      minute=0, second=0, microsecond=0)
        return int((self.time() - time.mktime(startDate.timetuple())) // 86400)
