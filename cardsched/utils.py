# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import copy
import os
import time

devMode = os.getenv("CARDSCHED_DEV", "")

# Time handling
##############################################################################

def intTime(scale=1):
    "The time in integer seconds. Pass scale=1000 to get milliseconds."
    return int(time.time()*scale)

# IDs
##############################################################################

def ids2str(ids):
    """Given a list of integers, return a string '(int1,int2,...)'."""
    return "(%s)" % ",".join(str(id) for id in ids)

def timestampID(db, table, time=None):
    "Return a non-conflicting timestamp for table."
    # be careful not to create multiple objects without flushing them, or they
    # may share an ID.
    if time is None:
        time = intTime(1000)
    while db.scalar("select id from %s where id = ?" % table, time):
        time += 1
    return time

def maxID(db):
    "Return the first safe ID to use."
    now = intTime(1000)
    now = max(now, db.scalar("select max(id) from cards") or 0)
    return now + 1

# Json objects owned by a manager
##############################################################################

class DictAugmented(dict):
    """A json dict stored by a manager, which writes it back to the
    collection when the manager is flushed.

    manager -- the object owning this dict; it must have a col attribute
    and a save() method.
    """
    def __init__(self, manager, dict):
        super().__init__()
        self.load(manager, dict)

    def load(self, manager, dict):
        self.manager = manager
        super().update(dict)

    def save(self):
        """Mark this object as modified; it is written on next flush."""
        self['mod'] = intTime()
        self['usn'] = self.manager.col.usn()
        self.manager.save()

    def deepcopy(self):
        return self.__class__(self.manager, copy.deepcopy(dict(self)))

    def dumps(self):
        return dict(self)

    def getId(self):
        return self['id']

    def setId(self, id):
        self['id'] = id

    def getName(self):
        return self['name']

    def setName(self, name):
        self['name'] = name

class DictAugmentedDyn(DictAugmented):
    """Either a deck or a configuration. A filtered deck is both."""
    def isDyn(self):
        return bool(self.get('dyn'))

    def isStd(self):
        return not self.isDyn()
