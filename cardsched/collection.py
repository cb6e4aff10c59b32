# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import datetime
import json
import os
import pprint
import random
import re
import time
import traceback

import cardsched
import cardsched.cards
import cardsched.decks
import cardsched.find
from cardsched.clock import Clock
from cardsched.consts import *
from cardsched.errors import SchedError
from cardsched.hooks import runFilter
from cardsched.sched import Scheduler
from cardsched.utils import devMode, ids2str

defaultConf = {
    # review options
    'activeDecks': [1],
    'curDeck': 1,
    'newSpread': NEW_CARDS_DISTRIBUTE,
    'collapseTime': 1200,
    'dayLearnFirst': False,
    'rollover': 4,
    # other config
    'nextPos': 1,
}

# this is initialized by storage.Collection
class _Collection:
    """A collection holds the cards, their review log, the decks and
    their options.

    This object is usually denoted col

    _lastSave -- time of the last save. Initially time of creation.
    _undo -- An undo object. See below
    clock -- where the scheduler reads the current time

    The collection is an object composed of:
    crt -- timestamp of the creation date. It's correct up to the day.
    mod -- last modified in milliseconds
    scm -- schema mod time: time when "schema" was modified.
    ls -- "last sync time"
    conf -- json object containing configuration options
    """

    """
    conf -- ("conf" in the database.)
    "curDeck": "The id (as int) of the selected deck",
    "activeDecks": "The list containing the current deck id and its descendent (as ints)",
    "newSpread": "When to show new cards relatively to reviews. Possible values are:
      0 -- NEW_CARDS_DISTRIBUTE (Mix new cards and reviews)
      1 -- NEW_CARDS_LAST (see new cards after review)
      2 -- NEW_CARDS_FIRST (See new card before review)",
    "collapseTime": "Learn ahead limit, in seconds. If there are no other
    card to review, cards in learning due in less than this number of
    seconds are shown in advance.",
    "dayLearnFirst": "Whether learning cards with steps of a day or more
    are shown before reviews",
    "rollover": "hour at which a new day starts",
    "nextPos": "This is the highest value of a due value of a new card.
    It allows to decide the due number to give to the next card created.",
    "lastUnburied": "The day buried cards were last unburied. If it's
    not today, then buried cards must be unburied.",
    """

    def __init__(self, db, log=False, clock=None):
        self._debugLog = log
        self.db = db
        self.path = db._path
        self._openLog()
        self.log(self.path, cardsched.version)
        self.clock = clock or Clock()
        self._lastSave = self.clock.time()
        self.clearUndo()
        self.decks = cardsched.decks.DeckManager(self)
        self.load()
        if not self.crt:
            rollover = self.conf.get("rollover", 4)
            dt = self.clock.now()
            dt -= datetime.timedelta(hours=rollover)
            dt = datetime.datetime(dt.year, dt.month, dt.day)
            dt += datetime.timedelta(hours=rollover)
            self.crt = int(time.mktime(dt.timetuple()))
            self.setMod()
        self.sched = Scheduler(self)

    def name(self):
        return os.path.splitext(os.path.basename(self.path))[0]

    # DB-related
    ##########################################################################

    def load(self):
        (self.crt,
         self.mod,
         self.scm,
         self.dty, # no longer used
         self._usn,
         self.ls,
         self.conf,
         decks,
         dconf) = self.db.first("""
select crt, mod, scm, dty, usn, ls,
conf, decks, dconf from col""")
        self.conf = json.loads(self.conf)
        for key, value in defaultConf.items():
            self.conf.setdefault(key, value)
        self.decks.load(decks, dconf)

    def setMod(self):
        """Mark DB modified.

DB operations and the deck manager do this automatically, so this
is only necessary if you modify properties of this object or the conf dict."""
        self.db.mod = True

    def flush(self, mod=None):
        "Flush state to DB, updating mod time."
        self.mod = self.clock.intTime(1000) if mod is None else mod
        self.db.execute(
            """update col set
crt=?, mod=?, scm=?, dty=?, usn=?, ls=?, conf=?""",
            self.crt, self.mod, self.scm, self.dty,
            self._usn, self.ls, json.dumps(self.conf))

    def save(self, name=None, mod=None):
        """Flush, commit DB, and take out another write lock."""
        # let the managers conditionally flush
        self.decks.flush()
        # and flush deck + bump mod if db has been changed
        if self.db.mod:
            self.flush(mod=mod)
            self.db.commit()
            self.lock()
            self.db.mod = False
        self._markOp(name)
        self._lastSave = self.clock.time()

    def autosave(self):
        "Save if 5 minutes has passed since last save. True if saved."
        if self.clock.time() - self._lastSave > 300:
            self.save()
            return True

    def lock(self):
        # make sure we don't accidentally bump mod time
        mod = self.db.mod
        self.db.execute("update col set mod=mod")
        self.db.mod = mod

    def close(self, save=True):
        """Save or rollback collection's db according to save.
        Close collection's db and log.
        """
        if self.db:
            if save:
                self.save()
            else:
                self.db.rollback()
            self.db.setAutocommit(True)
            self.db.execute("pragma journal_mode = delete")
            self.db.setAutocommit(False)
            self.db.close()
            self.db = None
            self._closeLog()

    def rollback(self):
        self.db.rollback()
        self.load()
        self.lock()
        self.sched.invalidate()

    def modSchema(self, check):
        """Mark schema modified.

        Raise SchedError("abortSchemaMod") if the change is
        rejected by the modSchema filter.

        check -- whether to run the filter.
        """
        if not self.schemaChanged():
            if check and not runFilter("modSchema", True):
                raise SchedError("abortSchemaMod")
        self.scm = self.clock.intTime(1000)
        self.setMod()

    def schemaChanged(self):
        "True if schema changed since last sync."
        return self.scm > self.ls

    def usn(self):
        """The update sequence number to give to modified objects."""
        return -1

    # Object creation helpers
    ##########################################################################

    def getCard(self, id):
        """The card object whose id is id."""
        return cardsched.cards.Card(self, id)

    # Utils
    ##########################################################################

    def nextID(self, type, inc=True):
        """Get the id next{Type} in the collection's configuration. Increment this id.

        Use 1 instead if this id does not exists in the collection."""
        type = "next"+type.capitalize()
        id = self.conf.get(type, 1)
        if inc:
            self.conf[type] = id+1
            self.setMod()
        return id

    def reset(self):
        """See sched's reset documentation"""
        self.sched.reset()

    # Cards
    ##########################################################################

    def newCard(self, did=None, nid=None, ord=0, flush=True):
        """A new card, placed after the existing new cards.

        keyword arguments:
        did -- its deck; the current deck by default. Filtered decks
               can't receive new cards: the default deck is used instead.
        nid -- the id of the note it belongs to. Cards sharing a note are
               siblings, and are shown together in the new queue. By
               default, the card is its own note.
        ord -- its position among its siblings
        flush -- whether this card should be saved in the db
        """
        card = cardsched.cards.Card(self)
        if nid:
            card.nid = nid
        card.ord = ord
        deck = self.decks.get(did or self.decks.selected())
        if deck.isDyn():
            # must not be a filtered deck
            card.did = 1
        else:
            card.did = deck.getId()
        due = None
        if nid:
            # siblings are seen at the same position
            due = self.db.scalar(
                f"select due from cards where nid = ? and type = {CARD_NEW} limit 1", nid)
        if due is None:
            due = self._dueForDid(card.did, self.nextID("pos"))
        card.due = due
        if flush:
            card.flush()
            self.sched.invalidate()
        return card

    def _dueForDid(self, did, due):
        """The due of a new card: due itself in ordered mode, a random
        number depending only on due otherwise."""
        conf = self.decks.get(did).getConf()
        # in order due?
        if conf['new']['order'] == NEW_CARDS_DUE:
            return due
        else:
            # random mode; seed with the position so it is reproducible
            rand = random.Random()
            rand.seed(due)
            return rand.randrange(1, max(due, 1000))

    def isEmpty(self):
        """Is there no cards in this collection."""
        return not self.db.scalar("select 1 from cards limit 1")

    def cardCount(self):
        return self.db.scalar("select count() from cards")

    def remCards(self, ids):
        """Bulk delete cards by ID."""
        if not ids:
            return
        self.log(ids)
        self.db.execute("delete from cards where id in "+ids2str(ids))
        self.sched.invalidate()

    def findCards(self, query, order=False):
        return cardsched.find.Finder(self).findCards(query, order)

    def setUserFlag(self, flag, cids):
        assert 0 <= flag <= 7
        self.db.execute("update cards set flags = (flags & ~?) | ?, usn=?, mod=? where id in %s" %
                        ids2str(cids), 0b111, flag, self.usn(), self.clock.intTime())

    def fixIntegrity(self):
        """Move cards of missing decks to the default deck and repair the
        deck names."""
        self.decks.checkIntegrity()
        self.sched.invalidate()
        self.save()

    # Undo
    ##########################################################################
    # [type, undoName, data]
    # type 1 = review; type 2 = checkpoint
    # review data is a list of (card before the answer, revlog id or None)

    def clearUndo(self):
        """Erase all undo information from the collection."""
        self._undo = None

    def undoName(self):
        """The name of the action which could potentially be undone.

        None if nothing can be undone.
        """
        if not self._undo:
            return None
        return self._undo[1]

    def undo(self):
        """Undo the last operation.

        Assuming an undo object exists."""
        if self._undo[0] == 1:
            return self._undoReview()
        else:
            self._undoOp()

    def markReview(self, card, revlogId):
        """Remember card, as it was before being answered, and the review
        log entry the answer created. Only the last UNDO_REVIEWS_MAX
        answers are kept."""
        old = []
        if self._undo:
            if self._undo[0] == 1:
                old = self._undo[2]
            self.clearUndo()
        entries = old + [(card, revlogId)]
        self._undo = [1, "Review", entries[-UNDO_REVIEWS_MAX:]]

    def _undoReview(self):
        data = self._undo[2]
        card, revlogId = data.pop()
        if not data:
            self.clearUndo()
        # write old data
        card.flush()
        # and delete revlog entry
        if revlogId is not None:
            self.db.execute("delete from revlog where id = ?", revlogId)
        # restore any siblings
        self.db.execute(
            "update cards set %s,mod=?,usn=? where queue=? and nid=?" % self.sched._restoreQueueSnippet,
            self.clock.intTime(), self.usn(), QUEUE_SCHED_BURIED, card.nid)
        # and finally, update daily counts
        index = self.sched.countIdx(card)
        type = ("new", "lrn", "rev")[index]
        self.sched._updateStats(card, type, -1)
        self.sched.reps -= 1
        self.sched.invalidate()
        return card.id

    def _markOp(self, name):
        "Call via .save()"
        if name:
            self._undo = [2, name]
        else:
            # saving disables old checkpoint, but not review undo
            if self._undo and self._undo[0] == 2:
                self.clearUndo()

    def _undoOp(self):
        self.rollback()
        self.clearUndo()

    # Logging
    ##########################################################################

    def log(self, *args, **kwargs):
        """Generate the string [time] path:fn(): args list

        if args is not string, it is represented using pprint.pformat

        if self._debugLog is True, it is added to _logHnd
        if devMode is True, this string is printed
        """
        if not self._debugLog:
            return
        def customRepr(arg):
            if isinstance(arg, str):
                return arg
            return pprint.pformat(arg)
        path, num, fn, y = traceback.extract_stack(
            limit=2+kwargs.get("stack", 0))[0]
        buf = "[%s] %s:%s(): %s" % (int(time.time()), os.path.basename(path), fn,
                                     ", ".join([customRepr(arg) for arg in args]))
        self._logHnd.write(buf + "\n")
        if devMode:
            print(buf)

    def _openLog(self):
        if not self._debugLog:
            return
        lpath = re.sub(r"\.anki2$", ".log", self.path)
        if os.path.exists(lpath) and os.path.getsize(lpath) > 10*1024*1024:
            lpath2 = lpath + ".old"
            if os.path.exists(lpath2):
                os.unlink(lpath2)
            os.rename(lpath, lpath2)
        self._logHnd = open(lpath, "a", encoding="utf8")

    def _closeLog(self):
        if not self._debugLog:
            return
        self._logHnd.close()
        self._logHnd = None
