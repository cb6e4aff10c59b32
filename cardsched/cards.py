# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html
import collections
import pprint

from cardsched.consts import *
from cardsched.errors import InvalidCardStateError
from cardsched.hooks import runHook
from cardsched.utils import timestampID

# The value of the due column together with what it means for the card's
# queue: a position among new cards, a timestamp, or a day number.
Due = collections.namedtuple("Due", ["kind", "value"])

# Cards
##########################################################################

class Card:

    """
    Cards are what you review.

    id -- the epoch milliseconds of when the card was created
    nid -- The card's note's id. Cards sharing a nid are siblings.
    did -- The card's deck id
    ord -- ordinal among the siblings
    mod -- modificaton time as epoch seconds
    usn -- update sequence number
    type -- 0=new, 1=learning, 2=review, 3=relearning.
    queue --
         -- QUEUE_SCHED_BURIED: sibling buried by the scheduler, -2
         -- QUEUE_USER_BURIED: card buried by user, -3
         -- QUEUE_SUSPENDED: Card suspended, -1
         -- QUEUE_NEW: new card,  0
         -- QUEUE_LRN: cards in learning, which should be seen again today, 1
         -- QUEUE_REV: cards already learned, 2
         -- QUEUE_DAY_LRN: cards in learning but won't be seen today again, 3
         -- QUEUE_PREVIEW: cards answered Again in a preview deck, 4
    due -- Due is used differently for different card types:
        --   new: position, or a random int. Order in which new cards are seen.
        --   review and day learning: integer day in which the card is due,
             relative to the collection's creation time
        --   learning and preview: integer timestamp of when the card is due
        --   review in a filtered deck: position in the filtered deck
    ivl -- interval. Negative = seconds, positive = days
    factor -- ease factor, in permille
    reps -- number of reviews
    lapses -- the number of times the card went from a "was answered correctly"
           --   to "was answered incorrectly" state
    left
      -- of the form a*1000+b, with:
      -- b the number of reps left till graduation
      -- a the number of reps left today
    odue -- original due: In filtered decks, the due the card had before
            moving to filtered. In any other case it's 0.
    odid -- original did: only used when the card is currently in filtered deck
    flags -- an integer. Its value mod 8 is a user flag.
    data -- currently unused

    Values not in the database:
    col -- its collection
    timerStarted -- The time at which the timer started
    """

    def __init__(self, col, id=None):
        """
        The card with this id from the collection, or a new card if no id
        is given.
        """
        self.col = col
        self.timerStarted = None
        if id:
            self.id = id
            self.load()
        else:
            # to flush, set nid, ord, and due
            self.id = timestampID(col.db, "cards")
            self.nid = self.id
            self.did = 1
            self.ord = 0
            self.type = CARD_NEW
            self.queue = QUEUE_NEW
            self.due = 0
            self.ivl = 0
            self.factor = 0
            self.reps = 0
            self.lapses = 0
            self.left = 0
            self.odue = 0
            self.odid = 0
            self.flags = 0
            self.data = ""

    def load(self):
        """Complete the card with the information from the database."""
        row = self.col.db.first(
             "select * from cards where id = ?", self.id)
        if row is None:
            raise InvalidCardStateError(id=self.id, reason="missing")
        (self.id,
         self.nid,
         self.did,
         self.ord,
         self.mod,
         self.usn,
         self.type,
         self.queue,
         self.due,
         self.ivl,
         self.factor,
         self.reps,
         self.lapses,
         self.left,
         self.odue,
         self.odid,
         self.flags,
         self.data) = row

    def flush(self):
        """Insert the card into the database, replacing any previous
        version."""
        self.mod = self.col.clock.intTime()
        self.usn = self.col.usn()
        # bug check
        if self.queue == QUEUE_REV and self.odue and not self.currentDeck().isDyn():
            runHook("odueInvalid")
        assert self.due < 4294967296
        self.col.db.execute(
            """
insert or replace into cards values
(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            self.id,
            self.nid,
            self.did,
            self.ord,
            self.mod,
            self.usn,
            self.type,
            self.queue,
            self.due,
            self.ivl,
            self.factor,
            self.reps,
            self.lapses,
            self.left,
            self.odue,
            self.odid,
            self.flags,
            self.data)

    def flushSched(self):
        """Update the scheduling columns of a card already in the db."""
        self.mod = self.col.clock.intTime()
        self.usn = self.col.usn()
        # bug checks
        if self.queue == QUEUE_REV and self.odue and not self.currentDeck().isDyn():
            runHook("odueInvalid")
        assert self.due < 4294967296
        self.col.db.execute(
            """update cards set
mod=?, usn=?, type=?, queue=?, due=?, ivl=?, factor=?, reps=?,
lapses=?, left=?, odue=?, odid=?, did=? where id = ?""",
            self.mod,
            self.usn,
            self.type,
            self.queue,
            self.due,
            self.ivl,
            self.factor,
            self.reps,
            self.lapses,
            self.left,
            self.odue,
            self.odid,
            self.did,
            self.id)
        self.col.log(self.id, self.type, self.queue, self.due, self.ivl, self.left)

    # Due
    ######################################################################

    def dueKind(self, queue=None, due=None):
        """What the due column means for this card's queue."""
        if queue is None:
            queue = self.queue
        if due is None:
            due = self.due
        if queue in (QUEUE_LRN, QUEUE_PREVIEW):
            return DUE_TIMESTAMP
        if queue == QUEUE_DAY_LRN:
            return DUE_DAY
        if queue == QUEUE_NEW:
            return DUE_ORDINAL
        if queue == QUEUE_REV:
            # reviews in a filtered deck are sorted by their position
            return DUE_ORDINAL if self.odid else DUE_DAY
        # suspended or buried: the queue the card would return to
        if self.type == CARD_NEW:
            return DUE_ORDINAL
        if self.type in (CARD_LRN, CARD_RELRN):
            return DUE_TIMESTAMP if due > 1000000000 else DUE_DAY
        return DUE_ORDINAL if self.odid else DUE_DAY

    def typedDue(self):
        return Due(self.dueKind(), self.due)

    def setTypedDue(self, due, queue=None):
        """Set due, checking it has the kind expected for queue (by
        default the card's current queue)."""
        if queue is None:
            queue = self.queue
        expected = self.dueKind(queue, due.value)
        if due.kind != expected:
            raise InvalidCardStateError(
                id=self.id, queue=queue, due=due, expected=expected)
        self.queue = queue
        self.due = due.value

    def originalTypedDue(self):
        """The due the card had before entering a filtered deck."""
        if not self.odid:
            return self.typedDue()
        if self.type == CARD_NEW:
            return Due(DUE_ORDINAL, self.odue)
        if self.type in (CARD_LRN, CARD_RELRN) and self.odue > 1000000000:
            return Due(DUE_TIMESTAMP, self.odue)
        return Due(DUE_DAY, self.odue)

    # Timer
    ######################################################################

    def startTimer(self):
        """Start the timer of the card"""
        self.timerStarted = self.col.clock.time()

    def timeLimit(self):
        """Time limit for answering in milliseconds.

        According to the deck's information."""
        conf = self.originalConf()
        return conf['maxTaken']*1000

    def timeTaken(self):
        "Time taken to answer card, in integer MS."
        if self.timerStarted is None:
            return 0
        total = int((self.col.clock.time() - self.timerStarted)*1000)
        return min(total, self.timeLimit())

    def __repr__(self):
        values = dict(self.__dict__)
        # remove non-useful elements
        del values['col']
        del values['timerStarted']
        return pprint.pformat(values, width=300)

    def userFlag(self):
        return self.flags & 0b111

    def setUserFlag(self, flag):
        assert 0 <= flag <= 7
        self.flags = (self.flags & ~0b111) | flag

    # Decks
    ######################################################################

    def isFiltered(self):
        return bool(self.odid)

    def currentDeck(self):
        return self.col.decks.get(self.did)

    def originalDid(self):
        """Independantly of whether the card is filtered or not."""
        return self.odid or self.did

    def originalDeck(self):
        """Independantly of whether the card is filtered or not."""
        return self.col.decks.get(self.originalDid())

    def originalConf(self):
        """Independantly of whether the card is filtered or not."""
        return self.originalDeck().getConf()

    def currentConf(self):
        return self.currentDeck().getConf()
