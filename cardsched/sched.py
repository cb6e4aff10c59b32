# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import copy
import random
from heapq import heappop, heappush

from cardsched import intervals
from cardsched.cards import Due
from cardsched.consts import *
from cardsched.duetree import buildTree
from cardsched.errors import (ConfigurationError, InvalidCardStateError,
                              SchedError)
from cardsched.hooks import runHook
from cardsched.session import DeckBudgets, QueueSession
from cardsched.utils import ids2str, timestampID

# card types: 0=new, 1=lrn, 2=rev, 3=relrn
# queue types: 0=new, 1=(re)lrn, 2=rev, 3=day (re)lrn,
#   4=preview, -1=suspended, -2=sibling buried, -3=manually buried
# revlog types: 0=lrn, 1=rev, 2=relrn, 3=early review
# positive revlog intervals are in days (rev), negative in seconds (lrn)
# odue/odid store original due/did when cards moved to filtered deck

class Scheduler:
    """
    queueLimit -- maximum number of cards to queue simultaneously.
    reportLimit -- the maximal number to show in counts and the deck list
    today -- number of days since the creation of the collection.
    dayCutoff -- timestamp of the end of today.
    reps -- number of cards fetched by getCard() in this session.
    _session -- the QueueSession of the active decks. None when the queues
      must be rebuilt before being used.
    _afterCommit -- while answering, what to do once the answer is saved.
    """
    name = "std2"
    _burySiblingsOnAnswer = True

    def __init__(self, col):
        self.col = col
        self.queueLimit = 50
        self.reportLimit = REPORT_LIMIT
        self.reps = 0
        self.today = None
        self.dayCutoff = None
        self._session = None
        self._afterCommit = []
        self._updateCutoff()

    def getCard(self):
        "Pop the next card from the queue. None if finished."
        self._checkDay()
        if self._session is None:
            self.reset()
        card = self._getCard()
        if card:
            self.col.log(card)
            self.reps += 1
            card.startTimer()
            return card
        return None

    def reset(self):
        """
        Deal with the fact that it's potentially a new day.
        Recompute the limits of the active decks, the number of learning,
        review and new cards to see, and empty the queues.
        """
        self._updateCutoff()
        dids = self.col.decks.active()
        self._session = QueueSession(DeckBudgets.build(self.col.decks, dids), dids)
        self._resetLrn()
        self._resetRev()
        self._resetNew()

    def invalidate(self):
        """Mark the queues as outdated. They are rebuilt when next needed."""
        self._session = None

    def answerCard(self, card, ease):
        """Answer card with ease, between 1 (Again) and 4 (Easy).

        The new state of the card and its review log entry are saved
        together; card is only modified once both are stored. On an error
        the queues are dropped and the error is raised again.
        """
        self.col.log()
        self._checkAnswerable(card, ease)
        snapshot = copy.copy(card)
        working = copy.copy(card)
        self._afterCommit = []
        try:
            with self.col.db.savepoint():
                if self._burySiblingsOnAnswer:
                    self._burySiblings(working)
                revlogId = self._answerCard(working, ease)
                working.flushSched()
        except Exception:
            # the queues may already expect the new state of the card
            self._afterCommit = []
            self.invalidate()
            raise
        card.__dict__.update(working.__dict__)
        self.col.markReview(snapshot, revlogId)
        callbacks, self._afterCommit = self._afterCommit, []
        for callback in callbacks:
            callback()

    def _checkAnswerable(self, card, ease):
        if not BUTTON_ONE <= ease <= BUTTON_FOUR:
            raise InvalidCardStateError(id=card.id, ease=ease)
        if self._previewingCard(card):
            if ease > BUTTON_TWO or card.queue not in (QUEUE_REV, QUEUE_PREVIEW):
                raise InvalidCardStateError(
                    id=card.id, ease=ease, queue=card.queue, preview=True)
            return
        if card.queue == QUEUE_NEW and card.type == CARD_NEW:
            return
        if card.queue in (QUEUE_LRN, QUEUE_DAY_LRN):
            return
        if card.queue == QUEUE_REV and card.type == CARD_DUE:
            return
        raise InvalidCardStateError(id=card.id, cardType=card.type, queue=card.queue)

    def _answerCard(self, card, ease):
        """Change card according to ease; return the id of the review log
        entry, or None if nothing was logged."""
        if self._previewingCard(card):
            self._answerCardPreview(card, ease)
            return None

        card.reps += 1

        if card.queue == QUEUE_NEW:
            # came from the new queue, move to learning
            card.queue = QUEUE_LRN
            card.type = CARD_LRN
            # init reps to graduation
            card.left = self._startingLeft(card)
            # update daily limit
            self._deferStats(card, 'new')

        if card.queue in (QUEUE_LRN, QUEUE_DAY_LRN):
            revlogId = self._answerLrnCard(card, ease)
        else:
            revlogId = self._answerRevCard(card, ease)
            # update daily limit
            self._deferStats(card, 'rev')

        # once a card has been answered once, the original due date
        # no longer applies
        if card.odue:
            card.odue = 0

        self._deferStats(card, 'time', card.timeTaken())
        return revlogId

    def _answerCardPreview(self, card, ease):
        if ease == BUTTON_ONE:
            # repeat after delay
            card.queue = QUEUE_PREVIEW
            card.due = self.col.clock.intTime() + self._previewDelay(card)
            if self._session is not None:
                self._session.lrnCount += 1
        else: #BUTTON_TWO
            # restore original card state and remove from filtered deck
            self._restorePreviewCard(card)
            self._removeFromFiltered(card)

    def counts(self, card=None):
        """The number of (new, learning, review) cards to see today in the
        active decks. If card is given, it is counted in its queue."""
        if self._session is None:
            self.reset()
        counts = list(self._session.counts())
        if card:
            idx = self.countIdx(card)
            counts[idx] += 1
        return tuple(counts)

    def countIdx(self, card):
        """The index in counts() of the queue of card."""
        if card.queue in (QUEUE_DAY_LRN, QUEUE_PREVIEW):
            return QUEUE_LRN
        return card.queue

    def answerButtons(self, card):
        """Number of buttons to show for this card"""
        conf = self._cardConf(card)
        if card.odid and not conf.get('resched', True):
            return 2
        return 4

    def dueForecast(self, days=7):
        "Return counts over next DAYS. Includes today."
        daysd = dict(self.col.db.all(f"""
select due, count() from cards
where did in %s and queue = {QUEUE_REV}
and due between ? and ?
group by due
order by due""" % ids2str(self.col.decks.active()),
                            self.today,
                            self.today+days-1))
        for day in range(days):
            day = self.today+day
            if day not in daysd:
                daysd[day] = 0
        # return in sorted order
        return [count for (due, count) in sorted(daysd.items())]

    # Rev/lrn/time daily stats
    ##########################################################################

    def _updateStats(self, card, type, cnt=1):
        self._updateDeckStats(card.currentDeck(), type, cnt)

    def _updateDeckStats(self, deck, type, cnt=1):
        # the budget is computed from the counters; consume it first
        if self._session is not None:
            self._session.budgets.consume(deck, type, cnt)
        key = type+"Today"
        for ancestor in deck.getAncestors(includeSelf=True):
            # add
            ancestor[key][1] += cnt
            ancestor.save()

    def _deferStats(self, card, type, cnt=1):
        """Update the counters of the card's current deck once the answer
        is saved."""
        deck = card.currentDeck()
        self._afterCommit.append(
            lambda: self._updateDeckStats(deck, type, cnt))

    def extendLimits(self, new, rev):
        """Allow new more new cards and rev more reviews today in the current
        deck, its ancestors and its descendants."""
        cur = self.col.decks.current()
        for deck in [cur] + cur.getAncestors() + cur.getDescendants():
            # add
            deck['newToday'][1] -= new
            deck['revToday'][1] -= rev
            deck.save()
        self.invalidate()

    def _walkingCount(self, limFn, cntFn):
        tot = 0
        pcounts = {}
        # for each of the active decks
        for did in self.col.decks.active():
            deck = self.col.decks.get(did, default=False)
            if not deck:
                continue
            # get the individual deck's limit
            lim = limFn(deck)
            if not lim:
                continue
            # check the parents
            ancestors = deck.getAncestors()
            for ancestor in ancestors:
                # add if missing
                if ancestor.getId() not in pcounts:
                    pcounts[ancestor.getId()] = limFn(ancestor)
                # take minimum of child and parent
                lim = min(pcounts[ancestor.getId()], lim)
            # see how many cards we actually have
            cnt = cntFn(deck.getId(), lim)
            # if non-zero, decrement from parent counts
            for ancestor in ancestors:
                pcounts[ancestor.getId()] -= cnt
            # we may also be a parent
            pcounts[deck.getId()] = lim - cnt
            # and add to running total
            tot += cnt
        return tot

    # Deck list
    ##########################################################################

    def deckDueList(self):
        "Returns [deckname, did, rev, lrn, new]"
        self._checkDay()
        decks = self.col.decks.all(sort=True)
        lims = {}
        data = []
        for deck in decks:
            parentName = self.col.decks.normalizeName(deck.getParentName())
            # new
            nlim = deck._deckNewLimitSingle()
            if parentName in lims:
                nlim = min(nlim, lims[parentName][0])
            new = self._newForDeck(deck.getId(), nlim)
            # learning
            lrn = self._lrnForDeck(deck.getId())
            # reviews
            if parentName in lims:
                plim = lims[parentName][1]
            else:
                plim = None
            rlim = self._deckRevLimitSingle(deck, parentLimit=plim)
            rev = self._revForDeck(deck, rlim)
            # save to list
            data.append([deck.getName(), deck.getId(), rev, lrn, new])
            # add deck as a parent
            lims[deck.getNormalizedName()] = [nlim, rlim]
        return data

    def deckDueTree(self):
        """The top level DeckDueTreeNodes, the default deck first."""
        return buildTree(self.col.decks, self.deckDueList())

    # Getting the next card
    ##########################################################################

    def _getCard(self):
        "Return the next due card, or None."
        # learning card due?
        card = self._getLrnCard()
        if card:
            return card

        # new first, or time for one?
        if self._timeForNewCard():
            card = self._getNewCard()
            if card:
                return card

        # day learning first and card due?
        dayLearnFirst = self.col.conf.get("dayLearnFirst", False)
        if dayLearnFirst:
            card = self._getLrnDayCard()
            if card:
                return card

        # card due for review?
        card = self._getRevCard()
        if card:
            return card

        # day learning card due?
        if not dayLearnFirst:
            card = self._getLrnDayCard()
            if card:
                return card

        # new cards left?
        card = self._getNewCard()
        if card:
            return card

        # collapse or finish
        return self._getLrnCard(collapse=True)

    # New cards
    ##########################################################################

    def _resetNewCount(self):
        budgets = self._session.budgets
        cntFn = lambda did, lim: self.col.db.scalar(f"""
select count() from (select 1 from cards where
did = ? and queue = {QUEUE_NEW} limit ?)""", did, lim)
        self._session.newCount = self._walkingCount(
            lambda deck: budgets.single(deck.getId(), 'new'), cntFn)

    def _resetNew(self):
        self._resetNewCount()
        self._session.newDids = self.col.decks.active()[:]
        self._session.newQueue = []
        self._updateNewCardRatio()

    def _fillNew(self):
        session = self._session
        if session.newQueue:
            return True
        if not session.newCount:
            return False
        while session.newDids:
            did = session.newDids[0]
            lim = min(self.queueLimit, session.budgets.remaining(did, 'new'))
            if lim:
                # fill the queue with the current did
                session.newQueue = self.col.db.list(f"""
                select id from cards where did = ? and queue = {QUEUE_NEW} order by due,ord limit ?""", did, lim)
                if session.newQueue:
                    session.newQueue.reverse()
                    return True
            # nothing left in the deck; move to next
            session.newDids.pop(0)
        if session.newCount:
            # if we didn't get a card but the count is non-zero,
            # we need to check again for any cards that were
            # removed from the queue but not buried
            self._resetNew()
            return self._fillNew()
        return False

    def _getNewCard(self):
        if self._fillNew():
            self._session.newCount -= 1
            return self.col.getCard(self._session.newQueue.pop())
        return None

    def _updateNewCardRatio(self):
        session = self._session
        if self.col.conf['newSpread'] == NEW_CARDS_DISTRIBUTE:
            if session.newCount:
                session.newCardModulus = (
                    (session.newCount + session.revCount) // session.newCount)
                # if there are cards to review, ensure modulo >= 2
                if session.revCount:
                    session.newCardModulus = max(2, session.newCardModulus)
                return
        session.newCardModulus = 0

    def _timeForNewCard(self):
        "True if it's time to display a new card when distributing."
        session = self._session
        if not session.newCount:
            return False
        if self.col.conf['newSpread'] == NEW_CARDS_LAST:
            return False
        elif self.col.conf['newSpread'] == NEW_CARDS_FIRST:
            return True
        elif session.newCardModulus:
            return bool(self.reps and self.reps % session.newCardModulus == 0)
        return False

    def _newForDeck(self, did, lim):
        "New count for a single deck."
        if not lim:
            return 0
        lim = min(lim, self.reportLimit)
        return self.col.db.scalar(f"""
select count() from
(select 1 from cards where did = ? and queue = {QUEUE_NEW} limit ?)""", did, lim)

    # Learning queues
    ##########################################################################

    # scan for any newly due learning cards every minute
    def _updateLrnCutoff(self, force):
        nextCutoff = self.col.clock.intTime() + self.col.conf['collapseTime']
        if nextCutoff - self._session.lrnCutoff > 60 or force:
            self._session.lrnCutoff = nextCutoff
            return True
        return False

    def _maybeResetLrn(self, force):
        if self._updateLrnCutoff(force):
            self._resetLrn()

    def _resetLrnCount(self):
        dids = ids2str(self.col.decks.active())
        # sub-day
        count = self.col.db.scalar(f"""
select count() from cards where did in %s and queue = {QUEUE_LRN}
and due < ?""" % dids, self._session.lrnCutoff) or 0
        # day
        count += self.col.db.scalar(f"""
select count() from cards where did in %s and queue = {QUEUE_DAY_LRN}
and due <= ?""" % dids, self.today)
        # previews
        count += self.col.db.scalar(f"""
select count() from cards where did in %s and queue = {QUEUE_PREVIEW}
""" % dids)
        self._session.lrnCount = count

    def _resetLrn(self):
        """Set lrnCount and lrnDids. Empty lrnQueue, lrnDayQueue."""
        self._updateLrnCutoff(force=True)
        self._resetLrnCount()
        self._session.lrnQueue = []
        self._session.lrnDayQueue = []
        self._session.lrnDids = self.col.decks.active()[:]

    # sub-day learning
    def _fillLrn(self):
        session = self._session
        if not session.lrnCount:
            return False
        if session.lrnQueue:
            return True
        cutoff = self.col.clock.intTime() + self.col.conf['collapseTime']
        session.lrnQueue = self.col.db.all(f"""
select due, id from cards where
did in %s and queue in ({QUEUE_LRN},{QUEUE_PREVIEW}) and due < ?
limit %d""" % (ids2str(self.col.decks.active()), self.reportLimit), cutoff)
        # as it arrives sorted by did first, we need to sort it
        session.lrnQueue.sort()
        return bool(session.lrnQueue)

    def _getLrnCard(self, collapse=False):
        self._maybeResetLrn(force=collapse and self._session.lrnCount == 0)
        if self._fillLrn():
            cutoff = self.col.clock.time()
            if collapse:
                cutoff += self.col.conf['collapseTime']
            if self._session.lrnQueue[0][0] < cutoff:
                id = heappop(self._session.lrnQueue)[1]
                card = self.col.getCard(id)
                self._session.lrnCount -= 1
                return card
        return None

    # daily learning
    def _fillLrnDay(self):
        session = self._session
        if not session.lrnCount:
            return False
        if session.lrnDayQueue:
            return True
        while session.lrnDids:
            did = session.lrnDids[0]
            # fill the queue with the current did
            session.lrnDayQueue = self.col.db.list(f"""
select id from cards where
did = ? and queue = {QUEUE_DAY_LRN} and due <= ? limit ?""",
                                    did, self.today, self.queueLimit)
            if session.lrnDayQueue:
                # order
                rand = random.Random()
                rand.seed(self.today)
                rand.shuffle(session.lrnDayQueue)
                # is the current did empty?
                if len(session.lrnDayQueue) < self.queueLimit:
                    session.lrnDids.pop(0)
                return True
            # nothing left in the deck; move to next
            session.lrnDids.pop(0)
        return False

    def _getLrnDayCard(self):
        if self._fillLrnDay():
            self._session.lrnCount -= 1
            return self.col.getCard(self._session.lrnDayQueue.pop())
        return None

    def _answerLrnCard(self, card, ease):
        conf = self._lrnConf(card)
        if card.type in (CARD_DUE, CARD_RELRN):
            type = REVLOG_RELRN
        else:
            type = REVLOG_LRN
        # lrnCount was decremented once when card was fetched
        lastLeft = card.left

        try:
            leaving = self._moveThroughSteps(card, conf, ease)
        except ConfigurationError:
            # no steps left in the options: the card leaves learning
            self.col.log("no learning steps", card.id)
            self._rescheduleAsRev(card, conf, False)
            leaving = True

        return self._logLrn(card, ease, conf, leaving, type, lastLeft)

    def _moveThroughSteps(self, card, conf, ease):
        """Apply ease to a card in learning. True if the card graduated."""
        # immediate graduate?
        if ease == BUTTON_FOUR:
            self._rescheduleAsRev(card, conf, True)
            return True
        # next step?
        if ease == BUTTON_THREE:
            # graduation time?
            if (card.left%1000)-1 <= 0:
                self._rescheduleAsRev(card, conf, False)
                return True
            self._moveToNextStep(card, conf)
        elif ease == BUTTON_TWO:
            self._repeatStep(card, conf)
        else:
            # back to first step
            self._moveToFirstStep(card, conf)
        return False

    def _updateRevIvlOnFail(self, card, conf):
        card.ivl = intervals.lapseIvl(card.ivl, conf)

    def _moveToFirstStep(self, card, conf):
        card.left = self._startingLeft(card)

        # relearning card?
        if card.type == CARD_RELRN:
            self._updateRevIvlOnFail(card, conf)

        return self._rescheduleLrnCard(card, conf)

    def _moveToNextStep(self, card, conf):
        # decrement real left count and recalculate left today
        left = (card.left % 1000) - 1
        card.left = intervals.leftToday(
            conf['delays'], left, self.col.clock.intTime(), self.dayCutoff)*1000 + left

        self._rescheduleLrnCard(card, conf)

    def _repeatStep(self, card, conf):
        delay = intervals.delayForRepeatingGrade(conf['delays'], card.left)
        self._rescheduleLrnCard(card, conf, delay=delay)

    def _rescheduleLrnCard(self, card, conf, delay=None):
        # normal delay for the current step?
        if delay is None:
            delay = intervals.delayForGrade(conf['delays'], card.left)

        now = self.col.clock.time()
        due = int(now + delay)
        # due today?
        if due < self.dayCutoff:
            # add some randomness, up to 5 minutes or 25%
            due = min(self.dayCutoff-1, due + intervals.learningFuzz(delay))
            card.setTypedDue(Due(DUE_TIMESTAMP, due), QUEUE_LRN)
            session = self._session
            if session is not None and card.due < (now + self.col.conf['collapseTime']):
                session.lrnCount += 1
                # if the queue is not empty and there's nothing else to do, make
                # sure we don't put it at the head of the queue and end up showing
                # it twice in a row
                if session.lrnQueue and not session.revCount and not session.newCount:
                    smallestDue = session.lrnQueue[0][0]
                    card.due = max(card.due, smallestDue+1)
                heappush(session.lrnQueue, (card.due, card.id))
        else:
            # the card is due in one or more days, so we need to use the
            # day learn queue
            ahead = ((due - self.dayCutoff) // SECONDS_PER_DAY) + 1
            card.setTypedDue(Due(DUE_DAY, self.today + ahead), QUEUE_DAY_LRN)
        return delay

    def _lrnConf(self, card):
        if card.type in (CARD_DUE, CARD_RELRN):
            return self._lapseConf(card)
        else:
            return self._newConf(card)

    def _rescheduleAsRev(self, card, conf, early):
        lapse = card.type in (CARD_DUE, CARD_RELRN)

        if lapse:
            self._rescheduleGraduatingLapse(card, early)
        else:
            self._rescheduleNew(card, conf, early)

        # if we were dynamic, graduating means moving back to the old deck
        if card.odid:
            self._removeFromFiltered(card)

    def _rescheduleGraduatingLapse(self, card, early=False):
        if early:
            card.ivl += 1
        card.due = self.today+card.ivl
        card.queue = QUEUE_REV
        card.type = CARD_DUE

    def _startingLeft(self, card):
        if card.type == CARD_RELRN:
            conf = self._lapseConf(card)
        else:
            conf = self._lrnConf(card)
        return intervals.startingLeft(
            conf['delays'], self.col.clock.intTime(), self.dayCutoff)

    def _rescheduleNew(self, card, conf, early):
        "Reschedule a new card that's graduated for the first time."
        card.ivl = intervals.graduatingIvl(card, conf, early)
        card.due = self.today+card.ivl
        card.factor = conf['initialFactor']
        card.type = CARD_DUE
        card.queue = QUEUE_REV

    def _logLrn(self, card, ease, conf, leaving, type, lastLeft):
        lastIvl = -self._stepDelay(conf, lastLeft)
        ivl = card.ivl if leaving else -self._stepDelay(conf, card.left)
        return self._log(card, ease, ivl, lastIvl, type)

    def _stepDelay(self, conf, left):
        """The delay of the step, or 0 without steps."""
        try:
            return intervals.delayForGrade(conf['delays'], left)
        except ConfigurationError:
            return 0

    def _log(self, card, ease, ivl, lastIvl, type):
        """Add the review log entry of this answer. Return its id."""
        id = timestampID(self.col.db, "revlog", self.col.clock.intTime(1000))
        self.col.db.execute(
            "insert into revlog values (?,?,?,?,?,?,?,?,?)",
            id, card.id, self.col.usn(), ease,
            ivl, lastIvl, card.factor, card.timeTaken(), type)
        return id

    def _lrnForDeck(self, did):
        cnt = self.col.db.scalar(
            f"""
select count() from
(select null from cards where did = ? and queue = {QUEUE_LRN} and due < ? limit ?)""",
            did, self.col.clock.intTime() + self.col.conf['collapseTime'], self.reportLimit) or 0
        return cnt + self.col.db.scalar(
            f"""
select count() from
(select null from cards where did = ? and queue = {QUEUE_DAY_LRN}
and due <= ? limit ?)""",
            did, self.today, self.reportLimit)

    # Reviews
    ##########################################################################

    def _currentRevLimit(self):
        return self._session.budgets.remaining(self.col.decks.selected(), 'rev')

    def _deckRevLimitSingle(self, deck, parentLimit=None):
        # invalid deck selected?
        if not deck:
            return 0

        lim = deck._deckRevLimitSingle()

        if parentLimit is not None:
            return min(parentLimit, lim)
        elif deck.isTopLevel():
            return lim
        else:
            return deck._deckLimit('rev')

    def _revForDeck(self, deck, lim):
        dids = deck.getDescendantsIds(includeSelf=True)
        lim = min(lim, self.reportLimit)
        return self.col.db.scalar(
            f"""
select count() from
(select 1 from cards where did in %s and queue = {QUEUE_REV}
and due <= ? limit ?)""" % ids2str(dids),
            self.today, lim)

    def _resetRevCount(self):
        lim = self._currentRevLimit()
        self._session.revCount = self.col.db.scalar(f"""
select count() from (select id from cards where
did in %s and queue = {QUEUE_REV} and due <= ? limit {lim})""" %
                                           ids2str(self.col.decks.active()),
                                           self.today)

    def _resetRev(self):
        """Set revCount, empty revQueue"""
        self._resetRevCount()
        self._session.revQueue = []

    def _fillRev(self):
        session = self._session
        if session.revQueue:
            return True
        if not session.revCount:
            return False

        lim = min(self.queueLimit, self._currentRevLimit())
        if lim:
            session.revQueue = self.col.db.list(f"""
select id from cards where
did in %s and queue = {QUEUE_REV} and due <= ?
order by due, random()
limit ?""" % ids2str(self.col.decks.active()),
                    self.today, lim)

            if session.revQueue:
                # preserve order
                session.revQueue.reverse()
                return True

        if session.revCount:
            # if we didn't get a card but the count is non-zero,
            # we need to check again for any cards that were
            # removed from the queue but not buried
            self._resetRev()
            return self._fillRev()
        return False

    def _getRevCard(self):
        if self._fillRev():
            self._session.revCount -= 1
            return self.col.getCard(self._session.revQueue.pop())
        return None

    # Answering a review card
    ##########################################################################

    def _answerRevCard(self, card, ease):
        delay = 0
        early = bool(card.odid and (card.odue > self.today))
        type = early and REVLOG_CRAM or REVLOG_REV
        lastIvl = card.ivl

        if ease == BUTTON_ONE:
            delay = self._rescheduleLapse(card)
        else:
            self._rescheduleRev(card, ease, early)

        return self._log(card, ease, -delay or card.ivl, lastIvl, type)

    def _rescheduleLapse(self, card):
        conf = self._lapseConf(card)

        card.lapses += 1
        card.factor = max(MIN_FACTOR, card.factor-200)

        suspended = self._checkLeech(card, conf) and card.queue == QUEUE_SUSPENDED

        if conf['delays'] and not suspended:
            card.type = CARD_RELRN
            delay = self._moveToFirstStep(card, conf)
        else:
            # no relearning steps
            self._updateRevIvlOnFail(card, conf)
            self._rescheduleAsRev(card, conf, early=False)
            # need to reset the queue after rescheduling
            if suspended:
                card.queue = QUEUE_SUSPENDED
            delay = 0

        return delay

    def _rescheduleRev(self, card, ease, early):
        # update interval
        conf = self._revConf(card)
        if early:
            card.ivl = intervals.earlyReviewIvl(card, conf, self.today, ease)
        else:
            card.ivl = intervals.nextRevIvl(
                card, conf, self._daysLate(card), ease, fuzz=True)

        # then the rest
        card.factor = max(MIN_FACTOR, card.factor+[-150, 0, 150][ease-2])
        card.due = self.today + card.ivl

        # card leaves filtered deck
        self._removeFromFiltered(card)

    def _daysLate(self, card):
        "Number of days later than scheduled."
        due = card.odue if card.odid else card.due
        return max(0, self.today - due)

    # Next time reports
    ##########################################################################

    def nextIvl(self, card, ease):
        "Return the next interval for CARD, in seconds."
        # preview mode?
        if self._previewingCard(card):
            if ease == BUTTON_ONE:
                return self._previewDelay(card)
            return 0

        # (re)learning?
        if card.queue in (QUEUE_NEW, QUEUE_LRN, QUEUE_DAY_LRN):
            return self._nextLrnIvl(card, ease)
        elif ease == BUTTON_ONE:
            # lapse
            conf = self._lapseConf(card)
            if conf['delays']:
                return int(conf['delays'][0]*60)
            return intervals.lapseIvl(card.ivl, conf)*SECONDS_PER_DAY
        else:
            # review
            conf = self._revConf(card)
            early = card.odid and (card.odue > self.today)
            if early:
                return intervals.earlyReviewIvl(card, conf, self.today, ease)*SECONDS_PER_DAY
            else:
                return intervals.nextRevIvl(
                    card, conf, self._daysLate(card), ease, fuzz=False)*SECONDS_PER_DAY

    def nextIntervals(self, card):
        """The next interval, in seconds, of each answer button of card."""
        return [self.nextIvl(card, ease)
                for ease in range(BUTTON_ONE, self.answerButtons(card)+1)]

    # this isn't easily extracted from the learn code
    def _nextLrnIvl(self, card, ease):
        if card.queue == QUEUE_NEW:
            left = self._startingLeft(card)
        else:
            left = card.left
        conf = self._lrnConf(card)
        try:
            if ease == BUTTON_ONE:
                # fail
                return intervals.delayForGrade(conf['delays'], len(conf['delays']))
            elif ease == BUTTON_TWO:
                return intervals.delayForRepeatingGrade(conf['delays'], left)
            elif ease == BUTTON_FOUR:
                return intervals.graduatingIvl(card, conf, True, fuzz=False) * SECONDS_PER_DAY
            else: # ease == BUTTON_THREE
                left = left%1000 - 1
                if left <= 0:
                    # graduate
                    return intervals.graduatingIvl(card, conf, False, fuzz=False) * SECONDS_PER_DAY
                else:
                    return intervals.delayForGrade(conf['delays'], left)
        except ConfigurationError:
            # without steps, every answer graduates
            return intervals.graduatingIvl(card, conf, False, fuzz=False) * SECONDS_PER_DAY

    # Filtered deck handling
    ##########################################################################

    def rebuildDyn(self, did=None):
        """Rebuild a filtered deck: return its cards home, then fill it with
        the cards matching its terms, and select it.

        Return the number of cards moved, or None if there are none. If a
        search is invalid, SchedError is raised and nothing changes."""
        did = did or self.col.decks.selected()
        deck = self.col.decks.get(did, strict=True)
        if not deck.isDyn():
            raise SchedError("notFiltered", did=did)
        lrnOnEntry = list(deck.get('lrnOnEntry', []))
        try:
            with self.col.db.savepoint():
                # move any existing cards back first, then fill
                self.emptyDyn(did)
                deck['lrnOnEntry'] = []
                deck.save()
                cnt = self._fillDyn(deck)
        except Exception:
            deck['lrnOnEntry'] = lrnOnEntry
            raise
        finally:
            self.invalidate()
        if not cnt:
            return None
        # and change to our new deck
        deck.select()
        return cnt

    def _fillDyn(self, deck):
        start = -100000
        total = 0
        for search, limit, order in deck['terms']:
            orderlimit = self._dynOrder(order, limit)
            if search.strip():
                search = "(%s)" % search
            search = "%s -is:suspended -is:buried -deck:filtered" % search
            ids = self.col.findCards(search, order=orderlimit)
            # move the cards over
            self.col.log(deck.getId(), ids)
            self._moveToDyn(deck, ids, start=start+total)
            total += len(ids)
        return total

    def emptyDyn(self, did, lim=None):
        """Send the cards of the filtered deck did, or the cards satisfying the
        sql condition lim, back to their home deck with their original due.

        Learning done inside the filtered deck is discarded: learning and
        relearning cards become new again, unless they were already
        learning when they were moved, in which case they keep their state.
        """
        if not lim:
            self.col.decks.get(did, strict=True)
            lim = "did = %s" % did
        rows = self.col.db.all("select id, type from cards where %s" % lim)
        cids = [cid for (cid, type) in rows]
        self.col.log(cids)
        kept = self._lrnOnEntry(cids)
        toNew = [cid for (cid, type) in rows
                 if type in (CARD_LRN, CARD_RELRN) and cid not in kept]
        with self.col.db.savepoint():
            self.col.db.execute("""
update cards set did = odid, %s,
due = (case when odue>0 then odue else due end), odue = 0, odid = 0, usn = ? where %s""" % (
                self._restoreQueueSnippet, lim),
                                self.col.usn())
            if toNew:
                self.forgetCards(toNew)
        self._forgetLrnOnEntry(cids)
        self.invalidate()

    def remFromDyn(self, cids):
        """Send the cards cids back home, if they are in a filtered deck."""
        self.emptyDyn(None, "id in %s and odid" % ids2str(cids))

    def _lrnOnEntry(self, cids):
        """The cards of cids which were learning when they were moved to
        their filtered deck."""
        cids = set(cids)
        kept = set()
        for deck in self.col.decks.all(dyn=True):
            kept.update(cids.intersection(deck.get('lrnOnEntry', [])))
        return kept

    def _forgetLrnOnEntry(self, cids):
        cids = set(cids)
        for deck in self.col.decks.all(dyn=True):
            entries = deck.get('lrnOnEntry', [])
            if cids.intersection(entries):
                deck['lrnOnEntry'] = [cid for cid in entries if cid not in cids]
                deck.save()

    def _dynOrder(self, order, limit):
        if order == DYN_OLDEST:
            sort = "(select max(id) from revlog where cid=card.id)"
        elif order == DYN_RANDOM:
            sort = "random()"
        elif order == DYN_SMALLINT:
            sort = "ivl"
        elif order == DYN_BIGINT:
            sort = "ivl desc"
        elif order == DYN_LAPSES:
            sort = "lapses desc"
        elif order == DYN_ADDED:
            sort = "card.nid"
        elif order == DYN_REVADDED:
            sort = "card.nid desc"
        elif order == DYN_DUEPRIORITY:
            sort = f"(case when queue={QUEUE_REV} and due <= %d then (ivl / cast(%d-due+0.001 as real)) else 100000+due end)" % (
                    self.today, self.today)
        else:# DYN_DUE or unknown
            sort = "card.due, card.ord"
        return sort + " limit %d" % limit

    def _moveToDyn(self, deck, ids, start=-100000):
        data = []
        usn = self.col.usn()
        due = start
        for id in ids:
            data.append((deck.getId(), due, usn, id))
            due += 1

        if deck['resched']:
            # cards in learning keep their step and their due time
            queue = ""
            keep = f"due <= 0 or queue in ({QUEUE_LRN},{QUEUE_DAY_LRN})"
        else:
            queue = f",queue={QUEUE_REV}"
            keep = "due <= 0"
        query = """
update cards set
odid = did, odue = due,
did = ?,
due = (case when %s then due else ? end),
usn = ?
%s
where id = ?
""" % (keep, queue)
        self.col.db.executemany(query, data)
        if ids:
            lrn = self.col.db.list(
                f"select id from cards where type in ({CARD_LRN},{CARD_RELRN}) and id in %s"
                % ids2str(ids))
            deck['lrnOnEntry'] = deck.get('lrnOnEntry', []) + lrn
            deck.save()

    def _removeFromFiltered(self, card):
        if card.odid:
            cid = card.id
            self._afterCommit.append(lambda: self._forgetLrnOnEntry([cid]))
            card.did = card.odid
            card.odue = 0
            card.odid = 0

    def _restorePreviewCard(self, card):
        assert card.odid

        due = card.originalTypedDue()

        # learning and relearning cards may be seconds-based or day-based;
        # other types map directly to queues
        if card.type in (CARD_LRN, CARD_RELRN):
            if due.kind == DUE_TIMESTAMP:
                card.queue = QUEUE_LRN
            else:
                card.queue = QUEUE_DAY_LRN
        else:
            card.queue = card.type
        card.due = due.value

    # Leeches
    ##########################################################################

    def _checkLeech(self, card, conf):
        "Leech handler. True if card was a leech."
        lf = conf['leechFails']
        if not lf:
            return False
        # if over threshold or every half threshold reps after that
        if (card.lapses >= lf and
            (card.lapses-lf) % (max(lf // 2, 1)) == 0):
            # handle
            leechAction = conf['leechAction']
            if leechAction == LEECH_SUSPEND:
                card.queue = QUEUE_SUSPENDED
            # notify UI once the answer is saved
            self._afterCommit.append(lambda: runHook("leech", card))
            return True
        return False

    # Tools
    ##########################################################################

    def _cardConf(self, card):
        """The options of the card's current deck; a filtered deck is its own
        options."""
        return card.currentConf()

    def _newConf(self, card):
        """The configuration for "new" of this card's deck. See dconf.py
        documentation to read more about them.
        """
        conf = self._cardConf(card)
        # normal deck
        if not card.odid:
            return conf['new']
        # dynamic deck; override some attributes, use original deck for others
        oconf = card.originalConf()
        return dict(
            # original deck
            ints=oconf['new']['ints'],
            initialFactor=oconf['new']['initialFactor'],
            bury=oconf['new'].get("bury", True),
            delays=oconf['new']['delays'],
            # overrides
            order=NEW_CARDS_DUE,
            perDay=self.reportLimit
        )

    def _lapseConf(self, card):
        """The configuration for "lapse" of this card's deck. See dconf.py
        documentation to read more about them.
        """
        conf = self._cardConf(card)
        # normal deck
        if not card.odid:
            return conf['lapse']
        # dynamic deck; override some attributes, use original deck for others
        oconf = card.originalConf()
        return dict(
            # original deck
            minInt=oconf['lapse']['minInt'],
            leechFails=oconf['lapse']['leechFails'],
            leechAction=oconf['lapse']['leechAction'],
            mult=oconf['lapse']['mult'],
            delays=oconf['lapse']['delays'],
            # overrides
            resched=conf.get('resched', True),
        )

    def _revConf(self, card):
        """The configuration for "review" of this card's home deck."""
        return card.originalConf()['rev']

    def _previewingCard(self, card):
        conf = self._cardConf(card)
        return conf.isDyn() and not conf['resched']

    def _previewDelay(self, card):
        return self._cardConf(card).get("previewDelay", 10)*60

    # Daily cutoff
    ##########################################################################

    def _checkDay(self):
        # check if the day has rolled over
        if self.col.clock.time() > self.dayCutoff:
            self.reset()

    def _updateCutoff(self):
        oldToday = self.today
        rollover = self.col.conf.get("rollover", 4)
        # days since col created
        self.today = self.col.clock.daysSince(self.col.crt, rollover)
        # end of day cutoff
        self.dayCutoff = self.col.clock.dayCutoff(rollover)
        if oldToday != self.today:
            self.col.log(self.today, self.dayCutoff)
        # update all daily counts, but don't save decks to prevent needless
        # conflicts. we'll save on card answer instead
        def update(deck):
            for type in "new", "rev", "lrn", "time":
                key = type+"Today"
                if deck.get(key, [None])[0] != self.today:
                    deck[key] = [self.today, 0]
        for deck in self.col.decks.all():
            update(deck)
        # unbury if the day has rolled over
        unburied = self.col.conf.get("lastUnburied", 0)
        if unburied < self.today:
            self.unburyCards()
            self.col.conf['lastUnburied'] = self.today
            self.col.setMod()

    # Deck finished state
    ##########################################################################

    def haveBuriedSiblings(self):
        sdids = ids2str(self.col.decks.active())
        cnt = self.col.db.scalar(
            f"select 1 from cards where queue = {QUEUE_SCHED_BURIED} and did in %s limit 1" % sdids)
        return not not cnt

    def haveManuallyBuried(self):
        sdids = ids2str(self.col.decks.active())
        cnt = self.col.db.scalar(
            f"select 1 from cards where queue = {QUEUE_USER_BURIED} and did in %s limit 1" % sdids)
        return not not cnt

    def haveBuried(self):
        return self.haveManuallyBuried() or self.haveBuriedSiblings()

    # Suspending & burying
    ##########################################################################

    # learning and relearning cards may be seconds-based or day-based;
    # other types map directly to queues
    _restoreQueueSnippet = f"""
queue = (case when type in ({CARD_LRN},{CARD_RELRN}) then
  (case when (case when odue then odue else due end) > 1000000000 then {QUEUE_LRN} else {QUEUE_DAY_LRN} end)
else
  type
end)
"""
    def suspendCards(self, ids):
        "Suspend cards."
        self.col.log(ids)
        self.col.db.execute(
            ("update cards set queue=%d,mod=?,usn=? where id in "%QUEUE_SUSPENDED)+
            ids2str(ids), self.col.clock.intTime(), self.col.usn())
        self.invalidate()

    def unsuspendCards(self, ids):
        "Unsuspend cards."
        self.col.log(ids)
        self.col.db.execute(
            ("update cards set %s,mod=?,usn=? "
            f"where queue = {QUEUE_SUSPENDED} and id in %s") % (self._restoreQueueSnippet, ids2str(ids)),
            self.col.clock.intTime(), self.col.usn())
        self.invalidate()

    def buryCards(self, cids, manual=True):
        """Bury the cards until the next day. manual -- whether the user
        asked for it, rather than the cards being siblings of an answered
        card."""
        self._buryCards(cids, manual)
        self.invalidate()

    def _buryCards(self, cids, manual):
        queue = manual and QUEUE_USER_BURIED or QUEUE_SCHED_BURIED
        self.col.log(cids)
        self.col.db.execute("""
update cards set queue=?,mod=?,usn=? where id in """+ids2str(cids),
                            queue, self.col.clock.intTime(), self.col.usn())

    def buryNote(self, nid):
        "Bury all cards for note until next session."
        cids = self.col.db.list(
            "select id from cards where nid = ? and queue >= 0", nid)
        self.buryCards(cids)

    def unburyCards(self):
        "Unbury all buried cards in all decks."
        self.col.log(
            self.col.db.list(f"select id from cards where queue in ({QUEUE_SCHED_BURIED}, {QUEUE_USER_BURIED})"))
        self.col.db.execute(
            f"update cards set %s where queue in ({QUEUE_SCHED_BURIED}, {QUEUE_USER_BURIED})" % self._restoreQueueSnippet)
        self.invalidate()

    def unburyCardsForDeck(self, type=UNBURY_ALL):
        """Unbury the cards of the active decks.

        type -- "all", "manual" for the cards buried by the user, or
        "siblings" for the cards buried when a sibling was answered."""
        if type == UNBURY_ALL:
            queue = f"queue in ({QUEUE_SCHED_BURIED}, {QUEUE_USER_BURIED})"
        elif type == UNBURY_MANUAL:
            queue = f"queue = {QUEUE_USER_BURIED}"
        elif type == UNBURY_SIBLINGS:
            queue = f"queue = {QUEUE_SCHED_BURIED}"
        else:
            raise SchedError("unknownUnburyType", type=type)

        sids = ids2str(self.col.decks.active())
        self.col.log(
            self.col.db.list("select id from cards where %s and did in %s"
                             % (queue, sids)))
        self.col.db.execute(
            "update cards set mod=?,usn=?,%s where %s and did in %s"
            % (self._restoreQueueSnippet, queue, sids), self.col.clock.intTime(), self.col.usn())
        self.invalidate()

    # Sibling spacing
    ##########################################################################

    def _burySiblings(self, card):
        toBury = []
        nconf = self._newConf(card)
        buryNew = nconf.get("bury", True)
        rconf = self._revConf(card)
        buryRev = rconf.get("bury", True)
        # loop through and remove from queues
        for cid, queue in self.col.db.all(f"""
select id, queue from cards where nid=? and id!=?
and (queue={QUEUE_NEW} or (queue={QUEUE_REV} and due<=?))""",
                card.nid, card.id, self.today):
            if queue == QUEUE_REV:
                if buryRev:
                    toBury.append(cid)
            elif buryNew:
                toBury.append(cid)
            # if bury disabled, we still discard to give same-day spacing
            if self._session is not None:
                self._session.discard(cid)
        if toBury:
            self._buryCards(toBury, manual=False)

    # Resetting
    ##########################################################################

    def forgetCards(self, ids):
        "Put cards at the end of the new queue."
        self.remFromDyn(ids)
        self.col.db.execute(
            (f"update cards set type={CARD_NEW},queue={QUEUE_NEW},ivl=0,due=0,odue=0,factor=?"
             " where id in ")+ids2str(ids), STARTING_FACTOR)
        pmax = self.col.db.scalar(
            f"select max(due) from cards where type={CARD_NEW}") or 0
        # takes care of mod + usn
        self.sortCards(ids, start=pmax+1)
        self.col.log(ids)
        self.invalidate()

    def reschedCards(self, ids, imin, imax):
        "Put cards in review queue with a new interval in days (min, max)."
        cardData = []
        today = self.today
        mod = self.col.clock.intTime()
        for id in ids:
            randValue = random.randint(imin, imax)
            cardData.append(dict(id=id, due=randValue+today, ivl=max(1, randValue), mod=mod,
                          usn=self.col.usn(), fact=STARTING_FACTOR))
        self.remFromDyn(ids)
        self.col.db.executemany(f"""
update cards set type={CARD_DUE},queue={QUEUE_REV},ivl=:ivl,due=:due,odue=0,
usn=:usn,mod=:mod,factor=:fact where id=:id""",
                                cardData)
        self.col.log(ids)
        self.invalidate()

    def resetCards(self, ids):
        "Completely reset cards for export."
        sids = ids2str(ids)
        # we want to avoid resetting due number of existing new cards on export
        nonNew = self.col.db.list(
            f"select id from cards where id in %s and (queue != {QUEUE_NEW} or type != {CARD_NEW})"
            % (sids))
        # reset all cards
        self.col.db.execute(
            f"update cards set reps=0,lapses=0,odid=0,odue=0,queue={QUEUE_NEW}"
            " where id in %s" % (sids)
        )
        # and forget any non-new cards, changing their due numbers
        self.forgetCards(nonNew)
        self.col.log(ids)

    # Repositioning new cards
    ##########################################################################

    def sortCards(self, cids, start=1, step=1, shuffle=False, shift=False):
        """Give the new cards of cids the positions start, start+step, ...;
        siblings share a position.

        shift -- whether to move the other new cards placed at or after
        start out of the way."""
        scids = ids2str(cids)
        now = self.col.clock.intTime()
        nids = []
        nidsSet = set()
        for id in cids:
            nid = self.col.db.scalar("select nid from cards where id = ?", id)
            if nid not in nidsSet:
                nids.append(nid)
                nidsSet.add(nid)
        if not nids:
            # no new cards
            return
        # determine nid ordering
        due = {}
        if shuffle:
            random.shuffle(nids)
        for index, nid in enumerate(nids):
            due[nid] = start+index*step
        high = start+(len(nids)-1)*step
        # shift?
        if shift:
            low = self.col.db.scalar(
                f"select min(due) from cards where due >= ? and type = {CARD_NEW} "
                "and id not in %s" % (scids),
                start)
            if low is not None:
                shiftby = high - low + 1
                self.col.db.execute(f"""
update cards set mod=?, usn=?, due=due+? where id not in %s
and due >= ? and queue = {QUEUE_NEW}""" % (scids), now, self.col.usn(), shiftby, low)
        # reorder cards
        cardData = [dict(now=now, due=due[nid], usn=self.col.usn(), cid=id)
                    for id, nid in self.col.db.all((f"select id, nid from cards where type = {CARD_NEW} and id in ")+scids)
        ]
        self.col.db.executemany(
            "update cards set due=:due,mod=:now,usn=:usn where id = :cid", cardData)
        self.invalidate()

    def randomizeCards(self, did):
        cids = self.col.db.list("select id from cards where did = ?", did)
        self.sortCards(cids, shuffle=True)

    def orderCards(self, did):
        cids = self.col.db.list("select id from cards where did = ? order by id", did)
        self.sortCards(cids)

    def resortConf(self, conf):
        for did in conf.getDids():
            if conf['new']['order'] == NEW_CARDS_RANDOM:
                self.randomizeCards(did)
            else:
                self.orderCards(did)

    # for post-import
    def maybeRandomizeDeck(self, did=None):
        if not did:
            did = self.col.decks.selected()
        conf = self.col.decks.get(did).getConf()
        # in order due?
        if conf['new']['order'] == NEW_CARDS_RANDOM:
            self.randomizeCards(did)
