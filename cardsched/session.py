# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html


class DeckBudgets:
    """What is left of the daily new and review limits of the active
    decks and their ancestors.

    Computed once when the queues are built; each answer consumes the
    budget of the card's deck and of all its ancestors.

    _chains -- deck id to the ids of its ancestors and itself
    _remaining -- (deck id, kind) to the remaining limit of that deck alone
    """

    def __init__(self):
        self._chains = {}
        self._remaining = {}

    @classmethod
    def build(cls, decks, dids):
        budgets = cls()
        for did in dids:
            deck = decks.get(did, default=False)
            if deck:
                budgets.add(deck)
        return budgets

    def add(self, deck):
        chain = deck.getAncestors(includeSelf=True)
        self._chains[deck.getId()] = [ancestor.getId() for ancestor in chain]
        for ancestor in chain:
            for kind in ('new', 'rev'):
                key = (ancestor.getId(), kind)
                if key not in self._remaining:
                    self._remaining[key] = ancestor._deckLimitSingle(kind)

    def single(self, did, kind):
        """The limit of the deck without its ancestors."""
        return max(0, self._remaining.get((did, kind), 0))

    def remaining(self, did, kind):
        """The limit of the deck, taking its ancestors into account."""
        chain = self._chains.get(did)
        if not chain:
            return 0
        return max(0, min(self._remaining[(ancestor, kind)] for ancestor in chain))

    def consume(self, deck, kind, cnt=1):
        if kind not in ('new', 'rev'):
            return
        if deck.getId() not in self._chains:
            self.add(deck)
        for did in self._chains[deck.getId()]:
            self._remaining[(did, kind)] -= cnt


class QueueSession:
    """The cards to show for the active decks, as computed by
    Scheduler.reset().

    newQueue, revQueue, lrnDayQueue -- card ids, the next one last
    lrnQueue -- heap of (due, card id) of sub-day learning cards
    newDids, lrnDids -- active decks whose new and day learning cards are
      not yet all fetched
    newCardModulus -- when distributing new cards among reviews, a new
      card is shown every newCardModulus cards. 0 if not distributing.
    lrnCutoff -- learning cards due before this time are counted
    budgets -- the DeckBudgets of the active decks
    """

    def __init__(self, budgets, activeDids):
        self.budgets = budgets
        self.newCount = 0
        self.lrnCount = 0
        self.revCount = 0
        self.newQueue = []
        self.lrnQueue = []
        self.lrnDayQueue = []
        self.revQueue = []
        self.newDids = list(activeDids)
        self.lrnDids = list(activeDids)
        self.newCardModulus = 0
        self.lrnCutoff = 0

    def counts(self):
        return (self.newCount, self.lrnCount, self.revCount)

    def discard(self, cid):
        """Remove the card from the new and review queues, if present."""
        for queue in (self.newQueue, self.revQueue):
            try:
                queue.remove(cid)
            except ValueError:
                pass
