# coding: utf-8

from cardsched.cards import Due
from cardsched.consts import *
from cardsched.errors import InvalidCardStateError
from tests.shared import assertException, getEmptyCol


def test_flush_load():
    col = getEmptyCol()
    card = col.newCard()
    card.ivl = 3
    card.flush()
    copy = col.getCard(card.id)
    assert copy.ivl == 3
    assert copy.did == 1
    assert copy.nid == card.id
    assertException(InvalidCardStateError, lambda: col.getCard(12345))

def test_typedDue():
    col = getEmptyCol()
    card = col.newCard()
    assert card.typedDue() == Due(DUE_ORDINAL, 1)
    # a card in learning is due at a time
    now = col.clock.intTime()
    card.setTypedDue(Due(DUE_TIMESTAMP, now), QUEUE_LRN)
    assert card.queue == QUEUE_LRN
    assert card.due == now
    # but not on a day
    assertException(InvalidCardStateError,
                    lambda: card.setTypedDue(Due(DUE_DAY, 3), QUEUE_LRN))
    card.setTypedDue(Due(DUE_DAY, 3), QUEUE_DAY_LRN)
    assert card.typedDue() == Due(DUE_DAY, 3)
    # suspended cards keep the meaning of their type
    card.type = CARD_DUE
    card.queue = QUEUE_SUSPENDED
    assert card.dueKind() == DUE_DAY
    card.type = CARD_RELRN
    card.due = now
    assert card.dueKind() == DUE_TIMESTAMP

def test_filtered_due():
    col = getEmptyCol()
    card = col.newCard()
    card.type = CARD_DUE
    card.queue = QUEUE_REV
    card.ivl = 10
    card.due = 5
    card.factor = STARTING_FACTOR
    card.flush()
    assert card.originalTypedDue() == Due(DUE_DAY, 5)
    did = col.decks.newDyn("Cram").getId()
    col.sched.rebuildDyn(did)
    card.load()
    assert card.isFiltered()
    # in a filtered deck, reviews are sorted by position
    assert card.typedDue().kind == DUE_ORDINAL
    assert card.originalTypedDue() == Due(DUE_DAY, 5)
    assert card.originalDid() == 1
    assert card.currentDeck().isDyn()
    assert card.originalConf().getId() == 1

def test_flags_and_timer():
    col = getEmptyCol()
    card = col.newCard()
    card.setUserFlag(3)
    assert card.userFlag() == 3
    card.setUserFlag(0)
    assert card.userFlag() == 0
    assert card.timeTaken() == 0
    card.startTimer()
    col.clock.advance(120)
    # capped to the deck's maximum answer time
    assert card.timeTaken() == 60*1000
