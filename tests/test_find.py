# coding: utf-8

from cardsched.consts import *
from cardsched.errors import SchedError
from tests.shared import assertException, getEmptyCol


def test_findCards():
    col = getEmptyCol()
    new = col.newCard()
    review = col.newCard()
    review.type = CARD_DUE
    review.queue = QUEUE_REV
    review.ivl = 10
    review.due = col.sched.today
    review.factor = STARTING_FACTOR
    review.flush()
    foo = col.decks.id("foo")
    child = col.decks.id("foo::bar")
    inFoo = col.newCard(did=foo)
    inChild = col.newCard(did=child)
    suspended = col.newCard()
    col.sched.suspendCards([suspended.id])
    buried = col.newCard()
    col.sched.buryCards([buried.id])
    # card states
    assert col.findCards("is:review") == [review.id]
    assert sorted(col.findCards("is:new")) == sorted(
        [new.id, inFoo.id, inChild.id, suspended.id, buried.id])
    assert col.findCards("is:suspended") == [suspended.id]
    assert col.findCards("is:buried") == [buried.id]
    assert col.findCards("is:due") == [review.id]
    assert not col.findCards("is:learn")
    # decks include their children
    assert sorted(col.findCards("deck:foo")) == sorted([inFoo.id, inChild.id])
    assert col.findCards("deck:foo::bar") == [inChild.id]
    assert sorted(col.findCards("deck:fo*")) == sorted([inFoo.id, inChild.id])
    assert len(col.findCards("deck:*")) == 6
    assert not col.findCards("deck:filtered")
    # properties
    assert col.findCards("prop:ivl>=10") == [review.id]
    assert col.findCards("prop:due=0") == [review.id]
    assert col.findCards("prop:ease=2.5") == [review.id]
    assert col.findCards("cid:%d" % new.id) == [new.id]
    assert sorted(col.findCards("nid:%d,%d" % (new.nid, review.nid))) == sorted(
        [new.id, review.id])
    # negation, grouping and alternatives
    assert len(col.findCards("-is:new")) == 1
    assert len(col.findCards("-is:new -is:review")) == 0
    assert sorted(col.findCards("(is:review or is:suspended)")) == sorted(
        [review.id, suspended.id])
    assert col.findCards("is:new deck:foo::bar") == [inChild.id]
    # an empty search matches every card
    assert len(col.findCards("")) == 6

def test_order():
    col = getEmptyCol()
    c1 = col.newCard()
    c2 = col.newCard()
    col.sched.sortCards([c2.id, c1.id])
    assert col.findCards("", order=True) == [c2.id, c1.id]
    assert col.findCards("", order="card.id") == [c1.id, c2.id]

def test_flags_and_ratings():
    col = getEmptyCol()
    c1 = col.newCard()
    c2 = col.newCard()
    col.setUserFlag(1, [c1.id])
    assert col.findCards("flag:1") == [c1.id]
    assert col.findCards("flag:0") == [c2.id]
    col.reset()
    card = col.sched.getCard()
    col.sched.answerCard(card, 3)
    assert col.findCards("rated:1") == [card.id]
    assert col.findCards("rated:1:3") == [card.id]
    assert not col.findCards("rated:1:1")
    assert len(col.findCards("added:1")) == 2

def test_invalid():
    col = getEmptyCol()
    col.newCard()
    # cards have no text to search
    assertException(SchedError, lambda: col.findCards("hello"))
    assertException(SchedError, lambda: col.findCards("bogus:term"))
    assertException(SchedError, lambda: col.findCards("prop:bogus>1"))
    assertException(SchedError, lambda: col.findCards("flag:9"))
    # a failed term which is negated is ignored
    assert len(col.findCards("-prop:bogus>1")) == 1
