# coding: utf-8

import os
import tempfile

from cardsched import Collection
from cardsched.consts import *
from tests.shared import MockClock, getEmptyCol


def test_create_open():
    (fd, path) = tempfile.mkstemp(suffix=".anki2", prefix="test_create")
    os.close(fd)
    os.unlink(path)
    col = Collection(path, clock=MockClock())
    crt = col.crt
    card = col.newCard()
    col.conf['collapseTime'] = 600
    col.setMod()
    col.close()
    col = Collection(path, clock=MockClock())
    assert col.crt == crt
    assert col.cardCount() == 1
    assert col.getCard(card.id).due == 1
    assert col.conf['collapseTime'] == 600
    assert col.name().startswith("test_create")
    col.close()

def test_log():
    (fd, path) = tempfile.mkstemp(suffix=".anki2")
    os.close(fd)
    os.unlink(path)
    col = Collection(path, log=True, clock=MockClock())
    col.log("hello", [1, 2])
    col.close()
    with open(path.replace(".anki2", ".log"), encoding="utf8") as f:
        content = f.read()
    assert "test_log(): hello, [1, 2]" in content

def test_stacked_undo():
    col = getEmptyCol()
    c1 = col.newCard()
    c2 = col.newCard()
    col.reset()
    col.sched.answerCard(col.sched.getCard(), 3)
    col.sched.answerCard(col.sched.getCard(), 3)
    assert col.db.scalar("select count() from revlog") == 2
    assert col.undo() == c2.id
    assert col.undoName() == "Review"
    assert col.undo() == c1.id
    assert not col.undoName()
    for card in c1, c2:
        card.load()
        assert card.queue == QUEUE_NEW
    assert col.sched.counts() == (2, 0, 0)

def test_checkpoint():
    col = getEmptyCol()
    col.save("add deck")
    col.decks.id("foo")
    col.newCard()
    assert col.undoName() == "add deck"
    # undoing a checkpoint rolls back to the last save
    col.undo()
    assert col.cardCount() == 0
    assert "foo" not in col.decks.allNames()
    assert not col.undoName()

def test_undo_depth():
    col = getEmptyCol()
    col.newCard()
    col.reset()
    c = col.sched.getCard()
    for i in range(UNDO_REVIEWS_MAX + 5):
        col.sched.answerCard(c, 1)
    assert col.db.scalar("select count() from revlog") == UNDO_REVIEWS_MAX + 5
    # only the last answers can be undone
    for i in range(UNDO_REVIEWS_MAX):
        assert col.undoName() == "Review"
        assert col.undo() == c.id
    assert not col.undoName()
    assert col.db.scalar("select count() from revlog") == 5
