# coding: utf-8

from cardsched.consts import *
from cardsched.errors import DeckRenameError, NotFoundError
from tests.shared import assertException, getEmptyCol


def test_basic():
    col = getEmptyCol()
    # we start with a standard deck
    assert len(col.decks.decks) == 1
    # it should have an id of 1
    assert col.decks.name(1)
    # create a new deck
    parent = col.decks.byName("new deck", create=True)
    assert parent
    parentId = parent.getId()
    assert len(col.decks.decks) == 2
    # should get the same id
    assert col.decks.id("new deck") == parentId
    # we start with the default deck selected
    assert col.decks.selected() == 1
    assert col.decks.active() == [1]
    # we can select a different deck
    parent.select()
    assert col.decks.selected() == parentId
    assert col.decks.active() == [parentId]
    # let's create a child
    child = col.decks.byName("new deck::child", create=True)
    childId = child.getId()
    # it should have been added to the active list
    assert col.decks.selected() == parentId
    assert col.decks.active() == [parentId, childId]
    # we can select the child individually too
    child.select()
    assert col.decks.selected() == childId
    assert col.decks.active() == [childId]
    # parents with a different case should be handled correctly
    col.decks.id("ONE")
    did = col.decks.id("one::two")
    assert col.decks.get(did).getName() == "ONE::two"
    col.newCard(did=did)
    # this will error if child and parent case don't match
    col.sched.deckDueList()

def test_get():
    col = getEmptyCol()
    # missing decks fall back to the default deck, unless asked not to
    assert col.decks.get(12345).getId() == 1
    assert col.decks.get(12345, default=False) is None
    assertException(NotFoundError, lambda: col.decks.get(12345, strict=True))

def test_remove():
    col = getEmptyCol()
    # create a new deck, and add a card to it
    g1 = col.decks.id("g1")
    c = col.newCard(did=g1)
    assert c.did == g1
    # by default deleting the deck leaves the cards with an invalid did
    assert col.cardCount() == 1
    col.decks.get(g1).rem()
    assert col.cardCount() == 1
    c.load()
    assert c.did == g1
    # but if we try to get it, we get the default
    assert col.decks.name(c.did) == "[no deck]"
    # checking the collection moves it back to the default deck
    col.fixIntegrity()
    c.load()
    assert c.did == 1
    # let's create another deck and explicitly set the card to it
    g2 = col.decks.id("g2")
    c.did = g2; c.flush()
    # this time we'll delete the card too
    col.decks.get(g2).rem(cardsToo=True)
    assert col.cardCount() == 0
    # the default deck is never deleted
    col.decks.get(1).rem()
    assert col.decks.name(1) == "Default"

def test_remove_filtered():
    col = getEmptyCol()
    c = col.newCard()
    cram = col.decks.newDyn("Cram")
    assert cram.rebuildDyn() == 1
    c.load()
    assert c.did == cram.getId()
    # deleting a filtered deck sends its cards home
    cram.rem()
    c.load()
    assert c.did == 1
    assert not c.odid
    assert col.cardCount() == 1

def test_rename():
    col = getEmptyCol()
    deck = col.decks.byName("hello::world", create=True)
    # should be able to rename into a completely different branch, creating
    # parents as necessary
    deck.rename("foo::bar")
    assert "foo" in col.decks.allNames()
    assert "foo::bar" in col.decks.allNames()
    assert "hello::world" not in col.decks.allNames()
    # create another deck
    deck = col.decks.byName("tmp", create=True)
    # we can't rename it if it conflicts
    assertException(DeckRenameError, lambda: deck.rename("foo"))
    # when renaming, the children should be renamed too
    col.decks.id("one::two::three")
    deck = col.decks.byName("one", create=True)
    deck.rename("yo")
    for name in "yo", "yo::two", "yo::two::three":
        assert name in col.decks.allNames()
    # a deck can't become its own descendant
    assertException(DeckRenameError, lambda: deck.rename("yo::two::four"))
    # over filtered
    col.decks.newDyn("filtered")
    child = col.decks.byName("child", create=True)
    assertException(DeckRenameError, lambda: child.rename("filtered::child"))
    assertException(DeckRenameError, lambda: child.rename("FILTERED::child"))
    # changing case
    col.decks.id("PARENT")
    col.decks.id("PARENT::CHILD")
    assertException(DeckRenameError, lambda: child.rename("PARENT::CHILD"))
    assertException(DeckRenameError, lambda: child.rename("PARENT::child"))

def test_family():
    col = getEmptyCol()
    grandChild = col.decks.byName("a::b::c", create=True)
    parent = col.decks.byName("a")
    child = col.decks.byName("A::B")
    assert [deck.getName() for deck in grandChild.getAncestors()] == ["a", "a::b"]
    assert grandChild.getParent() == child
    assert parent.getDescendantsIds() == [child.getId(), grandChild.getId()]
    assert parent.isAncestorOf(grandChild)
    assert not grandChild.isAncestorOf(parent)
    assert grandChild.depth() == 2
    assert grandChild.getBaseName() == "c"
    assert parent.isTopLevel()

def test_check():
    col = getEmptyCol()
    deck = col.decks.byName("foo::bar", create=True)
    # remove the parent behind the manager's back
    parent = col.decks.byName("foo")
    del col.decks.decks[str(parent.getId())]
    del col.decks.decksByNames[parent.getNormalizedName()]
    assert "foo" not in col.decks.allNames()
    col.decks.checkIntegrity()
    assert "foo" in col.decks.allNames()
    assert deck.getParent() is not None

def test_conf():
    col = getEmptyCol()
    deck = col.decks.byName("foo", create=True)
    confId = col.decks.confId("other")
    conf = col.decks.getConf(confId)
    deck.setConf(conf)
    assert deck.getConf() == conf
    assert col.decks.didsForConf(conf) == [deck.getId()]
    conf['new']['perDay'] = 3
    col.decks.updateConf(conf)
    # removing the configuration gives the decks the default one
    col.decks.remConf(confId)
    assert deck.getConf().getId() == 1
    # filtered decks are their own configuration
    cram = col.decks.newDyn("Cram")
    assert cram.getConf() is cram

def test_limits():
    col = getEmptyCol()
    parent = col.decks.byName("parent", create=True)
    child = col.decks.byName("parent::child", create=True)
    conf = col.decks.getConf(col.decks.confId("small"))
    conf['new']['perDay'] = 5
    col.decks.updateConf(conf)
    parent.setConf(conf)
    assert child._deckNewLimitSingle() == 20
    assert child._deckLimit('new') == 5
    parent['newToday'][1] = 2
    assert child._deckLimit('new') == 3
    # filtered decks are only bounded by the reporting limit
    cram = col.decks.newDyn("Cram")
    assert cram._deckLimitSingle('rev') == REPORT_LIMIT
