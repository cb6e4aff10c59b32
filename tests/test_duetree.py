# coding: utf-8

from cardsched.duetree import buildTree
from tests.shared import getEmptyCol


def test_grouping():
    col = getEmptyCol()
    tree = buildTree(col.decks, [
        ["a::b", 5, 1, 2, 3],
        ["a::c", 6, 0, 1, 1],
        ["z", 7, 4, 0, 0],
    ])
    # "a" has no row of its own
    assert [node.name for node in tree] == ["a", "z"]
    a = tree[0]
    assert a.did is None
    assert [child.baseName() for child in a.children] == ["b", "c"]
    # learning and new counts add up in the parent, reviews don't
    assert (a.revCount, a.lrnCount, a.newCount) == (0, 3, 4)
    assert a.find("a::c").did == 6
    assert a.find("a::d") is None

def test_default_first():
    col = getEmptyCol()
    tree = buildTree(col.decks, [
        ["Aaa", 10, 0, 0, 0],
        ["Default", 1, 0, 0, 0],
        ["Zzz", 11, 0, 0, 0],
    ])
    assert [node.name for node in tree] == ["Default", "Aaa", "Zzz"]

def test_new_limit():
    col = getEmptyCol()
    col.decks.id("Default::child")
    conf = col.decks.getConf(1)
    conf['new']['perDay'] = 5
    col.decks.updateConf(conf)
    tree = buildTree(col.decks, [
        ["Default", 1, 0, 0, 4],
        ["Default::child", col.decks.id("Default::child"), 0, 0, 4],
    ])
    # the parent can't show more than its own limit
    assert tree[0].newCount == 5
    assert tree[0].children[0].newCount == 4
