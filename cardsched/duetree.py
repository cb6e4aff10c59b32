# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import itertools


class DeckDueTreeNode:
    """A deck of the deck list, with the number of cards to see today.

    name -- the full name of the deck
    did -- its id. None if the deck is missing but has children.
    revCount, lrnCount, newCount -- counts of the deck and its
      descendants, within the deck's limits
    children -- the nodes of the direct children, sorted by name
    """

    def __init__(self, name, did, revCount, lrnCount, newCount, children):
        self.name = name
        self.did = did
        self.revCount = revCount
        self.lrnCount = lrnCount
        self.newCount = newCount
        self.children = children

    def baseName(self):
        return self.name.split("::")[-1]

    def find(self, name):
        """The node of the descendant (or self) with this full name."""
        if self.name == name:
            return self
        for child in self.children:
            node = child.find(name)
            if node:
                return node
        return None

    def __repr__(self):
        return "DeckDueTreeNode(%r, %r, rev=%d, lrn=%d, new=%d, %r)" % (
            self.name, self.did, self.revCount, self.lrnCount, self.newCount,
            self.children)


def buildTree(decks, dueList):
    """Group the rows [name, did, rev, lrn, new] of dueList into a tree.

    The counts of the children are added to the learning and new counts
    of their parent, and bounded by the parent's remaining new limit.
    Review counts are already computed on whole subtrees.
    """
    rows = [[name.split("::"), did, rev, lrn, new]
            for (name, did, rev, lrn, new) in dueList]
    rows.sort(key=lambda row: row[0])
    return _groupChildren(decks, rows, [])

def _groupChildren(decks, rows, prefix):
    tree = []
    # group and recurse
    def key(row):
        return row[0][0]
    for (head, tail) in itertools.groupby(rows, key=key):
        tail = list(tail)
        did = None
        rev = 0
        new = 0
        lrn = 0
        children = []
        for row in tail:
            if len(row[0]) == 1:
                # current node
                did = row[1]
                rev += row[2]
                lrn += row[3]
                new += row[4]
            else:
                # set new string to tail
                children.append([row[0][1:]] + row[1:])
        children = _groupChildren(decks, children, prefix + [head])
        # tally up children counts
        for child in children:
            lrn += child.lrnCount
            new += child.newCount
        # limit the counts to the deck's limits
        deck = decks.get(did, default=False) if did is not None else None
        if deck and deck.isStd():
            conf = deck.getConf()
            new = max(0, min(new, conf['new']['perDay']-deck['newToday'][1]))
        tree.append(DeckDueTreeNode(
            "::".join(prefix + [head]), did, rev, lrn, new, children))
    # the default deck comes first among its siblings
    tree.sort(key=lambda node: str(node.did) != "1")
    return tree
