# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

from cardsched.consts import *
from cardsched.dconf import DConf
from cardsched.errors import DeckRenameError
from cardsched.hooks import runHook
from cardsched.utils import DictAugmentedDyn, ids2str, intTime


class Deck(DictAugmentedDyn):
    """A deck, standard or filtered. See decks.py for its keys.

    The hierarchy is given by the names: "a::b" is a child of "a".
    """

    def addInManager(self):
        """Adding or replacing the deck with our id in the manager"""
        self.manager.decks[str(self.getId())] = self
        self.manager.decksByNames[self.getNormalizedName()] = self

    def copy_(self, name):
        deck = self.deepcopy()
        deck.cleanCopy(name)
        return deck

    def cleanCopy(self, name):
        """To be called when a deck is copied"""
        if "::" in name:
            # not top level; ensure all parents exist
            name = self.manager._ensureParents(name)
            if name is False:
                raise DeckRenameError("A filtered deck cannot have subdecks.")
        self.setName(name)
        while 1:
            id = intTime(1000)
            if str(id) not in self.manager.decks:
                break
        self.setId(id)
        self.addInManager()
        self.save()
        self.manager.maybeAddToActive()
        runHook("newDeck")

    def rem(self, cardsToo=False, childrenToo=True):
        """Remove this deck.

        The default deck is not deleted, but renamed if it is a child.

        Keyword arguments:
        cardsToo -- if set to true, delete its card.
        childrenToo -- if set to false, the children are kept.
        """
        if self.isDefault():
            # we won't allow the default deck to be deleted, but if it's a
            # child of an existing deck then it needs to be renamed
            if '::' in self.getName():
                base = self.getBaseName()
                suffix = ""
                while True:
                    # find an unused name
                    name = base + suffix
                    if not self.manager.byName(name):
                        self.rename(name)
                        self.save()
                        break
                    suffix += "1"
            return
        self.manager.col.log("remove deck", self.getId(), self.getName())
        if childrenToo:
            for child in self.getChildren():
                child.rem(cardsToo, childrenToo)
        if self.isDyn():
            # deleting a filtered deck returns cards to their previous deck
            # rather than deleting the cards
            self.manager.col.sched.emptyDyn(self.getId())
        elif cardsToo:
            # include cards currently in a filtered deck
            cids = self.manager.col.db.list(
                "select id from cards where did=? or odid=?", self.getId(), self.getId())
            self.manager.col.remCards(cids)
        del self.manager.decks[str(self.getId())]
        del self.manager.decksByNames[self.getNormalizedName()]
        # ensure we have an active deck.
        if self.getId() in self.manager.active():
            self.manager.all(sort=True)[0].select()
        self.manager.save()

    def rename(self, newName):
        """Rename this deck and its descendants. Creates the parents of
        newName if required.

        If newName already exists or if it a descendant of a filtered
        deck, DeckRenameError is raised."""
        # ensure we have parents
        newName = self.manager._ensureParents(newName)
        # make sure we're not nesting under a filtered deck
        if newName is False:
            raise DeckRenameError("A filtered deck cannot have subdecks.")
        # make sure target node doesn't already exist
        if self.manager.byName(newName):
            raise DeckRenameError("That deck already exists.")
        if self.manager._isAncestor(self.getName(), newName):
            raise DeckRenameError("A deck cannot be moved into its own subdeck.")
        # rename children
        oldPath = self.getPath()
        newPath = self.manager._path(newName)
        for child in self.getDescendants(includeSelf=True):
            del self.manager.decksByNames[child.getNormalizedName()]
            child.setName("::".join(newPath + child.getPath()[len(oldPath):]))
            child.addInManager()
            child.save()
        # renaming may have altered active did order
        self.manager.maybeAddToActive()

    # Name family
    #############################################################

    def isTopLevel(self):
        return "::" not in self.getName()

    def depth(self):
        return self.getName().count("::")

    def getParentName(self):
        return self.manager.parentName(self.getName())

    def getParent(self):
        if self.isTopLevel():
            return None
        return self.manager.byName(self.getParentName())

    def getAncestors(self, includeSelf=False):
        """The ancestors which exist, from the top level one downward."""
        ancestors = []
        path = self.getPath()
        for i in range(1, len(path)):
            ancestor = self.manager.byName("::".join(path[:i]))
            if ancestor is not None:
                ancestors.append(ancestor)
        if includeSelf:
            ancestors.append(self)
        return ancestors

    def getBaseName(self):
        return self.manager._basename(self.getName())

    def getNormalizedName(self):
        return self.manager.normalizeName(self.getName())

    def getPath(self):
        return self.manager._path(self.getName())

    ## Children

    def getChildren(self):
        """The direct children, sorted by name."""
        name = self.getNormalizedName()
        children = [deck for deck in self.manager.decks.values()
                    if self.manager.normalizeName(deck.getParentName()) == name]
        children.sort(key=lambda deck: self.manager.normalizeName(deck.getBaseName()))
        return children

    def getDescendants(self, includeSelf=False):
        """The descendants, depth first and sorted by name."""
        descendants = [greatChild for child in self.getChildren()
                       for greatChild in child.getDescendants(includeSelf=True)]
        if includeSelf:
            descendants = [self] + descendants
        return descendants

    def getDescendantsIds(self, includeSelf=False):
        return [deck.getId() for deck in self.getDescendants(includeSelf=includeSelf)]

    def isAncestorOf(self, other, includeSelf=False):
        if self == other:
            return includeSelf
        return self.manager._isAncestor(self.getName(), other.getName())

    # Getter/Setter
    #############################################################

    def isDefault(self):
        return str(self.getId()) == "1"

    def getCids(self, children=False):
        """The ids of the cards of this deck, and of its descendants if
        children is set."""
        if not children:
            return self.manager.col.db.list("select id from cards where did=?", self.getId())
        dids = self.getDescendantsIds(includeSelf=True)
        return self.manager.col.db.list("select id from cards where did in "+
                                ids2str(dids))

    # Conf
    #############################################################

    def getConfId(self):
        return self.get('conf')

    def getConf(self):
        """The options of this deck. Filtered decks are their own
        configuration."""
        if self.isStd():
            return self.manager.getConf(self['conf'])
        return self

    def setConf(self, conf):
        if isinstance(conf, int):
            self['conf'] = conf
        else:
            assert isinstance(conf, DConf)
            self['conf'] = conf.getId()
        self.save()

    def setDefaultConf(self):
        self.setConf(1)

    # Deck selection
    #############################################################

    def select(self):
        """Make this deck the current one; it and its descendants become
        the active decks."""
        did = int(self.getId())
        self.manager.col.conf['curDeck'] = did
        self.manager.col.conf['activeDecks'] = self.getDescendantsIds(includeSelf=True)
        self.manager.changed = True

    # Scheduling count
    #############################################################

    def _deckLimitSingle(self, kind):
        "Limit for deck without parent limits."
        if self.isDyn():
            return REPORT_LIMIT
        conf = self.getConf()
        return max(0, conf[kind]['perDay'] - self[kind+'Today'][1])

    def _deckNewLimitSingle(self):
        return self._deckLimitSingle('new')

    def _deckRevLimitSingle(self):
        return self._deckLimitSingle('rev')

    def _deckLimit(self, kind):
        """The remaining limit of this deck, bounded by its ancestors'."""
        return min(ancestor._deckLimitSingle(kind)
                   for ancestor in self.getAncestors(includeSelf=True))

    # Dynamic deck handling
    ##########################################################################

    def rebuildDyn(self):
        "Rebuild a filtered deck."
        assert self.isDyn()
        return self.manager.col.sched.rebuildDyn(self.getId())

    def emptyDyn(self):
        assert self.isDyn()
        self.manager.col.sched.emptyDyn(self.getId())

    # Repositioning new cards
    ##########################################################################

    def randomizeCards(self):
        self.manager.col.sched.sortCards(self.getCids(), shuffle=True)

    def orderCards(self):
        cids = self.manager.col.db.list("select id from cards where did = ? order by id", self.getId())
        self.manager.col.sched.sortCards(cids)

    def maybeRandomizeDeck(self):
        conf = self.getConf()
        # in order due?
        if conf['new']['order'] == NEW_CARDS_RANDOM:
            self.randomizeCards()
