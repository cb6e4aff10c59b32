# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import copy
import json
import unicodedata

from cardsched.consts import *
from cardsched.dconf import DConf, defaultConf
from cardsched.deck import Deck
from cardsched.errors import NotFoundError
from cardsched.utils import ids2str, intTime

"""This module deals with decks and their configurations.

self.decks is the dictionnary associating an id to the deck with this id
self.dconf is the dictionnary associating an id to the dconf with this id

A deck is a dict composed of:
new/rev/lrnToday -- two number array.
            The first one is the day the second one refers to.
            The second one is equal to the number of cards of this kind
            seen today in this deck and its descendants, minus the
            extensions granted by extendLimits.
 BEWARE, it's changed in Scheduler._updateStats and
 Scheduler._updateCutoff, where it is written as kind+"Today".
timeToday -- two number array, time spent today in ms.
conf -- id of option group from dconf, or absent in filtered decks
usn -- Update sequence number
desc -- deck description
dyn -- 1 if filtered deck,
name -- name of deck, with "::" between the ancestors' names
id -- deck ID (automatically generated long),
mod -- last modification time,

A filtered deck also has:
terms -- list of (search, limit, order) used to fill it
resched -- whether answers in this deck reschedule the cards. If not,
           the deck is a preview deck.
delays -- unused; the steps of the cards' home decks are used
previewDelay -- in minutes, delay before showing again a card
                answered Again in a preview deck
lrnOnEntry -- ids of the cards which were in learning when they were
              moved in this deck
"""

defaultDeck = {
    'newToday': [0, 0], # currentDay, count
    'revToday': [0, 0],
    'lrnToday': [0, 0],
    'timeToday': [0, 0], # time in ms
    'conf': 1,
    'usn': 0,
    'desc': "",
    'dyn': DECK_STD,  # uses int/bool interchangably here
    'extendNew': 10,
    'extendRev': 50,
}

defaultDynamicDeck = {
    'newToday': [0, 0],
    'revToday': [0, 0],
    'lrnToday': [0, 0],
    'timeToday': [0, 0],
    'dyn': DECK_DYN,
    'desc': "",
    'usn': 0,
    'delays': None,
    # list of (search, limit, order)
    'terms': [["", 100, DYN_OLDEST]],
    'resched': True,
    "previewDelay": 10,
    'lrnOnEntry': [],
}

class DeckManager:

    """
    col -- the collection associated to this Deck manager
    decks -- associating to each id (as string) its deck
    decksByNames -- associating to each normalized name its deck
    dconf -- associating to each id (as string) its configuration(option)
    """
    # Registry save/load
    #############################################################

    def __init__(self, col):
        self.col = col
        self.decks = {}
        self.decksByNames = {}
        self.dconf = {}
        self.changed = False

    def load(self, decks, dconf):
        """Load the json strings of decks and dconf.

        It also ensures that the number of cards per day is at most
        999999 or correct this error.
        """
        self.changed = False
        self.decks = {}
        self.decksByNames = {}
        for deck in json.loads(decks).values():
            deck = Deck(self, deck)
            deck.addInManager()
        self.dconf = {}
        for conf in json.loads(dconf).values():
            conf = DConf(self, conf)
            self.dconf[str(conf['id'])] = conf

    def save(self):
        """State that the DeckManager has been changed."""
        self.changed = True

    def flush(self):
        """Puts the decks and dconf in the db if some changes happenned."""
        if self.changed:
            self.col.db.execute("update col set decks=?, dconf=?",
                                 json.dumps(self.decks),
                                 json.dumps(self.dconf))
            self.changed = False

    # Deck save/load
    #############################################################

    def id(self, name, create=True, deckToCopy=None):
        """Returns a deck's id with a given name. Potentially creates it.

        Keyword arguments:
        name -- the name of the new deck. " are removed.
        create -- States whether the deck must be created if it does
        not exists. Default true, otherwise return None
        deckToCopy -- A deck to copy in order to create this deck
        """
        deck = self.byName(name, create=create, deckToCopy=deckToCopy)
        if deck:
            return int(deck.getId())

    def rem(self, did, cardsToo=False, childrenToo=True):
        """Remove the deck whose id is did, if it exists."""
        deck = self.get(did, default=False)
        if deck:
            deck.rem(cardsToo, childrenToo)

    def allNames(self, dyn=None, sort=False):
        return [deck.getName() for deck in self.all(dyn=dyn, sort=sort)]

    def all(self, sort=False, dyn=None):
        """A list of all deck objects.

        dyn -- if not None, only decks whose dyn flag is dyn
        sort -- whether to sort by path
        """
        decks = list(self.decks.values())
        if dyn is not None:
            decks = [deck for deck in decks if deck.isDyn() == bool(dyn)]
        if sort:
            decks.sort(key=lambda deck: deck.getPath())
        return decks

    def allIds(self, sort=False, dyn=None):
        return [deck.getId() for deck in self.all(sort=sort, dyn=dyn)]

    def count(self):
        return len(self.decks)

    def get(self, did, default=True, strict=False):
        """Returns the deck objects whose id is did.

        If it does not exist: raise NotFoundError if strict, otherwise
        return the default deck if default, otherwise None.
        """
        id = str(did)
        if id in self.decks:
            return self.decks[id]
        if strict:
            raise NotFoundError("deck", did)
        if default:
            return self.decks['1']
        return None

    def byName(self, name, create=False, deckToCopy=None):
        """Get deck with NAME, ignoring case.

        Keyword arguments:
        name -- the name of the new deck. " are removed.
        create -- States whether the deck must be created if it does
        not exists. Default false, in which case None is returned
        deckToCopy -- A deck to copy in order to create this deck
        """
        name = name.replace('"', '')
        name = unicodedata.normalize("NFC", name)
        normalized = self.normalizeName(name)
        if normalized in self.decksByNames:
            return self.decksByNames[normalized]

        if create is False:
            return None
        if deckToCopy is None:
            deckToCopy = defaultDeck
        if isinstance(deckToCopy, dict) and not isinstance(deckToCopy, Deck):
            deck = Deck(self, copy.deepcopy(deckToCopy))
            deck.cleanCopy(name)
            return deck
        return deckToCopy.copy_(name)

    def _isAncestor(self, ancestorDeckName, descendantDeckName, normalize=True):
        """Whether ancestorDeckName is an ancestor of
        descendantDeckName; or itself."""
        if normalize:
            ancestorDeckName = self.normalizeName(ancestorDeckName)
            descendantDeckName = self.normalizeName(descendantDeckName)
        ancestorPath = self._path(ancestorDeckName)
        return ancestorPath == self._path(descendantDeckName)[0:len(ancestorPath)]

    @staticmethod
    def _path(name):
        """The list of decks and subdecks of name"""
        return name.split("::")

    @staticmethod
    def _basename(name):
        """The name of the last subdeck, without its ancestors"""
        return DeckManager._path(name)[-1]

    @staticmethod
    def parentName(name):
        """The name of the parent of this deck, or "" if there is none"""
        return "::".join(DeckManager._path(name)[:-1])

    def _ensureParents(self, name):
        """Ensure parents exist, and return name with case matching parents.

        Parents are created if they do not already exists.
        If a filtered deck is found, return False
        """
        ancestorName = ""
        path = self._path(name)
        if len(path) < 2:
            return name
        for pathPiece in path[:-1]:
            if not ancestorName:
                ancestorName += pathPiece
            else:
                ancestorName += "::" + pathPiece
            # fetch or create
            deck = self.byName(ancestorName, create=True)
            if deck.isDyn():
                return False
            # get original case
            ancestorName = deck.getName()
        name = ancestorName + "::" + path[-1]
        return name

    # Deck configurations
    #############################################################

    def allConf(self):
        "A list of all deck config object."
        return list(self.dconf.values())

    def getConf(self, confId):
        """The dconf object whose id is confId."""
        return self.dconf[str(confId)]

    def updateConf(self, conf):
        """Add conf to the set of dconf's, replacing a dconf with the same
        id. Raise ConfigurationError if the conf is invalid."""
        if not isinstance(conf, DConf):
            conf = DConf(self, conf)
        conf.addInManager()
        self.col.sched.invalidate()
        return conf

    def confId(self, name, cloneFrom=None):
        """Create a new configuration and return its id.

        Keyword arguments
        cloneFrom -- The configuration copied by the new one."""
        if cloneFrom is None:
            cloneFrom = defaultConf
        if not isinstance(cloneFrom, DConf):
            # confs given directly as dict
            cloneFrom = DConf(self, copy.deepcopy(cloneFrom))
        return cloneFrom.copy_(name).getId()

    def remConf(self, id):
        """Remove a configuration. The decks using it get the default
        one.

        Keyword arguments:
        id -- The id of the configuration to remove. Should not be the
        default conf."""
        assert int(id) != 1
        self.col.modSchema(check=True)
        conf = self.getConf(id)
        for deck in conf.getDecks():
            deck.setDefaultConf()
        del self.dconf[str(id)]
        self.save()
        self.col.sched.invalidate()

    def didsForConf(self, conf):
        """The dids of the decks using the configuration conf."""
        return conf.getDids()

    def restoreToDefault(self, conf):
        """Change the configuration to default.

        The only remaining part of the configuration are: the order of
        new card, the name and the id.
        """
        oldOrder = conf['new']['order']
        new = DConf(self, copy.deepcopy(defaultConf))
        new['id'] = conf.getId()
        new.setName(conf.getName())
        new.addInManager()
        # if it was previously randomized, resort
        if not oldOrder:
            self.col.sched.resortConf(new)
        self.col.sched.invalidate()
        return new

    # Deck utils
    #############################################################

    def name(self, did, default=False):
        """The name of the deck whose id is did, or "[no deck]"."""
        deck = self.get(did, default=default)
        if deck:
            return deck.getName()
        return "[no deck]"

    def maybeAddToActive(self):
        """reselect current deck, or default if current has
        disappeared."""
        self.current().select()

    def _recoverOrphans(self):
        """Move the cards whose deck does not exists to the default
        deck, without changing the mod date."""
        dids = list(self.decks.keys())
        mod = self.col.db.mod
        self.col.db.execute("update cards set did = 1 where did not in "+
                            ids2str(dids))
        self.col.db.mod = mod

    def _checkDeckTree(self):
        names = set()
        for deck in self.all(sort=True):
            # ensure no sections are blank
            if not all(deck.getPath()):
                self.col.log("fix deck with missing sections", deck.getName())
                del self.decksByNames[deck.getNormalizedName()]
                deck.setName("recovered%d" % intTime(1000))
                deck.addInManager()
                deck.save()

            # immediate parent must exist
            immediateParent = deck.getParentName()
            if immediateParent and self.normalizeName(immediateParent) not in names:
                self.col.log("fix deck with missing parent", deck.getName())
                self._ensureParents(deck.getName())
                names.add(self.normalizeName(immediateParent))

            names.add(deck.getNormalizedName())

    def checkIntegrity(self):
        self._recoverOrphans()
        self._checkDeckTree()

    # Deck selection
    #############################################################

    def active(self):
        "The currrently active dids. Make sure to copy before modifying."
        return self.col.conf['activeDecks']

    def selected(self):
        """The did of the currently selected deck."""
        return self.col.conf['curDeck']

    def current(self):
        """The currently selected deck object"""
        return self.get(self.selected())

    def select(self, did):
        self.get(did).select()

    # Filtered decks
    ##########################################################################

    def newDyn(self, name):
        "Return a new filtered deck and set it as the current deck."
        deck = self.byName(name, create=True, deckToCopy=defaultDynamicDeck)
        deck.select()
        return deck

    def isDyn(self, did):
        deck = self.get(did, default=False)
        return bool(deck and deck.isDyn())

    @staticmethod
    def normalizeName(name):
        return unicodedata.normalize("NFC", name.lower())
