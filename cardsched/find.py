# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import re
import unicodedata

from cardsched.consts import *
from cardsched.db import DBError
from cardsched.errors import SchedError
from cardsched.hooks import runHook
from cardsched.utils import ids2str

# Find
##########################################################################

class Finder:
    """
    col: the collection used for opening this Finder.
    search: a dictionnary such that the query key:value is evaluated by
    self.search[key]((value,args)). This function may add arguments to
    args and returns a sql condition. It may also return "skip", in which
    case nothing is added to the sql, or None if the value is invalid.
    """

    def __init__(self, col):
        self.col = col
        self.search = dict(
            added=self._findAdded,
            deck=self._findDeck,
            nid=self._findNids,
            cid=self._findCids,
            prop=self._findProp,
            rated=self._findRated,
            flag=self._findFlag,
        )
        self.search['is'] = self._findCardState
        runHook("search", self.search)

    def findCards(self, query, order=False):
        """Return a list of card ids for QUERY.

        order --
        * False means not ordering
        * True means ordering by type then due
        * one of the order key means to use this key
        * otherwise, order is already the sql value
        """
        tokens = self._tokenize(query)
        preds, args = self._where(tokens)
        if preds is None:
            raise SchedError("invalidSearch", query=query)
        order = self._order(order)
        sql = "select card.id from cards card where " + preds + order
        try:
            return self.col.db.list(sql, *args)
        except DBError as e:
            # invalid grouping
            raise SchedError("invalidSearch", query=query, error=str(e)) from e

    # Tokenizing
    ######################################################################

    def _tokenize(self, query):
        inQuote = False
        tokens = []
        token = ""
        for char in query:
            # quoted text
            if char in ("'", '"'):
                if inQuote:
                    if char == inQuote:
                        inQuote = False
                    else:
                        token += char
                elif token:
                    # quotes are allowed to start directly after a :
                    if token[-1] == ":":
                        inQuote = char
                    else:
                        token += char
                else:
                    inQuote = char
            # separator (space and ideographic space)
            elif char in (" ", '　'):
                if inQuote:
                    token += char
                elif token:
                    # space marks token finished
                    tokens.append(token)
                    token = ""
            # nesting
            elif char in ("(", ")"):
                if inQuote:
                    token += char
                else:
                    if char == ")" and token:
                        tokens.append(token)
                        token = ""
                    tokens.append(char)
            # negation
            elif char == "-":
                if token:
                    token += char
                elif not tokens or tokens[-1] != "-":
                    tokens.append("-")
            # normal character
            else:
                token += char
        # if we finished in a token, add it
        if token:
            tokens.append(token)
        return tokens

    # Query building
    ######################################################################

    def _where(self, tokens):
        """A sql condition selecting the cards, and its arguments.
        Or None, None in case of problems"""
        # state and query
        state = dict(isnot=False, isor=False, join=False, q="", bad=False)
        args = []
        def add(txt, wrap=True):
            # failed command?
            if not txt:
                # if it was to be negated then we can just ignore it
                if state['isnot']:
                    state['isnot'] = False
                    return
                else:
                    state['bad'] = True
                    return
            elif txt == "skip":
                return
            # do we need a conjunction?
            if state['join']:
                if state['isor']:
                    state['q'] += " or "
                    state['isor'] = False
                else:
                    state['q'] += " and "
            if state['isnot']:
                state['q'] += " not "
                state['isnot'] = False
            if wrap:
                txt = "(" + txt + ")"
            state['q'] += txt
            state['join'] = True
        for token in tokens:
            if state['bad']:
                return None, None
            # special tokens
            if token == "-":
                state['isnot'] = True
            elif token.lower() == "or":
                state['isor'] = True
            elif token == "(":
                add(token, wrap=False)
                state['join'] = False
            elif token == ")":
                state['q'] += ")"
            # commands
            elif ":" in token:
                cmd, val = token.split(":", 1)
                cmd = cmd.lower()
                if cmd in self.search:
                    add(self.search[cmd]((val, args)))
                else:
                    state['bad'] = True
            # cards have no text to search
            else:
                state['bad'] = True
        if state['bad']:
            return None, None
        if state['q'] == "":
            state['q'] = "1"
        else:
            state['q'] = f"({state['q']})"
        return state['q'], args

    # Ordering
    ######################################################################

    _orders = {
        "cardMod": "card.mod",
        "cardReps": "card.reps",
        "cardDue": "card.type, card.due",
        "cardEase": "(card.type == 0), card.factor",
        "cardLapses": "card.lapses",
        "cardIvl": "card.ivl",
    }

    def _order(self, order):
        """sql to order the result of the queries"""
        if order is False:
            return ""
        if order is True:
            order = "cardDue"
        if order in self._orders:
            return " order by " + self._orders[order]
        # custom order string provided
        return " order by " + order

    # Commands
    ######################################################################

    def _findCardState(self, args):
        """A sql query, as in 'is:foo'"""
        (val, args) = args
        if val in ("review", "new", "learn"):
            if val == "review":
                type = CARD_DUE
            elif val == "new":
                type = CARD_NEW
            else:
                return f"queue in ({QUEUE_LRN}, {QUEUE_DAY_LRN})"
            return "type = %d" % type
        elif val == "suspended":
            return f"card.queue = {QUEUE_SUSPENDED}"
        elif val == "buried":
            return f"card.queue in ({QUEUE_SCHED_BURIED}, {QUEUE_USER_BURIED})"
        elif val == "due":
            return f"""
(card.queue in ({QUEUE_REV},{QUEUE_DAY_LRN}) and card.due <= %d) or
(card.queue = {QUEUE_LRN} and card.due <= %d)""" % (
    self.col.sched.today, self.col.sched.dayCutoff)

    def _findFlag(self, args):
        """Cards whose flag is `val`, as in 'flag:val'"""
        (val, args) = args
        if not val or len(val)!=1 or val not in "01234":
            return
        val = int(val)
        mask = 2**3 - 1
        return "(card.flags & %d) == %d" % (mask, val)

    def _findRated(self, args):
        """Cards as in 'rated:val', where val is of the form numberOfDay
        or numberOfDay:ease.

        I.e. last review is at most `numberOfDay` days ago, and the button
        pressed was `ease`.
        """
        # days(:optional_ease)
        (vals, args) = args
        vals = vals.split(":")
        try:
            days = int(vals[0])
        except ValueError:
            return
        days = min(days, 31)
        # ease
        ease = ""
        if len(vals) > 1:
            if vals[1] not in ("1", "2", "3", "4"):
                return
            ease = "and ease=%s" % vals[1]
        cutoff = (self.col.sched.dayCutoff - 86400*days)*1000
        return ("card.id in (select cid from revlog where id>%d %s)" %
                (cutoff, ease))

    def _findAdded(self, args):
        """Cards added at most val days ago, as in 'added:val'."""
        (val, args) = args
        try:
            days = int(val)
        except ValueError:
            return
        cutoff = (self.col.sched.dayCutoff - 86400*days)*1000
        return "card.id > %d" % cutoff

    def _findProp(self, args):
        # extract
        (val, args) = args
        match = re.match("(^.+?)(<=|>=|!=|=|<|>)(.+?$)", val)
        if not match:
            return
        prop, cmp, val = match.groups()
        prop = prop.lower()
        # is val valid?
        try:
            if prop == "ease":
                val = float(val)
            else:
                val = int(val)
        except ValueError:
            return
        # is prop valid?
        if prop not in ("due", "ivl", "reps", "lapses", "ease"):
            return
        # query
        queries = []
        if prop == "due":
            val += self.col.sched.today
            # only valid for review/daily learning
            queries.append(f"(card.queue in ({QUEUE_REV},{QUEUE_DAY_LRN}))")
        elif prop == "ease":
            prop = "factor"
            val = int(val*1000)
        queries.append("(%s %s %s)" % (prop, cmp, val))
        return " and ".join(queries)

    def _findNids(self, args):
        """Cards whose note id is in the comma separated list `val`, as
        in `nid:val`."""
        (val, args) = args
        if re.search("[^0-9,]", val):
            return
        return "card.nid in (%s)" % val

    def _findCids(self, args):
        """Cards whose id is in the comma separated list `val`, as in
        `cid:val`."""
        (val, args) = args
        if re.search("[^0-9,]", val):
            return
        return "card.id in (%s)" % val

    def _findDeck(self, args):
        # if searching for all decks, skip
        (val, args) = args
        if val == "*":
            return "skip"
        # deck types
        elif val == "filtered":
            return "card.odid"
        def dids(deck):
            if not deck:
                return None
            return deck.getDescendantsIds(includeSelf=True)
        # current deck?
        ids = None
        if val.lower() == "current":
            ids = dids(self.col.decks.current())
        elif "*" not in val:
            # single deck
            ids = dids(self.col.decks.byName(val))
        else:
            # wildcard
            ids = set()
            val = re.escape(val).replace(r"\*", ".*")
            for deck in self.col.decks.all():
                if re.match("(?i)"+val, unicodedata.normalize("NFC", deck.getName())):
                    ids.update(dids(deck))
        if not ids:
            return
        sids = ids2str(ids)
        return "card.did in %s or card.odid in %s" % (sids, sids)
