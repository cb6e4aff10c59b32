# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import jsonschema
from jsonschema.exceptions import ValidationError

from cardsched.consts import *
from cardsched.errors import ConfigurationError
from cardsched.utils import DictAugmentedDyn, intTime

"""A configuration of deck (dconf) is composed of:
name -- its name
new -- The configuration for new cards, see below.
lapse -- The configuration for lapse cards, see below.
rev -- The configuration for review cards, see below.
maxTaken -- The number of seconds after which to stop the timer
mod -- Last modification time
usn -- see USN documentation
id -- configuration id (automatically generated long).

The configuration related to new cards is composed of:
delays -- The successive learning steps of new cards, in minutes.
ints -- The intervals, in days, given when graduating with Good and
with Easy.
initialFactor -- The initial ease factor, in permille
order -- In which order new cards are added. NEW_CARDS_RANDOM = 0
and NEW_CARDS_DUE = 1
perDay -- Maximal number of new cards shown per day
bury -- Whether to bury siblings of new cards answered

The configuration related to lapsed cards is composed of:
delays -- The relearning steps, in minutes
mult -- by which to multiply the current interval when a card lapses
minInt -- a lower limit to the new interval after a lapse
leechFails -- the number of lapses authorized before doing leechAction
leechAction -- What to do to leech cards. 0 for suspend, 1 for
only reporting it.

The configuration related to review card is composed of:
perDay -- Numbers of cards to review per day
ease4 -- the multiplier applied to the interval when Easy is pressed
fuzz -- not read; answered intervals are always fuzzed
ivlFct -- multiplication factor applied to all review intervals
maxIvl -- the maximal interval for review
bury -- If True, when a review card is answered, its siblings are buried
hardFactor -- multiplier applied to the interval when Hard is pressed
"""

defaultConf = {
    'name': "Default",
    'new': {
        'delays': [1, 10],
        'ints': [1, 4, 7], # 7 is not currently used
        'initialFactor': STARTING_FACTOR,
        'order': NEW_CARDS_DUE,
        'perDay': 20,
        # may not be set on old decks
        'bury': False,
    },
    'lapse': {
        'delays': [10],
        'mult': 0,
        'minInt': 1,
        'leechFails': 8,
        # type 0=suspend, 1=tagonly
        'leechAction': LEECH_SUSPEND,
    },
    'rev': {
        'perDay': 200,
        'ease4': 1.3,
        'fuzz': 0.05,
        'ivlFct': 1,
        'maxIvl': 36500,
        # may not be set on old decks
        'bury': False,
        'hardFactor': 1.2,
    },
    'maxTaken': 60,
    'mod': 0,
    'usn': 0,
}

_delays = {
    "type": "array",
    "items": {"type": "number", "exclusiveMinimum": 0},
}

_perDay = {"type": "integer", "minimum": 0}

schema = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "maxTaken": {"type": "number", "exclusiveMinimum": 0},
        "new": {
            "type": "object",
            "properties": {
                "delays": _delays,
                "ints": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 1},
                    "minItems": 2,
                },
                "initialFactor": {"type": "integer", "minimum": MIN_FACTOR},
                "order": {"enum": [NEW_CARDS_RANDOM, NEW_CARDS_DUE]},
                "perDay": _perDay,
                "bury": {"type": "boolean"},
            },
            "required": ["delays", "ints", "initialFactor", "perDay"],
        },
        "lapse": {
            "type": "object",
            "properties": {
                "delays": _delays,
                "mult": {"type": "number", "minimum": 0, "maximum": 1},
                "minInt": {"type": "integer", "minimum": 1},
                "leechFails": {"type": "integer", "minimum": 0},
                "leechAction": {"enum": [LEECH_SUSPEND, LEECH_TAGONLY]},
            },
            "required": ["delays", "mult", "minInt", "leechFails", "leechAction"],
        },
        "rev": {
            "type": "object",
            "properties": {
                "perDay": _perDay,
                "ease4": {"type": "number", "minimum": 1},
                "fuzz": {"type": "number", "minimum": 0, "maximum": 1},
                "ivlFct": {"type": "number", "exclusiveMinimum": 0},
                "maxIvl": {"type": "integer", "minimum": 1},
                "bury": {"type": "boolean"},
                "hardFactor": {"type": "number", "exclusiveMinimum": 0},
            },
            "required": ["perDay", "ease4", "ivlFct", "maxIvl"],
        },
    },
    "required": ["new", "lapse", "rev"],
}


class DConf(DictAugmentedDyn):
    """A configuration for decks"""

    def load(self, manager, dict):
        super().load(manager, dict)
        # set limits to within bounds
        for type in ('rev', 'new'):
            pd = 'perDay'
            if self[type][pd] > 999999:
                self[type][pd] = 999999
                self.manager.changed = True

    # Basic tests
    #############################################################
    def isDefault(self):
        return str(self.getId()) == "1"

    def validationErrors(self):
        """The list of problems of this configuration, as readable strings."""
        validator = jsonschema.Draft7Validator(schema)
        errors = []
        byPath = lambda error: [str(piece) for piece in error.absolute_path]
        for error in sorted(validator.iter_errors(dict(self)), key=byPath):
            path = ".".join(str(piece) for piece in error.absolute_path)
            errors.append("%s: %s" % (path or "configuration", error.message))
        return errors

    def validate(self):
        """Raise ConfigurationError if a value is missing or out of range."""
        try:
            jsonschema.validate(dict(self), schema)
        except ValidationError as e:
            path = ".".join(str(piece) for piece in e.absolute_path)
            raise ConfigurationError(e.message, key=path, conf=self.get('id')) from e

    def addInManager(self):
        """Add this to the set of dconf's. Potentially replacing a dconf
        with the same id."""
        self.validate()
        self.manager.dconf[str(self.getId())] = self
        self.save()

    def copy_(self, name):
        """A new configuration, with name, copying this one."""
        conf = self.deepcopy()
        while 1:
            id = intTime(1000)
            if str(id) not in self.manager.dconf:
                break
        conf['id'] = id
        conf.setName(name)
        conf.addInManager()
        return conf

    def getDecks(self):
        """The decks using this configuration."""
        return [deck for deck in self.manager.all() if deck.isStd() and str(deck.getConfId()) == str(self.getId())]

    def getDids(self):
        return [deck.getId() for deck in self.getDecks()]
