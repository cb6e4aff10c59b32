# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

# whether new cards should be mixed with reviews, or shown first or last
NEW_CARDS_DISTRIBUTE = 0
NEW_CARDS_LAST = 1
NEW_CARDS_FIRST = 2

# new card insertion order
NEW_CARDS_RANDOM = 0
NEW_CARDS_DUE = 1

# Queue types
QUEUE_SCHED_BURIED = -2
QUEUE_USER_BURIED = -3
QUEUE_SUSPENDED = -1
QUEUE_NEW = 0
QUEUE_LRN = 1
QUEUE_REV = 2
QUEUE_DAY_LRN = 3
QUEUE_PREVIEW = 4

# Card types
CARD_NEW = 0
CARD_LRN = 1
CARD_DUE = 2
CARD_RELRN = 3

# Revlog types
REVLOG_LRN = 0
REVLOG_REV = 1
REVLOG_RELRN = 2
REVLOG_CRAM = 3

# Kinds of value stored in a card's due column
DUE_ORDINAL = "ordinal"
DUE_TIMESTAMP = "timestamp"
DUE_DAY = "day"

# removal types
REM_CARD = 0
REM_NOTE = 1
REM_DECK = 2

# dynamic deck order
DYN_OLDEST = 0
DYN_RANDOM = 1
DYN_SMALLINT = 2
DYN_BIGINT = 3
DYN_LAPSES = 4
DYN_ADDED = 5
DYN_DUE = 6
DYN_REVADDED = 7
DYN_DUEPRIORITY = 8

# deck kinds; the deck 'dyn' flag is used as an int or a bool
DECK_STD = 0
DECK_DYN = 1

# leech actions
LEECH_SUSPEND = 0
LEECH_TAGONLY = 1

# answer buttons
BUTTON_ONE = 1
BUTTON_TWO = 2
BUTTON_THREE = 3
BUTTON_FOUR = 4

STARTING_FACTOR = 2500
MIN_FACTOR = 1300

# counts are never computed past this
REPORT_LIMIT = 1000

# number of answers that can be undone
UNDO_REVIEWS_MAX = 20

# kinds accepted by unburyCardsForDeck
UNBURY_ALL = "all"
UNBURY_MANUAL = "manual"
UNBURY_SIBLINGS = "siblings"

SECONDS_PER_DAY = 86400
