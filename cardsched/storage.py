# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import copy
import json
import os
import sys

from cardsched.collection import _Collection
from cardsched.consts import *
from cardsched.db import DB
from cardsched.utils import intTime

SCHEMA_VERSION = 11

isWin = sys.platform.startswith("win32")

def Collection(path, lock=True, log=False, clock=None):
    """Open a new or existing collection. Path must be unicode.

    log -- Boolean stating whether log must be made in the file, with same
    name than the collection, but ending in .log.
    clock -- the Clock giving the time to the scheduler. Default: the
    system time.
    """
    assert path.endswith(".anki2")
    path = os.path.abspath(path)
    create = not os.path.exists(path)
    if create:
        base = os.path.basename(path)
        for char in ("/", ":", "\\"):
            assert char not in base
    # connect
    db = DB(path)
    db.setAutocommit(True)
    if create:
        ver = _createDB(db)
    else:
        ver = db.scalar("select ver from col")
    db.execute("pragma temp_store = memory")
    db.execute("pragma cache_size = 10000")
    if not isWin:
        db.execute("pragma journal_mode = wal")
    db.setAutocommit(False)
    if ver > SCHEMA_VERSION:
        db.close()
        raise Exception("This file requires a newer version of the scheduler.")
    col = _Collection(db, log=log, clock=clock)
    if create:
        col.save()
    if lock:
        col.lock()
    return col

def _createDB(db):
    db.execute("pragma page_size = 4096")
    db.execute("pragma legacy_file_format = 0")
    db.execute("vacuum")
    _addSchema(db)
    _updateIndices(db)
    db.execute("analyze")
    return SCHEMA_VERSION

def _addSchema(db, setColConf=True):
    db.executescript("""
create table if not exists col (
    id              integer primary key,
    crt             integer not null,
    mod             integer not null,
    scm             integer not null,
    ver             integer not null,
    dty             integer not null,
    usn             integer not null,
    ls              integer not null,
    conf            text not null,
    decks           text not null,
    dconf           text not null
);

create table if not exists cards (
    id              integer primary key,   /* 0 */
    nid             integer not null,      /* 1 */
    did             integer not null,      /* 2 */
    ord             integer not null,      /* 3 */
    mod             integer not null,      /* 4 */
    usn             integer not null,      /* 5 */
    type            integer not null,      /* 6 */
    queue           integer not null,      /* 7 */
    due             integer not null,      /* 8 */
    ivl             integer not null,      /* 9 */
    factor          integer not null,      /* 10 */
    reps            integer not null,      /* 11 */
    lapses          integer not null,      /* 12 */
    left            integer not null,      /* 13 */
    odue            integer not null,      /* 14 */
    odid            integer not null,      /* 15 */
    flags           integer not null,      /* 16 */
    data            text not null          /* 17 */
);

create table if not exists revlog (
    id              integer primary key,
    cid             integer not null,
    usn             integer not null,
    ease            integer not null,
    ivl             integer not null,
    lastIvl         integer not null,
    factor          integer not null,
    time            integer not null,
    type            integer not null
);

insert or ignore into col
values(1,0,0,%(second)s,%(version)s,0,0,0,'','','');
""" % ({'version':SCHEMA_VERSION, 'second':intTime(1000)}))
    if setColConf:
        _addColVars(db, *_getColVars(db))

def _getColVars(db):
    import cardsched.collection
    import cardsched.decks
    import cardsched.dconf
    deck = copy.deepcopy(cardsched.decks.defaultDeck)
    deck['id'] = 1
    deck['name'] = "Default"
    deck['conf'] = 1
    deck['mod'] = intTime()
    gc = copy.deepcopy(cardsched.dconf.defaultConf)
    gc['id'] = 1
    return deck, gc, cardsched.collection.defaultConf.copy()

def _addColVars(db, deck, gc, conf):
    db.execute("""
update col set conf = ?, decks = ?, dconf = ?""",
                   json.dumps(conf),
                   json.dumps({'1': deck}),
                   json.dumps({'1': gc}))

def _updateIndices(db):
    "Add indices to the DB."
    db.executescript("""
-- card spacing, etc
create index if not exists ix_cards_nid on cards (nid);
-- scheduling and deck limiting
create index if not exists ix_cards_sched on cards (did, queue, due);
-- revlog by card
create index if not exists ix_revlog_cid on revlog (cid);
""")
