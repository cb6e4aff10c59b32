# coding: utf-8

import json

from cardsched.dconf import DConf
from cardsched.errors import ConfigurationError
from tests.shared import assertException, getEmptyCol


def test_default():
    col = getEmptyCol()
    conf = col.decks.getConf(1)
    assert conf.isDefault()
    assert not conf.validationErrors()
    conf.validate()
    assert conf.getDids() == [1]

def test_invalid():
    col = getEmptyCol()
    conf = col.decks.getConf(1).deepcopy()
    conf['new']['perDay'] = -1
    try:
        col.decks.updateConf(conf)
        raise AssertionError("invalid configuration accepted")
    except ConfigurationError as e:
        assert e.data['key'] == "new.perDay"
    # the stored configuration is unchanged
    assert col.decks.getConf(1)['new']['perDay'] == 20
    # every problem is listed
    conf['lapse']['mult'] = 2
    errors = conf.validationErrors()
    assert len(errors) == 2
    assert errors[0].startswith("lapse.mult")
    assert errors[1].startswith("new.perDay")

def test_missing():
    col = getEmptyCol()
    conf = col.decks.getConf(1).deepcopy()
    del conf['lapse']['leechFails']
    assertException(ConfigurationError, lambda: col.decks.updateConf(conf))
    conf = col.decks.getConf(1).deepcopy()
    del conf['rev']
    assertException(ConfigurationError, conf.validate)
    conf = col.decks.getConf(1).deepcopy()
    conf['new']['delays'] = [1, 0]
    assertException(ConfigurationError, conf.validate)
    conf['new']['delays'] = []
    conf.validate()

def test_perDay_clamp():
    col = getEmptyCol()
    data = json.loads(json.dumps(col.decks.getConf(1)))
    data['rev']['perDay'] = 10**7
    conf = DConf(col.decks, data)
    assert conf['rev']['perDay'] == 999999
    assert col.decks.changed

def test_copy():
    col = getEmptyCol()
    conf = col.decks.getConf(col.decks.confId("copy", cloneFrom=col.decks.getConf(1)))
    assert conf.getName() == "copy"
    assert conf.getId() != 1
    assert conf['new'] == col.decks.getConf(1)['new']
    # the copy is independent of the original
    conf['new']['delays'].append(30)
    assert col.decks.getConf(1)['new']['delays'] == [1, 10]
    # restoring the defaults keeps the name
    conf['new']['perDay'] = 5
    conf = col.decks.restoreToDefault(conf)
    assert conf.getName() == "copy"
    assert conf['new']['perDay'] == 20
