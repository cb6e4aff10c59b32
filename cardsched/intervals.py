# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Interval arithmetic of the scheduler.

These functions only read the card fields and the options given to them;
they never touch the database. Learning delays are in seconds, review
intervals in days.

Options are the 'new', 'lapse' or 'rev' part of a deck configuration.
"""

import random

from cardsched.consts import *
from cardsched.errors import ConfigurationError

# Learning steps
##########################################################################

def delayForGrade(delays, left):
    """The delay in seconds of the step reached when `left` steps are
    left, counting from the end of `delays` (in minutes).

    A value of left larger than the number of steps means the first one.
    """
    if not delays:
        raise ConfigurationError("no learning steps")
    left = left % 1000
    try:
        delay = delays[-left]
    except IndexError:
        delay = delays[0]
    return int(delay*60)

def delayForRepeatingGrade(delays, left):
    """The delay when Hard is pressed on a learning step: halfway between
    the current step and the next one. With a single step, the next one
    counts as twice the current one."""
    delay1 = delayForGrade(delays, left)
    if len(delays) > 1:
        delay2 = delayForGrade(delays, left-1)
    else:
        delay2 = delay1 * 2
    return (delay1+max(delay1, delay2))//2

def leftToday(delays, left, now, dayCutoff):
    """The number of the last `left` steps that can be completed
    before the day cutoff, assuming the first step is done `now`.
    At least one step is always counted.
    """
    delays = delays[-left:]
    ok = 0
    for i in range(len(delays)):
        now += delays[i]*60
        if now > dayCutoff:
            break
        ok = i
    return ok+1

def startingLeft(delays, now, dayCutoff):
    """The left value of a card starting the steps `delays`."""
    tot = len(delays)
    tod = leftToday(delays, tot, now, dayCutoff)
    return tot + tod*1000

# Graduating and lapsing
##########################################################################

def graduatingIvl(card, conf, early, fuzz=True):
    """Interval in days given to a card leaving the learning steps.

    conf -- the new card options.
    early -- whether Easy was pressed.
    """
    if card.type in (CARD_DUE, CARD_RELRN):
        bonus = early and 1 or 0
        return card.ivl + bonus
    if not early:
        # graduate
        ideal = conf['ints'][0]
    else:
        # early remove
        ideal = conf['ints'][1]
    if fuzz:
        ideal = fuzzedIvl(ideal)
    return ideal

def lapseIvl(ivl, conf):
    """Interval of a review card of interval `ivl` after a lapse.

    conf -- the lapse options."""
    return max(1, conf['minInt'], int(ivl*conf['mult']))

# Reviews
##########################################################################

def constrainedIvl(ivl, conf, prev, fuzz):
    """ivl, scaled by the interval modifier, strictly larger than prev,
    and at most the maximal interval."""
    ivl = int(ivl * conf.get('ivlFct', 1))
    if fuzz:
        ivl = fuzzedIvl(ivl)
    ivl = max(ivl, prev+1, 1)
    ivl = min(ivl, conf['maxIvl'])
    return int(ivl)

def nextRevIvl(card, conf, daysLate, ease, fuzz):
    """Next review interval for a review card answered Hard, Good or
    Easy (ease 2, 3 or 4).

    conf -- the review options of the card's home deck.
    daysLate -- how many days after its due day the card is answered.
    """
    fct = card.factor / 1000
    hardFactor = conf.get("hardFactor", 1.2)
    if hardFactor > 1:
        hardMin = card.ivl
    else:
        hardMin = 0
    ivl2 = constrainedIvl(card.ivl * hardFactor, conf, hardMin, fuzz)
    if ease == BUTTON_TWO:
        return ivl2

    ivl3 = constrainedIvl((card.ivl + daysLate // 2) * fct, conf, ivl2, fuzz)
    if ease == BUTTON_THREE:
        return ivl3

    ivl4 = constrainedIvl(
        (card.ivl + daysLate) * fct * conf['ease4'], conf, ivl3, fuzz)
    return ivl4

def earlyReviewIvl(card, conf, today, ease):
    """Interval of a review card of a filtered deck answered before its
    original due day.

    It is based on the time elapsed since the last review instead of the
    card's interval; it is never less than the previous interval on
    Good and Easy, nor than half the hard factor times it on Hard.
    """
    elapsed = card.ivl - (card.odue - today)

    easyBonus = 1
    # early 3/4 reviews shouldn't decrease previous interval
    minNewIvl = 1

    if ease == BUTTON_TWO:
        factor = conf.get("hardFactor", 1.2)
        # hard cards shouldn't have their interval decreased by more than 50%
        # of the normal factor
        minNewIvl = factor / 2
    elif ease == BUTTON_THREE:
        factor = card.factor / 1000
    else: # ease == BUTTON_FOUR:
        factor = card.factor / 1000
        ease4 = conf['ease4']
        # 1.3 -> 1.15
        easyBonus = ease4 - (ease4-1)/2

    ivl = max(elapsed * factor, 1)

    # cap interval decreases
    ivl = max(card.ivl*minNewIvl, ivl) * easyBonus

    return constrainedIvl(ivl, conf, prev=0, fuzz=False)

# Fuzz
##########################################################################

def fuzzIvlRange(ivl):
    """The smallest and largest interval a fuzzed ivl can take."""
    if ivl < 2:
        return [1, 1]
    elif ivl == 2:
        return [2, 3]
    elif ivl < 7:
        fuzz = int(ivl*0.25)
    elif ivl < 30:
        fuzz = max(2, int(ivl*0.15))
    else:
        fuzz = max(4, int(ivl*0.05))
    # fuzz at least a day
    fuzz = max(fuzz, 1)
    return [ivl-fuzz, ivl+fuzz]

def fuzzedIvl(ivl):
    """A number of days, randomly chosen not far from ivl."""
    min, max = fuzzIvlRange(ivl)
    return random.randint(min, max)

def learningFuzz(delay):
    """Random number of seconds added to a learning delay: up to 25% of
    it, at most 5 minutes."""
    maxExtra = min(300, int(delay*0.25))
    if maxExtra <= 0:
        return 0
    return random.randrange(0, maxExtra)
