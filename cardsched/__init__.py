# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import sys

if sys.version_info[0] < 3 or sys.version_info[1] < 6:
    raise Exception("cardsched requires Python 3.6+")

version = "0.1.0"

from cardsched.storage import Collection

__all__ = ["Collection"]
