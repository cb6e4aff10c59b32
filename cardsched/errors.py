# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

from cardsched.db import DBError


class SchedError(Exception):
    def __init__(self, errType, **data):
        super().__init__()
        self.type = errType
        self.data = data
    def __str__(self):
        type = self.type
        if self.data:
            type += ": %s" % repr(self.data)
        return type

class ConfigurationError(SchedError):
    """A deck option is missing or out of range.

    Raised when a deck configuration is saved with invalid values, and
    internally when a step list is empty; the scheduler recovers from
    the latter by graduating the card."""
    def __init__(self, message, **data):
        super().__init__("configuration", message=message, **data)
        self.message = message

class InvalidCardStateError(SchedError):
    """The card can't be answered in its current type/queue, or the ease
    is out of range."""
    def __init__(self, **data):
        super().__init__("invalidCardState", **data)

class NotFoundError(SchedError):
    def __init__(self, what, id):
        super().__init__("notFound", what=what, id=id)

# storage failures are the database module's own error, propagated as is
StorageError = DBError

class DeckRenameError(Exception):
    def __init__(self, description):
        super().__init__()
        self.description = description
    def __str__(self):
        return "Couldn't rename deck: " + self.description
