# -*- coding: utf-8 -*-
# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

import os
import time
from contextlib import contextmanager
from sqlite3 import OperationalError, ProgrammingError
from sqlite3 import dbapi2 as sqlite

DBError = sqlite.Error

class DB:
    def __init__(self, path, timeout=0):
        self._db = sqlite.connect(path, timeout=timeout)
        self._db.text_factory = self._textFactory
        self._path = path
        self.echo = os.environ.get("DBECHO")
        self.mod = False
        self._savepointDepth = 0

    def execute(self, sql, *args, **ka):
        """Run sql with either the keyword arguments, or the positional ones.

        Insert, update and delete statements set mod to True.
        If self.echo, prints the execution time; if it is "2", also the
        arguments.
        """
        normalizedSql = sql.strip().lower()
        # mark modified?
        for stmt in "insert", "update", "delete":
            if normalizedSql.startswith(stmt):
                self.mod = True
        startTime = time.time()
        try:
            if ka:
                # execute("...where id = :id", id=5)
                res = self._db.execute(sql, ka)
            else:
                # execute("...where id = ?", 5)
                res = self._db.execute(sql, args)
        except (OperationalError, ProgrammingError):
            print(f"Error in sql:\n----------------\n{sql}\n----------------\n")
            if args:
                print(f"args:\n----------------\n{args}\n----------------\n")
            if ka:
                print(f"ka:\n----------------\n{ka}\n----------------\n")
            raise
        if self.echo:
            print(sql, "%0.3fms" % ((time.time() - startTime)*1000))
            if self.echo == "2":
                print(args, ka)
        return res

    def executemany(self, sql, queryParams):
        """Run sql once per parameter tuple. Sets mod to True."""
        self.mod = True
        startTime = time.time()
        self._db.executemany(sql, queryParams)
        if self.echo:
            print(sql, "%0.3fms" % ((time.time() - startTime)*1000))
            if self.echo == "2":
                print(queryParams)

    def commit(self):
        startTime = time.time()
        self._db.commit()
        if self.echo:
            print("commit %0.3fms" % ((time.time() - startTime)*1000))

    def executescript(self, sql):
        self.mod = True
        if self.echo:
            print(sql)
        self._db.executescript(sql)

    def rollback(self):
        self._db.rollback()

    @contextmanager
    def savepoint(self):
        """Group the statements of the block so they are applied together.

        On an exception everything done inside the block is undone and
        the exception is re-raised. Nested blocks use nested savepoints."""
        if not self._db.in_transaction:
            self._db.execute("begin")
        self._savepointDepth += 1
        name = "sp%d" % self._savepointDepth
        self._db.execute("savepoint %s" % name)
        try:
            yield self
        except BaseException:
            self._db.execute("rollback to %s" % name)
            self._db.execute("release %s" % name)
            raise
        else:
            self._db.execute("release %s" % name)
            self.mod = True
        finally:
            self._savepointDepth -= 1

    def scalar(self, *args, **kw):
        """The first value of the first row of the result, or None."""
        res = self.execute(*args, **kw).fetchone()
        if res:
            return res[0]
        return None

    def all(self, *args, **kw):
        return self.execute(*args, **kw).fetchall()

    def first(self, *args, **kw):
        """The first row of the answer."""
        cursor = self.execute(*args, **kw)
        res = cursor.fetchone()
        cursor.close()
        return res

    def list(self, *args, **kw):
        """The list of first elements of the rows of the answer."""
        return [row[0] for row in self.execute(*args, **kw)]

    def close(self):
        self._db.text_factory = None
        self._db.close()

    def totalChanges(self):
        return self._db.total_changes

    def setAutocommit(self, autocommit):
        if autocommit:
            self._db.isolation_level = None
        else:
            self._db.isolation_level = ''

    # strip out invalid utf-8 when reading from db
    def _textFactory(self, data):
        return str(data, errors="ignore")
