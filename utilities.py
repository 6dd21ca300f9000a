"""
Buddy List Logger Utilities

Provides a collection of commonly used utility objects, functions and classes
that can be utilized. Boilerplate = bad.
"""

import collections.abc
import io
import re
from datetime import datetime, timezone
from enum import Enum, IntEnum
from pathlib import Path
from types import FunctionType

path = Path(__file__).parent


# Enums

class Direction(IntEnum):
    TO_CLIENT = 0
    TO_SERVER = 1


class ConsoleMessageType(Enum):
    SUCCESS = "success"
    NOTIFY = "notify"
    LOGGER = "logger"
    WARN = "warn"
    ERROR = "error"


# Useful things

def recursive_dictionary_update(d, u):
    """
    Given two dictionaries, update the first one with new values provided by
    the second. Works for nested dictionary sets.

    :param d: First Dictionary, to base off of.
    :param u: Second Dictionary, to provide updated values.
    :return: Dictionary. Merged dictionary with bias towards the second.
    """
    for k, v in u.items():
        if isinstance(v, collections.abc.Mapping):
            r = recursive_dictionary_update(d.get(k, {}), v)
            d[k] = r
        else:
            d[k] = u[k]
    return d


class DotDict(dict):
    """
    Custom dictionary format that allows member access by using dot notation:
    eg - dict.key.subkey
    """

    def __init__(self, d, **kwargs):
        super().__init__(**kwargs)
        for k, v in d.items():
            if isinstance(v, collections.abc.Mapping):
                v = DotDict(v)
            self[k] = v

    def __getattr__(self, item):
        try:
            return super().__getitem__(item)
        except KeyError as e:
            raise AttributeError(str(e)) from None

    def __setattr__(self, key, value):
        if isinstance(value, collections.abc.Mapping):
            value = DotDict(value)
        super().__setitem__(key, value)

    __delattr__ = dict.__delitem__


def detect_overrides(cls, obj):
    """
    For each active plugin, check if it wields a packet hook. If it does, make
    a note of it. Hand back all hooks overridden by the plugin when done.
    """
    res = set()
    for key, value in cls.__dict__.items():
        if isinstance(value, classmethod):
            value = getattr(cls, key).__func__
        if isinstance(value, (FunctionType, classmethod)):
            meth = getattr(obj, key)
            if getattr(meth, "__func__", None) is not value:
                res.add(key)
    return res


class AsyncBytesIO(io.BytesIO):
    """
    This class just wraps a normal BytesIO.read() in a coroutine to make it
    easier to interface with functions designed to work on coroutines without
    having to monkey around with a type check and extra futures.
    """
    async def read(self, *args, **kwargs):
        return super().read(*args, **kwargs)


def extractor(*args):
    """
    Extracts quoted arguments and puts them as a single argument in the
    passed iterator.
    """
    x = re.split(r"(?:([^\"]\S*)|\"(.+?)(?<!\\)\")\s*", " ".join(*args))
    x = [word.replace("\\\"", "\"") if word is not None else None for word in x]
    return [x for x in filter(None, x)]


def iso_timestamp(when=None):
    """
    Render a UTC timestamp in ISO-8601 with millisecond precision and a 'Z'
    suffix, eg - 2024-05-01T12:30:45.123Z

    :param when: Optional aware datetime. Defaults to now.
    :return: String.
    """
    if when is None:
        when = datetime.now(timezone.utc)
    else:
        when = when.astimezone(timezone.utc)
    return when.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_syntax(command, fn, command_prefix):
    """
    Read back the syntax argument provided in a command's wrapper. Return it
    in a printable format.

    :param command: Command being called.
    :param fn: Function which the command is wrapped around.
    :param command_prefix: Prefix used for commands in the console.
    :return: String. Syntax details of the target command.
    """
    return "Syntax: {}{} {!s}".format(
        command_prefix,
        command,
        fn.syntax)


def send_message(connection, *messages, mode=ConsoleMessageType.LOGGER):
    """
    Shows one or more notifications on the host console.

    :param connection: The host whose console receives the message(s).
    :param messages: The message(s) to send.
    :param mode: ConsoleMessageType of the notification.
    :return: Null.
    """
    for message in messages:
        connection.console_message(message, mode=mode)


class Command:
    """
    Defines a decorator that encapsulates a console command. Provides a common
    interface for all commands, including documentation, usage syntax,
    and aliases.
    """
    def __init__(self, *aliases, doc=None, syntax=None, priority=0):
        if syntax is None:
            syntax = ()
        if isinstance(syntax, str):
            syntax = (syntax,)
        if doc is None:
            doc = ""
        self.syntax = syntax
        self.human_syntax = " ".join(syntax)
        self.doc = doc
        self.aliases = aliases
        self.priority = priority

    def __call__(self, f):
        """
        Whenever a command is called, its handling gets done here.

        :param f: The function the Command decorator is wrapping.
        :return: The now-wrapped command, with all the trappings.
        """
        def wrapped(s, data, connection):
            return f(s, data, connection)

        wrapped._command = True
        wrapped._aliases = self.aliases
        wrapped.__doc__ = self.doc
        wrapped.syntax = self.human_syntax
        wrapped.priority = self.priority
        return wrapped
