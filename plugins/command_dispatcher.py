"""
Buddy List Logger Command Dispatcher Plugin

A plugin which handles console commands. All plugins wishing to provide
commands should register themselves through CommandDispatcher.

This should be done by using the @Command decorator in a SimpleCommandPlugin
subclass, though it could be done manually in tricky use-cases.
"""

import inspect

from base_plugin import BasePlugin
from utilities import extractor, get_syntax, send_message, ConsoleMessageType


class CommandDispatcher(BasePlugin):
    name = "command_dispatcher"
    default_config = {"command_prefix": "!"}

    def __init__(self):
        super().__init__()
        self.commands = {}

    # Packet hooks - look for these packets and act on them

    async def on_console_command(self, data, connection):
        """
        Catch a console line as it goes by. If the first character in its
        string is the command_prefix, it is a command. Grab it and start
        interpreting its contents.

        :param data: Packet holding the console line.
        :param connection: The host the line was typed into.
        :return: Boolean: True if the line is not a command (or not one we
                 know about), so that it keeps going. False if it is a
                 command we know, so that it stops here after it is
                 processed.
        """
        message = data['parsed']['message']
        prefix = self.plugin_config.command_prefix
        if not message.startswith(prefix):
            # Not a command, just text, so pass it along.
            return True

        to_parse = message[len(prefix):].split()
        try:
            command = to_parse[0]
        except IndexError:
            return True  # It's just the prefix.

        if command not in self.commands:
            return True  # There's no command here that we know of.
        await self.run_command(command, connection, to_parse[1:])
        return False

    # Helper functions - Used by commands

    def register(self, fn, name, aliases=None):
        """
        Registers a function with a given name. Recursively applies itself
        for any aliases provided.

        :param fn: The function to be called.
        :param name: The primary command name.
        :param aliases: Additional names a command can have.
        :return: Null.
        :raise: NameError on duplicate command name.
        """
        self.logger.debug("Adding command with name {}".format(name))
        if aliases is not None:
            for alias in aliases:
                self.register(fn, alias)

        if name in self.commands:
            self.logger.info("Got duplicate command name")
            raise NameError("A command is already registered with the name: "
                            "{}".format(name))
        self.commands[name] = fn

    def unregister(self, name):
        self.commands.pop(name, None)

    def _send_syntax_error(self, command, error, connection):
        """
        Sends a syntax error to the user regarding a command.

        :param command: The command name
        :param error: The error (a string or an exception)
        :param connection: The host console.
        :return: None.
        """
        send_message(connection,
                     "Syntax error: {}".format(error),
                     get_syntax(command,
                                self.commands[command],
                                self.plugin_config.command_prefix),
                     mode=ConsoleMessageType.WARN)
        return None

    async def run_command(self, command, connection, to_parse):
        """
        Evaluate the command passed in, passing along the arguments. Report
        the various errors a command can raise back to the console.

        :param command: Command to be executed. Looked up in commands dict.
        :param connection: Host whose console issued the command.
        :param to_parse: Arguments to provide to the command.
        :return: Null.
        """
        try:
            result = self.commands[command](extractor(to_parse), connection)
            if inspect.isawaitable(result):
                await result
        except SyntaxWarning as e:
            self._send_syntax_error(command, e, connection)
        except NameError as e:
            send_message(connection, "Unknown name {}".format(e),
                         mode=ConsoleMessageType.WARN)
        except ValueError as e:
            send_message(connection, str(e), mode=ConsoleMessageType.WARN)
        except Exception:
            self.logger.exception("Unknown exception encountered. Ignoring.")
