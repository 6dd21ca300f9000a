"""
Buddy List Logger Help Plugin

Provides the 'help' console command, for displaying help/usage information on
the registered commands.
"""

from base_plugin import SimpleCommandPlugin
from utilities import get_syntax, Command, send_message, ConsoleMessageType


class HelpPlugin(SimpleCommandPlugin):
    name = "help_plugin"
    depends = ["command_dispatcher"]

    def __init__(self):
        super().__init__()
        self.command_prefix = None
        self.commands = None

    def activate(self):
        super().activate()
        cd = self.plugins.command_dispatcher
        self.command_prefix = cd.plugin_config.command_prefix
        self.commands = cd.commands

    # Commands - In-game actions that can be performed

    @Command("help",
             doc="Help command.",
             syntax="[command]")
    def _help(self, data, connection):
        """
        Command to provide console help with commands.

        If invoked with no arguments, lists all registered commands. When
        invoked with a trailing command, provides usage details for the
        command.

        :param data: The arguments following the command.
        :param connection: The host console.
        :return: Null.
        """
        if not data:
            send_message(connection,
                         "Available commands: {}".format(" ".join(
                             sorted(self.commands))))
        else:
            try:
                docstring = self.commands[data[0]].__doc__
                send_message(connection,
                             "Help for {}: {}".format(data[0], docstring),
                             get_syntax(data[0],
                                        self.commands[data[0]],
                                        self.command_prefix))
            except KeyError:
                self.logger.error("Help failed on command {}.".format(data[0]))
                send_message(connection,
                             "Unknown command {}.".format(data[0]),
                             mode=ConsoleMessageType.WARN)
