import collections.abc

from utilities import DotDict, recursive_dictionary_update


class BasePlugin:
    """
    Defines an interface for all plugins to inherit from. Note that the init
    method should generally not be overrode; all setup work should be done in
    activate() if possible. If you do override __init__, remember to super()!

    Only one instance of each plugin is created per host. The host hands
    itself to every hook as `connection`, and is reachable from the plugin
    as self.factory.

    `name` *must* be defined in child classes or else the plugin manager will
    complain quite thoroughly.
    """

    name = "Base Plugin"
    description = "The common class for all plugins to inherit from."
    version = ".1"
    depends = ()
    default_config = None
    plugins = DotDict({})
    auto_activate = True

    def __init__(self):
        self.plugin_config = self.config.get_plugin_config(self.name)
        if isinstance(self.default_config, collections.abc.Mapping):
            temp = recursive_dictionary_update(dict(self.default_config),
                                               self.plugin_config)
            self.plugin_config.update(temp)

        else:
            self.plugin_config = self.default_config

    def activate(self):
        pass

    def deactivate(self):
        pass

    async def on_buddy_list(self, data, connection):
        """Record type: bl """
        return True

    async def on_buddy_added(self, data, connection):
        """Record type: ba """
        return True

    async def on_buddy_online(self, data, connection):
        """Record type: bon """
        return True

    async def on_console_command(self, data, connection):
        """A line typed into the host console."""
        return True

    def __repr__(self):
        return "<Plugin instance: %s (version %s)>" % (self.name, self.version)


class SimpleCommandPlugin(BasePlugin):
    name = "simple_command_plugin"
    description = "Provides a simple parent class to define console commands."
    version = "0.1"
    depends = ["command_dispatcher"]
    auto_activate = True

    def activate(self):
        super().activate()
        for name, attr in [(x, getattr(self, x)) for x in self.__dir__()]:
            if hasattr(attr, "_command"):
                for alias in attr._aliases:
                    self.plugins['command_dispatcher'].register(attr, alias)

    def deactivate(self):
        super().deactivate()
        dispatcher = self.plugins.get('command_dispatcher')
        if dispatcher is None:
            return
        for name, attr in [(x, getattr(self, x)) for x in self.__dir__()]:
            if hasattr(attr, "_command"):
                for alias in attr._aliases:
                    dispatcher.unregister(alias)
