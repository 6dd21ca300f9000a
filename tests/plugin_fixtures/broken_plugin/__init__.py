import module_that_is_not_installed_anywhere  # noqa: F401

from base_plugin import BasePlugin


class BrokenPlugin(BasePlugin):
    name = "broken_plugin"
