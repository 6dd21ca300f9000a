from base_plugin import BasePlugin


class SamplePackagePlugin(BasePlugin):
    name = "sample_package_plugin"

    async def on_buddy_online(self, data, connection):
        return False
