import asyncio
import logging
import signal
import sys
from pathlib import Path

from capture_reader import CaptureReader
from configuration_manager import ConfigurationManager
from packets import XtMessage, packets
from plugin_manager import PluginManager
from utilities import path, AsyncBytesIO, ConsoleMessageType, Direction


DEBUG = True

if DEBUG:
    loglevel = logging.DEBUG
else:
    loglevel = logging.INFO

logger = logging.getLogger('buddylog')
logger.setLevel(loglevel)

console_levels = {
    ConsoleMessageType.SUCCESS: logging.INFO,
    ConsoleMessageType.NOTIFY: logging.INFO,
    ConsoleMessageType.LOGGER: logging.INFO,
    ConsoleMessageType.WARN: logging.WARNING,
    ConsoleMessageType.ERROR: logging.ERROR,
}

DEFAULT_CONFIG = {"plugin_path": "plugins", "plugins": {}}


class PluginHost:
    """
    Stands in for the game client. Loads the plugins, hands them each
    decoded message and console line, and shows their notifications.
    """
    def __init__(self, config_dir=None, working_dir=None, home_dir=None,
                 console_handler=None):
        try:
            self.config_dir = Path(config_dir or path / 'config')
            self.working_dir = Path(working_dir or Path.cwd())
            self.home_dir = Path(home_dir or Path.home())
            self.console_handler = console_handler
            self.console = []
            self.configuration_manager = ConfigurationManager(
                defaults=DEFAULT_CONFIG)
            self.configuration_manager.load_config(
                self.config_dir / 'config.json',
                default=True)
            self.plugin_manager = PluginManager(self.configuration_manager,
                                                factory=self)
            plugin_path = Path(self.configuration_manager.config.plugin_path)
            if not plugin_path.is_absolute():
                plugin_path = path / plugin_path
            self.plugin_manager.load_from_path(plugin_path)
            self.plugin_manager.resolve_dependencies()
        except Exception as err:
            logger.exception("Error during host startup.")
            raise err

    async def start_plugins(self):
        await self.plugin_manager.activate_all()

    async def shutdown(self):
        logger.info("Shutting down all plugins.")
        await self.plugin_manager.deactivate_all()

    async def receive(self, message, direction=Direction.TO_CLIENT):
        """
        Run a decoded message from the game connection past the plugins.

        :param message: Decoded message object.
        :param direction: Which way the message was travelling.
        :return: Boolean. False if a plugin consumed the message.
        """
        packet = self.plugin_manager.frame(message, direction)
        if packet is None:
            return True
        return await self.plugin_manager.do(self,
                                            packets[packet['type']],
                                            packet)

    async def command(self, line):
        """
        Run a line typed into the console past the plugins.

        :param line: Raw console line, prefix included.
        :return: Boolean. False if a plugin handled it as a command.
        """
        packet = {"type": None,
                  "parsed": {"message": line},
                  "original_data": line,
                  "direction": Direction.TO_SERVER}
        return await self.plugin_manager.do(self, "console_command", packet)

    def console_message(self, message, mode=ConsoleMessageType.LOGGER):
        """
        Show a notification on the console.

        :param message: Text of the notification.
        :param mode: ConsoleMessageType.
        :return: Null.
        """
        self.console.append((mode, message))
        logger.log(console_levels.get(mode, logging.INFO), message)
        if self.console_handler is not None:
            self.console_handler(mode, message)


async def replay(host, reader):
    """
    Feed a capture through the host: lines starting with "%" are packets,
    anything else is typed into the console.

    :param host: A started PluginHost.
    :param reader: CaptureReader over the capture.
    :return: Number of lines replayed.
    """
    count = 0
    async for line in reader:
        line = line.strip()
        if not line:
            continue
        if line.startswith("%"):
            await host.receive(XtMessage(line))
        else:
            await host.command(line)
        count += 1
    return count


async def main():
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(name)s # %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S')
    aiologger = logging.getLogger("asyncio")
    aiologger.setLevel(loglevel)
    fh_d = None
    if DEBUG:
        (path / 'config').mkdir(exist_ok=True)
        fh_d = logging.FileHandler(str(path / 'config' / 'debug.log'))
        fh_d.setLevel(loglevel)
        fh_d.setFormatter(formatter)
        aiologger.addHandler(fh_d)
        logger.addHandler(fh_d)
    ch = logging.StreamHandler()
    ch.setLevel(loglevel)
    ch.setFormatter(formatter)
    aiologger.addHandler(ch)
    logger.addHandler(ch)

    signal.signal(signal.SIGINT, signal.default_int_handler)
    signal.signal(signal.SIGTERM, signal.default_int_handler)

    logger.info("Starting plugin host")
    host = PluginHost()
    await host.start_plugins()

    if len(sys.argv) > 1:
        data = Path(sys.argv[1]).read_bytes()
    else:
        data = sys.stdin.buffer.read()

    try:
        count = await replay(host, CaptureReader(AsyncBytesIO(data)))
        logger.info("Replayed %d lines.", count)
    except (KeyboardInterrupt, SystemExit):
        logger.warning("Exiting")
    except Exception as e:
        logger.warning('An exception occurred, exiting: {}'.format(e))
    finally:
        await host.shutdown()
        if fh_d is not None:
            aiologger.removeHandler(fh_d)
        aiologger.removeHandler(ch)
        logger.info("Finished.")

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Exited due to interrupt.")
