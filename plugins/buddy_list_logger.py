"""
Buddy List Logger Plugin

Watches the buddy list records the game client receives and writes each
newly-seen buddy, with a timestamp, to buddy_list_log.txt. Usernames in
buddy_list_dont_log.txt are never logged, and (unless disabled) every logged
buddy is added to that list so it isn't logged again in a later session.

Commands:
- buddylog [on|enable|off|disable|status]
- buddylogpath <directory>
- buddylogclear
"""

from pathlib import Path

from base_plugin import SimpleCommandPlugin
from configuration_manager import ConfigurationManager
from file_writer import AppendWriterPool
from utilities import Command, send_message, ConsoleMessageType, iso_timestamp

LOG_FILE_NAME = "buddy_list_log.txt"
IGNORE_FILE_NAME = "buddy_list_dont_log.txt"

ENABLE_WORDS = ("on", "enable")
DISABLE_WORDS = ("off", "disable")


class BuddyLogSession:
    """
    Everything the logger remembers while the host runs: whether logging is
    on, where the files live, and which usernames must not be written.
    Usernames are compared lowercased.
    """
    def __init__(self, logging_enabled=False, custom_base_path=None):
        self.logging_enabled = logging_enabled
        self.custom_base_path = custom_base_path
        self.ignored = set()
        self.seen = set()

    def should_log(self, username):
        key = username.lower()
        return key not in self.ignored and key not in self.seen

    def mark_logged(self, username, persist=True):
        key = username.lower()
        self.seen.add(key)
        if persist:
            self.ignored.add(key)

    def add_ignored(self, usernames):
        count = 0
        for username in usernames:
            username = username.strip()
            if username:
                self.ignored.add(username.lower())
                count += 1
        return count

    def clear_seen(self):
        count = len(self.seen)
        self.seen.clear()
        return count

    def toggle(self):
        self.logging_enabled = not self.logging_enabled
        return self.logging_enabled


class BuddyListLogger(SimpleCommandPlugin):
    name = "buddy_list_logger"
    depends = ["command_dispatcher"]
    default_config = {"data_dir": "data",
                      "desktop_dir": None,
                      "persist_ignored": True,
                      "max_queue": 1000}

    def __init__(self):
        super().__init__()
        self.session = BuddyLogSession()
        self.state = None
        self.writers = None

    def activate(self):
        super().activate()
        self.state = ConfigurationManager(defaults={
            "customBasePath": None,
            "isLoggingEnabled": False})
        self.state.load_config(
            Path(self.factory.config_dir) / self.name / "config.json")
        self.session.custom_base_path = self.state.config.customBasePath
        self.session.logging_enabled = bool(
            self.state.config.isLoggingEnabled)
        self.writers = AppendWriterPool(
            max_queue=self.plugin_config.max_queue,
            on_error=self._error)

        base_path = self.base_path
        if not base_path.exists():
            try:
                base_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self._error("Error creating directory: {}".format(e))
        self.load_ignore_list()
        self._touch(self.log_path, "log file")

        send_message(self.factory,
                     "[Buddy List Logger] Plugin loaded. Logging to: {}. "
                     "Logging is {}. Use {}buddylog to toggle logging."
                     .format(base_path,
                             self._state_word(),
                             self._command_prefix()),
                     mode=ConsoleMessageType.SUCCESS)

    async def deactivate(self):
        super().deactivate()
        if self.writers is not None:
            await self.writers.close()

    # Paths

    @property
    def base_path(self):
        """
        Where the log files go: the configured directory if there is one,
        else the data directory if it exists, else the desktop.
        """
        if self.session.custom_base_path:
            return Path(self.session.custom_base_path)
        data_path = Path(self.factory.working_dir) / self.plugin_config.data_dir
        if data_path.is_dir():
            return data_path
        if self.plugin_config.desktop_dir:
            return Path(self.plugin_config.desktop_dir).expanduser()
        return Path(self.factory.home_dir) / "Desktop"

    @property
    def log_path(self):
        return self.base_path / LOG_FILE_NAME

    @property
    def ignore_path(self):
        return self.base_path / IGNORE_FILE_NAME

    # Packet hooks - look for these packets and act on them

    async def on_buddy_list(self, data, connection):
        """
        The full buddy list, sent once after login.

        :param data: The parsed packet.
        :param connection: The host which received it.
        :return: Boolean; Always true.
        """
        self.log_buddies(data["parsed"])
        return True

    async def on_buddy_added(self, data, connection):
        self.log_buddies(data["parsed"])
        return True

    async def on_buddy_online(self, data, connection):
        self.log_buddies(data["parsed"])
        return True

    # Helper functions - Used by hooks and commands

    def log_buddies(self, observations):
        if not self.session.logging_enabled:
            return
        for observation in observations:
            self.log_buddy(observation.username, observation.status)

    def log_buddy(self, username, status="online"):
        """
        Write a buddy to the log, unless logging is off or the username has
        already been logged or ignored.

        :param username: Buddy's username, as received.
        :param status: Status token, kept exactly as received.
        :return: Boolean; True if the buddy was logged.
        """
        if not self.session.logging_enabled:
            return False
        if not self.session.should_log(username):
            return False
        persist = self.plugin_config.persist_ignored
        self.session.mark_logged(username, persist=persist)

        send_message(self.factory,
                     "[Buddy List Logger] Logged buddy: {} ({})"
                     .format(username, status),
                     mode=ConsoleMessageType.SUCCESS)
        self.logger.info("Logged buddy %s (%s)", username, status)

        self.writers.write(self.log_path, "{} - {} - {}\n".format(
            iso_timestamp(), username, status))
        if persist:
            self.writers.write(self.ignore_path, "{}\n".format(username))
        return True

    def load_ignore_list(self):
        """
        Read the ignore list for the current directory into the session,
        creating an empty list if there isn't one yet.

        :return: Number of usernames read.
        """
        path = self.ignore_path
        try:
            if path.exists():
                with path.open(encoding="utf-8", errors="replace") as f:
                    count = self.session.add_ignored(f.read().splitlines())
                self.logger.debug("Loaded %d ignored usernames from %s",
                                  count, path)
                return count
            path.touch()
        except OSError as e:
            self._error("Error loading ignore list: {}".format(e))
        return 0

    def save_state(self):
        self.state.config.customBasePath = self.session.custom_base_path
        self.state.config.isLoggingEnabled = self.session.logging_enabled
        try:
            self.state.save_config()
        except OSError as e:
            self._error("Error saving config: {}".format(e))

    def _touch(self, path, what):
        if path.exists():
            return
        try:
            path.touch()
        except OSError as e:
            self._error("Error creating {}: {}".format(what, e))

    def _state_word(self):
        return "enabled" if self.session.logging_enabled else "disabled"

    def _command_prefix(self):
        return self.plugins.command_dispatcher.plugin_config.command_prefix

    def _error(self, message):
        send_message(self.factory, "[Buddy List Logger] {}".format(message),
                     mode=ConsoleMessageType.ERROR)

    def _announce_state(self):
        if self.session.logging_enabled:
            mode = ConsoleMessageType.SUCCESS
        else:
            mode = ConsoleMessageType.NOTIFY
        send_message(self.factory,
                     "[Buddy List Logger] Logging {}.".format(
                         self._state_word()),
                     mode=mode)

    # Commands - In-game actions that can be performed

    @Command("buddylog",
             doc="Toggles buddy list logging, or sets it explicitly.",
             syntax="[on|off|status]")
    def _buddylog(self, data, connection):
        if not data:
            self.session.toggle()
            self._announce_state()
            self.save_state()
            return

        action = data[0].lower()
        if action in ENABLE_WORDS:
            self.session.logging_enabled = True
            self._announce_state()
            self.save_state()
        elif action in DISABLE_WORDS:
            self.session.logging_enabled = False
            self._announce_state()
            self.save_state()
        elif action == "status":
            send_message(connection,
                         "[Buddy List Logger] Status: {}".format(
                             self._state_word().capitalize()),
                         mode=ConsoleMessageType.LOGGER)
        else:
            send_message(connection,
                         "[Buddy List Logger] Invalid command. Use "
                         "{}buddylog on/off/status".format(
                             self._command_prefix()),
                         mode=ConsoleMessageType.WARN)

    @Command("buddylogpath",
             doc="Sets a custom directory for the log files.",
             syntax="(directory)")
    def _buddylogpath(self, data, connection):
        if not data:
            raise SyntaxWarning("Please specify a directory path.")

        new_path = " ".join(data)
        try:
            Path(new_path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._error("Error setting log directory: {}".format(e))
            return

        self.session.custom_base_path = new_path
        self.save_state()
        self.load_ignore_list()
        send_message(connection,
                     "[Buddy List Logger] Log directory set to: {}".format(
                         new_path),
                     mode=ConsoleMessageType.SUCCESS)

    @Command("buddylogclear",
             doc="Forgets which buddies were logged this session.")
    def _buddylogclear(self, data, connection):
        count = self.session.clear_seen()
        send_message(connection,
                     "[Buddy List Logger] Cleared {} buddies from this "
                     "session.".format(count),
                     mode=ConsoleMessageType.NOTIFY)
