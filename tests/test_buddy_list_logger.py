import asyncio
import json
import re
import shutil
import tempfile
import unittest
from pathlib import Path

from capture_reader import CaptureReader
from host import PluginHost, replay
from packets import XtMessage
from utilities import AsyncBytesIO, ConsoleMessageType

BUDDY_LIST = ("%xt%bl%-1%0%0%Alice%11111111-2222-3333-4444-555555555555%0"
              "%Bob%66666666-7777-8888-9999-aaaaaaaaaaaa%1")
LINE_FORMAT = re.compile(
    r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z - (?P<name>.+) - "
    r"(?P<status>.+)$")


class BuddyListLoggerTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.config_dir = self.root / "config"
        self.working_dir = self.root / "work"
        self.working_dir.mkdir()
        self.home_dir = self.root / "home"
        self.desktop = self.home_dir / "Desktop"
        self.data_dir = self.working_dir / "data"
        self.state_path = self.config_dir / "buddy_list_logger" / "config.json"
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self.host = None

    def tearDown(self):
        if self.host is not None:
            self.run_async(self.host.shutdown())
        self.loop.close()
        asyncio.set_event_loop(None)
        self.tmp.cleanup()

    # Helpers

    def run_async(self, coro):
        return self.loop.run_until_complete(coro)

    def write_state(self, **state):
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        self.state_path.write_text(json.dumps(state))

    def write_host_config(self, **plugin_config):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with (self.config_dir / "config.json").open("w") as f:
            json.dump({"plugins": {"buddy_list_logger": plugin_config}}, f)

    def start_host(self):
        self.host = PluginHost(config_dir=self.config_dir,
                               working_dir=self.working_dir,
                               home_dir=self.home_dir)
        self.run_async(self.host.start_plugins())
        return self.host

    def restart_host(self):
        self.run_async(self.host.shutdown())
        return self.start_host()

    @property
    def plugin(self):
        return self.host.plugin_manager.list_plugins()["buddy_list_logger"]

    def receive(self, raw):
        return self.run_async(self.host.receive(XtMessage(raw)))

    def command(self, line):
        return self.run_async(self.host.command(line))

    def flush(self):
        self.run_async(self.plugin.writers.join())

    def logged(self, base_path):
        self.flush()
        log_file = base_path / "buddy_list_log.txt"
        if not log_file.exists():
            return []
        entries = []
        for line in log_file.read_text().splitlines():
            match = LINE_FORMAT.match(line)
            self.assertIsNotNone(match, msg="Bad log line: {}".format(line))
            entries.append((match.group("name"), match.group("status")))
        return entries

    def console_text(self, mode=None):
        return [message for m, message in self.host.console
                if mode is None or m == mode]

    # Startup and directory resolution

    def test_startup_falls_back_to_desktop(self):
        self.start_host()
        self.assertTrue((self.desktop / "buddy_list_log.txt").exists())
        self.assertTrue((self.desktop / "buddy_list_dont_log.txt").exists())
        self.assertFalse(self.plugin.session.logging_enabled)
        loaded = self.console_text(ConsoleMessageType.SUCCESS)[-1]
        self.assertIn("Plugin loaded. Logging to: {}".format(self.desktop),
                      loaded)
        self.assertIn("Logging is disabled", loaded)

    def test_data_directory_preferred(self):
        self.data_dir.mkdir()
        self.start_host()
        self.assertEqual(self.plugin.base_path, self.data_dir)
        self.assertTrue((self.data_dir / "buddy_list_log.txt").exists())
        self.assertFalse(self.desktop.exists())

    def test_data_directory_created_later_redirects(self):
        self.start_host()
        self.command("!buddylog on")
        self.receive("%xt%bon%1%Alice%")
        self.data_dir.mkdir()
        self.receive("%xt%bon%1%Bob%")
        self.assertEqual(self.logged(self.desktop), [("Alice", "online")])
        self.assertEqual(self.logged(self.data_dir), [("Bob", "online")])

    def test_custom_path_from_saved_state(self):
        custom = self.root / "custom"
        self.write_state(customBasePath=str(custom), isLoggingEnabled=True)
        self.start_host()
        self.assertTrue((custom / "buddy_list_log.txt").exists())
        self.receive("%xt%bon%1%Alice%")
        self.assertEqual(self.logged(custom), [("Alice", "online")])

    def test_malformed_state_keeps_defaults(self):
        self.state_path.parent.mkdir(parents=True)
        self.state_path.write_text("{oops")
        self.start_host()
        self.assertFalse(self.plugin.session.logging_enabled)
        self.assertIsNone(self.plugin.session.custom_base_path)

    # Logging

    def test_disabled_by_default(self):
        self.start_host()
        self.receive(BUDDY_LIST)
        self.assertEqual(self.logged(self.desktop), [])

    def test_buddy_list_logged_in_order(self):
        self.start_host()
        self.command("!buddylog on")
        self.assertTrue(self.receive(BUDDY_LIST))
        self.assertEqual(self.logged(self.desktop),
                         [("Alice", "0"), ("Bob", "1")])
        self.assertIn("[Buddy List Logger] Logged buddy: Alice (0)",
                      self.console_text(ConsoleMessageType.SUCCESS))

    def test_buddy_added_and_online(self):
        self.start_host()
        self.command("!buddylog on")
        self.receive("%xt%ba%1%Carol%uuid%online%")
        self.receive("%xt%ba%1%Erin%uuid%%")
        self.receive("%xt%bon%1%Dave%")
        self.assertEqual(self.logged(self.desktop),
                         [("Carol", "online"), ("Erin", "online"),
                          ("Dave", "online")])

    def test_each_username_logged_once(self):
        self.start_host()
        self.command("!buddylog on")
        self.receive("%xt%bon%1%Alice%")
        self.receive("%xt%bon%1%ALICE%")
        self.receive(BUDDY_LIST)
        self.receive(BUDDY_LIST)
        self.assertEqual(self.logged(self.desktop),
                         [("Alice", "online"), ("Bob", "1")])

    def test_ignore_list_respected(self):
        self.desktop.mkdir(parents=True)
        (self.desktop / "buddy_list_dont_log.txt").write_text(
            "  bob \n\nCAROL\r\n")
        self.start_host()
        self.command("!buddylog on")
        self.receive(BUDDY_LIST)
        self.receive("%xt%ba%1%carol%uuid%online%")
        self.assertEqual(self.logged(self.desktop), [("Alice", "0")])

    def test_ignore_list_with_undecodable_bytes(self):
        self.desktop.mkdir(parents=True)
        (self.desktop / "buddy_list_dont_log.txt").write_bytes(
            b"Jos\xe9\nBob\n")
        self.start_host()
        self.assertIn("Plugin loaded",
                      self.console_text(ConsoleMessageType.SUCCESS)[-1])
        self.assertIn("bob", self.plugin.session.ignored)
        self.command("!buddylog on")
        self.receive(BUDDY_LIST)
        self.assertEqual(self.logged(self.desktop), [("Alice", "0")])

    def test_logged_buddies_added_to_ignore_list(self):
        self.start_host()
        self.command("!buddylog on")
        self.receive(BUDDY_LIST)
        self.flush()
        ignore_file = self.desktop / "buddy_list_dont_log.txt"
        self.assertEqual(ignore_file.read_text(), "Alice\nBob\n")

        self.restart_host()
        self.assertTrue(self.plugin.session.logging_enabled)
        self.command("!buddylogclear")
        self.receive("%xt%bon%1%alice%")
        self.assertEqual(len(self.logged(self.desktop)), 2)

    def test_clear_allows_one_more_log(self):
        self.write_host_config(persist_ignored=False)
        self.start_host()
        self.command("!buddylog on")
        self.receive("%xt%bon%1%Alice%")
        self.receive("%xt%bon%1%Alice%")
        self.command("!buddylogclear")
        self.receive("%xt%bon%1%Alice%")
        self.receive("%xt%bon%1%Alice%")
        self.assertEqual(self.logged(self.desktop),
                         [("Alice", "online"), ("Alice", "online")])
        self.assertEqual(
            (self.desktop / "buddy_list_dont_log.txt").read_text(), "")
        self.assertIn("[Buddy List Logger] Cleared 1 buddies from this "
                      "session.", self.console_text())

    def test_clear_does_not_forget_ignored(self):
        self.start_host()
        self.command("!buddylog on")
        self.receive("%xt%bon%1%Alice%")
        self.command("!buddylogclear")
        self.receive("%xt%bon%1%Alice%")
        self.assertEqual(self.logged(self.desktop), [("Alice", "online")])

    def test_write_failure_reported(self):
        gone = self.root / "gone"
        self.start_host()
        self.command("!buddylog on")
        self.command("!buddylogpath {}".format(gone))
        shutil.rmtree(str(gone))
        self.receive("%xt%bon%1%Alice%")
        self.flush()
        errors = self.console_text(ConsoleMessageType.ERROR)
        self.assertTrue(any("Error writing to" in e for e in errors))
        # At most once: the buddy is not retried.
        self.receive("%xt%bon%1%Alice%")
        self.assertFalse((gone / "buddy_list_log.txt").exists())

    # Commands

    def test_toggle_alternates(self):
        self.start_host()
        self.assertFalse(self.command("!buddylog"))
        self.assertTrue(self.plugin.session.logging_enabled)
        self.command("!buddylog")
        self.assertFalse(self.plugin.session.logging_enabled)
        self.command("!buddylog")
        self.assertTrue(self.plugin.session.logging_enabled)
        self.assertEqual(json.loads(self.state_path.read_text()),
                         {"customBasePath": None, "isLoggingEnabled": True})
        self.assertEqual(
            self.console_text()[-3:],
            ["[Buddy List Logger] Logging enabled.",
             "[Buddy List Logger] Logging disabled.",
             "[Buddy List Logger] Logging enabled."])

    def test_enable_and_disable_words(self):
        self.start_host()
        for word, expected in [("on", True), ("OFF", False),
                               ("enable", True), ("disable", False)]:
            self.command("!buddylog {}".format(word))
            self.assertEqual(self.plugin.session.logging_enabled, expected)

    def test_enabled_state_survives_restart(self):
        self.start_host()
        self.command("!buddylog on")
        self.restart_host()
        self.assertTrue(self.plugin.session.logging_enabled)
        self.assertIn("Logging is enabled",
                      self.console_text(ConsoleMessageType.SUCCESS)[-1])

    def test_status(self):
        self.start_host()
        self.command("!buddylog status")
        self.assertEqual(self.host.console[-1],
                         (ConsoleMessageType.LOGGER,
                          "[Buddy List Logger] Status: Disabled"))
        self.assertFalse(self.state_path.exists())

    def test_invalid_argument(self):
        self.start_host()
        self.command("!buddylog maybe")
        self.assertEqual(self.host.console[-1],
                         (ConsoleMessageType.WARN,
                          "[Buddy List Logger] Invalid command. Use "
                          "!buddylog on/off/status"))
        self.assertFalse(self.plugin.session.logging_enabled)

    def test_set_path_with_spaces(self):
        target = self.root / "my logs" / "buddies"
        target.mkdir(parents=True)
        (target / "buddy_list_dont_log.txt").write_text("Dave\n")
        self.start_host()
        self.command("!buddylog on")
        self.command("!buddylogpath {}".format(target))
        self.assertEqual(self.plugin.base_path, target)
        self.assertEqual(json.loads(self.state_path.read_text()),
                         {"customBasePath": str(target),
                          "isLoggingEnabled": True})
        self.assertIn("[Buddy List Logger] Log directory set to: {}"
                      .format(target), self.console_text())
        self.receive("%xt%bon%1%Dave%")
        self.receive("%xt%bon%1%Erin%")
        self.assertEqual(self.logged(target), [("Erin", "online")])

    def test_set_path_creates_directory(self):
        target = self.root / "new" / "place"
        self.start_host()
        self.command("!buddylogpath {}".format(target))
        self.assertTrue(target.is_dir())
        self.assertTrue((target / "buddy_list_dont_log.txt").exists())

    def test_set_path_without_argument(self):
        self.start_host()
        self.command("!buddylogpath")
        self.assertEqual(
            self.console_text(ConsoleMessageType.WARN)[-2:],
            ["Syntax error: Please specify a directory path.",
             "Syntax: !buddylogpath (directory)"])
        self.assertIsNone(self.plugin.session.custom_base_path)

    def test_set_path_failure_keeps_old_path(self):
        blocker = self.root / "afile"
        blocker.write_text("")
        self.start_host()
        self.command("!buddylogpath {}".format(blocker / "sub"))
        self.assertIsNone(self.plugin.session.custom_base_path)
        self.assertIn("Error setting log directory",
                      self.console_text(ConsoleMessageType.ERROR)[-1])

    def test_help(self):
        self.start_host()
        self.command("!help")
        self.assertEqual(self.console_text()[-1],
                         "Available commands: buddylog buddylogclear "
                         "buddylogpath help")
        self.command("!help buddylog")
        self.assertEqual(self.console_text()[-2:],
                         ["Help for buddylog: Toggles buddy list logging, "
                          "or sets it explicitly.",
                          "Syntax: !buddylog [on|off|status]"])

    def test_duplicate_command_name(self):
        self.start_host()
        dispatcher = self.host.plugin_manager.list_plugins()[
            "command_dispatcher"]
        with self.assertRaises(NameError):
            dispatcher.register(lambda data, connection: None, "buddylog")

    def test_unknown_lines_pass_through(self):
        self.start_host()
        self.assertTrue(self.command("!nope"))
        self.assertTrue(self.command("hello there"))
        self.assertTrue(self.command("!"))

    def test_unrelated_messages_pass_through(self):
        self.start_host()
        self.command("!buddylog on")
        self.assertTrue(self.receive("%xt%zz%1%Alice%"))
        self.assertTrue(self.run_async(self.host.receive("%xt%bon%1%Alice%")))
        self.assertTrue(self.receive("%xt%bon%1%"))
        self.assertEqual(self.logged(self.desktop), [])

    def test_replay(self):
        self.start_host()
        capture = CaptureReader(AsyncBytesIO(
            b"!buddylog on\n\n" + BUDDY_LIST.encode() + b"\n"))
        self.assertEqual(self.run_async(replay(self.host, capture)), 2)
        self.assertEqual(self.logged(self.desktop),
                         [("Alice", "0"), ("Bob", "1")])


if __name__ == "__main__":
    unittest.main()
