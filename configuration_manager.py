import json
import logging
from pathlib import Path

from utilities import recursive_dictionary_update, DotDict

logger = logging.getLogger("buddylog.configuration_manager")


class ConfigurationManager:
    def __init__(self, defaults=None):
        self._raw_config = None
        self._raw_default_config = None
        self._config = {}
        self._dot_dict = None
        self._path = None
        if defaults is not None:
            recursive_dictionary_update(self._config, defaults)

    @property
    def config(self):
        if self._dot_dict is None:
            self._dot_dict = DotDict(self._config)
        return self._dot_dict

    @property
    def path(self):
        return self._path

    def load_config(self, path, default=False):
        if not isinstance(path, Path):
            path = Path(path)
        if default:
            self.load_defaults(path)
        self._path = path
        try:
            with path.open(encoding="utf-8") as f:
                self._raw_config = f.read()
        except FileNotFoundError:
            self._raw_config = "{}"
        except OSError as e:
            logger.error("Error while reading {}: {}".format(path, e))
            self._raw_config = "{}"
        try:
            loaded = json.loads(self._raw_config)
            if not isinstance(loaded, dict):
                raise ValueError("top level of the file must be an object")
            recursive_dictionary_update(self._config, loaded)
        except ValueError as e:
            logger.error("Error while loading {} file, keeping defaults:\n\t"
                         "{}".format(path.name, e))
        self._dot_dict = None

    def load_defaults(self, path):
        path = Path(str(path) + ".default")
        if not path.exists():
            logger.debug("No default configuration at %s", path)
            return
        with path.open(encoding="utf-8") as f:
            self._raw_default_config = f.read()
        recursive_dictionary_update(self._config,
                                    json.loads(self._raw_default_config))

    def save_config(self, path=None):
        if path is None:
            path = self._path
        if not isinstance(path, Path):
            path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = Path(str(path) + "_")
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(self.config, f, sort_keys=True, indent=4,
                      separators=(',', ': '), ensure_ascii=False)
        temp_path.replace(path)

    def get_plugin_config(self, plugin_name):
        plugins = self.config.setdefault("plugins", DotDict({}))
        if plugin_name not in plugins:
            storage = DotDict({})
            plugins[plugin_name] = storage
        else:
            storage = plugins[plugin_name]
        return storage
