import configparser
import json
import os
import re
import logging

# Default values
DEFAULTS = {
    "general": {
        "cronSchedule": "*/30 * * * *",
        "runOnStartup": "true",
    },
    "update": {
        "cleanup": "false",
        "noRestart": "false",
        "noPull": "false",
        "startTimeout": "60s",
        "stopTimeout": "10s",
    },
    "filter": {
        "labelEnable": "false",
        "names": "[]",
    },
    "logging": {"level": "INFO"},
    "registryAuth": {
        "enabled": "false",
        "credentialsFile": "/app/conf/registry-credentials.json",
    },
    "notifiers": {
        "enabled": "false",
    },
    "notifiers.telegram": {
        "enabled": "false",
        "token": "",
        "chatId": "",
    },
    "notifiers.email": {
        "enabled": "false",
        "smtpServer": "",
        "smtpPort": "587",
        "username": "",
        "password": "",
        "fromAddr": "",
        "toAddr": "",
        "timeout": "30",
    },
}

DEFAULT_CONFIG_PATH = "/app/conf/deckhand.cfg"


class ConfigNamespace:
    """
    A namespace wrapper for configuration sections that provides automatic type casting.

    String values are cast to bool, int or float where possible; anything else is
    returned unchanged.
    """

    def __init__(self, section: str, values: dict):
        self._section = section
        self._values = values

    def auto_cast(self, value):
        """
        Automatically cast a string value to the appropriate Python type.

        Parameters:
            value: The value to cast

        Returns:
            The casted value (bool, int, float, or str)
        """
        if value is None:
            return None

        if isinstance(value, str):
            if value.lower() in ('true', 'false'):
                return value.lower() == 'true'

        if isinstance(value, str) and value.isdigit():
            return int(value)

        try:
            return float(value)
        except (ValueError, TypeError):
            pass

        return value

    def __getattr__(self, key):
        if key.startswith("_"):
            raise AttributeError(key)
        value = (
            self._values.get(key)
            or DEFAULTS.get(self._section, {}).get(key)
        )
        return self.auto_cast(value)


class Config:
    """
    Main configuration manager for deckhand.

    Loads the INI file, merges it over DEFAULTS and exposes every section as an
    attribute (``config.update.stopTimeout``). Sections with a dot in their name are
    also reachable from their parent (``config.notifiers.telegram``).
    """

    def __init__(self, config_path: str = None):
        self.config_path = config_path or os.environ.get("DECKHAND_CONFIG", DEFAULT_CONFIG_PATH)
        self.load_config()

    def __getattr__(self, section):
        if section.startswith("_"):
            raise AttributeError(section)
        namespaces = self.__dict__.get("_namespaces", {})
        if section in namespaces:
            return namespaces[section]
        # Unknown sections behave like empty ones
        return ConfigNamespace(section, {})

    def load_config(self):
        """
        Load configuration from file.

        Reads the configuration file, merges it with default values and validates
        the resulting configuration.

        Raises:
            ValueError: If the configuration is invalid
        """
        parser = configparser.ConfigParser()
        parser.optionxform = lambda optionstr: str(optionstr)  # disables lowercasing of keys
        parser.read(self.config_path)
        namespaces = {}

        for section in set(DEFAULTS.keys()).union(parser.sections()):
            values = dict(DEFAULTS.get(section, {}))
            if parser.has_section(section):
                values.update(parser[section])
            namespaces[section] = ConfigNamespace(section, values)

        for section in list(namespaces.keys()):
            if '.' in section:
                parent, child = section.split('.', 1)
                if parent in namespaces:
                    setattr(namespaces[parent], child, namespaces[section])

        # A configuration that fails validation never replaces the current one
        self.validate_config(namespaces)
        self._namespaces = namespaces

    def reload(self):
        """
        Reload configuration from disk.

        Returns:
            bool: True if reload was successful, False otherwise
        """
        try:
            self.load_config()
            return True
        except Exception as e:
            logging.error(f"Failed to reload configuration: {e}")
            return False

    def validate_config(self, namespaces=None):
        """
        Validate configuration structure and values.

        Every problem found is collected; a single ValueError listing all of them is
        raised at the end.

        Parameters:
            namespaces (dict, optional): Namespaces to check, defaults to the loaded ones
        """
        if namespaces is None:
            namespaces = self._namespaces
        errors = []

        general = namespaces["general"]
        if not isinstance(general.runOnStartup, bool):
            errors.append("general.runOnStartup must be a boolean (true/false)")
        if not self.is_valid_cron(general.cronSchedule):
            errors.append("general.cronSchedule must be a cron expression with five fields")

        update = namespaces["update"]
        for field in ["cleanup", "noRestart", "noPull"]:
            if not isinstance(getattr(update, field), bool):
                errors.append(f"update.{field} must be a boolean (true/false)")
        for field in ["startTimeout", "stopTimeout"]:
            if not self.is_valid_duration(getattr(update, field)):
                errors.append(f"update.{field} must be a valid duration (e.g., '10s', '2m', '1h')")

        container_filter = namespaces["filter"]
        if not isinstance(container_filter.labelEnable, bool):
            errors.append("filter.labelEnable must be a boolean (true/false)")
        if not self.is_valid_json(container_filter.names):
            errors.append("filter.names must be a valid JSON array")
        else:
            names = json.loads(container_filter.names)
            if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
                errors.append("filter.names must be a JSON array of strings")

        logging_config = namespaces["logging"]
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(logging_config.level).upper() not in valid_levels:
            errors.append(f"logging.level must be one of: {', '.join(valid_levels)}")

        auth = namespaces["registryAuth"]
        if not isinstance(auth.enabled, bool):
            errors.append("registryAuth.enabled must be a boolean (true/false)")
        elif auth.enabled:
            # Only validate credentials file if authentication is enabled
            if not isinstance(auth.credentialsFile, str) or not os.path.exists(auth.credentialsFile):
                errors.append("registryAuth.credentialsFile must be a valid path to a JSON file")

        notifiers = namespaces["notifiers"]
        if not isinstance(notifiers.enabled, bool):
            errors.append("notifiers.enabled must be a boolean (true/false)")

        tg = namespaces["notifiers.telegram"]
        if not isinstance(tg.enabled, bool):
            errors.append("notifiers.telegram.enabled must be a boolean (true/false)")
        elif tg.enabled:
            if not isinstance(tg.token, str) or not tg.token:
                errors.append("notifiers.telegram.token must be set if enabled")
            if not isinstance(tg.chatId, (str, int, float)) or not tg.chatId:
                errors.append("notifiers.telegram.chatId must be set if enabled")

        em = namespaces["notifiers.email"]
        if not isinstance(em.enabled, bool):
            errors.append("notifiers.email.enabled must be a boolean (true/false)")
        elif em.enabled:
            if not isinstance(em.smtpServer, str) or not em.smtpServer:
                errors.append("notifiers.email.smtpServer must be set if email notifications are enabled")
            if not str(em.smtpPort).isdigit():
                errors.append("notifiers.email.smtpPort must be a valid port number")
            if not isinstance(em.fromAddr, str) or not em.fromAddr:
                errors.append("notifiers.email.fromAddr must be set if email notifications are enabled")
            if not isinstance(em.toAddr, str) or not em.toAddr:
                errors.append("notifiers.email.toAddr must be set if email notifications are enabled")

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            raise ValueError(error_msg)

    def is_valid_duration(self, value):
        """
        Check if a value is a valid duration string such as "10s", "2m" or "1h".
        """
        if not isinstance(value, str):
            return False
        return bool(re.match(r'^\d+[smhd]$', value))

    def is_valid_cron(self, value):
        if not isinstance(value, str):
            return False
        return len(value.split()) == 5

    def is_valid_json(self, value):
        if not isinstance(value, str):
            return False
        try:
            json.loads(value)
            return True
        except json.JSONDecodeError:
            return False


def create_example_config(example_path: str = "/app/conf/deckhand.example.cfg"):
    """
    Create or update the example configuration file.

    The example documents every section and option with its default value. It is
    rewritten on every start so that it always matches the running version.

    Parameters:
        example_path (str): Path of the example file to write

    Returns:
        bool: True if the file was written, False otherwise
    """
    example_content = """# deckhand example configuration
# Copy this file to deckhand.cfg and adjust it to your needs.

[general]
# Cron expression used in daemon mode (--daemon)
cronSchedule = */30 * * * *
# Run one update pass immediately when the daemon starts
runOnStartup = true

[update]
# Remove the old image after a container has been replaced
cleanup = false
# Never restart containers, except deckhand itself
noRestart = false
# Do not pull images, only compare against images already present locally
noPull = false
# Time a new container gets to reach the "running" state
startTimeout = 60s
# Time an old container gets to stop before it is killed
stopTimeout = 10s

[filter]
# Only update containers labelled io.deckhand.enable=true
labelEnable = false
# Only update containers whose name matches one of these patterns (wildcards allowed)
names = []

[logging]
level = INFO

[registryAuth]
enabled = false
credentialsFile = /app/conf/registry-credentials.json

[notifiers]
enabled = false

[notifiers.telegram]
enabled = false
token =
chatId =

[notifiers.email]
enabled = false
smtpServer =
smtpPort = 587
username =
password =
fromAddr =
toAddr =
timeout = 30
"""

    try:
        os.makedirs(os.path.dirname(example_path), exist_ok=True)

        with open(example_path, 'w', encoding='utf-8') as f:
            f.write(example_content)

        logging.info(f"Example config file created/updated: {example_path}")
        return True
    except OSError as e:
        logging.error(f"Failed to create/update example config file: {e}")
        return False


# Global instance
config = Config()
