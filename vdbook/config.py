# -*- coding: utf-8 -*-
"""vdbook.config
Configuration from an INI file with environment overrides.

The environment is always passed in explicitly; nothing in vdbook reads
os.environ except main().

Part of vdbook. Released under MIT license.

"""
import configparser
import os
import shlex
from string import Template

from . import APP_NAME
from .errors import ConfigError

DEFAULT_GREP = "grep -i"
DEFAULT_CONFIG = (
    "[main]\n"
    "# directory of .vcf contact files (required)\n"
    "#vdir = $HOME/.contacts\n"
    "# search index file\n"
    f"#index = $HOME/.local/share/{APP_NAME}/index\n"
    "# line filter used for searching, the search term is appended\n"
    "# and the index is read on stdin\n"
    f"#grep = {DEFAULT_GREP}\n"
)


class Configuration():
    """Settings shared by all vdbook operations.

    Attributes:
        index_path (str):   the index file.
        vdir_path (str):    the directory of card files.
        grep_cmd (list):    the filter command as an argv list.
        editor (str):       the editor command, or None.

    """
    def __init__(
            self,
            index_path,
            vdir_path,
            grep_cmd=DEFAULT_GREP,
            editor=None):
        """Initializes a Configuration() object."""
        self.index_path = index_path
        self.vdir_path = vdir_path
        if isinstance(grep_cmd, str):
            try:
                grep_cmd = shlex.split(grep_cmd)
            except ValueError as err:
                raise ConfigError(
                    f"invalid grep command {grep_cmd!r}: {err}") from err
        if not grep_cmd:
            raise ConfigError("grep command is empty")
        self.grep_cmd = grep_cmd
        self.editor = editor

    def __repr__(self):
        return (f"Configuration(index_path={self.index_path!r}, "
                f"vdir_path={self.vdir_path!r}, "
                f"grep_cmd={self.grep_cmd!r})")


def _home(environ):
    """Returns $HOME from `environ` or raises ConfigError."""
    home = environ.get("HOME")
    if not home:
        raise ConfigError("unable to determine the home directory")
    return home


def _expand(value, environ):
    """Expand $VARS and a leading '~' using `environ` and return an
    absolute path.

    Args:
        value (str):        a path from the config file or environment.
        environ (dict):     the environment.

    Returns:
        path (str):     the expanded path.

    """
    value = Template(value).safe_substitute(environ)
    if value == "~" or value.startswith("~/"):
        value = _home(environ) + value[1:]
    path = os.path.abspath(value)
    return path


def default_config_file(environ):
    """Returns the default config file location.

    Args:
        environ (dict):     the environment.

    """
    if environ.get("XDG_CONFIG_HOME"):
        config_dir = _expand(environ["XDG_CONFIG_HOME"], environ)
    else:
        config_dir = os.path.join(_home(environ), ".config")
    return os.path.join(config_dir, APP_NAME, "config")


def default_index_path(environ):
    """Returns the default index file location.

    Args:
        environ (dict):     the environment.

    """
    if environ.get("XDG_DATA_HOME"):
        data_dir = _expand(environ["XDG_DATA_HOME"], environ)
    else:
        data_dir = os.path.join(_home(environ), ".local", "share")
    return os.path.join(data_dir, APP_NAME, "index")


def write_default_config(config_file):
    """Create a default configuration file if none exists.

    Args:
        config_file (str):  the config file location.

    Returns:
        created (bool):     whether a new file was written.

    """
    if os.path.exists(config_file):
        return False
    os.makedirs(os.path.dirname(config_file), exist_ok=True)
    with open(config_file, "w", encoding="utf-8") as out_file:
        out_file.write(DEFAULT_CONFIG)
    return True


def load_config(config_file=None, environ=None):
    """Read the configuration. Environment variables VDBOOK_DIR,
    VDBOOK_INDEX and VDBOOK_GREP override the [main] section of the
    config file; EDITOR supplies the editor.

    Args:
        config_file (str):  Optional. The config file to read.
        environ (dict):     Optional. The environment.

    Returns:
        config (obj):   a Configuration() object.

    Raises:
        ConfigError: if the config file is invalid or no vdir is set.

    """
    if environ is None:
        environ = {}

    settings = {}
    if config_file and os.path.isfile(config_file):
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(config_file, encoding="utf-8")
        except (configparser.Error, UnicodeDecodeError) as err:
            raise ConfigError(
                f"error reading config file {config_file}: {err}") from err
        if "main" in parser:
            settings = dict(parser["main"])

    vdir = environ.get("VDBOOK_DIR") or settings.get("vdir")
    if not vdir:
        raise ConfigError(
            "no contact directory set (use 'vdir' in the [main] "
            "section of the config file or VDBOOK_DIR)")
    index = (
        environ.get("VDBOOK_INDEX") or
        settings.get("index") or
        default_index_path(environ))
    grep = (
        environ.get("VDBOOK_GREP") or
        settings.get("grep") or
        DEFAULT_GREP)

    config = Configuration(
        index_path=_expand(index, environ),
        vdir_path=_expand(vdir, environ),
        grep_cmd=grep,
        editor=environ.get("EDITOR") or None)
    return config
