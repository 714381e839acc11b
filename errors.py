# -*- coding: utf-8 -*-
"""
Exception types raised while loading configuration.
Runtime IMAP and handler failures are not errors here: workers log them and retry.
"""


class ConfigError(Exception):
    """Configuration file exists but has the wrong shape or types"""


class MissingConfigError(ConfigError):
    """No configuration file given and none found in the XDG config dirs"""

    def __init__(self, searched=()):
        self.searched = list(searched)
        super().__init__("configuration file missing")

    def __str__(self):
        if not self.searched:
            return "configuration file missing"
        return "configuration file missing (searched: {})".format(
            ", ".join(str(p) for p in self.searched)
        )
