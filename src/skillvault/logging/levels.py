"""
HUMAN logging level -- What the vault is doing, in plain words.

Sits between INFO (20) and WARNING (30). It is not a severity: it marks
the progress lines a user wants to see (resource added, synced, removed)
without the technical noise of git commands and catalog writes.

Hierarchy:
    debug  (10) -> git commands, scans, catalog writes
    info   (20) -> clones, refreshes, legacy upgrades
    human  (25) -> progress shown to the user
    warn   (30) -> non-fatal problems (sync failures, duplicates)
    error  (40) -> errors
"""

import logging

import structlog

HUMAN = 25
logging.addLevelName(HUMAN, "HUMAN")


def _human(self, message, *args, **kwargs):
    if self.isEnabledFor(HUMAN):
        self._log(HUMAN, message, args, **kwargs)


# BoundLogger.log(HUMAN, ...) proxies to Logger.human
logging.Logger.human = _human


# Register the level in structlog to avoid KeyError: 25.
# BoundLogger.log(HUMAN, ...) looks the name up in these tables; the public
# names only exist on recent structlog releases.
for _module in (structlog.stdlib, getattr(structlog, "_log_levels", None)):
    for _table in ("LEVEL_TO_NAME", "_LEVEL_TO_NAME"):
        try:
            getattr(_module, _table)[HUMAN] = "human"
        except (AttributeError, KeyError, TypeError):
            pass

# Vault used without configure_logging() proxies to PrintLogger.human
if not hasattr(structlog.PrintLogger, "human"):
    structlog.PrintLogger.human = structlog.PrintLogger.msg
