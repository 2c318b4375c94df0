"""
Human Log -- Formatter y helper para los logs de progreso del vault.

Produce líneas cortas y legibles, sin ruido técnico:

    → Adding https://github.com/acme/skills (repo)
      + acme/skills/pdf-tools (valid_skill)
      + acme/skills/broken (invalid_skill)
    → Syncing acme/skills/pdf-tools
      ✓ acme/skills/pdf-tools (updated)
    ✓ Validated: 3 valid, 1 invalid, 2 not a skill
"""

import logging
import sys

from .levels import HUMAN

_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "event"}


class HumanFormatter:
    """Convierte eventos estructurados del vault en texto legible."""

    def format_event(self, event: str, **kw) -> str | None:
        """Formatea un evento.

        Args:
            event: Nombre del evento (ej: "vault.add.start")
            **kw: Parámetros del evento

        Returns:
            Texto formateado o None si el evento no tiene formato definido
        """
        match event:

            # ── ADD ──────────────────────────────────────────────────────
            case "vault.add.start":
                url = kw.get("url", "?")
                kind = kw.get("kind")
                return f"→ Adding {url}" + (f" ({kind})" if kind else "")

            case "vault.add.complete":
                label = kw.get("label", "?")
                status = kw.get("status", "?")
                return f"  + {label} ({status})"

            # ── SYNC ─────────────────────────────────────────────────────
            case "vault.sync.start":
                return f"→ Syncing {kw.get('label', '?')}"

            case "vault.sync.complete":
                label = kw.get("label", "?")
                changes = kw.get("changes", False)
                return f"  ✓ {label} ({'updated' if changes else 'no changes'})"

            case "vault.sync.failed":
                label = kw.get("label", "?")
                error = kw.get("error", "unknown error")
                return f"  ✗ {label}: {error}"

            # ── MAINTENANCE ──────────────────────────────────────────────
            case "vault.remove.complete":
                label = kw.get("label", "?")
                suffix = " (files deleted)" if kw.get("deleted_files") else ""
                return f"  - {label}{suffix}"

            case "vault.validate.complete":
                return (
                    f"✓ Validated: {kw.get('valid', 0)} valid, "
                    f"{kw.get('invalid', 0)} invalid, "
                    f"{kw.get('not_a_skill', 0)} not a skill"
                )

            case "vault.import.complete":
                path = kw.get("path", "?")
                replaced = kw.get("replaced", 0)
                appended = kw.get("appended", 0)
                return f"✓ Imported {path} ({replaced} replaced, {appended} added)"

            case "vault.redownload.complete":
                return f"  ↓ {kw.get('label', '?')}"

            case _:
                return None


class HumanLogHandler(logging.Handler):
    """Handler que solo procesa registros de nivel HUMAN y los formatea.

    Escribe a stderr para no romper pipes de stdout (``export``, ``list --json``).
    """

    def __init__(self, stream=None) -> None:
        super().__init__(level=HUMAN)
        self.stream = stream or sys.stderr
        self.formatter_inst = HumanFormatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno != HUMAN:
                return

            # ProcessorFormatter.wrap_for_formatter deja el event dict en msg
            if isinstance(record.msg, dict):
                kw = dict(record.msg)
                event = kw.pop("event", None)
            else:
                event = getattr(record, "event", None) or record.getMessage()
                kw = {
                    k: v for k, v in record.__dict__.items()
                    if not k.startswith("_") and k not in _RECORD_ATTRS
                }

            if not event:
                return
            formatted = self.formatter_inst.format_event(str(event), **kw)
            if formatted is not None:
                self.stream.write(formatted + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


class HumanLog:
    """Helper tipado para emitir logs de nivel HUMAN.

    Uso:
        hlog = HumanLog(structlog.get_logger())
        hlog.add_start("https://github.com/acme/skills", "repo")
        hlog.resource_added("acme/skills/pdf-tools", "valid_skill")
    """

    def __init__(self, logger) -> None:
        self._log = logger

    def add_start(self, url: str, kind: str | None = None) -> None:
        self._log.log(HUMAN, "vault.add.start", url=url, kind=kind)

    def resource_added(self, label: str, status: str) -> None:
        self._log.log(HUMAN, "vault.add.complete", label=label, status=status)

    def sync_start(self, label: str) -> None:
        self._log.log(HUMAN, "vault.sync.start", label=label)

    def sync_complete(self, label: str, changes: bool) -> None:
        self._log.log(HUMAN, "vault.sync.complete", label=label, changes=changes)

    def sync_failed(self, label: str, error: str) -> None:
        self._log.log(HUMAN, "vault.sync.failed", label=label, error=error)

    def resource_removed(self, label: str, deleted_files: bool = False) -> None:
        self._log.log(HUMAN, "vault.remove.complete", label=label, deleted_files=deleted_files)

    def validated(self, valid: int, invalid: int, not_a_skill: int, unvalidated: int = 0) -> None:
        self._log.log(
            HUMAN, "vault.validate.complete",
            valid=valid,
            invalid=invalid,
            not_a_skill=not_a_skill,
            unvalidated=unvalidated,
        )

    def imported(self, path: str, replaced: int, appended: int) -> None:
        self._log.log(HUMAN, "vault.import.complete", path=path, replaced=replaced, appended=appended)

    def redownloaded(self, label: str) -> None:
        self._log.log(HUMAN, "vault.redownload.complete", label=label)
