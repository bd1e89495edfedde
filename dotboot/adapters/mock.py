"""
Test doubles — simulated runner, user database and adapter.

Used to exercise the resolver, the adapters and the reconciler without
touching real accounts, the network or external tools. Every double
records what it was asked to do.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotboot.adapters.base import AdapterContext, Presence, ResourceAdapter
from dotboot.adapters.shell.command import CommandRunner
from dotboot.adapters.system.users import UserDatabase, UserRecord
from dotboot.core.models.command import CommandResult
from dotboot.core.models.context import ExecutionContext, TargetIdentity
from dotboot.core.models.resource import Resource, ResourceKind
from dotboot.core.models.result import ReconciliationResult

Effect = Callable[[list[str], Path | None], None]


@dataclass
class _Rule:
    prefix: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    effect: Effect | None
    times: int | None

    def matches(self, argv: list[str]) -> bool:
        if self.times is not None and self.times <= 0:
            return False
        return tuple(argv[: len(self.prefix)]) == self.prefix


@dataclass
class RecordedCall:
    argv: list[str]
    cwd: Path | None
    env: dict[str, str] = field(default_factory=dict)


class MockCommandRunner(CommandRunner):
    """Command runner that answers from configured rules.

    Rules match on an argv prefix; the most recently added matching
    rule wins. Unmatched commands succeed with empty output. Shell
    strings are seen as ``["sh", "-c", cmd]``.
    """

    def __init__(self, context: ExecutionContext | None = None, target: TargetIdentity | None = None):
        target = target or TargetIdentity(user="tester", home=Path("/tmp"))
        context = context or ExecutionContext(invoking_user=target.user)
        super().__init__(context, target)
        self._rules: list[_Rule] = []
        self._calls: list[RecordedCall] = []

    @property
    def calls(self) -> list[RecordedCall]:
        return self._calls

    def commands(self) -> list[list[str]]:
        """argv of every call, in order."""
        return [call.argv for call in self._calls]

    def count(self, *prefix: str) -> int:
        """Number of calls whose argv starts with ``prefix``."""
        return sum(1 for argv in self.commands() if tuple(argv[: len(prefix)]) == prefix)

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Effect | None = None,
        times: int | None = None,
    ) -> None:
        """Answer commands starting with ``prefix``.

        Args:
            effect: Called with (argv, cwd) before answering, e.g. to
                create the files a real command would have written.
            times: Expire the rule after this many matches.
        """
        self._rules.append(_Rule(tuple(prefix), returncode, stdout, stderr, effect, times))

    def run(
        self,
        cmd: Sequence[str] | str,
        *,
        cwd: Path | str | None = None,
        env: Any = None,
        timeout: int = 300,
    ) -> CommandResult:
        argv = ["sh", "-c", cmd] if isinstance(cmd, str) else list(cmd)
        workdir = Path(cwd) if cwd is not None else None
        self._calls.append(RecordedCall(argv=argv, cwd=workdir, env=dict(env or {})))

        for rule in reversed(self._rules):
            if rule.matches(argv):
                if rule.times is not None:
                    rule.times -= 1
                if rule.effect is not None:
                    rule.effect(argv, workdir)
                return CommandResult(
                    command=" ".join(argv),
                    returncode=rule.returncode,
                    stdout=rule.stdout,
                    stderr=rule.stderr,
                )
        return CommandResult(command=" ".join(argv), returncode=0)

    def reset(self) -> None:
        self._rules.clear()
        self._calls.clear()


class StaticUserDatabase(UserDatabase):
    """In-memory user database."""

    def __init__(self, records: Sequence[UserRecord] = ()):
        self._records = list(records)

    def add(self, name: str, uid: int, home: Path | str, gid: int | None = None) -> UserRecord:
        record = UserRecord(name=name, uid=uid, gid=uid if gid is None else gid, home=Path(home), group=name)
        self._records.append(record)
        return record

    def lookup(self, name: str) -> UserRecord | None:
        return next((r for r in self._records if r.name == name), None)

    def lookup_uid(self, uid: int) -> UserRecord | None:
        return next((r for r in self._records if r.uid == uid), None)

    def all_users(self) -> list[UserRecord]:
        return list(self._records)


class MockAdapter(ResourceAdapter):
    """Adapter double for the reconciler.

    Reports a fixed presence and returns configured results per
    resource name; by default acquire creates the destination directory
    so the built-in verification passes.
    """

    def __init__(
        self,
        kind: ResourceKind = ResourceKind.DIRECTORY,
        presence: Presence = Presence.ABSENT,
        available: bool = True,
    ):
        self._kind = kind
        self.presence = presence
        self._available = available
        self._responses: dict[str, ReconciliationResult] = {}
        self._errors: dict[str, Exception] = {}
        self._call_log: list[tuple[str, str]] = []

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """(operation, resource name) pairs in call order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def is_available(self) -> bool:
        return self._available

    def set_response(self, name: str, result: ReconciliationResult) -> None:
        self._responses[name] = result

    def set_failure(self, name: str, detail: str = "Mock failure") -> None:
        self._responses[name] = ReconciliationResult.failure(name, self._kind, detail)

    def set_error(self, name: str, error: Exception) -> None:
        """Make operations on ``name`` raise ``error``."""
        self._errors[name] = error

    def inspect(self, resource: Resource, ctx: AdapterContext) -> Presence:
        self._call_log.append(("inspect", resource.name))
        return self.presence

    def acquire(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        self._call_log.append(("acquire", resource.name))
        self._maybe_raise(resource)
        if resource.name in self._responses:
            return self._responses[resource.name]
        resource.destination(ctx.home).mkdir(exist_ok=True)
        return ReconciliationResult.created(resource.name, self._kind, "[mock] acquired")

    def update(self, resource: Resource, ctx: AdapterContext) -> ReconciliationResult:
        self._call_log.append(("update", resource.name))
        self._maybe_raise(resource)
        if resource.name in self._responses:
            return self._responses[resource.name]
        return ReconciliationResult.skipped(resource.name, self._kind, "[mock] current")

    def _maybe_raise(self, resource: Resource) -> None:
        if resource.name in self._errors:
            raise self._errors[resource.name]

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()
        self._errors.clear()
