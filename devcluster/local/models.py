"""
Data models shared by the configuration layer and the supervisor.

LaunchSpecs describe what to start, ProcessHandles describe what was started,
and the result objects describe what happened to each of them.
"""
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

READINESS_KINDS = ("tcp", "http", "log")


@dataclass(frozen=True)
class ReadinessProbe:
    """A check that tells whether a freshly spawned node is ready."""
    kind: str       # "tcp" | "http" | "log"
    target: str     # host:port, URL or log marker text
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.kind not in READINESS_KINDS:
            raise ValueError(
                f"Unknown readiness probe kind '{self.kind}'. Expected one of: {', '.join(READINESS_KINDS)}"
            )
        if self.timeout <= 0:
            raise ValueError(f"Readiness timeout must be positive, got {self.timeout}.")
        if self.kind == "tcp":
            host, _, port = self.target.rpartition(":")
            if not host or not port.isdigit():
                raise ValueError(f"TCP readiness target must look like 'host:port', got '{self.target}'.")

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_timeout: float) -> "ReadinessProbe":
        if not isinstance(data, dict):
            raise ValueError(f"Readiness probe definition must be a mapping, got {data!r}.")
        try:
            return cls(
                kind=str(data["kind"]).lower(),
                target=str(data["target"]),
                timeout=float(data.get("timeout", default_timeout)),
            )
        except KeyError as e:
            raise ValueError(f"Readiness probe definition is missing {e}.") from None
        except TypeError as e:
            raise ValueError(f"Invalid readiness probe definition {data!r}: {e}") from None


@dataclass(frozen=True)
class LaunchSpec:
    """
    One external process to start: an executable and the config file it is
    given with `-c`.
    """
    executable_path: Path
    config_path: Path
    name: str = ""
    readiness: Optional[ReadinessProbe] = None

    def __post_init__(self) -> None:
        # Frozen dataclass, so derived defaults go through object.__setattr__.
        object.__setattr__(self, "executable_path", Path(self.executable_path))
        object.__setattr__(self, "config_path", Path(self.config_path))
        if not self.name:
            object.__setattr__(self, "name", self.config_path.stem)

    def command(self) -> List[str]:
        """Returns the exact argument vector used to spawn this spec."""
        return [str(self.executable_path), "-c", str(self.config_path)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Path, default_timeout: float = 30.0) -> "LaunchSpec":
        """
        Builds a LaunchSpec from a settings/overrides dictionary.

        Relative paths are resolved against `base_dir`.

        :param data: A mapping with 'executable', 'config' and optional 'name'/'readiness'.
        :param base_dir: The directory relative paths are anchored to.
        :param default_timeout: Readiness timeout used when the probe omits one.
        :raises ValueError: If a required key is missing or has the wrong type.
        """
        try:
            executable = Path(data["executable"])
            config = Path(data["config"])
        except KeyError as e:
            raise ValueError(f"Launch spec definition is missing {e}: {data!r}") from None
        except TypeError as e:
            raise ValueError(f"Invalid path in launch spec definition {data!r}: {e}") from None

        readiness = data.get("readiness")
        return cls(
            executable_path=executable if executable.is_absolute() else base_dir / executable,
            config_path=config if config.is_absolute() else base_dir / config,
            name=str(data.get("name", "")),
            readiness=ReadinessProbe.from_dict(readiness, default_timeout) if readiness else None,
        )


@dataclass(frozen=True)
class ProcessHandle:
    """
    A process spawned by the supervisor. The (pid, create_time) pair
    identifies it even if the pid is later reused by the OS.
    """
    name: str
    pid: int
    create_time: float
    command: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "pid": self.pid,
            "create_time": self.create_time,
            "command": list(self.command),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessHandle":
        return cls(
            name=str(data["name"]),
            pid=int(data["pid"]),
            create_time=float(data["create_time"]),
            command=tuple(data.get("command", ())),
        )


class LaunchOutcome(str, Enum):
    STARTED = "started"
    SPAWN_FAILED = "spawn_failed"
    NOT_READY = "not_ready"
    EXITED_EARLY = "exited_early"


class StopOutcome(str, Enum):
    TERMINATED = "terminated"
    KILLED = "killed"
    NOT_FOUND = "not_found"
    ALREADY_EXITED = "already_exited"
    PERMISSION_DENIED = "permission_denied"


@dataclass
class LaunchResult:
    spec: LaunchSpec
    outcome: LaunchOutcome
    handle: Optional[ProcessHandle] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is LaunchOutcome.STARTED


@dataclass
class StopResult:
    pid: int
    name: str
    outcome: StopOutcome
    matched_by: str          # "handle" or "pattern:<substring>"
    cmdline: Tuple[str, ...] = field(default_factory=tuple)
    detail: str = ""
