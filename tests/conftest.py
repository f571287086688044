"""Shared pytest fixtures for move-instance tests."""

from dataclasses import dataclass

import pytest

from move_instance.core.config_loader import MoverConfig
from move_instance.core.confirmation import OperatorPrompt
from move_instance.core.executor import CommandResult
from move_instance.core.migration import MigrationWorkflow

INSTANCE = "dns01.lan"
SOURCE_NODE = "xen01.lan"
SOURCE_MASTER = "ganeti01.lan"
DESTINATION_NODE = "kvm02.lan"
DESTINATION_MASTER = "kvmmaster.lan"
SOURCE_LV = "/dev/xenvg/0b6d1b1c-7c8e-4b1e-9f2a-1a2b3c4d5e6f.disk0"
DEST_MOUNT = "/mnt/tmp.Dest01"
SOURCE_MOUNT = "/mnt/tmp.Src01"
NEW_UUID = "5f0c2a4e-1d2b-4c3d-8e9f-0a1b2c3d4e5f"

INSTANCE_INFO = f"""\
Instance name: {INSTANCE}
UUID: 7d0e6c2a-4b7c-4c55-9d6a-2f4f1c8e0b11
Serial number: 7
Creation time: 2019-03-01 10:00:00
Modification time: 2021-05-04 11:00:00
State: configured to be up, actual state is up
  Nodes:
    - primary: {SOURCE_NODE}
      group: default (b1a2c3d4-0000-4000-8000-000000000001)
    - secondaries:
  Operating system: debootstrap+default
  Allocated network port: None
  Hypervisor: xen-pvm
  Hypervisor parameters:
    blockdev_prefix: default (sd)
    bootloader_path: default ()
    cpu_mask: default (all)
    initrd_path: default (/boot/initrd-3-xenU)
    kernel_args: default (ro)
    kernel_path: default (/boot/vmlinuz-3-xenU)
    root_path: default (/dev/xvda1)
    use_bootloader: default (False)
  Back-end parameters:
    always_failover: default (False)
    auto_balance: default (True)
    maxmem: 2048
    memory: default (2048)
    minmem: 2048
    spindle_use: default (1)
    vcpus: 4
  NICs:
    - nic/0:
      MAC: aa:00:00:35:d3:a1
      IP: 192.0.2.10
      mode: bridged
      link: br0
      vlan:
      network: None
    - nic/1:
      MAC: aa:00:00:35:d3:a2
      IP: None
      mode: bridged
      link: br-storage
    - nic/3:
      MAC: aa:00:00:35:d3:a4
      IP: None
      mode: bridged
      link: br-mgmt
  Disk template: plain
  Disks:
    - disk/0: plain, size 10.0G
      access mode: rw
      logical_id: xenvg/0b6d1b1c-7c8e-4b1e-9f2a-1a2b3c4d5e6f.disk0
      on primary: {SOURCE_LV} (253:0)
      name: None
"""

FSTAB = """\
# /etc/fstab: static file system information.
proc            /proc           proc    defaults        0       0
/dev/xvda1      /               xfs     defaults        0       1
/dev/xvda2      none            swap    sw              0       0
"""

DF_OUTPUT = f"""\
Filesystem       1B-blocks       Used  Available Use% Mounted on
/dev/mapper/x  10725883904 3221225472 7504658432  31% {SOURCE_MOUNT}
"""


@dataclass
class Call:
    host: str
    command: str
    input: str | None = None


@dataclass
class Reply:
    prefix: str
    host: str | None
    stdout: str = ""
    returncode: int = 0
    stderr: str = ""
    raises: BaseException | None = None


class FakeExecutor:
    """Records commands and answers them from scripted replies.

    A reply matches on command prefix (and host, when given). Replies added
    later win over earlier ones, so a test can override a default answer.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: list[Call] = []
        self.pipes: list[list[tuple[str, str]]] = []
        self.replies: list[Reply] = []
        self.pipe_error: BaseException | None = None

    def reply(
        self,
        prefix: str,
        stdout: str = "",
        returncode: int = 0,
        stderr: str = "",
        host: str | None = None,
        raises: BaseException | None = None,
    ) -> None:
        self.replies.append(Reply(prefix, host, stdout, returncode, stderr, raises))

    def execute(
        self,
        host,
        command,
        *,
        check=True,
        timeout=None,
        capture_output=True,
        input=None,
    ) -> CommandResult:
        self.calls.append(Call(host, command, input))
        reply = self._match(host, command)
        if reply is not None and reply.raises is not None:
            raise reply.raises

        result = CommandResult(
            returncode=reply.returncode if reply else 0,
            stdout=reply.stdout if reply else "",
            stderr=reply.stderr if reply else "",
            cmd=[command],
            host=host,
        )
        if check:
            result.check_returncode(command)
        return result

    def pipe(self, stages, *, timeout=None) -> None:
        self.pipes.append(list(stages))
        self.calls.append(Call("pipeline", " | ".join(command for _, command in stages)))
        if self.pipe_error is not None:
            raise self.pipe_error

    def _match(self, host, command) -> Reply | None:
        for reply in reversed(self.replies):
            if reply.host is not None and reply.host != host:
                continue
            if command.startswith(reply.prefix):
                return reply
        return None

    @property
    def commands(self) -> list[str]:
        return [call.command for call in self.calls]

    def ran(self, prefix: str, host: str | None = None) -> bool:
        return any(
            call.command.startswith(prefix) and (host is None or call.host == host)
            for call in self.calls
        )

    def index(self, prefix: str) -> int:
        for position, call in enumerate(self.calls):
            if call.command.startswith(prefix):
                return position
        raise AssertionError(f"no command starting with {prefix!r} was run")


class ScriptedPrompt(OperatorPrompt):
    """Operator prompt that answers from a fixed list instead of the terminal."""

    def __init__(self, *answers: str):
        self.answers = list(answers)
        self.questions: list[str] = []
        self.output: list[str] = []
        super().__init__(input_func=self._answer, output_func=self.output.append)

    def _answer(self, question: str) -> str:
        self.questions.append(question)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    @property
    def text(self) -> str:
        return "\n".join(self.output)


@pytest.fixture
def instance_info() -> str:
    """Sample ``gnt-instance info`` output for a Xen instance."""
    return INSTANCE_INFO


@pytest.fixture
def config() -> MoverConfig:
    """Configuration with defaults and no progress relay."""
    return MoverConfig(show_progress=False)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    """Executor scripted for a move of dns01.lan to kvm02.lan."""
    executor = FakeExecutor()
    executor.reply("gnt-instance list", stdout=f"{INSTANCE}\n")
    executor.reply("gnt-cluster getmaster", stdout=f"{DESTINATION_MASTER}\n")
    executor.reply(f"gnt-instance info {INSTANCE}", stdout=INSTANCE_INFO)
    executor.reply("mktemp -d", stdout=f"{DEST_MOUNT}\n", host=DESTINATION_NODE)
    executor.reply("mktemp -d", stdout=f"{SOURCE_MOUNT}\n", host=SOURCE_NODE)
    executor.reply("df -B1", stdout=DF_OUTPUT)
    executor.reply(f"cat {DEST_MOUNT}/etc/fstab", stdout=FSTAB)
    executor.reply("blkid", stdout=f"{NEW_UUID}\n")
    return executor


@pytest.fixture
def approving_prompt() -> ScriptedPrompt:
    """Operator approves the move and the removal."""
    return ScriptedPrompt("y", "yes")


@pytest.fixture
def workflow(config, fake_executor, approving_prompt) -> MigrationWorkflow:
    return MigrationWorkflow(
        config, fake_executor, prompt=approving_prompt, source_master=SOURCE_MASTER
    )
