"""Main orchestrator for moving an instance to another node."""

import re
import shlex
import socket
from datetime import datetime
from typing import Any

import structlog

from ...constants import GNT_INSTANCE, LOCAL_HOST
from ...models.enums import MigrationState, PreflightFailure
from ...models.instance import MigrationPlan
from ..config_loader import MoverConfig
from ..confirmation import OperatorPrompt
from ..descriptor import DescriptorLoader, InstanceInfoParser
from ..exceptions import PreflightError, UserDeclined
from ..executor import RemoteExecutor
from ..fstab import BootConfigPatcher
from ..ledger import ResourceLedger
from ..preflight import PreflightValidator
from ..safety import MountSafety
from ..settings import COMMAND_TIMEOUT
from ..transfer import TarStreamTransfer
from ..volumes import VolumeManager, remove_mount_point_command, unmount_if_mounted_command

logger = structlog.get_logger()


def _gnt_instance(*args: str) -> str:
    return shlex.join([GNT_INSTANCE, *args])


def _sed_escape(text: str) -> str:
    return re.sub(r"([\\/.^$*\[\]])", r"\\\1", text)


def append_hosts_line_command(line: str, hosts_file: str) -> str:
    """Append the placeholder hosts entry on a line of its own."""
    path = shlex.quote(hosts_file)
    # Start a fresh line when the file lacks a trailing newline
    return f'[ -z "$(tail -c1 {path})" ] || echo >> {path}; echo {shlex.quote(line)} >> {path}'


def remove_hosts_line_command(line: str, hosts_file: str) -> str:
    """Undo for the placeholder hosts entry; removes exactly that line."""
    expression = f"/^{_sed_escape(line)}$/d"
    return f"sed -i {shlex.quote(expression)} {shlex.quote(hosts_file)}"


class MigrationWorkflow:
    """Moves one instance to a destination node, step by step.

    Every resource acquired on the way registers its undo with a
    ResourceLedger straight away, so any failure or interrupt releases
    exactly what was taken. Registering the new instance is the point of
    no return: it is never rolled back.
    """

    def __init__(
        self,
        config: MoverConfig,
        executor: RemoteExecutor,
        prompt: OperatorPrompt | None = None,
        source_master: str | None = None,
    ):
        self.config = config
        self.executor = executor
        self.prompt = prompt or OperatorPrompt()
        self.source_master = source_master or socket.getfqdn()
        self.logger = logger.bind(component="migration_workflow")

        # Initialize focused components
        self.preflight = PreflightValidator(executor)
        self.loader = DescriptorLoader(executor, InstanceInfoParser(config.max_extra_nics))
        self.volumes = VolumeManager(executor, MountSafety(config.export_dir))
        self.transfer = TarStreamTransfer(
            executor, show_progress=config.show_progress, progress_command=config.progress_command
        )
        self.boot_config = BootConfigPatcher(executor, self.volumes)

        self.state: MigrationState | None = None
        self.ledger: ResourceLedger | None = None
        self.volume_created = False

    def run(self, instance_name: str, destination_node: str) -> dict[str, Any]:
        """Validate, confirm with the operator, then move the instance.

        Raises:
            PreflightError: If the environment is not ready
            DescriptorUnavailable: If the instance cannot be described
            UserDeclined: If the operator does not approve the move
            RemoteExecutionError: If a step fails after mutation started
        """
        plan = self.prepare(instance_name, destination_node)
        if not self.prompt.confirm_migration(plan):
            raise UserDeclined("No changes made")
        return self.execute(plan)

    def prepare(self, instance_name: str, destination_node: str) -> MigrationPlan:
        """Run every read-only check and derive the plan."""
        destination_master = self.preflight.validate(instance_name, destination_node)
        descriptor = self.loader.load(instance_name)

        for host in (descriptor.source_node, destination_node):
            is_valid, error = self.transfer.validate_requirements(host)
            if not is_valid:
                raise PreflightError(PreflightFailure.TOOL_MISSING, error)

        plan = MigrationPlan.build(
            descriptor,
            source_master=self.source_master,
            destination_node=destination_node,
            destination_master=destination_master,
            config=self.config,
        )
        self._advance(MigrationState.VALIDATED)
        return plan

    def execute(self, plan: MigrationPlan) -> dict[str, Any]:
        """Carry out an approved plan."""
        self.logger.info(
            "Moving instance",
            instance=plan.instance_name,
            source_node=plan.descriptor.source_node,
            destination_node=plan.destination_node,
        )
        try:
            with ResourceLedger(self.executor) as ledger:
                self.ledger = ledger
                target = self._provision_destination(plan, ledger)
                self._quiesce_source(plan, ledger)
                source = self._mount_source(plan, ledger)
                self._copy_filesystem(plan, source, target)
                fstab_patched = self._patch_boot_config(plan, target)
                self._unmount(plan, source, target)
                self._register_instance(plan)
                removed = self._removal_decision(plan)
        except (Exception, KeyboardInterrupt):
            self._report_failure(plan)
            raise

        self._advance(MigrationState.DONE)
        return {
            "success": True,
            "instance": plan.instance_name,
            "destination_node": plan.destination_node,
            "destination_master": plan.destination_master,
            "fstab_patched": fstab_patched,
            "original_removed": removed,
        }

    def _provision_destination(self, plan: MigrationPlan, ledger: ResourceLedger) -> str:
        node = plan.destination_node
        self.logger.info("Preparing logical volume to receive data", node=node)
        self.volumes.create_logical_volume(
            node, plan.destination_volume_group, plan.destination_lv, plan.descriptor.disk_size
        )
        self.volume_created = True

        target = self.volumes.make_mount_point(node, self.config.export_dir)
        ledger.register(node, remove_mount_point_command(target), "remove destination mount point")

        self.volumes.make_filesystem(node, plan.destination_device, plan.filesystem_type)
        self.volumes.mount(node, plan.destination_device, target, plan.filesystem_type)
        ledger.register(node, unmount_if_mounted_command(target), "unmount destination volume")

        self.logger.info("Remote disk ready to receive data", node=node, target=target)
        self._advance(MigrationState.DISK_PROVISIONED)
        return target

    def _quiesce_source(self, plan: MigrationPlan, ledger: ResourceLedger) -> None:
        hosts_line = f"{self.config.placeholder_address} {plan.renamed_instance}"
        hosts_file = self.config.hosts_file
        self.logger.info("Adding placeholder hosts entry", entry=hosts_line, hosts_file=hosts_file)
        self.executor.execute(LOCAL_HOST, append_hosts_line_command(hosts_line, hosts_file))
        ledger.register(
            LOCAL_HOST,
            remove_hosts_line_command(hosts_line, hosts_file),
            "remove placeholder hosts entry",
        )
        self._advance(MigrationState.SOURCE_PREPARED)

        self.logger.info(
            "Shutting down instance",
            instance=plan.instance_name,
            at=datetime.now().strftime("%Y-%m-%dT%H:%M:%S"),
        )
        self.executor.execute(
            LOCAL_HOST,
            _gnt_instance("shutdown", plan.instance_name),
            capture_output=False,
            timeout=COMMAND_TIMEOUT,
        )
        self._advance(MigrationState.INSTANCE_SHUTDOWN)

        # No undo: renaming back is left to the operator
        self.logger.info("Renaming instance", instance=plan.instance_name, to=plan.renamed_instance)
        self.executor.execute(
            LOCAL_HOST,
            _gnt_instance("rename", "--no-ip-check", plan.instance_name, plan.renamed_instance),
            capture_output=False,
            timeout=COMMAND_TIMEOUT,
        )
        self._advance(MigrationState.INSTANCE_RENAMED)

    def _mount_source(self, plan: MigrationPlan, ledger: ResourceLedger) -> str:
        node = plan.descriptor.source_node
        self.logger.info("Preparing logical volume to be copied", node=node)

        source = self.volumes.make_mount_point(node, self.config.export_dir)
        ledger.register(node, remove_mount_point_command(source), "remove source mount point")

        self.volumes.mount(
            node,
            plan.descriptor.logical_volume,
            source,
            self.config.source_filesystem_type,
            read_only=True,
        )
        ledger.register(node, unmount_if_mounted_command(source), "unmount source volume")

        self.logger.info(
            "Mounted source volume", node=node, volume=plan.descriptor.logical_volume, at=source
        )
        self._advance(MigrationState.SOURCE_MOUNTED)
        return source

    def _copy_filesystem(self, plan: MigrationPlan, source: str, target: str) -> None:
        self.logger.info(
            "Copying filesystem",
            instance=plan.instance_name,
            destination=f"{plan.destination_node}:{plan.destination_device}",
        )
        self.transfer.transfer(plan.descriptor.source_node, plan.destination_node, source, target)
        self._advance(MigrationState.DATA_COPIED)

    def _patch_boot_config(self, plan: MigrationPlan, target: str) -> bool:
        patched = self.boot_config.patch(plan.destination_node, target, plan.destination_device)
        self._advance(MigrationState.CONFIG_PATCHED)
        return patched

    def _unmount(self, plan: MigrationPlan, source: str, target: str) -> None:
        self.logger.info("Unmounting volumes", source=source, target=target)
        self.volumes.unmount(plan.destination_node, target)
        self.volumes.unmount(plan.descriptor.source_node, source)
        self._advance(MigrationState.UNMOUNTED)

    def registration_command(self, plan: MigrationPlan) -> str:
        """``gnt-instance add`` command that adopts the copied volume."""
        return _gnt_instance(
            "add",
            "-t", plan.disk_template,
            "--disk", f"0:adopt={plan.destination_lv},vg={plan.destination_volume_group}",
            *plan.descriptor.net_directives(),
            "-B", plan.backend_params(),
            "-H", plan.hypervisor_params(),
            "-o", plan.os_type,
            "-n", plan.destination_node,
            plan.instance_name,
        )

    def _register_instance(self, plan: MigrationPlan) -> None:
        self.logger.info(
            "Adding instance",
            instance=plan.instance_name,
            node=plan.destination_node,
            master=plan.destination_master,
        )
        self.executor.execute(
            plan.destination_master,
            self.registration_command(plan),
            capture_output=False,
            timeout=COMMAND_TIMEOUT,
        )
        self._advance(MigrationState.INSTANCE_REGISTERED)

    def _removal_decision(self, plan: MigrationPlan) -> bool:
        self._advance(MigrationState.AWAITING_REMOVAL_DECISION)
        remove_command = _gnt_instance("remove", "-f", plan.renamed_instance)

        if not self.prompt.confirm_removal(plan):
            self.logger.info("Keeping original instance", instance=plan.renamed_instance)
            self.prompt.notify(f"Not removing {plan.renamed_instance} from {plan.source_master}")
            self.prompt.notify(f"To remove manually run the following on {plan.source_master}")
            self.prompt.notify(remove_command)
            return False

        self.logger.info(
            "Removing original instance", instance=plan.renamed_instance, node=plan.source_master
        )
        self.executor.execute(
            LOCAL_HOST, remove_command, capture_output=False, timeout=COMMAND_TIMEOUT
        )
        return True

    def _report_failure(self, plan: MigrationPlan) -> None:
        """Tell the operator what was left behind on purpose."""
        state = self.state or MigrationState.VALIDATED
        self.logger.error("Move did not complete", instance=plan.instance_name, state=state.value)

        if state.reached(MigrationState.INSTANCE_REGISTERED):
            self.prompt.notify(
                f"{plan.instance_name} is registered on {plan.destination_node} and was left "
                f"running; {plan.renamed_instance} is still defined on {plan.source_master}."
            )
            return

        if self.volume_created:
            self.prompt.notify(
                f"Logical volume {plan.destination_device} is left on {plan.destination_node}; "
                f"remove it with: lvremove -y {plan.destination_volume_group}/{plan.destination_lv}"
            )
        if state.reached(MigrationState.INSTANCE_RENAMED):
            rename_back = _gnt_instance(
                "rename", "--no-ip-check", plan.renamed_instance, plan.instance_name
            )
            self.prompt.notify(
                f"{plan.instance_name} was renamed to {plan.renamed_instance}; "
                f"to bring it back run: {rename_back}"
                f" && {_gnt_instance('startup', plan.instance_name)}"
            )
        elif state.reached(MigrationState.INSTANCE_SHUTDOWN):
            self.prompt.notify(
                f"{plan.instance_name} was shut down; start it again with: "
                f"{_gnt_instance('startup', plan.instance_name)}"
            )

    def _advance(self, state: MigrationState) -> None:
        self.state = state
        self.logger.debug("Migration state changed", state=state.value)
