"""Pre-mutation checks run before an instance is touched."""

import shlex

import structlog

from ..constants import GNT_CLUSTER, GNT_INSTANCE, LOCAL_HOST
from ..models.enums import PreflightFailure
from .exceptions import PreflightError, RemoteExecutionError
from .executor import RemoteExecutor
from .settings import PROBE_TIMEOUT, QUERY_TIMEOUT

logger = structlog.get_logger()


class PreflightValidator:
    """Confirms the run can succeed before any state is changed."""

    def __init__(self, executor: RemoteExecutor):
        self.executor = executor
        self.logger = logger.bind(component="preflight")

    def validate(self, instance_name: str, destination_node: str) -> str:
        """Check the control node and the destination side.

        Args:
            instance_name: Instance to move
            destination_node: Node that will run the new instance

        Returns:
            Hostname of the Ganeti master that owns the destination node

        Raises:
            PreflightError: If any check fails
        """
        self.check_source_master(instance_name)

        if not self.is_reachable(destination_node):
            raise PreflightError(
                PreflightFailure.DESTINATION_UNREACHABLE, f"unable to ssh {destination_node}"
            )

        destination_master = self.find_master(destination_node)
        if not destination_master:
            raise PreflightError(
                PreflightFailure.DESTINATION_MASTER_UNREACHABLE,
                f"{destination_node} did not report its Ganeti master",
            )

        if not self.is_reachable(destination_master):
            raise PreflightError(
                PreflightFailure.DESTINATION_MASTER_UNREACHABLE,
                f"unable to ssh {destination_master}",
            )

        self.logger.info(
            "Preflight checks passed",
            instance=instance_name,
            destination_node=destination_node,
            destination_master=destination_master,
        )
        return destination_master

    def check_source_master(self, instance_name: str) -> None:
        """The instance must be known to the cluster this host is master of."""
        command = f"{GNT_INSTANCE} list --no-headers -o name {shlex.quote(instance_name)}"
        try:
            result = self.executor.execute(
                LOCAL_HOST, command, check=False, timeout=QUERY_TIMEOUT
            )
        except RemoteExecutionError as e:
            raise PreflightError(PreflightFailure.NOT_ON_SOURCE_MASTER, str(e)) from e

        listed = result.stdout.split()
        if not result.success or instance_name not in listed:
            raise PreflightError(
                PreflightFailure.NOT_ON_SOURCE_MASTER,
                f"please run this on the Ganeti master of {instance_name}",
            )

    def is_reachable(self, host: str) -> bool:
        """True when a no-op command succeeds on ``host`` over SSH."""
        try:
            result = self.executor.execute(host, "exit 0", check=False, timeout=PROBE_TIMEOUT)
        except RemoteExecutionError as e:
            self.logger.warning("Host probe failed", host=host, error=str(e))
            return False
        return result.success

    def find_master(self, node: str) -> str | None:
        """Ask ``node`` which host is its cluster master."""
        try:
            result = self.executor.execute(
                node, f"{GNT_CLUSTER} getmaster", check=False, timeout=QUERY_TIMEOUT
            )
        except RemoteExecutionError as e:
            self.logger.warning("Master lookup failed", node=node, error=str(e))
            return None
        if not result.success:
            return None
        master = result.stdout.strip()
        return master.splitlines()[-1].strip() if master else None
