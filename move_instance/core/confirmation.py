"""Operator prompts that gate destructive steps."""

from collections.abc import Callable

from ..models.instance import MigrationPlan
from ..utils import format_size

CONTINUE_ANSWERS = ("y", "yes")
REMOVE_ANSWER = "yes"


def format_summary(plan: MigrationPlan) -> str:
    """Human readable overview shown before anything is changed."""
    descriptor = plan.descriptor
    extra_networks = " ".join(descriptor.net_directives()) or "none"
    rows = [
        ("instance", descriptor.name),
        ("vcpus", descriptor.vcpus),
        ("net_queues", plan.net_queues),
        ("Memory", f"{descriptor.memory}M"),
        ("Disk Size", f"{descriptor.disk_size} bytes ({format_size(descriptor.disk_size)})"),
        ("Extra networks", extra_networks),
        ("Volume Group", descriptor.volume_group),
        ("logical volume", descriptor.logical_volume),
        ("kernel_path", descriptor.kernel_path or "none"),
        ("initrd_path", descriptor.initrd_path or "none"),
        ("Source Ganeti master", plan.source_master),
        ("Source node", descriptor.source_node),
        ("Destination Ganeti master", plan.destination_master),
        ("Destination node", plan.destination_node),
        ("Destination volume", plan.destination_device),
        ("Hypervisor", plan.hypervisor),
    ]
    width = max(len(label) for label, _ in rows)
    lines = ["#### Confirm the following looks correct:", ""]
    lines.extend(f"{label.ljust(width)} : {value}" for label, value in rows)
    return "\n".join(lines)


class OperatorPrompt:
    """Asks the operator yes/no questions on the terminal."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
    ):
        self.input_func = input_func
        self.output_func = output_func

    def _ask(self, question: str) -> str:
        try:
            return self.input_func(question).strip().lower()
        except EOFError:
            # No terminal to answer from counts as "no"
            self.output_func("")
            return ""

    def confirm_migration(self, plan: MigrationPlan) -> bool:
        """Show the plan and ask whether to go ahead (y/yes)."""
        self.output_func(format_summary(plan))
        self.output_func("")
        return self._ask("Continue moving instance (y/n)? ") in CONTINUE_ANSWERS

    def confirm_removal(self, plan: MigrationPlan) -> bool:
        """Only an explicit "yes" removes the original instance."""
        self.output_func(f"{plan.instance_name} is starting up, confirm you can access it")
        answer = self._ask(
            f"Would you like to remove {plan.renamed_instance} and its logical volume? (yes/no) "
        )
        return answer == REMOVE_ANSWER

    def notify(self, message: str) -> None:
        self.output_func(message)
