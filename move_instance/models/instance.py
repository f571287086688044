"""Instance and plan models."""

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DESTINATION_LV_SUFFIX, MAX_NET_QUEUES, RENAMED_SUFFIX


class NetworkLink(BaseModel):
    """An extra network interface carried over to the new instance."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)
    link: str = Field(min_length=1)

    @property
    def directive(self) -> str:
        """Value for ``gnt-instance add --net``."""
        return f"{self.index}:link={self.link}"


class InstanceDescriptor(BaseModel):
    """Snapshot of the source instance taken before the move starts."""

    model_config = ConfigDict(frozen=True)

    name: str
    source_node: str
    vcpus: int = Field(ge=0)
    memory: int = Field(ge=0, description="Maximum memory in MiB")
    disk_size: int = Field(gt=0, description="Size of disk/0 in bytes")
    logical_volume: str
    volume_group: str
    kernel_path: str = ""
    initrd_path: str = ""
    network_links: tuple[NetworkLink, ...] = ()

    @property
    def volume_group_name(self) -> str:
        """Bare volume group name, e.g. ``xenvg`` for ``/dev/xenvg``."""
        return self.volume_group.rstrip("/").rsplit("/", 1)[-1]

    def net_directives(self) -> list[str]:
        """``--net`` arguments for every carried-over interface."""
        args: list[str] = []
        for nic in self.network_links:
            args.extend(["--net", nic.directive])
        return args


def net_queue_count(vcpus: int, limit: int = MAX_NET_QUEUES) -> int:
    """Spread NIC interrupts over the vcpus, up to ``limit`` queues."""
    return min(vcpus, limit)


class MigrationPlan(BaseModel):
    """Everything the workflow needs, derived once from the descriptor."""

    model_config = ConfigDict(frozen=True)

    descriptor: InstanceDescriptor
    source_master: str
    destination_node: str
    destination_master: str
    destination_volume_group: str
    net_queues: int
    renamed_suffix: str = RENAMED_SUFFIX
    filesystem_type: str
    hypervisor: str
    os_type: str
    disk_template: str

    @classmethod
    def build(
        cls,
        descriptor: InstanceDescriptor,
        *,
        source_master: str,
        destination_node: str,
        destination_master: str,
        config,
    ) -> "MigrationPlan":
        """Derive a plan from a descriptor and the loaded configuration."""
        return cls(
            descriptor=descriptor,
            source_master=source_master,
            destination_node=destination_node,
            destination_master=destination_master,
            destination_volume_group=(
                config.destination_volume_group or descriptor.volume_group_name
            ),
            net_queues=net_queue_count(descriptor.vcpus, config.max_net_queues),
            renamed_suffix=config.renamed_suffix,
            filesystem_type=config.filesystem_type,
            hypervisor=config.hypervisor,
            os_type=config.os_type,
            disk_template=config.disk_template,
        )

    @property
    def instance_name(self) -> str:
        return self.descriptor.name

    @property
    def renamed_instance(self) -> str:
        return f"{self.descriptor.name}{self.renamed_suffix}"

    @property
    def destination_lv(self) -> str:
        return f"{self.descriptor.name}{DESTINATION_LV_SUFFIX}"

    @property
    def destination_device(self) -> str:
        return f"/dev/{self.destination_volume_group}/{self.destination_lv}"

    def hypervisor_params(self) -> str:
        """``-H`` argument for the new instance."""
        params = []
        if self.descriptor.initrd_path:
            params.append(f"initrd_path={self.descriptor.initrd_path}")
        if self.descriptor.kernel_path:
            params.append(f"kernel_path={self.descriptor.kernel_path}")
        params.append(f"virtio_net_queues={self.net_queues}")
        return f"{self.hypervisor}:{','.join(params)}"

    def backend_params(self) -> str:
        """``-B`` argument for the new instance."""
        return f"memory={self.descriptor.memory},vcpus={self.descriptor.vcpus}"
