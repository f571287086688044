"""Instance configuration loading from ``gnt-instance info`` output."""

import re
import shlex

import structlog
from pydantic import ValidationError

from ..constants import (
    GNT_INSTANCE,
    INFO_FIRST_DISK,
    INFO_INITRD_PATH,
    INFO_KERNEL_PATH,
    INFO_LINK,
    INFO_MAXMEM,
    INFO_NIC_PREFIX,
    INFO_ON_PRIMARY,
    INFO_PRIMARY_NODE,
    INFO_VCPUS,
    LOCAL_HOST,
    MAX_EXTRA_NICS,
)
from ..models.instance import InstanceDescriptor, NetworkLink
from ..utils import parse_size_bytes, parse_unit_mib
from .exceptions import DescriptorUnavailable, RemoteExecutionError
from .executor import RemoteExecutor
from .settings import QUERY_TIMEOUT

logger = structlog.get_logger()

# Inherited parameters are shown as "default (<value>)"
_DEFAULT_VALUE = re.compile(r"^default \((.*)\)$")
_NIC_HEADER = re.compile(rf"^{re.escape(INFO_NIC_PREFIX)}(\d+)$")
_EMPTY_VALUES = ("", "None")


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _split(line: str) -> tuple[str, str] | None:
    """Split an info line into label and value."""
    stripped = line.strip()
    if ":" not in stripped:
        return None
    label, _, value = stripped.partition(":")
    return label.strip(), value.strip()


def _unwrap_default(value: str) -> str:
    match = _DEFAULT_VALUE.match(value)
    return match.group(1) if match else value


class InstanceInfoParser:
    """Translates the text of ``gnt-instance info`` into an InstanceDescriptor.

    Each scalar field comes from the first line carrying its label. Extra
    interfaces come from the ``- nic/<n>:`` blocks for n in 1..max_nics.
    """

    def __init__(self, max_nics: int = MAX_EXTRA_NICS):
        self.max_nics = max_nics
        self.logger = logger.bind(component="instance_info_parser")

    def parse(self, instance_name: str, text: str) -> InstanceDescriptor:
        """Parse info output for one instance.

        Raises:
            DescriptorUnavailable: If a mandatory field is missing or malformed
        """
        fields = self._scalar_fields(text)

        source_node = self._require(fields, INFO_PRIMARY_NODE).split()[0]
        logical_volume = self._require(fields, INFO_ON_PRIMARY).split()[0]
        disk_line = self._require(fields, INFO_FIRST_DISK)

        try:
            vcpus = int(_unwrap_default(self._require(fields, INFO_VCPUS)))
            memory = parse_unit_mib(_unwrap_default(self._require(fields, INFO_MAXMEM)))
            disk_size = parse_size_bytes(self._disk_size_text(disk_line))
        except ValueError as e:
            raise DescriptorUnavailable(f"Malformed instance info for {instance_name}: {e}") from e

        try:
            return InstanceDescriptor(
                name=instance_name,
                source_node=source_node,
                vcpus=vcpus,
                memory=memory,
                disk_size=disk_size,
                logical_volume=logical_volume,
                volume_group=self._volume_group(logical_volume),
                kernel_path=self._optional_path(fields, INFO_KERNEL_PATH),
                initrd_path=self._optional_path(fields, INFO_INITRD_PATH),
                network_links=tuple(self.parse_network_links(text)),
            )
        except ValidationError as e:
            raise DescriptorUnavailable(f"Invalid instance info for {instance_name}: {e}") from e

    def parse_network_links(self, text: str) -> list[NetworkLink]:
        """Collect the link of every present interface block nic/1 .. nic/max_nics."""
        links: dict[int, str | None] = {}
        current: int | None = None
        header_indent = 0

        for line in text.splitlines():
            if not line.strip():
                continue
            parts = _split(line)
            label = parts[0] if parts else line.strip()

            header = _NIC_HEADER.match(label)
            if header:
                index = int(header.group(1))
                current = index if 1 <= index <= self.max_nics else None
                header_indent = _indent(line)
                if current is not None:
                    links.setdefault(current, None)
                continue

            if current is None:
                continue
            # A sibling list item or a shallower line closes the block
            if _indent(line) <= header_indent or label.startswith("- "):
                current = None
                continue
            if label == INFO_LINK and parts and links.get(current) is None:
                links[current] = parts[1]

        result = []
        for index in sorted(links):
            link = links[index]
            if link in _EMPTY_VALUES or link is None:
                self.logger.warning("Interface has no link, skipping", nic=index)
                continue
            result.append(NetworkLink(index=index, link=link))
        return result

    def _scalar_fields(self, text: str) -> dict[str, str]:
        fields: dict[str, str] = {}
        for line in text.splitlines():
            parts = _split(line)
            if parts is None:
                continue
            label, value = parts
            fields.setdefault(label, value)
        return fields

    def _require(self, fields: dict[str, str], label: str) -> str:
        value = fields.get(label, "")
        if value in _EMPTY_VALUES:
            raise DescriptorUnavailable(f"Instance info has no value for '{label}'")
        return value

    def _optional_path(self, fields: dict[str, str], label: str) -> str:
        value = _unwrap_default(fields.get(label, ""))
        return "" if value in _EMPTY_VALUES else value

    @staticmethod
    def _disk_size_text(disk_line: str) -> str:
        # "plain, size 10.0G"
        _, found, size = disk_line.partition("size ")
        if not found:
            raise ValueError(f"no size in disk line '{disk_line}'")
        return size.strip()

    @staticmethod
    def _volume_group(logical_volume: str) -> str:
        # /dev/xenvg/<uuid>.disk0 -> /dev/xenvg
        parts = logical_volume.split("/")
        if len(parts) < 4 or parts[0] != "":
            raise DescriptorUnavailable(f"Unexpected logical volume path '{logical_volume}'")
        return "/".join(parts[:3])


class DescriptorLoader:
    """Queries the local Ganeti master for an instance's configuration."""

    def __init__(self, executor: RemoteExecutor, parser: InstanceInfoParser | None = None):
        self.executor = executor
        self.parser = parser or InstanceInfoParser()
        self.logger = logger.bind(component="descriptor_loader")

    def load(self, instance_name: str) -> InstanceDescriptor:
        """Describe ``instance_name``.

        Raises:
            DescriptorUnavailable: If Ganeti cannot describe the instance here
        """
        command = f"{GNT_INSTANCE} info {shlex.quote(instance_name)}"
        try:
            result = self.executor.execute(LOCAL_HOST, command, timeout=QUERY_TIMEOUT)
        except RemoteExecutionError as e:
            raise DescriptorUnavailable(
                f"Unable to describe {instance_name}, run this on the Ganeti master "
                f"of the instance: {e}"
            ) from e

        descriptor = self.parser.parse(instance_name, result.stdout)
        self.logger.info(
            "Loaded instance configuration",
            instance=descriptor.name,
            source_node=descriptor.source_node,
            vcpus=descriptor.vcpus,
            memory=descriptor.memory,
            disk_size=descriptor.disk_size,
            extra_nics=len(descriptor.network_links),
        )
        return descriptor
