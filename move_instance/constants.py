"""Centralized constants for move-instance to eliminate duplicate strings."""

# Host marker for commands run on the control node itself
LOCAL_HOST = "local"

# SSH Configuration Options
SSH_STRICT_HOST_KEY_CHECKING = "StrictHostKeyChecking={0}"
SSH_CONNECT_TIMEOUT = "ConnectTimeout={0}"
SSH_BATCH_MODE = "BatchMode=yes"
SSH_ERROR_LOG_LEVEL = "LogLevel=ERROR"
SSH_SERVER_ALIVE = "ServerAliveInterval=30"

# Ganeti commands
GNT_INSTANCE = "gnt-instance"
GNT_CLUSTER = "gnt-cluster"

# Instance info labels (gnt-instance info)
INFO_PRIMARY_NODE = "- primary"
INFO_KERNEL_PATH = "kernel_path"
INFO_INITRD_PATH = "initrd_path"
INFO_VCPUS = "vcpus"
INFO_MAXMEM = "maxmem"
INFO_FIRST_DISK = "- disk/0"
INFO_ON_PRIMARY = "on primary"
INFO_NIC_PREFIX = "- nic/"
INFO_LINK = "link"

# Interfaces beyond the first that are carried over (nic/1 .. nic/8)
MAX_EXTRA_NICS = 8
# virtio-net queues are capped at 8
MAX_NET_QUEUES = 8

# Destination volume naming
DESTINATION_LV_SUFFIX = ".disk0"
RENAMED_SUFFIX = "_original"

# Hosts file placeholder so the renamed instance name resolves
PLACEHOLDER_ADDRESS = "127.0.0.73"
HOSTS_FILE = "/etc/hosts"

# Filesystem handling
DEFAULT_EXPORT_DIR = "/mnt"
DEFAULT_FILESYSTEM = "xfs"
MKFS_FORCE_FLAGS = {
    "xfs": "-f",
    "btrfs": "-f",
    "ext4": "-F",
    "ext3": "-F",
}
FSTAB_PATH = "etc/fstab"
PROC_MOUNTS = "/proc/mounts"

# Instance registration defaults
DEFAULT_DISK_TEMPLATE = "plain"
DEFAULT_HYPERVISOR = "kvm"
DEFAULT_OS_TYPE = "image+bullseye"

# Transfer
PROGRESS_COMMAND = "pv"

# Environment Variables
ENV_CONFIG = "MOVE_INSTANCE_CONFIG"
ENV_LOG_DIR = "MOVE_INSTANCE_LOG_DIR"
ENV_LOG_LEVEL = "LOG_LEVEL"

# Logging
LOG_FILE_NAME = "move_instance.log"
LOG_INIT_MESSAGE = "Logging system initialized"

# Exit statuses
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130
