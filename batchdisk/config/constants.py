"""
Static constants configuration.

This module contains the operational constants (timeouts, limits, retry
budgets) and the fixed device/region tables that don't change based on
environment.
"""

# =============================================================================
# VOLUME REQUEST LIMITS
# =============================================================================

# Number of volumes a single request may stripe together
MIN_VOLUME_COUNT = 1
MAX_VOLUME_COUNT = 16

# Provisioned IOPS (io1) limits
MIN_IOPS = 100
MAX_IOPS = 20000
MAX_IOPS_PER_GIB = 50
DEFAULT_IOPS_PER_GIB = 45

DEFAULT_VOLUME_SIZE_GIB = 200
DEFAULT_VOLUME_TYPE = "gp2"
DEFAULT_FS_TYPE = "ext4"

# =============================================================================
# CONTROL PLANE POLLING
# =============================================================================

# wait_for_status defaults (seconds)
STATUS_POLL_MAX_ATTEMPTS = 30
STATUS_POLL_INTERVAL = 4
STATUS_POLL_INITIAL_DELAY = 5
STATUS_POLL_ESCALATE_AFTER = 10

# Rate limit retry on create (milliseconds, as used by retrying)
RATE_LIMIT_WAIT_MIN_MS = 10_000
RATE_LIMIT_WAIT_MAX_MS = 100_000
RATE_LIMIT_MAX_ATTEMPTS = 2

# Pause after each successful create to avoid provider throttling
INTER_CREATE_DELAY = 3

# Attach race retry
ATTACH_ATTEMPTS_PER_PREFIX = 6
ATTACH_BACKOFF_BASE = 3

# =============================================================================
# HOST DEVICES
# =============================================================================

# http://docs.aws.amazon.com/AWSEC2/latest/UserGuide/device_naming.html
DEVICE_LETTERS = "abcdefghijklmnopqrstuvwxyz"
DEVICE_PREFIXES = ("/dev/sd", "/dev/xvd")

DEVICE_WAIT_ATTEMPTS = 30
DEVICE_WAIT_INTERVAL = 1

RAID_DEVICE_TEMPLATE = "/dev/md{index}"
RAID_DEVICE_RANGE = 20

MOUNT_TABLE_PATH = "/proc/mounts"
MOUNT_DIR_MODE = 0o777

# Read-ahead (512-byte sectors) for throughput optimized and cold HDD volumes
HDD_READ_AHEAD_SECTORS = 2048

# =============================================================================
# EFS
# =============================================================================

# https://docs.aws.amazon.com/efs/latest/ug/mounting-fs-mount-cmd-general.html
EFS_MOUNT_OPTIONS = "rsize=1048576,wsize=1048576,hard,timeo=600,retrans=2"

# =============================================================================
# INSTANCE METADATA
# =============================================================================

METADATA_IDENTITY_URL = (
  "http://169.254.169.254/latest/dynamic/instance-identity/document"
)
METADATA_TIMEOUT = 5

# =============================================================================
# TEARDOWN
# =============================================================================

# Regions probed in order when locating a volume for deletion
PROBE_REGIONS = (
  "us-east-1",
  "us-east-2",
  "us-west-1",
  "us-west-2",
  "ap-south-1",
  "ap-northeast-2",
  "ap-northeast-1",
  "ca-central-1",
  "cn-north-1",
  "eu-west-1",
  "eu-west-2",
  "sa-east-1",
  "us-gov-west-1",
  "ap-southeast-1",
  "ap-southeast-2",
)

VOLUME_NAME_PREFIX = "batchdisk"
