"""batchdisk CLI for attaching scratch storage to batch jobs.

Usage:
    batchdisk ebsmount -m /mnt/scratch -s 500 -n 2
    batchdisk localmount /mnt/local /dev/xvdb /dev/xvdc
    batchdisk efsmount fs-XXXX.efs.us-east-1.amazonaws.com:/ /mnt/efs
    batchdisk ddv vol-0123 vol-4567

``ebsmount`` prints the created volume ids, space separated, on stdout so a
job wrapper can capture them and pass them to ``ddv`` on exit. Everything
else (progress, warnings, errors) goes to stderr.
"""

import sys

import click
from rich.console import Console
from rich.markup import escape

from .config.constants import (
  DEFAULT_FS_TYPE,
  DEFAULT_VOLUME_SIZE_GIB,
  DEFAULT_VOLUME_TYPE,
)
from .exceptions import BatchDiskError
from .logger import get_logger, log_app_error
from .models.volume import VOLUME_SPECS, VolumeRequest
from .operations.aws.teardown import teardown_volumes
from .operations.provisioning import mount_provisioned, provision
from .operations.storage.aggregation import aggregate
from .operations.storage.efs import mount_efs

logger = get_logger(__name__)
console = Console(stderr=True)


def _fail(error: BatchDiskError, action: str) -> None:
  log_app_error(error, component="cli", action=action)
  console.print(f"[red]Error:[/red] {escape(error.message)}")
  sys.exit(1)


@click.group()
def cli():
  """Attach, aggregate and tear down scratch storage for batch jobs."""


@cli.command("ebsmount")
@click.option(
  "--size",
  "-s",
  default=DEFAULT_VOLUME_SIZE_GIB,
  show_default=True,
  help="Total size in GiB, split evenly across the volumes",
)
@click.option("--mount-point", "-m", required=True, help="Directory to mount on")
@click.option(
  "--volume-type",
  "-v",
  default=DEFAULT_VOLUME_TYPE,
  show_default=True,
  help=f"One of {'/'.join(VOLUME_SPECS)}",
)
@click.option(
  "--fs-type", "-t", default=DEFAULT_FS_TYPE, show_default=True, help="File system type"
)
@click.option("--iops", "-i", default=0, help="Provisioned iops, io1 only")
@click.option(
  "--count", "-n", default=1, show_default=True, help="Number of volumes to stripe"
)
@click.option(
  "--keep", "-k", is_flag=True, help="Don't delete the volumes on instance termination"
)
def ebsmount(size, mount_point, volume_type, fs_type, iops, count, keep):
  """Create, attach and mount EBS volumes."""
  try:
    request = VolumeRequest.build(
      size,
      volume_type=volume_type,
      iops=iops,
      count=count,
      keep_on_termination=keep,
      fs_type=fs_type,
    )
    result = provision(request, mount_point)
  except BatchDiskError as e:
    _fail(e, "ebsmount")
    return

  # Ids reach stdout before mounting, whether or not the mount succeeds
  click.echo(" ".join(result.volume_ids))
  try:
    device_set = mount_provisioned(request, result, mount_point)
  except BatchDiskError as e:
    _fail(e, "ebsmount")
    return

  console.print(
    f"[green]✓[/green] mounted {', '.join(device_set.used_devices)} at {mount_point}"
  )


@cli.command("localmount")
@click.argument("mount_prefix")
@click.argument("devices", nargs=-1, required=True)
@click.option(
  "--fs-type", "-t", default=DEFAULT_FS_TYPE, show_default=True, help="File system type"
)
def localmount(mount_prefix, devices, fs_type):
  """Mount unused instance store DEVICES, striped when mdadm is available."""
  try:
    device_set = aggregate(list(devices), mount_prefix, fs_type=fs_type)
  except BatchDiskError as e:
    _fail(e, "localmount")
    return

  for mount_point in device_set.mount_points:
    console.print(f"[green]✓[/green] mounted {mount_point}")


@cli.command("efsmount")
@click.argument("efs")
@click.argument("mount_point")
@click.option("--options", "-o", default="", help="Extra NFS mount options")
def efsmount(efs, mount_point, options):
  """Mount an EFS file system, e.g. fs-XXXX.efs.us-east-1.amazonaws.com:/"""
  try:
    mount_efs(efs, mount_point, options)
  except BatchDiskError as e:
    _fail(e, "efsmount")
    return

  console.print(f"[green]✓[/green] mounted {efs} at {mount_point}")


@cli.command("ddv")
@click.argument("volume_ids", nargs=-1, required=True)
def ddv(volume_ids):
  """Detach and delete VOLUME_IDS."""
  results = teardown_volumes(list(volume_ids))

  failed = {volume_id: e for volume_id, e in results.items() if e is not None}
  logger.info(
    f"teardown finished: {len(results) - len(failed)} deleted, {len(failed)} failed"
  )
  for volume_id, error in failed.items():
    message = error.message if isinstance(error, BatchDiskError) else str(error)
    console.print(f"[red]Error:[/red] {volume_id}: {escape(message)}")
  if failed:
    sys.exit(1)

  console.print(f"[green]✓[/green] deleted {len(results)} volume(s)")


if __name__ == "__main__":
  cli()
