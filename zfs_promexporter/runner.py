import logging
import os
import subprocess
from typing import NamedTuple

from .errors import CommandFailed, CommandTimeout

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class CommandResult(NamedTuple):
    stdout: str
    returncode: int


def run(cmd: tuple[str, ...], timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
    """Run a zpool command with the C locale and a bounded run time.

    Output of a command that exits non-zero is still returned when there is any,
    so the caller can parse what it got.

    Raises:
        CommandTimeout: The command did not exit within timeout seconds.
        CommandFailed: The command could not be started, or failed without output.
    """
    logger.debug('Running %s', ' '.join(cmd))
    try:
        completed = subprocess.run(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=timeout,
            env=dict(os.environ, LC_ALL='C'),
        )
    except subprocess.TimeoutExpired:
        raise CommandTimeout(cmd, timeout) from None
    except OSError as e:
        raise CommandFailed(cmd, None, str(e)) from e

    stdout = completed.stdout.decode('utf-8', errors='replace')
    if completed.returncode != 0:
        stderr = completed.stderr.decode('utf-8', errors='replace')
        if not stdout.strip():
            raise CommandFailed(cmd, completed.returncode, stderr)
        logger.warning('%s exited with code %d, parsing partial output: %s', ' '.join(cmd),
                       completed.returncode, stderr.strip())

    return CommandResult(stdout, completed.returncode)


def zpool_status(zpool: str = 'zpool', timeout: float = DEFAULT_TIMEOUT) -> str:
    return run((zpool, 'status', '-p'), timeout).stdout


def zpool_sizes(zpool: str = 'zpool', timeout: float = DEFAULT_TIMEOUT) -> str:
    """Size report for enrich_sizes: zpool list followed by one second of zpool iostat."""
    listing = run((zpool, 'list', '-v', '-H', '-p', '-o', 'name,size,alloc,free'), timeout).stdout
    iostat = run((zpool, 'iostat', '-v', '-H', '-p', '-y', '1', '1'), timeout).stdout
    return '\n'.join((listing.rstrip('\n'), iostat))
