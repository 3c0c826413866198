"""Channel implementations."""

from remote_sftp.channels._local import LocalChannel

__all__ = ["LocalChannel"]

try:
    from remote_sftp.channels._paramiko import ParamikoChannel, connect_paramiko

    __all__ = [*__all__, "ParamikoChannel", "connect_paramiko"]
except ImportError:  # pragma: no cover
    pass
