"""
Error taxonomy for a scrape.

Each class carries a ``tolerated`` flag. Tolerated errors are caught where
they originate and degrade to "metric omitted"; everything else propagates
through the domain and pool loops and fails the whole scrape.
"""

import libvirt


class ExporterError(Exception):
    """Base class for errors raised while collecting metrics"""
    tolerated = False

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class HypervisorConnectionError(ExporterError):
    """libvirtd could not be reached"""


class QueryError(ExporterError):
    """A libvirt API call failed"""


class UnsupportedError(ExporterError):
    """The hypervisor or its version does not implement the feature"""
    tolerated = True


class InvalidOperationError(ExporterError):
    """The feature does not apply to the domain in its current state"""
    tolerated = True


class ParseError(ExporterError):
    """Malformed domain XML or scheduler statistics"""
    tolerated = True


class SchedStatNotFoundError(ExporterError):
    """A schedstat file is missing or unreadable"""
    tolerated = True


class ProcfsUnavailableError(ExporterError):
    """The procfs mount point cannot be listed"""


_UNSUPPORTED_CODES = (
    libvirt.VIR_ERR_NO_SUPPORT,
    libvirt.VIR_ERR_OPERATION_UNSUPPORTED,
)


def from_libvirt_error(err, what):
    """Translate a libvirtError into the exporter taxonomy"""
    code = err.get_error_code()
    message = f"{what}: {err}"
    if code in _UNSUPPORTED_CODES:
        return UnsupportedError(message, cause=err)
    if code == libvirt.VIR_ERR_OPERATION_INVALID:
        return InvalidOperationError(message, cause=err)
    return QueryError(message, cause=err)


def libvirt_call(what, func, *args):
    """Call a libvirt binding, translating libvirtError on the way out"""
    try:
        return func(*args)
    except libvirt.libvirtError as e:
        raise from_libvirt_error(e, what) from e
