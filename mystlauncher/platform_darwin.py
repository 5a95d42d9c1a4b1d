"""Virtualization support checks for macOS hosts."""

import logging

from .process import cmd_run

log = logging.getLogger(__name__)

FEATURE_HYPERVISOR_FRAMEWORK = "HyperisorFramework"
FEATURES = (FEATURE_HYPERVISOR_FRAMEWORK,)


def _sysctl(name: str) -> str:
    _, out = cmd_run("sysctl", name, capture=True)
    return out or ""


class PlatformManager:
    """Queries the host for the virtualization support the node runner needs."""

    def features(self) -> bool:
        """Tell whether the CPU and the OS support the hypervisor framework."""
        try:
            if "VMX" not in _sysctl("machdep.cpu.features"):
                if "Apple M1" not in _sysctl("machdep.cpu.brand_string"):
                    return False
            return _sysctl("kern.hv_support").startswith("kern.hv_support: 1")
        except OSError as err:
            log.warning("QueryFeatures > %s", err)
            return False

    def system_under_vm(self) -> bool:
        """Tell whether the host itself is a virtual machine; not detected here."""
        log.info("SystemUnderVm: not detected on this platform")
        return False