"""Mapping from the secondary installer's step codes to launcher steps."""

from launcher.models.status import InstallStep

# Secondary installer codes: 0 none, 1 check environment, 2 load package info,
# 3 install packages, 4 create directories, 5 install base pack,
# 6 copy AOT libraries, 7 generate config, 8 copy resources,
# 9 export config, 10 open scene, 11 complete.
SECONDARY_COMPLETE_CODE = 11

_STEP_TABLE = {code: InstallStep.RUN_SECONDARY_INSTALL for code in range(SECONDARY_COMPLETE_CODE)}
_STEP_TABLE[SECONDARY_COMPLETE_CODE] = InstallStep.COMPLETE


def map_secondary_step(code: int) -> InstallStep:
    """Map a secondary installer step code onto a launcher step.

    Unknown codes map to RUN_SECONDARY_INSTALL; never raises.
    """
    try:
        return _STEP_TABLE.get(code, InstallStep.RUN_SECONDARY_INSTALL)
    except TypeError:
        # unhashable input
        return InstallStep.RUN_SECONDARY_INSTALL
