from .manual import stage_manual_build, stage_manual_deploy
from .redirect_farm import (
    API_VERSION_ENV,
    stage_redirect_build,
    stage_redirect_deploy,
    stage_version_probe,
)

__all__ = [
    "API_VERSION_ENV",
    "stage_manual_build",
    "stage_manual_deploy",
    "stage_version_probe",
    "stage_redirect_build",
    "stage_redirect_deploy",
]
