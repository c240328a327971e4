from .step_10_fetch_base import FetchBaseImageStep
from .step_20_customize_rootfs import CustomizeRootfsStep
from .step_30_configure_ssh import ConfigureSshStep
from .step_40_archive_rootfs import ArchiveRootfsStep
from .step_50_write_metadata import WriteMetadataStep
from .step_60_package_zip import PackageZipStep

__all__ = [
    "FetchBaseImageStep",
    "CustomizeRootfsStep",
    "ConfigureSshStep",
    "ArchiveRootfsStep",
    "WriteMetadataStep",
    "PackageZipStep",
]
