from cvh_install.config.models import InstallerSettings, DEFAULT_CONFIG_PATH

__all__ = ["InstallerSettings", "DEFAULT_CONFIG_PATH"]
