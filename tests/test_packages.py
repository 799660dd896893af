import pytest
from unittest.mock import MagicMock, call

from cvh_install.config.models import InstallerSettings, Network, Packages
from cvh_install.executors.network import ConnectivityChecker
from cvh_install.executors.packages import (
    PackageInstaller,
    PackageSet,
    assemble_package_sets,
    merge_package_sets,
    render_mirrorlist,
)
from cvh_install.executors.target import TargetSystem
from cvh_install.state import Compositor
from cvh_install.utils.exceptions import FatalInstallError, ShellCommandError

IP_LINK_OUTPUT = (
    "1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536\n"
    "2: enp0s3: <BROADCAST,MULTICAST> mtu 1500\n"
    "3: wlan0: <BROADCAST,MULTICAST> mtu 1500\n"
)


# --- Package sets ---

def test_package_sets_include_only_the_chosen_compositor():
    packages = Packages()
    sets = assemble_package_sets(packages, Compositor.HYPRLAND)

    assert [s.name for s in sets] == ["base", "shell", "sandbox", "desktop", "hyprland"]
    merged = merge_package_sets(sets)
    assert "hyprland" in merged
    assert "niri" not in merged
    assert merged[:len(packages.base)] == packages.base


def test_merge_package_sets_keeps_first_position():
    sets = [PackageSet("a", ("zsh", "git")), PackageSet("b", ("git", "vim", "zsh"))]
    assert merge_package_sets(sets) == ["zsh", "git", "vim"]


def test_render_mirrorlist():
    content = render_mirrorlist(["https://a.example/$repo/os/$arch", "https://b.example/$repo/os/$arch"])
    assert content.splitlines()[1:] == [
        "Server = https://a.example/$repo/os/$arch",
        "Server = https://b.example/$repo/os/$arch",
    ]


# --- Network ---

@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def checker(mock_executor, sleep):
    return ConnectivityChecker(mock_executor, Network(), sleep=sleep)


def query_results(pings, ip_output=IP_LINK_OUTPUT):
    """A query side effect answering ping with the given exit codes, in order."""
    pings = list(pings)

    def _query(command, check=False):
        if command[0] == "ping":
            return pings.pop(0), "", ""
        if command[0] == "ip":
            return 0, ip_output, ""
        return 0, "", ""
    return _query


def test_online_without_recovery(checker, mock_executor, sleep):
    mock_executor.query.side_effect = query_results([0])

    checker.ensure_online()

    mock_executor.query.assert_called_once_with(["ping", "-c", "1", "-W", "5", "archlinux.org"])
    mock_executor.run.assert_not_called()
    mock_executor.spawn.assert_not_called()
    sleep.assert_not_called()


def test_recovery_pass_starts_dhcp_on_every_interface(checker, mock_executor, sleep, run_commands):
    mock_executor.query.side_effect = query_results([2, 0])

    checker.ensure_online()

    assert run_commands(mock_executor) == [["systemctl", "start", "NetworkManager"]]
    assert mock_executor.run.call_args.kwargs["check"] is False
    assert [c.args[1] for c in mock_executor.spawn.call_args_list] == [["dhcpcd", "enp0s3"], ["dhcpcd", "wlan0"]]
    assert sleep.call_args_list == [call(3.0), call(5.0)]


def test_finished_dhcp_clients_are_reaped(checker, mock_executor):
    mock_executor.query.side_effect = query_results([2, 0])
    finished, running = MagicMock(), MagicMock()
    finished.poll.return_value = 0
    running.poll.return_value = None
    mock_executor.spawn.side_effect = [finished, running]

    checker.ensure_online()

    finished.poll.assert_called_once_with()
    running.poll.assert_called_once_with()
    assert checker.dhcp_clients == [running]


def test_missing_dhcpcd_is_not_tracked(checker, mock_executor):
    mock_executor.query.side_effect = query_results([2, 0])
    mock_executor.spawn.return_value = None

    checker.ensure_online()

    assert checker.dhcp_clients == []


def test_still_offline_after_recovery_is_fatal(checker, mock_executor):
    mock_executor.query.side_effect = query_results([1, 1])

    with pytest.raises(FatalInstallError, match="nmtui"):
        checker.ensure_online()


def test_network_check_skipped_in_dry_run(checker, mock_executor):
    mock_executor.dry_run = True
    checker.ensure_online()
    mock_executor.query.assert_not_called()


# --- Package installer ---

@pytest.fixture
def new_root(tmp_path):
    root = tmp_path / "mnt"
    (root / "etc").mkdir(parents=True)
    return root


@pytest.fixture
def installer(mock_executor, new_root, tmp_path):
    mock_executor.chroot_path = str(new_root)
    settings = InstallerSettings(mount_root=str(new_root), local_repo={"source": str(tmp_path / "repo")})
    return PackageInstaller(mock_executor, TargetSystem(mock_executor), settings)


def test_pacstrap_shows_output_and_uses_all_packages(installer, mock_executor, new_root):
    installer.pacstrap(["base", "linux"])

    kwargs = mock_executor.run.call_args.kwargs
    assert kwargs["command"] == ["pacstrap", "-K", str(new_root), "base", "linux"]
    assert kwargs["capture_output"] is False
    assert kwargs["check"] is True


def test_pacstrap_failure_is_fatal(installer, mock_executor):
    mock_executor.run.side_effect = ShellCommandError("pacstrap -K /mnt base", exit_code=1)

    with pytest.raises(FatalInstallError, match="Package installation failed"):
        installer.pacstrap(["base"])


def test_install_order(installer, mock_executor, run_commands, new_root):
    installer.install(Compositor.NIRI)

    commands = run_commands(mock_executor)
    assert commands[0] == ["pacman-key", "--init"]
    assert commands[1] == ["pacman-key", "--populate", "archlinux"]
    assert commands[2][:3] == ["pacstrap", "-K", str(new_root)]
    assert "niri" in commands[2]
    assert "hyprland" not in commands[2]
    assert (new_root / "etc/pacman.d/mirrorlist").read_text().count("Server = ") == 5


def test_copy_local_packages(installer, tmp_path, new_root):
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "cvh-fuzzy-0.1-1-x86_64.pkg.tar.zst").write_bytes(b"pkg")
    (repo / "cvh-icons-0.1-1-x86_64.pkg.tar.zst").write_bytes(b"pkg")
    (repo / "README").write_text("not a package")

    copied = installer.copy_local_packages()

    assert copied == ["cvh-fuzzy-0.1-1-x86_64.pkg.tar.zst", "cvh-icons-0.1-1-x86_64.pkg.tar.zst"]
    cache = new_root / "var/cache/pacman/cvh-packages"
    assert sorted(p.name for p in cache.iterdir()) == copied


def test_copy_local_packages_warns_when_none(installer, mock_executor):
    assert installer.copy_local_packages() == []
    mock_executor.logger.warning.assert_called_once()


def test_configure_repositories_appends_once(installer, new_root):
    pacman_conf = new_root / "etc/pacman.conf"
    pacman_conf.write_text("[options]\nHoldPkg = pacman glibc\n#[core-testing]\n")

    installer.configure_repositories()
    installer.configure_repositories()

    content = pacman_conf.read_text()
    assert content.count("[core]") == 1
    assert content.count("[extra]") == 1
    assert content.count("Include = /etc/pacman.d/mirrorlist") == 2


def test_configure_repositories_keeps_existing_core(installer, new_root):
    original = "[options]\n\n[core]\nInclude = /etc/pacman.d/mirrorlist\n"
    (new_root / "etc/pacman.conf").write_text(original)

    installer.configure_repositories()

    assert (new_root / "etc/pacman.conf").read_text() == original
