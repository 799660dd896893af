"""
Text of every file the installer writes into the new system.

Each function returns the complete file content for one artifact; none of
them touch the filesystem.
"""

from cvh_install.state import Compositor

TERMINAL = "foot"
LAUNCHER = "cvh-fuzzy"

# Console keymap names that differ from their XKB layout
XKB_LAYOUTS = {"uk": "gb"}

SESSION_COMMANDS = {
    Compositor.NIRI: "niri-session",
    Compositor.HYPRLAND: "Hyprland",
}

SESSION_COMMENTS = {
    Compositor.NIRI: "Scrollable-tiling Wayland compositor",
    Compositor.HYPRLAND: "Dynamic tiling Wayland compositor",
}


def xkb_layout(keymap: str) -> str:
    return XKB_LAYOUTS.get(keymap, keymap)


def locale_gen_entry(locale: str) -> str:
    return f"{locale} UTF-8\n"


def locale_conf(locale: str) -> str:
    return f"LANG={locale}\n"


def vconsole_conf(keymap: str) -> str:
    return f"KEYMAP={keymap}\n"


def hostname_file(hostname: str) -> str:
    return f"{hostname}\n"


def hosts_file(hostname: str) -> str:
    return (
        "127.0.0.1   localhost\n"
        "::1         localhost\n"
        f"127.0.1.1   {hostname}.localdomain {hostname}\n"
    )


def ly_config() -> str:
    return (
        "# Ly display manager - CVH Linux\n"
        "animation = matrix\n"
        "asterisk = *\n"
        "bigclock = en\n"
        "clear_password = true\n"
        "hide_borders = false\n"
        "load = true\n"
        "save = true\n"
        "tty = 2\n"
    )


def sudoers_wheel() -> str:
    return "%wheel ALL=(ALL:ALL) ALL\n"


def zshrc(compositor: Compositor) -> str:
    """History settings, plugins, and a compositor autostart on tty1 as a fallback to Ly."""
    return f"""# CVH Linux - zsh configuration

HISTFILE=~/.zsh_history
HISTSIZE=10000
SAVEHIST=10000
setopt SHARE_HISTORY
setopt HIST_IGNORE_ALL_DUPS
setopt HIST_IGNORE_SPACE

autoload -Uz compinit && compinit

[[ -f /usr/share/zsh/plugins/zsh-autosuggestions/zsh-autosuggestions.zsh ]] && \\
    source /usr/share/zsh/plugins/zsh-autosuggestions/zsh-autosuggestions.zsh
[[ -f /usr/share/zsh/plugins/zsh-syntax-highlighting/zsh-syntax-highlighting.zsh ]] && \\
    source /usr/share/zsh/plugins/zsh-syntax-highlighting/zsh-syntax-highlighting.zsh

PROMPT='%F{{cyan}}%n@%m%f %F{{blue}}%~%f %# '

if [[ -z "$WAYLAND_DISPLAY" && "$XDG_VTNR" -eq 1 ]]; then
    exec {SESSION_COMMANDS[compositor]}
fi
"""


def session_desktop(compositor: Compositor) -> str:
    return (
        "[Desktop Entry]\n"
        f"Name={compositor.display_name} (CVH)\n"
        f"Comment={SESSION_COMMENTS[compositor]}\n"
        f"Exec={SESSION_COMMANDS[compositor]}\n"
        "Type=Application\n"
        f"DesktopNames={compositor.value}\n"
    )


def niri_config(keymap: str) -> str:
    return f"""// Niri configuration - CVH Linux

input {{
    keyboard {{
        xkb {{
            layout "{xkb_layout(keymap)}"
        }}
    }}
    touchpad {{
        tap
        natural-scroll
    }}
}}

layout {{
    gaps 8
    default-column-width {{ proportion 0.5; }}
}}

spawn-at-startup "waybar"
spawn-at-startup "mako"

binds {{
    Mod+Return {{ spawn "{TERMINAL}"; }}
    Mod+D {{ spawn "{LAUNCHER}"; }}
    Mod+Q {{ close-window; }}
    Mod+Left {{ focus-column-left; }}
    Mod+Right {{ focus-column-right; }}
    Mod+Shift+E {{ quit; }}
}}
"""


def hyprland_config(keymap: str) -> str:
    return f"""# Hyprland configuration - CVH Linux

$mod = SUPER

exec-once = waybar
exec-once = mako
exec-once = hyprpaper

input {{
    kb_layout = {xkb_layout(keymap)}
    follow_mouse = 1
}}

general {{
    gaps_in = 4
    gaps_out = 8
    border_size = 2
    layout = dwindle
}}

bind = $mod, Return, exec, {TERMINAL}
bind = $mod, D, exec, {LAUNCHER}
bind = $mod, Q, killactive
bind = $mod, F, fullscreen
bind = $mod SHIFT, E, exit
"""


def os_release() -> str:
    return (
        'NAME="CVH Linux"\n'
        'PRETTY_NAME="CVH Linux"\n'
        "ID=cvh\n"
        "ID_LIKE=arch\n"
        "BUILD_ID=rolling\n"
        'ANSI_COLOR="38;2;23;147;209"\n'
        "LOGO=archlinux-logo\n"
    )


def issue() -> str:
    return "CVH Linux \\r (\\l)\n\n"
