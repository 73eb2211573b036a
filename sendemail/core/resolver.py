"""
Path and folder resolution for global configurations.

A global is looked up by a symbolic, possibly nested name (``footer`` or
``footer/billing``) across an ordered list of candidate locations. The
first structurally valid match wins, and its origin decides the base path
that the global's attachments resolve against.

Search order for the ``default`` mode:
    1. <cwd>/config/globals/<name>/global.json   (base: cwd)
    2. <root>/config/globals/<name>/global.json  (base: root)
    3. <cwd>/<name>/global.json                  (base: cwd)
    4. <cwd>/<name> as the config file itself    (base: cwd)

``root-only`` restricts the search to steps 1-2 and ``path-only`` to 3-4.
Inline ``{% global %}`` tags use resolve_global_folder(), which walks
steps 1-3 and additionally locates the folder's HTML/text data files.
"""
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from sendemail.models import GlobalDataResolution, ResolvedGlobal
from sendemail.utils.errors import ConfigurationError


logger = logging.getLogger(__name__)

GLOBAL_CONFIG_FILE = "global.json"

MODE_DEFAULT = "default"
MODE_ROOT_ONLY = "root-only"
MODE_PATH_ONLY = "path-only"
MODES = (MODE_DEFAULT, MODE_ROOT_ONLY, MODE_PATH_ONLY)

# Root-level data files, strict naming, first match wins
HTML_DATA_FILES = ("html.htm", "html.html")
TEXT_DATA_FILES = ("text.txt",)

HTML_DATA_FOLDER = "html"
TEXT_DATA_FOLDER = "data"

_MODE_HINTS = {
    MODE_DEFAULT: (
        "Create config/globals/<name>/global.json in the current directory or in the "
        "sendemail root, or pass a directory/file path relative to the current directory."
    ),
    MODE_ROOT_ONLY: (
        "--global-config:root only searches config/globals/ in the current directory "
        "and the sendemail root. Use --global-config:path for plain paths."
    ),
    MODE_PATH_ONLY: (
        "--global-config:path only searches paths relative to the current directory. "
        "Use --global-config:root for names under config/globals/."
    ),
}


def split_global_name(name: str) -> List[str]:
    """
    Split a slash-separated global name into path parts.

    Raises:
        ConfigurationError: If the name is empty, absolute or escapes its base.
    """
    parts = [p for p in name.replace("\\", "/").split("/") if p and p != "."]
    if not parts or name.startswith("/") or ".." in parts:
        raise ConfigurationError(
            f"Invalid global name '{name}'",
            ["Global names are relative, slash-separated folder names (e.g. 'footer/billing')."]
        )
    return parts


def _candidates(
    name: str,
    mode: str,
    root_path: Path,
    cwd: Path
) -> List[Tuple[Path, Path]]:
    """Ordered (config path, asset base) candidates for a mode."""
    parts = split_global_name(name)
    in_root_steps = [
        (cwd.joinpath("config", "globals", *parts, GLOBAL_CONFIG_FILE), cwd),
        (root_path.joinpath("config", "globals", *parts, GLOBAL_CONFIG_FILE), root_path),
    ]
    path_steps = [
        (cwd.joinpath(*parts, GLOBAL_CONFIG_FILE), cwd),
        (cwd.joinpath(*parts), cwd),
    ]

    if mode == MODE_ROOT_ONLY:
        return in_root_steps
    if mode == MODE_PATH_ONLY:
        return path_steps
    if mode == MODE_DEFAULT:
        return in_root_steps + path_steps
    raise ConfigurationError(
        f"Unknown global resolution mode '{mode}'",
        [f"Supported modes: {', '.join(MODES)}"]
    )


def resolve_global_config(
    name: str,
    mode: str = MODE_DEFAULT,
    root_path: Optional[Path] = None,
    cwd: Optional[Path] = None
) -> ResolvedGlobal:
    """
    Resolve a global config by name.

    Args:
        name: Global name, flat or nested (``a/b``).
        mode: One of ``default``, ``root-only``, ``path-only``.
        root_path: The sendemail tool root.
        cwd: Caller's working directory. Defaults to Path.cwd().

    Returns:
        The config file location and the base path for its attachments.

    Raises:
        ConfigurationError: If no candidate matches; lists every path checked.
    """
    cwd = Path(cwd or Path.cwd()).resolve()
    root_path = Path(root_path or cwd).resolve()

    checked = []
    for path, base in _candidates(name, mode, root_path, cwd):
        checked.append(str(path))
        if path.is_file():
            logger.debug(f"Global '{name}' resolved to {path} (base: {base})")
            return ResolvedGlobal(name=name, config_path=path, asset_base_path=base)

    raise ConfigurationError(
        f"Global config '{name}' not found",
        [f"Checked: {p}" for p in checked],
        _MODE_HINTS[mode]
    )


def _first_file(folder: Path) -> Optional[Path]:
    if not folder.is_dir():
        return None
    files = sorted(p for p in folder.iterdir() if p.is_file() and not p.name.startswith("."))
    return files[0] if files else None


def _locate_data_files(resolution: GlobalDataResolution) -> None:
    folder = resolution.folder_path

    html_file = _first_file(folder / HTML_DATA_FOLDER)
    if html_file:
        resolution.html_data_path = html_file
        resolution.html_data_type = "global:data:folder:html"
    else:
        for file_name in HTML_DATA_FILES:
            if (folder / file_name).is_file():
                resolution.html_data_path = folder / file_name
                resolution.html_data_type = "global:data:html"
                break

    text_file = _first_file(folder / TEXT_DATA_FOLDER)
    if text_file:
        resolution.text_data_path = text_file
        resolution.text_data_type = "global:data:folder:data"
    else:
        for file_name in TEXT_DATA_FILES:
            if (folder / file_name).is_file():
                resolution.text_data_path = folder / file_name
                resolution.text_data_type = "global:data:text"
                break


def resolve_global_folder(
    name: str,
    root_path: Optional[Path] = None,
    cwd: Optional[Path] = None
) -> GlobalDataResolution:
    """
    Resolve the folder of a global referenced by an inline tag.

    Walks <cwd>/config/globals, <root>/config/globals, then <cwd>/<name>.
    A folder qualifies when it holds a global.json or at least one data file.

    Raises:
        ConfigurationError: If no candidate folder qualifies.
    """
    cwd = Path(cwd or Path.cwd()).resolve()
    root_path = Path(root_path or cwd).resolve()
    parts = split_global_name(name)

    candidates = [
        (cwd.joinpath("config", "globals", *parts), cwd),
        (root_path.joinpath("config", "globals", *parts), root_path),
        (cwd.joinpath(*parts), cwd),
    ]

    checked = []
    for folder, base in candidates:
        checked.append(str(folder))
        if not folder.is_dir():
            continue

        resolution = GlobalDataResolution(name=name, folder_path=folder, asset_base_path=base)
        config_file = folder / GLOBAL_CONFIG_FILE
        if config_file.is_file():
            resolution.config_path = config_file
        _locate_data_files(resolution)

        if resolution.config_path or resolution.html_data_path or resolution.text_data_path:
            logger.debug(f"Inline global '{name}' resolved to {folder}")
            return resolution

    raise ConfigurationError(
        f"Global '{name}' referenced by an inline tag was not found",
        [f"Checked: {p}" for p in checked],
        "Create config/globals/<name>/ with a global.json, html.htm or text.txt."
    )
