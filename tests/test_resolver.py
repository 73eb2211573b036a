import pytest

from sendemail.core import resolver
from sendemail.core.resolver import resolve_global_config, resolve_global_folder, split_global_name
from sendemail.utils.errors import ConfigurationError
from tests.helpers import write_json


def test_split_global_name():
    assert split_global_name("footer/billing") == ["footer", "billing"]
    assert split_global_name("footer") == ["footer"]


@pytest.mark.parametrize("name", ["", "/abs", "../up", "a/../../b"])
def test_split_global_name_rejects_bad_names(name):
    with pytest.raises(ConfigurationError):
        split_global_name(name)


def test_cwd_override_wins_over_root(tool_root, workdir):
    write_json(tool_root / "config/globals/footer/global.json", {"attachments": []})
    local = write_json(workdir / "config/globals/footer/global.json", {"attachments": []})

    found = resolve_global_config("footer", root_path=tool_root, cwd=workdir)

    assert found.config_path == local.resolve()
    assert found.asset_base_path == workdir.resolve()


def test_root_fallback_uses_root_as_base(tool_root, workdir):
    root_cfg = write_json(tool_root / "config/globals/footer/global.json", {"attachments": []})

    found = resolve_global_config("footer", root_path=tool_root, cwd=workdir)

    assert found.config_path == root_cfg.resolve()
    assert found.asset_base_path == tool_root.resolve()


def test_nested_name_maps_to_nested_folders(tool_root, workdir):
    nested = write_json(tool_root / "config/globals/footer/billing/global.json", {})
    found = resolve_global_config("footer/billing", root_path=tool_root, cwd=workdir)
    assert found.config_path == nested.resolve()


def test_plain_directory_and_plain_file(tool_root, workdir):
    folder_cfg = write_json(workdir / "shared/global.json", {})
    plain_file = write_json(workdir / "extra.json", {})

    assert resolve_global_config("shared", root_path=tool_root, cwd=workdir).config_path == folder_cfg.resolve()
    found = resolve_global_config("extra.json", root_path=tool_root, cwd=workdir)
    assert found.config_path == plain_file.resolve()
    assert found.asset_base_path == workdir.resolve()


def test_root_only_ignores_plain_paths(tool_root, workdir):
    write_json(workdir / "shared/global.json", {})
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_global_config("shared", mode=resolver.MODE_ROOT_ONLY, root_path=tool_root, cwd=workdir)
    assert len(exc_info.value.details) == 2
    assert "--global-config:root" in exc_info.value.suggestion


def test_path_only_ignores_globals_folders(tool_root, workdir):
    write_json(tool_root / "config/globals/footer/global.json", {})
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_global_config("footer", mode=resolver.MODE_PATH_ONLY, root_path=tool_root, cwd=workdir)
    assert len(exc_info.value.details) == 2


def test_not_found_lists_every_checked_path(tool_root, workdir):
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_global_config("nothing", root_path=tool_root, cwd=workdir)
    details = exc_info.value.details
    assert len(details) == 4
    assert all(d.startswith("Checked: ") for d in details)


def test_unknown_mode():
    with pytest.raises(ConfigurationError):
        resolve_global_config("footer", mode="sideways")


def test_folder_resolution_prefers_data_subfolders(tool_root, workdir):
    folder = tool_root / "config/globals/footer"
    (folder / "html").mkdir(parents=True)
    (folder / "html/b.htm").write_text("<p>B</p>")
    (folder / "html/a.htm").write_text("<p>A</p>")
    (folder / "html.htm").write_text("<p>root</p>")
    (folder / "text.txt").write_text("plain")

    found = resolve_global_folder("footer", root_path=tool_root, cwd=workdir)

    assert found.html_data_path == folder.resolve() / "html" / "a.htm"
    assert found.html_data_type == "global:data:folder:html"
    assert found.text_data_path == folder.resolve() / "text.txt"
    assert found.text_data_type == "global:data:text"
    assert found.config_path is None
    assert found.asset_base_path == tool_root.resolve()


def test_folder_resolution_htm_before_html(tool_root, workdir):
    folder = workdir / "config/globals/sig"
    folder.mkdir(parents=True)
    (folder / "html.html").write_text("second")
    (folder / "html.htm").write_text("first")

    found = resolve_global_folder("sig", root_path=tool_root, cwd=workdir)

    assert found.html_data_path.name == "html.htm"
    assert found.asset_base_path == workdir.resolve()


def test_folder_resolution_ignores_dotfiles(tool_root, workdir):
    folder = workdir / "config/globals/footer"
    (folder / "html").mkdir(parents=True)
    (folder / "html/.DS_Store").write_bytes(b"\x00\x00\x00\x01Bud1")
    (folder / "html.htm").write_text("<p>root</p>")

    found = resolve_global_folder("footer", root_path=tool_root, cwd=workdir)

    assert found.html_data_path == folder.resolve() / "html.htm"
    assert found.html_data_type == "global:data:html"


def test_folder_resolution_skips_empty_folders(tool_root, workdir):
    (workdir / "config/globals/footer").mkdir(parents=True)
    write_json(tool_root / "config/globals/footer/global.json", {"attachments": []})

    found = resolve_global_folder("footer", root_path=tool_root, cwd=workdir)

    assert found.asset_base_path == tool_root.resolve()


def test_folder_resolution_not_found(tool_root, workdir):
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_global_folder("ghost", root_path=tool_root, cwd=workdir)
    assert len(exc_info.value.details) == 3
