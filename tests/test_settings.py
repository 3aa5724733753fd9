import pytest

from codchi.settings import CodchiConfig, TrayConfig, VcXsrvConfig


def test_empty_cfg_deserializes():
    assert CodchiConfig.from_toml("") == CodchiConfig()


def test_partial_cfg_deserializes():
    result = CodchiConfig.from_toml("\nvcxsrv.enable = false\n")
    assert result == CodchiConfig(vcxsrv=VcXsrvConfig(enable=False, tray=False))


def test_partial_cfg_deserializes2():
    result = CodchiConfig.from_toml("\nvcxsrv.tray = true\n")
    assert result == CodchiConfig(vcxsrv=VcXsrvConfig(enable=False, tray=True))


def test_defaults():
    cfg = CodchiConfig()
    assert cfg.tray.autostart is True
    assert cfg.vcxsrv == VcXsrvConfig(enable=False, tray=False)
    assert cfg.data_dir is None


def test_round_trip():
    cfg = CodchiConfig(
        tray=TrayConfig(autostart=False),
        vcxsrv=VcXsrvConfig(enable=True, tray=False),
        data_dir="/srv/codchi",
    )
    assert CodchiConfig.from_toml(cfg.to_toml()) == cfg


def test_wrong_type_rejected():
    with pytest.raises(ValueError):
        CodchiConfig.from_toml('tray.autostart = "yes"\n')


def test_load_missing_file_gives_default(tmp_path):
    path = tmp_path / "sub" / "config.toml"
    assert CodchiConfig.load(path) == CodchiConfig()
    assert path.exists()


def test_load_invalid_falls_back(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("this is [ not toml", encoding="utf-8")
    assert CodchiConfig.load(path) == CodchiConfig()


def test_open_mut_on_empty_file(tmp_path):
    path = tmp_path / "config.toml"
    cfg = CodchiConfig.open_mut(path)
    cfg.tray_autostart(False)
    cfg.write()
    assert CodchiConfig.load(path).tray.autostart is False


def test_open_mut_vcxsrv(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("# keep me\ndata_dir = \"/x\"\n", encoding="utf-8")
    cfg = CodchiConfig.open_mut(path)
    cfg.vcxsrv_enable(True)
    cfg.vcxsrv_tray(True)
    cfg.write()
    loaded = CodchiConfig.load(path)
    assert loaded.vcxsrv == VcXsrvConfig(enable=True, tray=True)
    assert loaded.data_dir == "/x"
    assert "# keep me" in path.read_text(encoding="utf-8")