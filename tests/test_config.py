from cierre_caja.channels import DEFAULT_DELIVERY_CHANNELS, DeliveryChannel
from cierre_caja.config import load_config, parse_delivery_channels


def test_delivery_channels_default():
    assert parse_delivery_channels(None) == DEFAULT_DELIVERY_CHANNELS
    assert parse_delivery_channels("  ") == DEFAULT_DELIVERY_CHANNELS
    assert parse_delivery_channels(",,") == DEFAULT_DELIVERY_CHANNELS


def test_delivery_channels_from_list():
    channels = parse_delivery_channels("rappi:Rappi, uber_eats:Uber Eats,rappi:Duplicado,didi")

    assert channels == (
        DeliveryChannel("rappi", "Rappi"),
        DeliveryChannel("uber_eats", "Uber Eats"),
        DeliveryChannel("didi", "didi"),
    )


def test_load_config_reads_environment(tmp_path, monkeypatch):
    database_file = tmp_path / "nested" / "caja.db"
    monkeypatch.setenv("CIERRE_CAJA_DB_FILE", str(database_file))
    monkeypatch.setenv("CIERRE_CAJA_LOG_LEVEL", "debug")
    monkeypatch.setenv("CIERRE_CAJA_SHARE_URL", "https://example.test/share")
    monkeypatch.setenv("CIERRE_CAJA_DELIVERY_CHANNELS", "rappi:Rappi")

    config = load_config()

    assert config.database_file == database_file
    assert database_file.parent.is_dir()
    assert config.log_level == "DEBUG"
    assert config.share_url == "https://example.test/share"
    assert config.delivery_channels == (DeliveryChannel("rappi", "Rappi"),)
