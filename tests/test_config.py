import logging

from kyc_nova.config import configure_logging, get_settings, logging_config


def test_service_status_fallback(settings):
    status = settings.service_status()
    assert status["document_api"]["mode"] == "fallback"
    assert status["document_api"]["endpoint"] == "mock://fallback"
    assert status["rekognition"]["mode"] == "fallback"
    assert status["liveness"]["external_service"] is False


def test_service_status_configured(aws_settings):
    configured = aws_settings.model_copy(update={
        "DOCUMENT_API_ENDPOINT": "https://docs.example.test/verify",
        "DOCUMENT_API_KEY": "secret",
    })
    status = configured.service_status()
    assert status["document_api"]["mode"] == "real_api"
    assert status["rekognition"]["mode"] == "aws_real"
    assert status["rekognition"]["region"] == "us-east-1"
    assert status["liveness"]["external_service"] is True


def test_liveness_flag_override(aws_settings, settings):
    assert aws_settings.model_copy(update={"LIVENESS_EXTERNAL_SERVICE": False}).has_external_liveness_service is False
    assert settings.model_copy(update={"LIVENESS_EXTERNAL_SERVICE": True}).has_external_liveness_service is True


def test_partial_credentials_are_not_configured(settings):
    assert settings.model_copy(update={"AWS_ACCESS_KEY_ID": "testing"}).has_rekognition is False
    assert settings.model_copy(update={"DOCUMENT_API_KEY": "secret"}).has_document_api is False


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_logging_formatters(settings):
    assert logging_config(settings)["handlers"]["console"]["formatter"] == "simple"
    json_settings = settings.model_copy(update={"LOG_JSON": True, "LOG_LEVEL": "DEBUG"})
    config = logging_config(json_settings)
    assert config["handlers"]["console"]["formatter"] == "json"
    assert config["loggers"]["kyc_nova"]["level"] == "DEBUG"


def test_configure_logging(settings):
    configure_logging(settings.model_copy(update={"LOG_LEVEL": "WARNING"}))
    assert logging.getLogger("kyc_nova").level == logging.WARNING
