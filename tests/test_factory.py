# tests/test_factory.py
import threading

import pytest

from epubtrans.errors import ConfigError
from epubtrans.factory import build_gateway, build_router, build_service
from epubtrans.router.config_loader import parse_config
from epubtrans.router.models import ProviderConfig
from epubtrans.router.openai import OpenAICompatibleGateway
from epubtrans.service import BookService


@pytest.fixture
def app_config():
    return parse_config({
        "settings":  {"default_provider": "deepseek", "prompt_file": None},
        "providers": [
            {"name": "openai",   "api_key": "sk-1"},
            {"name": "deepseek", "api_key": "sk-2"},
        ],
    })


class TestBuildGateway:

    @pytest.mark.parametrize("kind", ["openai", "deepseek"])
    def test_tipos_compatibles_usan_http(self, kind):
        config  = ProviderConfig(name=kind, kind=kind, base_url="https://x", api_key="k", model="m")
        gateway = build_gateway(config, "system")
        try:
            assert isinstance(gateway, OpenAICompatibleGateway)
        finally:
            gateway.close()

    def test_config_incompleta_falla_antes_de_construir(self):
        config = ProviderConfig(name="claude", kind="claude", base_url="https://x", model="m")
        with pytest.raises(ConfigError) as exc:
            build_gateway(config, "system")
        assert exc.value.field == "api_key"

    def test_tipo_sin_adaptador(self):
        config = ProviderConfig(name="x", kind="llama", base_url="https://x", api_key="k", model="m")
        with pytest.raises(ConfigError):
            build_gateway(config, "system")


class TestBuildRouter:

    def test_sin_nombres_usa_el_default(self, app_config):
        router = build_router(app_config)
        try:
            assert router.provider_names() == ["deepseek"]
        finally:
            router.close()

    def test_orden_de_preferencia(self, app_config):
        router = build_router(app_config, ["openai", "deepseek"], cancel_event=threading.Event())
        try:
            assert router.provider_names() == ["openai", "deepseek"]
        finally:
            router.close()

    def test_proveedor_no_configurado(self, app_config):
        with pytest.raises(ConfigError):
            build_router(app_config, ["gemini"])


def test_build_service(tmp_path):
    service = build_service(db_path=":memory:", output_dir=tmp_path)
    try:
        assert isinstance(service, BookService)
        assert service.list_books() == []
    finally:
        service.close()
