"""
Configuration settings for freight_tracking
"""

import tempfile
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackingSettings(BaseSettings):
    """Sync run and persistence settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    database_url: str = Field(default="sqlite:///./freight_tracking.db")

    # Pausa fra un ordine e il successivo durante la sync
    sync_pacing_delay_seconds: float = Field(default=0.5)

    # HTTP 429: retry with linear backoff (2s, 4s, 6s)
    rate_limit_max_retries: int = Field(default=3)
    rate_limit_backoff_seconds: float = Field(default=2.0)


@lru_cache()
def get_tracking_settings() -> TrackingSettings:
    """Get cached tracking settings instance"""
    return TrackingSettings()


class CarrierIntegrationSettings(BaseSettings):
    """Carrier integration configuration settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # SSW (HTML table + CSV export)
    ssw_base_url: str = Field(default="https://ssw.inf.br")
    ssw_timeout: float = Field(default=15.0)
    ssw_csv_timeout: float = Field(default=10.0)

    # Senior TCK
    senior_tracking_url: str = Field(
        default="https://platform.senior.com.br/t/senior.com.br/bridge/1.0/anonymous/rest/tms/tck/actions/externalTenantConsultaTracking"
    )
    senior_timeout: float = Field(default=15.0)

    # Atual Cargas (session cookie)
    atual_cargas_login_url: str = Field(default="https://cliente.atualcargas.com.br/api/cadastro/login")
    atual_cargas_list_url: str = Field(
        default="https://cliente.atualcargas.com.br/api/rastreamento/senha/lista-encomendas"
    )
    atual_cargas_document: str = Field(default="")
    atual_cargas_password: str = Field(default="")
    atual_cargas_session_ttl_minutes: int = Field(default=54)
    atual_cargas_timeout: float = Field(default=15.0)

    # Rodonaves (RODO with BRUDAM fallback)
    rodonaves_package_url: str = Field(default="https://www.rodonaves.com.br/bin/rodonaves/trackingv3/package")
    rodonaves_brudam_url: str = Field(default="https://www.rodonaves.com.br/bin/rodonaves/trackingv3/brudam")
    rodonaves_timeout: float = Field(default=15.0)

    # Expresso São Miguel (signed bearer token)
    sao_miguel_api_url: str = Field(default="https://srv.expressosaomiguel.com.br:40490/api-portal-cliente/tracks")
    sao_miguel_app_key: str = Field(default="")
    sao_miguel_token_ttl_minutes: int = Field(default=5)
    sao_miguel_timeout: float = Field(default=15.0)

    # Braspress (HTTP Basic)
    braspress_base_url: str = Field(default="https://api.braspress.com/v1/tracking")
    braspress_user: str = Field(default="")
    braspress_password: str = Field(default="")
    braspress_timeout: float = Field(default=15.0)

    # Portal automation (headless browser + CAPTCHA)
    esm_portal_url: str = Field(default="https://portaldocliente.expressosaomiguel.com.br/rastrear-mercadoria")
    portal_headless: bool = Field(default=True)
    portal_navigation_timeout: float = Field(default=30.0)
    portal_settle_seconds: float = Field(default=6.0)
    portal_max_attempts: int = Field(default=3)
    portal_screenshot_dir: str = Field(default_factory=tempfile.gettempdir)


@lru_cache()
def get_carrier_integration_settings() -> CarrierIntegrationSettings:
    """Get cached carrier integration settings instance"""
    return CarrierIntegrationSettings()
