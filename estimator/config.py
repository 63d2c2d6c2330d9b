from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./proposals.db"
    APP_NAME: str = "Proposal Estimator"
    LOG_LEVEL: str = "INFO"

    # Pricing defaults
    DEFAULT_MARKUP_PCT: float = 10.0          # per-element markup when none is given
    GLOBAL_MARKUP_DEFAULT_PCT: float = 10.0   # starting value of the global override

    # Presentation
    CURRENCY: str = "USD"
    CURRENCY_DECIMALS: int = 2

    class Config:
        env_file = ".env"


settings = Settings()
