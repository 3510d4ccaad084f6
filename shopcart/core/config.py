from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Stock and catalog API (json-server compatible)
    API_BASE_URL: str = "http://localhost:3333"
    HTTP_TIMEOUT: float = 30.0

    # Persistent cart storage
    DATABASE_URL: str = "sqlite+aiosqlite:///./cart.db"
    CART_STORAGE_KEY: str = "@RocketShoes:cart"

    # Shop Configuration
    SHOP_NAME: str = "RocketShoes"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
