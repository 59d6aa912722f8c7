from pydantic_settings import BaseSettings

APP_VERSION = "1.0.0"

class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "activity_tracker"
    JWT_SECRET: str = "dev_secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 10
    ENVIRONMENT: str = "production"
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    # request-logging middleware
    ACTIVITY_AUTO_LOG: bool = True
    ACTIVITY_AUTO_LOG_EXCLUDE: list[str] = ["/api/activity", "/docs", "/openapi.json", "/redoc"]

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

settings = Settings()
