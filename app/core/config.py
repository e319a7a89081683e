from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Breakdown Maintenance API"
    DATABASE_URL: str = "sqlite:///./breakdowns.db"
    LOG_LEVEL: str = "INFO"

    JWT_SECRET_KEY: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    BCRYPT_ROUNDS: int = 12

    # Compare-and-set on status == pending when assigning; disable for last-write-wins.
    ASSIGNMENT_GUARD: bool = True
    DEFAULT_REPORTER_NAME: str = "Reporter"

    class Config:
        env_file = ".env"

settings = Settings()
