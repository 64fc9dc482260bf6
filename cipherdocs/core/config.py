from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Пустая строка - реестр живет только в памяти
    database_url: str = ""
    sql_echo: bool = False

    jwt_secret: str
    jwt_algorithm: str = "HS256"

    max_name_length: int = 64
    event_log_size: int = 1000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

settings = Settings()
